# SPDX-FileCopyrightText: Copyright (c) The helly25/mbo authors (helly25.com)
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""A simple AWS Step Functions client."""

from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError


class SfnError(Exception):
    """Base exception for all Exceptions raised by the client."""

    pass


class SfnRequestError(SfnError):
    """Exception raised by the client if the request fails (session, credentials, network)."""

    pass


class SfnApiError(SfnError):
    """Exception raised by the client if the API reports an error."""

    pass


class SfnDataError(SfnError):
    """Exception raised by the client if the API returned unexpected data."""

    pass


class StateMachineArnError(SfnDataError):
    """Exception raised if a state machine ARN does not have the expected format."""

    pass


def StateMachineNameFromArn(arn: str) -> str:
    """Returns the state machine name embedded in `arn`.

    State machine ARNs have the form
    `arn:<partition>:states:<region>:<account>:stateMachine:<name>[:<qualifier>]`,
    the name is the 7th colon separated field.
    """
    fields = str(arn).split(":")
    if len(fields) < 7 or fields[0] != "arn" or fields[5] != "stateMachine":
        raise StateMachineArnError(f"Unexpected state machine ARN format: '{arn}'.")
    if not fields[6]:
        raise StateMachineArnError(f"State machine ARN has an empty name: '{arn}'.")
    return fields[6]


class StepFunctionsClient:
    """Implementation of a simple AWS Step Functions client.

    The client wraps a boto3 `stepfunctions` client which gets passed in, so that
    the session (and its credentials) are created exactly once by the caller.

    See https://docs.aws.amazon.com/step-functions/latest/apireference/API_Operations.html
    """

    def __init__(self, client: Any):
        self.client = client

    @staticmethod
    def Create(profile: str) -> "StepFunctionsClient":
        """Creates a client for the named AWS `profile`.

        Profiles that assume a role with `mfa_serial` prompt for the MFA token
        on first use. The assumed role session lasts for the STS default of
        one hour unless the profile configures `duration_seconds`.
        """
        try:
            session = boto3.Session(profile_name=profile)
            return StepFunctionsClient(client=session.client("stepfunctions"))
        except BotoCoreError as err:
            raise SfnRequestError(f"Step Functions Session Error: '{err}'")

    def _Request(self, operation: str, **kwargs) -> dict[str, Any]:
        try:
            return getattr(self.client, operation)(**kwargs)
        except ClientError as err:
            error = err.response.get("Error", {})
            raise SfnApiError(
                f"Step Functions API Error: {error.get('Code', '?')}: '{error.get('Message', '')}'"
            )
        except BotoCoreError as err:
            raise SfnRequestError(f"Step Functions Request Error: '{err}'")

    def _Items(self, data: dict[str, Any], key: str) -> list[dict[str, Any]]:
        if not isinstance(data, dict) or not isinstance(data.get(key), list):
            raise SfnDataError(f"Step Functions Data Error: missing '{key}': data='{data}'")
        return data[key]

    def RequestStateMachines(self) -> list[dict[str, Any]]:
        """Returns the list of state machines (a single listing, not paginated)."""
        return self._Items(self._Request("list_state_machines"), "stateMachines")

    def RequestExecutions(self, state_machine_arn: str) -> list[dict[str, Any]]:
        """Returns the executions of `state_machine_arn` (a single listing, not paginated)."""
        return self._Items(
            self._Request("list_executions", stateMachineArn=state_machine_arn),
            "executions",
        )
