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

"""A collection of AWS Step Functions execution commands."""

import argparse
from datetime import datetime, timezone
from pathlib import Path

import humanize

from sfnstats.app.commands import Command, Die, Log, Print
from sfnstats.records import (
    AggregateRecords,
    AsUtc,
    ExecutionRecords,
    ReadRecordsCsv,
    RecordFromExecution,
    RetentionCutoff,
    WriteAggregateCsv,
    WriteRecordsCsv,
)
from sfnstats.sfn_client import StateMachineNameFromArn, StepFunctionsClient


def TimeRangeStr(start: datetime, end: datetime) -> str:
    return f"Time range: [{start} .. {end}] ({humanize.precisedelta(end - start)})."


def FetchExecutionRecords(sfn: StepFunctionsClient, now: datetime) -> ExecutionRecords:
    """Lists all state machines and converts their recent executions into records.

    Executions that are still running and executions that started before the
    retention cutoff (`now` minus two months) are skipped.
    """
    cutoff = RetentionCutoff(now)
    Log(TimeRangeStr(cutoff, AsUtc(now)))
    records = ExecutionRecords()
    state_machines = sfn.RequestStateMachines()
    Log(f"Found {len(state_machines)} state machines.")
    for state_machine in state_machines:
        arn = state_machine["stateMachineArn"]
        name = StateMachineNameFromArn(arn)
        executions = sfn.RequestExecutions(state_machine_arn=arn)
        accepted = 0
        for execution in executions:
            record = RecordFromExecution(name=name, execution=execution, cutoff=cutoff)
            if record:
                records.append(record)
                accepted += 1
        Log(f"Read {accepted} of {len(executions)} executions for '{name}'.")
    return records


class SfnCommand(Command):
    """Abstract base class for commands that use the AWS Step Functions API."""

    def __init__(self, parser: argparse.ArgumentParser) -> None:
        super(SfnCommand, self).__init__(parser)
        parser.add_argument(
            "--profile",
            default="",
            type=str,
            help="The name of the AWS profile used to authenticate (required).",
        )

    def Prepare(self) -> None:
        super(SfnCommand, self).Prepare()
        if not self.args.profile:
            Die("Must provide non empty `--profile` flag.")
        self.sfn = self._InitSfnClient(profile=self.args.profile)

    @staticmethod
    def _InitSfnClient(profile: str) -> StepFunctionsClient:
        return StepFunctionsClient.Create(profile=profile)


class Report(SfnCommand):
    """Fetch recent executions of all state machines and write the CSV reports.

    Executions that are still running or that started more than two months ago
    are ignored. The report consists of two files:

    * `--output` (default `sfn.csv`) with one row per execution:
      `Name,StartDate,Duration,Status`.
    * `--aggregate_output` (default `aggregate.csv`) with one row per state
      machine: `Name,Max,Min,Avg,Len`.

    Durations are in seconds with two decimals.

    ```
    python -m sfnstats.executions report --profile my-profile
    ```
    """

    def __init__(self, parser: argparse.ArgumentParser) -> None:
        super(Report, self).__init__(parser)
        parser.add_argument(
            "--output",
            default=Path("sfn.csv"),
            type=Path,
            help="Name of the per execution output file.",
        )
        parser.add_argument(
            "--aggregate_output",
            default=Path("aggregate.csv"),
            type=Path,
            help="Name of the per state machine output file.",
        )

    def Main(self) -> None:
        records = FetchExecutionRecords(self.sfn, now=datetime.now(timezone.utc))
        rows = WriteRecordsCsv(self.args.output, records)
        Log(f"Wrote {rows} executions to '{self.args.output}'.")
        groups = AggregateRecords(records)
        rows = WriteAggregateCsv(self.args.aggregate_output, groups)
        Log(f"Wrote {rows} state machines to '{self.args.aggregate_output}'.")


class RequestStateMachines(SfnCommand):
    """Read and display the names of all state machines.

    ```
    python -m sfnstats.executions request_state_machines --profile my-profile
    ```
    """

    def Main(self) -> None:
        for state_machine in self.sfn.RequestStateMachines():
            Print(StateMachineNameFromArn(state_machine["stateMachineArn"]))


class RequestExecutions(SfnCommand):
    """Read and display the executions of one state machine.

    Prints `name,status,startDate,stopDate,duration` per execution, including
    running and old executions.

    ```
    python -m sfnstats.executions request_executions --profile my-profile --state_machine_arn <ARN>
    ```
    """

    def __init__(self, parser: argparse.ArgumentParser) -> None:
        super(RequestExecutions, self).__init__(parser)
        parser.add_argument(
            "--state_machine_arn",
            default="",
            type=str,
            help="The ARN of the state machine.",
        )

    def Prepare(self) -> None:
        if not self.args.state_machine_arn:
            Die("Must provide non empty `--state_machine_arn` flag.")
        StateMachineNameFromArn(self.args.state_machine_arn)
        super(RequestExecutions, self).Prepare()

    def Main(self) -> None:
        executions = self.sfn.RequestExecutions(
            state_machine_arn=self.args.state_machine_arn
        )
        Log(f"Read {len(executions)} executions.")
        for execution in executions:
            start = execution.get("startDate")
            stop = execution.get("stopDate")
            duration = humanize.naturaldelta(stop - start) if start and stop else ""
            Print(
                f"{execution.get('name', '')},{execution.get('status', '')},"
                f"{start or ''},{stop or ''},{duration}"
            )


class Aggregate(Command):
    """Read a file written by `report` and write the per state machine aggregate.

    ```
    python -m sfnstats.executions aggregate --input sfn.csv --output aggregate.csv
    ```
    """

    def __init__(self, parser: argparse.ArgumentParser) -> None:
        super(Aggregate, self).__init__(parser)
        parser.add_argument(
            "--input",
            default=Path("sfn.csv"),
            type=Path,
            help="A CSV file generated by `report`.",
        )
        parser.add_argument(
            "--output",
            default=Path("aggregate.csv"),
            type=Path,
            help="Name of the output file.",
        )

    def Main(self) -> None:
        try:
            records = ReadRecordsCsv(self.args.input)
        except ValueError as err:
            Die(err)
        Log(f"Read {len(records)} executions from '{self.args.input}'.")
        rows = WriteAggregateCsv(self.args.output, AggregateRecords(records))
        Log(f"Wrote {rows} state machines to '{self.args.output}'.")
