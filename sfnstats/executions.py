#!/usr/bin/env python3

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

"""A simple [AWS Step Functions](https://aws.amazon.com/step-functions/) report
tool that fetches the recent executions of all state machines and writes them
as CSV files.

Only executions that have stopped and that started within the last two months
are reported. Output files with a '.gz' or '.bz2' extension are transparently
compressed.
"""

import sfnstats.executions_lib
from sfnstats.app.commands import Command


def main():
    Command.Run()


if __name__ == "__main__":
    main()
