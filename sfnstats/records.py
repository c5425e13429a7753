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

"""Execution records, their aggregation and their CSV files."""

import csv
import dataclasses
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from sfnstats.app.commands import OpenTextFile

# Executions that started earlier than this many calendar months ago are ignored.
RETENTION_MONTHS = 2

RECORD_KEYS = ["Name", "StartDate", "Duration", "Status"]

AGGREGATE_KEYS = ["Name", "Max", "Min", "Avg", "Len"]


@dataclasses.dataclass(frozen=True)
class ExecutionRecord:
    name: str
    start_date: date
    duration: timedelta
    status: str

    def Row(self) -> list[str]:
        return [
            self.name,
            self.start_date.isoformat(),
            FormatSeconds(self.duration),
            self.status,
        ]


class ExecutionRecords(list[ExecutionRecord]):
    """An ordered list of `ExecutionRecord`s.

    The duration statistics require at least one record. Groups created by
    `AggregateRecords` always satisfy that.
    """

    def MaxDuration(self) -> timedelta:
        return max(record.duration for record in self)

    def MinDuration(self) -> timedelta:
        return min(record.duration for record in self)

    def AvgDuration(self) -> timedelta:
        return sum((record.duration for record in self), timedelta()) / len(self)

    def Len(self) -> int:
        return len(self)


def FormatSeconds(duration: timedelta) -> str:
    return f"{duration.total_seconds():.2f}"


def AddMonths(value: datetime, months: int) -> datetime:
    """Adds `months` calendar months to `value`.

    Days that do not exist in the target month overflow into the following
    month, e.g. April 30th minus two months is March 1st (or 2nd in non leap
    years).
    """
    year, month = divmod(value.year * 12 + value.month - 1 + months, 12)
    return value.replace(year=year, month=month + 1, day=1) + timedelta(
        days=value.day - 1
    )


def AsUtc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def RetentionCutoff(now: datetime) -> datetime:
    return AddMonths(AsUtc(now), -RETENTION_MONTHS)


def RecordFromExecution(
    name: str, execution: dict[str, Any], cutoff: datetime
) -> Optional[ExecutionRecord]:
    """Converts an item of `ListExecutions` into an `ExecutionRecord`.

    Returns None for executions that have not stopped (or never started) and
    for executions that started before `cutoff`.
    """
    start: datetime | None = execution.get("startDate")
    stop: datetime | None = execution.get("stopDate")
    if not start or not stop:
        return None
    start = AsUtc(start)
    if start < AsUtc(cutoff):
        return None
    return ExecutionRecord(
        name=name,
        start_date=start.date(),
        duration=AsUtc(stop) - start,
        status=str(execution.get("status", "")),
    )


def AggregateRecords(records: Iterable[ExecutionRecord]) -> dict[str, ExecutionRecords]:
    """Groups `records` by name, the result is sorted by name."""
    groups: dict[str, ExecutionRecords] = {}
    for record in records:
        groups.setdefault(record.name, ExecutionRecords()).append(record)
    return {name: groups[name] for name in sorted(groups)}


def WriteRecordsCsv(filename: Path, records: Iterable[ExecutionRecord]) -> int:
    """Writes `records` to `filename` and returns the number of rows written."""
    rows = 0
    with OpenTextFile(filename=filename, mode="w", newline="") as csv_file:
        writer = csv.writer(csv_file, lineterminator="\n")
        writer.writerow(RECORD_KEYS)
        for record in records:
            writer.writerow(record.Row())
            rows += 1
    return rows


def WriteAggregateCsv(filename: Path, groups: dict[str, ExecutionRecords]) -> int:
    """Writes one row of duration statistics per group and returns the row count."""
    with OpenTextFile(filename=filename, mode="w", newline="") as csv_file:
        writer = csv.writer(csv_file, lineterminator="\n")
        writer.writerow(AGGREGATE_KEYS)
        for name, records in groups.items():
            writer.writerow(
                [
                    name,
                    FormatSeconds(records.MaxDuration()),
                    FormatSeconds(records.MinDuration()),
                    FormatSeconds(records.AvgDuration()),
                    str(records.Len()),
                ]
            )
    return len(groups)


def ReadRecordsCsv(filename: Path) -> ExecutionRecords:
    """Reads a file written by `WriteRecordsCsv`."""
    records = ExecutionRecords()
    with OpenTextFile(filename=filename, mode="r", newline="") as csv_file:
        reader = csv.DictReader(csv_file, delimiter=",")
        if reader.fieldnames != RECORD_KEYS:
            raise ValueError(
                f"Bad field names {reader.fieldnames} in '{filename}', expected {RECORD_KEYS}."
            )
        for row in reader:
            records.append(
                ExecutionRecord(
                    name=row["Name"],
                    start_date=date.fromisoformat(row["StartDate"]),
                    duration=timedelta(seconds=float(row["Duration"])),
                    status=row["Status"],
                )
            )
    return records
