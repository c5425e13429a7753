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

"""Tests for records.py."""

import tempfile
import unittest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from parameterized import parameterized

from sfnstats.records import (
    AddMonths,
    AggregateRecords,
    ExecutionRecord,
    ExecutionRecords,
    FormatSeconds,
    ReadRecordsCsv,
    RecordFromExecution,
    RetentionCutoff,
    WriteAggregateCsv,
    WriteRecordsCsv,
)

_CUTOFF = datetime(2024, 1, 1, tzinfo=timezone.utc)


def Record(name: str, seconds: float, day: int = 1, status: str = "SUCCEEDED"):
    return ExecutionRecord(
        name=name,
        start_date=date(2024, 1, day),
        duration=timedelta(seconds=seconds),
        status=status,
    )


class RecordsTest(unittest.TestCase):
    """Tests for the record conversion, aggregation and CSV files."""

    @parameterized.expand(
        [
            (timedelta(seconds=0), "0.00"),
            (timedelta(seconds=60), "60.00"),
            (timedelta(seconds=3661.5), "3661.50"),
            (timedelta(milliseconds=1234), "1.23"),
            (timedelta(days=1), "86400.00"),
        ]
    )
    def test_format_seconds(self, duration: timedelta, expected: str):
        self.assertEqual(expected, FormatSeconds(duration))

    @parameterized.expand(
        [
            (datetime(2024, 3, 15, 12, 30), -2, datetime(2024, 1, 15, 12, 30)),
            (datetime(2024, 1, 10), -2, datetime(2023, 11, 10)),
            (datetime(2024, 12, 31), -2, datetime(2024, 10, 31)),
            (datetime(2024, 4, 30), -2, datetime(2024, 3, 1)),
            (datetime(2023, 4, 30), -2, datetime(2023, 3, 2)),
            (datetime(2024, 11, 30), 3, datetime(2025, 3, 2)),
        ]
    )
    def test_add_months(self, value: datetime, months: int, expected: datetime):
        self.assertEqual(expected, AddMonths(value, months))

    def test_retention_cutoff(self):
        self.assertEqual(
            datetime(2023, 12, 15, 8, tzinfo=timezone.utc),
            RetentionCutoff(datetime(2024, 2, 15, 8, tzinfo=timezone.utc)),
        )

    def test_record_from_execution(self):
        record = RecordFromExecution(
            name="A",
            execution={
                "status": "SUCCEEDED",
                "startDate": datetime(2024, 1, 1, 23, 59, 0, tzinfo=timezone.utc),
                "stopDate": datetime(2024, 1, 2, 1, 0, 1, 500000, tzinfo=timezone.utc),
            },
            cutoff=_CUTOFF,
        )
        self.assertEqual(
            ExecutionRecord(
                name="A",
                start_date=date(2024, 1, 1),
                duration=timedelta(seconds=3661.5),
                status="SUCCEEDED",
            ),
            record,
        )
        self.assertEqual(["A", "2024-01-01", "3661.50", "SUCCEEDED"], record.Row())

    def test_record_from_execution_uses_utc_date(self):
        start = datetime(2024, 1, 2, 1, 0, tzinfo=timezone(timedelta(hours=3)))
        record = RecordFromExecution(
            name="A",
            execution={
                "status": "FAILED",
                "startDate": start,
                "stopDate": start + timedelta(seconds=5),
            },
            cutoff=_CUTOFF,
        )
        self.assertEqual(date(2024, 1, 1), record.start_date)

    @parameterized.expand(
        [
            ("no start", {"stopDate": datetime(2024, 2, 1, tzinfo=timezone.utc)}),
            ("no stop", {"startDate": datetime(2024, 2, 1, tzinfo=timezone.utc)}),
            ("none stop", {"startDate": datetime(2024, 2, 1), "stopDate": None}),
            (
                "before cutoff",
                {
                    "startDate": _CUTOFF - timedelta(microseconds=1),
                    "stopDate": _CUTOFF + timedelta(minutes=1),
                },
            ),
        ]
    )
    def test_record_from_execution_skipped(self, _: str, execution: dict):
        execution["status"] = "RUNNING"
        self.assertIsNone(
            RecordFromExecution(name="A", execution=execution, cutoff=_CUTOFF)
        )

    def test_record_from_execution_at_cutoff(self):
        record = RecordFromExecution(
            name="A",
            execution={
                "status": "SUCCEEDED",
                "startDate": _CUTOFF,
                "stopDate": _CUTOFF + timedelta(seconds=1),
            },
            cutoff=_CUTOFF,
        )
        self.assertIsNotNone(record)
        self.assertEqual(timedelta(seconds=1), record.duration)

    def test_execution_records_statistics(self):
        records = ExecutionRecords([Record("A", 10), Record("A", 30), Record("A", 20)])
        self.assertEqual(timedelta(seconds=30), records.MaxDuration())
        self.assertEqual(timedelta(seconds=10), records.MinDuration())
        self.assertEqual(timedelta(seconds=20), records.AvgDuration())
        self.assertEqual(3, records.Len())

    def test_aggregate_records(self):
        records = [Record("B", 1), Record("A", 2), Record("B", 3, day=2)]
        groups = AggregateRecords(records)
        self.assertEqual(["A", "B"], list(groups.keys()))
        self.assertEqual([Record("A", 2)], groups["A"])
        self.assertEqual([Record("B", 1), Record("B", 3, day=2)], groups["B"])

    def test_write_records_csv(self):
        records = [Record("A", 60), Record("B", 3661.5, day=2, status="FAILED")]
        with tempfile.TemporaryDirectory() as tmp:
            filename = Path(tmp) / "sfn.csv"
            self.assertEqual(2, WriteRecordsCsv(filename, records))
            self.assertEqual(
                "Name,StartDate,Duration,Status\n"
                "A,2024-01-01,60.00,SUCCEEDED\n"
                "B,2024-01-02,3661.50,FAILED\n",
                filename.read_text(),
            )
            self.assertEqual(
                [record.Row() for record in records],
                [record.Row() for record in ReadRecordsCsv(filename)],
            )

    def test_write_aggregate_csv(self):
        records = [Record("A", 10), Record("B", 5), Record("A", 20), Record("A", 30)]
        with tempfile.TemporaryDirectory() as tmp:
            filename = Path(tmp) / "aggregate.csv"
            self.assertEqual(2, WriteAggregateCsv(filename, AggregateRecords(records)))
            lines = filename.read_text().splitlines()
        self.assertEqual("Name,Max,Min,Avg,Len", lines[0])
        self.assertEqual(
            {"A,30.00,10.00,20.00,3", "B,5.00,5.00,5.00,1"}, set(lines[1:])
        )

    def test_read_records_csv_bad_header(self):
        with tempfile.TemporaryDirectory() as tmp:
            filename = Path(tmp) / "sfn.csv"
            filename.write_text("Name,Duration\nA,1.00\n")
            with self.assertRaises(ValueError):
                ReadRecordsCsv(filename)


if __name__ == "__main__":
    unittest.main()
