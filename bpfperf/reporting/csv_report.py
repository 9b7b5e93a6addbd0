# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CSV result reporter.

One row per executed test, written to stdout as soon as the test finishes:

    Timestamp,Test,Average Duration (ns),CPU 0 Duration (ns),CPU 2 Duration (ns)
    2026-10-18T09:14:03+0000,helpers,183,180,186

Only occupied CPUs get a column. The header is written once, from the first
test's CPU layout. Later tests with a different layout still get their row,
but their columns no longer line up with the header; the reporter logs a
warning when that happens so the mismatch is not silent.

Ignored return code mismatches are written to the same stream as plain
lines, in the order they happen, between the rows of the report.
"""

import csv
import sys
from datetime import datetime, timezone
from typing import Optional, TextIO

from bpfperf.execution.models import RunResult
from bpfperf.logging.logger import get_logger

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def format_timestamp(moment: datetime) -> str:
    """ISO 8601 in UTC, second precision, numeric offset: 2026-10-18T09:14:03+0000."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def average_duration(results: list[RunResult]) -> int:
    """Integer mean of the per-CPU durations, truncated. Zero when nothing ran."""
    if not results:
        return 0
    return sum(result.duration for result in results) // len(results)


def header_row(cores: list[int]) -> list[str]:
    return [
        "Timestamp",
        "Test",
        "Average Duration (ns)",
        *(f"CPU {core} Duration (ns)" for core in cores),
    ]


class CsvReporter:
    """
    Writes the benchmark report, one row per test.

    The stream defaults to whatever sys.stdout is at write time.
    """

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream
        self._header_cores: Optional[list[int]] = None
        self.rows_written = 0

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    @property
    def header_written(self) -> bool:
        return self._header_cores is not None

    def report(self, test_name: str, started_at: datetime, results: list[RunResult]) -> list[str]:
        """
        Write the row for one test, preceded by the header if this is the first.

        Returns the row as written, which the tests and callers can inspect
        without parsing the stream.
        """
        ordered = sorted(results, key=lambda result: result.core)
        cores = [result.core for result in ordered]

        writer = csv.writer(self.stream, lineterminator="\n")

        if self._header_cores is None:
            writer.writerow(header_row(cores))
            self._header_cores = cores
        elif cores != self._header_cores:
            logger.warning(
                "CPU layout differs from the CSV header, columns will not line up",
                extra={"test": test_name, "header_cpus": self._header_cores, "test_cpus": cores},
            )

        row = [
            format_timestamp(started_at),
            test_name,
            str(average_duration(ordered)),
            *(str(result.duration) for result in ordered),
        ]
        writer.writerow(row)
        self.stream.flush()
        self.rows_written += 1
        return row

    def note(self, message: str) -> None:
        """Write a plain, unquoted line such as an ignored return code mismatch."""
        self.stream.write(message + "\n")
        self.stream.flush()
