# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Parallel execution engine, the timed phase of every test.

For each occupied CPU slot we start one dedicated worker thread. Each worker:
  1. allocates its own input and output buffers
  2. calls the execution primitive once, with repeat = iteration_count
     and cpu = its slot index
  3. writes a RunResult into its own slot and nothing else

Threads are never reused between slots, even when a run returns at once,
so every assigned CPU has its own call in flight at the same time. The
control thread joins every worker before looking at any result. There is
no timeout and no cancellation: a program that never returns hangs the run.

Buffers are never shared between workers, so one CPU's run cannot see
what another wrote, and no locking is needed anywhere.

Ignored return code mismatches come back from check_results as plain
message lines. The caller prints them on the report stream, next to the
CSV rows, rather than as JSON log lines.
"""

import threading

from bpfperf.bpf.exceptions import ProgramRunError
from bpfperf.bpf.interfaces import ProgramHandle, ProgramRunner
from bpfperf.execution.exceptions import ResultMismatchError
from bpfperf.execution.models import BUFFER_SIZE, RunResult
from bpfperf.logging.logger import get_logger
from bpfperf.matrix.assignment import CoreAssignment
from bpfperf.matrix.models import TestCase

logger = get_logger(__name__)


def _run_on_core(
    runner: ProgramRunner,
    handle: ProgramHandle,
    core: int,
    test_case: TestCase,
) -> RunResult:
    """Body of one worker: a single repeated run bound to `core`."""
    data_in = bytearray(BUFFER_SIZE)
    data_out = bytearray(BUFFER_SIZE)

    try:
        outcome = runner.run(
            handle,
            repeat=test_case.iteration_count,
            cpu=core,
            batch_size=test_case.batch_size,
            pass_data=test_case.pass_data,
            pass_context=test_case.pass_context,
            data_in=data_in,
            data_out=data_out,
        )
    except ProgramRunError as err:
        return RunResult(core=core, duration=0, return_value=err.code, error=str(err))

    return RunResult(core=core, duration=outcome.duration, return_value=outcome.return_value)


def execute_assignment(
    assignment: CoreAssignment,
    test_case: TestCase,
    runner: ProgramRunner,
) -> list[RunResult]:
    """
    Run every occupied slot of `assignment` in parallel and wait for all of them.

    Returns one RunResult per occupied slot, in ascending CPU order. A slot
    whose test-run call failed still gets a result, carrying the negative
    status code as its return value.

    Anything else a worker raises (a backend bug, not a failed run) is
    re-raised on the calling thread once every worker has finished.
    """
    populated = assignment.populated()
    if not populated:
        return []

    slots: list[RunResult | None] = [None] * len(assignment)
    crashes: list[Exception | None] = [None] * len(assignment)

    def worker(core: int, handle: ProgramHandle) -> None:
        try:
            slots[core] = _run_on_core(runner, handle, core, test_case)
        except Exception as err:
            crashes[core] = err

    logger.debug(
        "Starting timed phase",
        extra={
            "test": test_case.name,
            "workers": len(populated),
            "iterations": test_case.iteration_count,
        },
    )

    threads = [
        threading.Thread(
            target=worker,
            args=(core, handle),
            name=f"bpfperf-{test_case.name}-cpu{core}",
        )
        for core, handle in populated
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    for crash in crashes:
        if crash is not None:
            raise crash

    results = [result for result in slots if result is not None]

    for result in results:
        if result.failed:
            logger.error(
                "Test run call failed",
                extra={"test": test_case.name, "cpu": result.core, "error": result.error},
            )

    return results


def check_results(
    results: list[RunResult],
    test_case: TestCase,
    ignore_return_code: bool = False,
) -> list[str]:
    """
    Compare every result against the test's expected_result.

    In ignore mode every mismatch is collected and the run goes on;
    otherwise the first mismatch raises. Returns the messages for the
    ignored mismatches, in CPU order.

    Raises:
        ResultMismatchError: A result did not match and ignore_return_code is off.
    """
    ignored: list[str] = []
    for result in results:
        if result.return_value == test_case.expected_result:
            continue

        message = (
            f"Program returned unexpected result {result.return_value} in test "
            f"{test_case.name} expected {test_case.expected_result}"
        )
        if not ignore_return_code:
            raise ResultMismatchError(
                message, test_case.name, result.return_value, test_case.expected_result,
            )
        logger.info(message, extra={"test": test_case.name, "cpu": result.core})
        ignored.append(message)

    return ignored
