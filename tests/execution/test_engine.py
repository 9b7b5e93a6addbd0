# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the parallel execution engine and result checking.

The concurrency test uses a barrier sized to the number of workers: if the
engine ran the workers one after another, the first one would wait on the
barrier alone and time out.
"""

import threading

import pytest

from bpfperf.execution.engine import check_results, execute_assignment
from bpfperf.execution.exceptions import ResultMismatchError
from bpfperf.execution.models import BUFFER_SIZE, RunResult
from bpfperf.matrix.assignment import CoreAssignment
from bpfperf.matrix.models import TestCase

A = "helpers.o:progA"
B = "helpers.o:progB"


def _test_case(**overrides: object) -> TestCase:
    fields: dict[str, object] = {
        "name": "helpers",
        "module_path": "helpers.o",
        "iteration_count": 50,
        "directives": {},
    }
    fields.update(overrides)
    return TestCase(**fields)  # type: ignore[arg-type]


class TestExecuteAssignment:
    def test_one_result_per_populated_core(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        assignment = CoreAssignment([A, None, B, None])
        results = execute_assignment(assignment, _test_case(), fake_backend)
        assert [result.core for result in results] == [0, 2]
        assert len(fake_backend.calls) == 2

    def test_each_run_is_bound_to_its_core(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        assignment = CoreAssignment([A, B, A, B])
        execute_assignment(assignment, _test_case(), fake_backend)
        ran = sorted((call["cpu"], call["handle"]) for call in fake_backend.calls)
        assert ran == [(0, A), (1, B), (2, A), (3, B)]

    def test_run_parameters_come_from_test_case(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        test_case = _test_case(iteration_count=7, batch_size=16, pass_data=True, pass_context=False)
        execute_assignment(CoreAssignment([A]), test_case, fake_backend)
        call = fake_backend.calls[0]
        assert call["repeat"] == 7
        assert call["batch_size"] == 16
        assert call["pass_data"] is True
        assert call["pass_context"] is False

    def test_buffers_are_private_per_worker(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        execute_assignment(CoreAssignment([A, A, A]), _test_case(), fake_backend)
        buffers = [call["data_in"] for call in fake_backend.calls]
        buffers += [call["data_out"] for call in fake_backend.calls]
        assert len({id(buffer) for buffer in buffers}) == 6
        assert all(len(buffer) == BUFFER_SIZE for buffer in buffers)  # type: ignore[arg-type]

    def test_workers_run_concurrently(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        barrier = threading.Barrier(4, timeout=5)
        fake_backend.on_run = lambda handle, cpu: barrier.wait()

        results = execute_assignment(CoreAssignment([A, B, A, B]), _test_case(), fake_backend)

        assert len(results) == 4
        assert not barrier.broken

    def test_workers_use_named_threads(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        execute_assignment(CoreAssignment([A, B]), _test_case(), fake_backend)
        assert len(fake_backend.timed_calls()) == 2

    def test_every_slot_gets_its_own_thread(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        assignment = CoreAssignment([A, B] * 32)
        results = execute_assignment(assignment, _test_case(), fake_backend)

        assert len(results) == assignment.populated_count
        workers = {id(call["worker"]) for call in fake_backend.timed_calls()}
        assert len(workers) == assignment.populated_count

    def test_durations_and_return_values_are_recorded(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        fake_backend.durations[B] = 42
        fake_backend.return_values[B] = 3
        results = execute_assignment(CoreAssignment([A, B]), _test_case(), fake_backend)
        assert results[0] == RunResult(core=0, duration=1000, return_value=0)
        assert results[1] == RunResult(core=1, duration=42, return_value=3)

    def test_failed_call_still_yields_a_result(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        fake_backend.failures[B] = -22
        results = execute_assignment(CoreAssignment([A, B, A]), _test_case(), fake_backend)

        assert len(results) == 3
        failed = results[1]
        assert failed.failed
        assert failed.return_value == -22
        assert failed.duration == 0
        assert not results[0].failed and not results[2].failed

    def test_empty_assignment_starts_no_workers(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        assert execute_assignment(CoreAssignment([None, None]), _test_case(), fake_backend) == []
        assert fake_backend.calls == []

    def test_unexpected_worker_exception_propagates(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        def explode(handle: object, cpu: int) -> None:
            raise RuntimeError("backend bug")

        fake_backend.on_run = explode
        with pytest.raises(RuntimeError, match="backend bug"):
            execute_assignment(CoreAssignment([A]), _test_case(), fake_backend)


class TestCheckResults:
    def test_all_matching_returns_nothing(self) -> None:
        results = [RunResult(core=0, duration=1, return_value=0)]
        assert check_results(results, _test_case()) == []

    def test_mismatch_raises_with_values(self) -> None:
        results = [RunResult(core=0, duration=1, return_value=3)]
        with pytest.raises(ResultMismatchError) as excinfo:
            check_results(results, _test_case(expected_result=5))

        err = excinfo.value
        assert err.actual == 3
        assert err.expected == 5
        assert err.test_name == "helpers"
        assert str(err) == "Program returned unexpected result 3 in test helpers expected 5"

    def test_ignore_mode_returns_each_mismatch(self) -> None:
        results = [
            RunResult(core=0, duration=1, return_value=3),
            RunResult(core=1, duration=1, return_value=5),
            RunResult(core=2, duration=1, return_value=4),
        ]
        ignored = check_results(results, _test_case(expected_result=5), ignore_return_code=True)
        assert ignored == [
            "Program returned unexpected result 3 in test helpers expected 5",
            "Program returned unexpected result 4 in test helpers expected 5",
        ]

    def test_failed_call_counts_as_mismatch(self) -> None:
        results = [RunResult(core=0, duration=0, return_value=-22, error="EINVAL")]
        with pytest.raises(ResultMismatchError):
            check_results(results, _test_case())
