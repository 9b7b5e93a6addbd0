# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for the untimed map state preparation run."""

import pytest

from bpfperf.bpf.exceptions import ProgramNotFoundError, ProgramRunError
from bpfperf.execution.exceptions import ResultMismatchError
from bpfperf.execution.preparation import run_preparation
from bpfperf.matrix.models import PreparationDirective, TestCase

PREPARE = "helpers.o:prepare"


def _test_case(preparation: PreparationDirective | None, **overrides: object) -> TestCase:
    fields: dict[str, object] = {
        "name": "lookup",
        "module_path": "helpers.o",
        "iteration_count": 1000,
        "directives": {"progA": "all"},
        "preparation": preparation,
    }
    fields.update(overrides)
    return TestCase(**fields)  # type: ignore[arg-type]


class TestRunPreparation:
    def test_no_preparation_runs_nothing(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        module = fake_backend.open_module("helpers.o")
        assert run_preparation(_test_case(None), module, fake_backend) is None
        assert fake_backend.calls == []

    def test_runs_once_on_cpu_zero_with_its_own_iterations(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        module = fake_backend.open_module("helpers.o")
        run_preparation(_test_case(PreparationDirective("prepare", 3)), module, fake_backend)

        assert len(fake_backend.calls) == 1
        call = fake_backend.calls[0]
        assert call["handle"] == PREPARE
        assert call["cpu"] == 0
        assert call["repeat"] == 3

    def test_runs_on_calling_thread(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        module = fake_backend.open_module("helpers.o")
        run_preparation(_test_case(PreparationDirective("prepare", 1)), module, fake_backend)
        assert fake_backend.timed_calls() == []

    def test_missing_program_names_object(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        module = fake_backend.open_module("helpers.o")
        with pytest.raises(ProgramNotFoundError, match="fill in helpers.o"):
            run_preparation(_test_case(PreparationDirective("fill", 1)), module, fake_backend)

    def test_run_failure_is_fatal(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        fake_backend.failures[PREPARE] = -1
        module = fake_backend.open_module("helpers.o")
        with pytest.raises(ProgramRunError, match="map_state_preparation program prepare") as excinfo:
            run_preparation(_test_case(PreparationDirective("prepare", 1)), module, fake_backend)
        assert excinfo.value.code == -1

    def test_unexpected_value_is_fatal(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        fake_backend.return_values[PREPARE] = 9
        module = fake_backend.open_module("helpers.o")
        with pytest.raises(ResultMismatchError, match="returned unexpected value 9 expected 0"):
            run_preparation(_test_case(PreparationDirective("prepare", 1)), module, fake_backend)

    def test_expected_value_is_the_tests(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        fake_backend.return_values[PREPARE] = 2
        module = fake_backend.open_module("helpers.o")
        test_case = _test_case(PreparationDirective("prepare", 1), expected_result=2)
        assert run_preparation(test_case, module, fake_backend) is None

    def test_ignore_mode_returns_the_message(self, fake_backend) -> None:  # type: ignore[no-untyped-def]
        fake_backend.return_values[PREPARE] = 9
        module = fake_backend.open_module("helpers.o")
        note = run_preparation(
            _test_case(PreparationDirective("prepare", 1)), module, fake_backend, ignore_return_code=True,
        )
        assert note is not None
        assert "returned unexpected value 9 expected 0" in note
