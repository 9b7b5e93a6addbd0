# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Benchmark orchestrator, the outer test loop.

For each declared test, strictly one after the other:
  1. interpret the declaration (skip on platform / name filter)
  2. load its object, once per path for the whole run
  3. resolve the CPU assignment
  4. run the map state preparation program, if any
  5. run the --pre command, if any
  6. record the start timestamp and run every assigned CPU in parallel
  7. check return values against expected_result
  8. run the --post command, if any
  9. write the CSV row

Everything except step 6 happens on the calling thread. Any fatal error
stops the run immediately; rows already written stay written.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from bpfperf.bpf.cache import ModuleCache
from bpfperf.bpf.exceptions import ProgramNotFoundError
from bpfperf.bpf.interfaces import Backend, ProgramHandle
from bpfperf.config.schema import BenchmarkDeclaration, BenchmarkMatrix
from bpfperf.execution.engine import check_results, execute_assignment
from bpfperf.execution.models import RunResult
from bpfperf.execution.preparation import run_preparation
from bpfperf.hooks.commands import run_hook
from bpfperf.logging.logger import get_logger
from bpfperf.matrix.assignment import CoreAssignment, resolve_assignment
from bpfperf.matrix.interpreter import compile_name_filter, interpret_test
from bpfperf.matrix.models import RunOptions, TestCase
from bpfperf.reporting.csv_report import CsvReporter
from bpfperf.runtime.environment import runner_platform

logger = get_logger(__name__)


@dataclass(frozen=True)
class TestOutcome:
    """Everything one executed test produced."""

    __test__ = False

    test_case: TestCase
    assignment: CoreAssignment
    started_at: datetime
    results: list[RunResult]
    mismatches: int = 0


@dataclass
class RunSummary:
    """Totals for one pass over the matrix."""

    executed: list[TestOutcome] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class BenchmarkRunner:
    """
    Runs a test matrix against a backend and reports through a CsvReporter.

    The module cache can be handed in to share loads across several runs;
    otherwise the runner creates one per run and closes it at the end.
    """

    def __init__(
        self,
        backend: Backend,
        options: RunOptions,
        reporter: Optional[CsvReporter] = None,
        platform_name: Optional[str] = None,
        cache: Optional[ModuleCache] = None,
    ) -> None:
        self._backend = backend
        self._options = options
        self._reporter = reporter or CsvReporter()
        self._platform = platform_name or runner_platform()
        self._cache = cache

    @property
    def reporter(self) -> CsvReporter:
        return self._reporter

    def run(self, matrix: BenchmarkMatrix) -> RunSummary:
        """
        Execute every test in `matrix`, in order.

        Raises:
            ConfigError: Bad name filter, malformed or out-of-range assignment.
            ModuleLoadError: An object or program could not be loaded or found.
            ProgramRunError: The preparation run call failed.
            ResultMismatchError: Unexpected return value, unless ignored.
        """
        # Fail on a bad -t regex before touching the kernel.
        compile_name_filter(self._options.name_filter)

        if self._cache is not None:
            return self._run_tests(matrix, self._cache)

        with ModuleCache(self._backend) as cache:
            return self._run_tests(matrix, cache)

    def _run_tests(self, matrix: BenchmarkMatrix, cache: ModuleCache) -> RunSummary:
        summary = RunSummary()

        for declaration in matrix.tests:
            outcome = self._run_one(declaration, cache)
            if outcome is None:
                summary.skipped.append(declaration.name)
            else:
                summary.executed.append(outcome)

        logger.info(
            "Benchmark run complete",
            extra={"executed": len(summary.executed), "skipped": len(summary.skipped)},
        )
        return summary

    def _run_one(self, declaration: BenchmarkDeclaration, cache: ModuleCache) -> Optional[TestOutcome]:
        options = self._options
        test_case = interpret_test(declaration, options, self._platform)
        if test_case is None:
            return None

        module = cache.get(test_case.module_path, test_case.program_type)

        def find_program(name: str) -> ProgramHandle:
            handle = module.find_program(name)
            if handle is None:
                raise ProgramNotFoundError(name, test_case.module_path)
            return handle

        assignment = resolve_assignment(test_case.directives, options.core_count, find_program)

        preparation_note = run_preparation(
            test_case, module, self._backend, options.ignore_return_code,
        )
        if preparation_note is not None:
            self._reporter.note(preparation_note)

        if options.pre_command is not None:
            run_hook("Pre-test", options.pre_command, test_case, options.core_count)

        logger.info(
            "Running test",
            extra={
                "test": test_case.name,
                "elf_file": test_case.module_path,
                "cpus": assignment.populated_cores(),
                "iterations": test_case.iteration_count,
            },
        )

        started_at = datetime.now(tz=timezone.utc)
        results = execute_assignment(assignment, test_case, self._backend)
        ignored = check_results(results, test_case, options.ignore_return_code)
        for message in ignored:
            self._reporter.note(message)

        if options.post_command is not None:
            run_hook("Post-test", options.post_command, test_case, options.core_count)

        self._reporter.report(test_case.name, started_at, results)

        return TestOutcome(
            test_case=test_case,
            assignment=assignment,
            started_at=started_at,
            results=results,
            mismatches=len(ignored),
        )
