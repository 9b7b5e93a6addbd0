# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for bpfperf.

Usage:
    bpfperf -i tests.yaml
    bpfperf -i tests.yaml -t 'helpers_.*' -c 100000 -p 8
    bpfperf -i tests.yaml -e .sys -r --pre 'wpr -start %NAME%.wprp' --post 'wpr -stop %NAME%.etl'

The CSV report goes to stdout. Diagnostics go to stderr as JSON log lines.
Exit code is 0 when every test ran and matched its expected result, 1 on
any fatal error.
"""

import argparse
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import NoReturn, Optional

from bpfperf.bpf.interfaces import Backend
from bpfperf.bpf.libbpf import LibbpfBackend
from bpfperf.cli.exit_codes import FAILURE, SUCCESS
from bpfperf.config.loader import load_matrix
from bpfperf.errors import BpfPerfError
from bpfperf.logging.logger import get_logger, set_log_level
from bpfperf.matrix.models import RunOptions
from bpfperf.runner.orchestrator import BenchmarkRunner
from bpfperf.runtime.environment import check_minimum_python, get_system_info

logger = get_logger(__name__, stream="stderr")


class _ArgumentParser(argparse.ArgumentParser):
    """argparse, but usage errors exit with FAILURE like every other fatal error."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(FAILURE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="bpfperf",
        description="Run BPF programs on assigned CPUs and report per-CPU execution time.",
    )
    parser.add_argument("-i", dest="input", default=None, help="Test input file")
    parser.add_argument("-t", dest="test_name", default=None, help="Test name regex")
    parser.add_argument("-b", dest="batch_size", type=int, default=None, help="Batch size override")
    parser.add_argument(
        "-e", dest="extension", default=None, help="eBPF file extension override, e.g. .sys",
    )
    parser.add_argument(
        "-c", dest="iteration_count", type=int, default=None, help="Iteration count override",
    )
    parser.add_argument("-p", dest="cpu_count", type=int, default=None, help="CPU count override")
    parser.add_argument(
        "-r",
        dest="ignore_return_code",
        action="store_true",
        default=False,
        help="Ignore return code from BPF programs",
    )
    parser.add_argument("--pre", dest="pre_command", default=None, help="Command to run before each test")
    parser.add_argument("--post", dest="post_command", default=None, help="Command to run after each test")
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level.",
    )
    return parser


def _validate_overrides(args: argparse.Namespace) -> None:
    for flag, value in (("-b", args.batch_size), ("-c", args.iteration_count), ("-p", args.cpu_count)):
        if value is not None and value < 1:
            raise BpfPerfError(f"{flag} must be a positive integer, got {value}")


def run(
    argv: Optional[Sequence[str]] = None,
    backend_factory: Callable[[], Backend] = LibbpfBackend,
) -> int:
    """
    Parse arguments, run the matrix, and return the exit code.

    The flow is straightforward:
      1. Parse the command line and apply the log level
      2. Load and validate the matrix file
      3. Load the BPF backend and work out the CPU count
      4. Run every test, writing CSV rows as they finish
    """
    args = build_parser().parse_args(argv)
    set_log_level(args.log_level)

    try:
        check_minimum_python()
        info = get_system_info()
        logger.debug(
            "bpfperf starting",
            extra={"python_version": info.python_version, "platform": info.platform},
        )

        if not args.input:
            raise BpfPerfError("Test input file is required")
        _validate_overrides(args)

        matrix = load_matrix(Path(args.input))

        backend = backend_factory()
        core_count = args.cpu_count if args.cpu_count is not None else backend.num_possible_cpus()

        options = RunOptions(
            core_count=core_count,
            name_filter=args.test_name,
            batch_size=args.batch_size,
            iteration_count=args.iteration_count,
            module_extension=args.extension,
            ignore_return_code=args.ignore_return_code,
            pre_command=args.pre_command,
            post_command=args.post_command,
        )
        BenchmarkRunner(backend, options).run(matrix)

    except (BpfPerfError, RuntimeError) as err:
        logger.error(f"Error: {err}", extra={"error_type": type(err).__name__})
        return FAILURE

    return SUCCESS


def main() -> None:
    """Console script entrypoint, what pyproject.toml's [project.scripts] points to."""
    sys.exit(run())


if __name__ == "__main__":
    main()
