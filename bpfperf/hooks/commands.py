# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Pre- and post-test commands.

`--pre` and `--post` take a shell command template that runs around every
test's timed phase, typically to start and stop a tracer or a perf counter
session. The template can refer to the test being run:

    %NAME%             test name
    %ELF_FILE%         object path, after any -e override
    %ITERATION_COUNT%  iterations per CPU, after any -c override
    %CPU_COUNT%        CPU count of the run
    %BATCH_SIZE%       batch size, after any -b override

A failing command is reported on stderr with its output and never stops
the run: the benchmark numbers are still valid even if the tracer is not.
"""

import subprocess
from dataclasses import dataclass

from bpfperf.logging.logger import get_logger
from bpfperf.matrix.models import TestCase

logger = get_logger(__name__, stream="stderr")


@dataclass(frozen=True)
class CommandResult:
    """What came back from running one hook command."""

    command: str
    exit_code: int
    output: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def placeholder_values(test_case: TestCase, core_count: int) -> dict[str, str]:
    return {
        "%NAME%": test_case.name,
        "%ELF_FILE%": test_case.module_path,
        "%ITERATION_COUNT%": str(test_case.iteration_count),
        "%CPU_COUNT%": str(core_count),
        "%BATCH_SIZE%": str(test_case.batch_size),
    }


def render_command(template: str, test_case: TestCase, core_count: int) -> str:
    """Substitute every placeholder in `template`. Unknown %WORDS% are left alone."""
    command = template
    for placeholder, value in placeholder_values(test_case, core_count).items():
        command = command.replace(placeholder, value)
    return command


def run_command(command: str) -> CommandResult:
    """
    Run `command` through the shell and capture stdout and stderr together.

    The command is a user-supplied shell template, so it goes through the
    shell on purpose: pipes and redirections in --pre/--post must work.
    A command that cannot be started at all comes back with exit code -1.
    """
    try:
        result = subprocess.run(
            command,
            shell=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except OSError as err:
        return CommandResult(command=command, exit_code=-1, output=str(err))

    return CommandResult(command=command, exit_code=result.returncode, output=result.stdout)


def run_hook(kind: str, template: str, test_case: TestCase, core_count: int) -> CommandResult:
    """
    Render and run one hook command for `test_case`.

    `kind` is "Pre-test" or "Post-test" and only shows up in the log.
    Never raises for a failing command.
    """
    command = render_command(template, test_case, core_count)
    result = run_command(command)

    if result.success:
        logger.debug(
            f"{kind} command finished",
            extra={"test": test_case.name, "command": command},
        )
    else:
        logger.error(
            f"{kind} command failed: {command}",
            extra={
                "test": test_case.name,
                "exit_code": result.exit_code,
                "output": result.output,
            },
        )
    return result
