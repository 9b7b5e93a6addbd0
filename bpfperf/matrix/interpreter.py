# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Test matrix interpreter.

Turns one validated BenchmarkDeclaration plus the command line overrides
into a TestCase, or decides the test should not run here at all.

Precedence, lowest to highest:
  1. built-in defaults (batch_size 64, pass_context on, pass_data off,
     expected_result 0)
  2. values declared in the matrix file
  3. command line overrides (-b, -c, -e)

A test is skipped, silently and without error, when its `platform` names a
different platform or when a -t filter is given and the name does not match
it as a whole.
"""

import os
import re
from typing import Optional

from bpfperf.config.exceptions import ConfigValidationError
from bpfperf.config.schema import BenchmarkDeclaration
from bpfperf.logging.logger import get_logger
from bpfperf.matrix.models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_EXPECTED_RESULT,
    DEFAULT_PASS_CONTEXT,
    DEFAULT_PASS_DATA,
    PreparationDirective,
    RunOptions,
    TestCase,
)

logger = get_logger(__name__)


def compile_name_filter(pattern: Optional[str]) -> Optional[re.Pattern[str]]:
    """Compile a -t filter, turning a bad regex into a config error."""
    if pattern is None:
        return None
    try:
        return re.compile(pattern)
    except re.error as err:
        raise ConfigValidationError(f"Invalid test name regex '{pattern}': {err}") from err


def replace_extension(path: str, extension: str) -> str:
    """
    Swap the file extension of `path`, keeping the stem.

    Windows builds of the same programs are drivers (.sys) next to the Linux
    ELF objects (.o), so one matrix serves both with `-e .sys`. A path with
    no extension just gets the new one appended.
    """
    stem, _ = os.path.splitext(path)
    return stem + extension


def _pick(override: Optional[int], declared: Optional[int], default: int) -> int:
    if override is not None:
        return override
    if declared is not None:
        return declared
    return default


def interpret_test(
    declaration: BenchmarkDeclaration,
    options: RunOptions,
    platform_name: str,
) -> Optional[TestCase]:
    """
    Resolve one declaration into a TestCase.

    Returns None when the test is filtered out by platform or name.

    Raises:
        ConfigValidationError: The name filter is not a valid regex.
    """
    if declaration.platform is not None and declaration.platform != platform_name:
        logger.debug(
            "Skipping test for another platform",
            extra={"test": declaration.name, "platform": declaration.platform},
        )
        return None

    name_filter = compile_name_filter(options.name_filter)
    if name_filter is not None and name_filter.fullmatch(declaration.name) is None:
        logger.debug(
            "Skipping test excluded by name filter",
            extra={"test": declaration.name, "filter": options.name_filter},
        )
        return None

    module_path = declaration.elf_file
    if options.module_extension is not None:
        module_path = replace_extension(module_path, options.module_extension)

    preparation = None
    if declaration.map_state_preparation is not None:
        preparation = PreparationDirective(
            program=declaration.map_state_preparation.program,
            iteration_count=declaration.map_state_preparation.iteration_count,
        )

    pass_data = declaration.pass_data
    pass_context = declaration.pass_context

    return TestCase(
        name=declaration.name,
        module_path=module_path,
        iteration_count=_pick(options.iteration_count, declaration.iteration_count, 1),
        directives=dict(declaration.program_cpu_assignment),
        program_type=declaration.program_type,
        batch_size=_pick(options.batch_size, declaration.batch_size, DEFAULT_BATCH_SIZE),
        pass_data=DEFAULT_PASS_DATA if pass_data is None else pass_data,
        pass_context=DEFAULT_PASS_CONTEXT if pass_context is None else pass_context,
        expected_result=_pick(None, declaration.expected_result, DEFAULT_EXPECTED_RESULT),
        platform=declaration.platform,
        preparation=preparation,
    )
