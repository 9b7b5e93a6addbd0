# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Matrix loader: reads YAML from disk and produces a validated, frozen BenchmarkMatrix.

The loading pipeline is deliberately simple and linear:
  1. Read raw text from the file
  2. Parse as YAML into a plain dict
  3. Hand the dict to pydantic for schema validation
  4. Return the frozen, immutable matrix object

If anything goes wrong at any step, we fail immediately with a clear error.
A matrix with one broken test is a broken matrix: we refuse it before any
program gets loaded into the kernel.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from bpfperf.config.exceptions import ConfigLoadError, ConfigValidationError
from bpfperf.config.schema import BenchmarkDeclaration, BenchmarkMatrix, PreparationConfig
from bpfperf.logging.logger import get_logger

logger = get_logger(__name__)


def _read_yaml_file(matrix_path: Path) -> dict[str, Any]:
    """
    Read a YAML file and return the parsed dict.

    We explicitly check for file existence before parsing, because
    yaml.safe_load gives cryptic errors on missing files.

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, or isn't valid YAML.
    """
    if not matrix_path.exists():
        raise ConfigLoadError(f"Test input file not found: {matrix_path}")

    if not matrix_path.is_file():
        raise ConfigLoadError(f"Test input path is not a file: {matrix_path}")

    try:
        raw_text = matrix_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read test input file {matrix_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {matrix_path}: {err}") from err

    if not isinstance(parsed, dict):
        raise ConfigValidationError(
            f"Invalid config file - expected a mapping with a tests sequence, "
            f"got {type(parsed).__name__}"
        )

    return parsed


def _format_location(loc: tuple[Any, ...]) -> str:
    """Turn a pydantic error location into tests[0].elf_file form."""
    parts: list[str] = []
    for item in loc:
        if isinstance(item, int):
            parts.append(f"[{item}]")
        elif parts:
            parts.append(f".{item}")
        else:
            parts.append(str(item))
    return "".join(parts)


def format_validation_error(err: ValidationError) -> str:
    """
    Collapse a pydantic ValidationError into one line per problem.

    Pydantic's default rendering spreads each error over several lines and
    includes a docs URL. For a benchmark run we want the field name and the
    reason, e.g. `tests[1].elf_file: Field required`.
    """
    return "; ".join(
        f"{_format_location(error['loc'])}: {error['msg']}" for error in err.errors()
    )


def _log_ignored_keys(tests: list[Any]) -> None:
    known = set(BenchmarkDeclaration.model_fields)
    known_preparation = set(PreparationConfig.model_fields)
    for index, entry in enumerate(tests):
        if not isinstance(entry, dict):
            continue
        ignored = sorted(str(key) for key in entry if key not in known)
        preparation = entry.get("map_state_preparation")
        if isinstance(preparation, dict):
            ignored += sorted(
                f"map_state_preparation.{key}" for key in preparation if key not in known_preparation
            )
        if ignored:
            logger.debug(
                "Ignoring unknown test keys",
                extra={"test_index": index, "test": entry.get("name"), "keys": ignored},
            )


def load_matrix(matrix_path: Path) -> BenchmarkMatrix:
    """
    Load, validate, and freeze a test matrix file.

    This is the single entry point for matrix loading. After this function
    returns, every test declaration is guaranteed to have its required fields
    (name, elf_file, iteration_count, program_cpu_assignment) with the right
    types.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations (missing fields, wrong types).

    Keys the schema does not know are ignored, so a matrix can carry notes
    such as `description:` for other tools. They are logged at DEBUG.
    """
    raw_data = _read_yaml_file(matrix_path)

    tests = raw_data.get("tests")
    if not isinstance(tests, list):
        raise ConfigValidationError("Invalid config file - tests must be a sequence")

    try:
        matrix = BenchmarkMatrix.model_validate(raw_data)
    except ValidationError as err:
        raise ConfigValidationError(
            f"Invalid config file {matrix_path}: {format_validation_error(err)}"
        ) from err

    _log_ignored_keys(tests)

    logger.debug(
        "Test matrix loaded",
        extra={"path": str(matrix_path), "test_count": len(matrix.tests)},
    )
    return matrix
