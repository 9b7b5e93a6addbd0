# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Resolved types the benchmark core passes around.

A BenchmarkDeclaration is what the file says; a TestCase is what will
actually run, after defaults and command line overrides are applied. Both
TestCase and RunOptions are frozen: once a test starts, nothing about it
changes.
"""

from dataclasses import dataclass
from typing import Optional, Union

DEFAULT_BATCH_SIZE = 64
DEFAULT_PASS_DATA = False
DEFAULT_PASS_CONTEXT = True
DEFAULT_EXPECTED_RESULT = 0

CpuDirective = Union[str, int, list[int]]


@dataclass(frozen=True)
class RunOptions:
    """
    Run-wide settings from the command line.

    The override fields are None unless the user passed the flag, so "not
    given" and "given the default value" stay distinguishable.
    """

    core_count: int
    name_filter: Optional[str] = None
    batch_size: Optional[int] = None
    iteration_count: Optional[int] = None
    module_extension: Optional[str] = None
    ignore_return_code: bool = False
    pre_command: Optional[str] = None
    post_command: Optional[str] = None


@dataclass(frozen=True)
class PreparationDirective:
    """A program run once, untimed, before the parallel phase."""

    program: str
    iteration_count: int


@dataclass(frozen=True)
class TestCase:
    """One benchmark with every optional value resolved."""

    __test__ = False

    name: str
    module_path: str
    iteration_count: int
    directives: dict[str, CpuDirective]
    program_type: Optional[str] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    pass_data: bool = DEFAULT_PASS_DATA
    pass_context: bool = DEFAULT_PASS_CONTEXT
    expected_result: int = DEFAULT_EXPECTED_RESULT
    platform: Optional[str] = None
    preparation: Optional[PreparationDirective] = None
