# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe schema for the test matrix document.

A matrix file is a YAML mapping with a single `tests` sequence. Each entry
declares one benchmark: which ELF file to load, how many times to run, and
which program goes on which CPU.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="ignore": keys this tool does not read are dropped, so a matrix
    can carry extra notes (description, owner, ...) for other tools
  - validate_default=True: even defaults get type-checked

CPU indices are validated strictly. YAML `true` is a boolean, not CPU 1.

Optional fields stay None here. Defaults such as batch_size=64 are applied
when a declaration is turned into a TestCase, together with the command line
overrides, so there is exactly one place where precedence is decided.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# A directive is either a keyword, a single CPU index, or a list of CPU indices.
# Range checking against the CPU count happens in the assignment resolver,
# since the CPU count is only known at run time.
CpuIndex = Annotated[int, Field(strict=True, ge=0)]
CpuDirective = Union[Literal["all", "remaining"], CpuIndex, list[CpuIndex]]

MAX_U32 = 2**32 - 1


class PreparationConfig(BaseModel):
    """A program run once before the timed phase to put maps in a known state."""

    model_config = ConfigDict(frozen=True, extra="ignore", validate_default=True)

    program: str = Field(description="Name of the program inside the test's ELF file")
    iteration_count: int = Field(ge=1, description="Repeat count for the preparation run")


class BenchmarkDeclaration(BaseModel):
    """
    One entry of the `tests` sequence, exactly as written in the file.

    program_cpu_assignment keeps YAML declaration order. That matters:
    "remaining" only fills the CPUs left empty by the entries above it.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", validate_default=True)

    name: str = Field(description="Test name, matched against the -t filter")
    elf_file: str = Field(description="Path to the compiled BPF object")
    iteration_count: int = Field(ge=1, description="Repeat count for each timed run")
    program_cpu_assignment: dict[str, CpuDirective] = Field(
        description="Program name -> 'all', 'remaining', a CPU index or a list of CPU indices",
    )
    program_type: Optional[str] = Field(
        default=None,
        description="libbpf program type name, e.g. 'xdp'; platform default when omitted",
    )
    batch_size: Optional[int] = Field(default=None, ge=1)
    pass_data: Optional[bool] = Field(default=None)
    pass_context: Optional[bool] = Field(default=None)
    expected_result: Optional[int] = Field(default=None, ge=0, le=MAX_U32)
    platform: Optional[str] = Field(
        default=None,
        description="Only run on this platform ('Linux' or 'Windows')",
    )
    map_state_preparation: Optional[PreparationConfig] = Field(default=None)


class BenchmarkMatrix(BaseModel):
    """Top-level matrix container."""

    model_config = ConfigDict(frozen=True, extra="ignore", validate_default=True)

    tests: list[BenchmarkDeclaration] = Field(description="Benchmarks, run in file order")
