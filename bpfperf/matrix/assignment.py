# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CPU assignment resolver.

program_cpu_assignment maps a program name to the CPUs it should run on:

    program_cpu_assignment:
      test_fast_path: [0, 2]     # explicit CPUs
      test_slow_path: remaining  # every CPU nobody above claimed
      test_all: all              # every CPU, overwriting earlier entries

Directives are applied in declaration order against a dense table with one
slot per CPU. "remaining" only sees what earlier directives in the same map
decided, which is what lets a matrix pin a few CPUs explicitly and fill the
rest with a default program.

Nothing is silently dropped. A CPU index outside [0, core_count) is an
error, because a benchmark that quietly runs on fewer CPUs than declared
produces numbers that look valid and are not.
"""

from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Optional

from bpfperf.bpf.exceptions import ProgramNotFoundError
from bpfperf.bpf.interfaces import ProgramHandle
from bpfperf.config.exceptions import AssignmentError
from bpfperf.matrix.models import CpuDirective

ALL = "all"
REMAINING = "remaining"


class CoreAssignment:
    """
    Dense CPU -> program handle table, one slot per CPU.

    Empty slots are None. Built fresh for every test and never modified
    after resolve_assignment returns it.
    """

    def __init__(self, slots: Sequence[Optional[ProgramHandle]]) -> None:
        self._slots: tuple[Optional[ProgramHandle], ...] = tuple(slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, core: int) -> Optional[ProgramHandle]:
        return self._slots[core]

    def __iter__(self) -> Iterator[Optional[ProgramHandle]]:
        return iter(self._slots)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CoreAssignment):
            return NotImplemented
        return self._slots == other._slots

    def __repr__(self) -> str:
        return f"CoreAssignment({list(self._slots)!r})"

    def populated(self) -> list[tuple[int, ProgramHandle]]:
        """(cpu, handle) for every occupied slot, in ascending CPU order."""
        return [(core, handle) for core, handle in enumerate(self._slots) if handle is not None]

    def populated_cores(self) -> list[int]:
        return [core for core, handle in enumerate(self._slots) if handle is not None]

    @property
    def populated_count(self) -> int:
        return sum(1 for handle in self._slots if handle is not None)


def _check_core(core: object, core_count: int, program_name: str) -> int:
    # bool is an int subclass; `true` in YAML is not a CPU number.
    if isinstance(core, bool) or not isinstance(core, int):
        raise AssignmentError(
            f"Invalid program_cpu_assignment for {program_name} - "
            f"CPU entries must be integers, got {core!r}"
        )
    if core < 0 or core >= core_count:
        raise AssignmentError(f"Invalid CPU number {core}")
    return core


def _cores_for(directive: CpuDirective, core_count: int, program_name: str) -> list[int]:
    """Explicit CPU list for an index or list directive."""
    if isinstance(directive, list):
        return [_check_core(core, core_count, program_name) for core in directive]
    if isinstance(directive, str):
        raise AssignmentError(
            f"Invalid program_cpu_assignment for {program_name} - "
            f"unknown keyword '{directive}', expected '{ALL}', '{REMAINING}' or a CPU number"
        )
    if isinstance(directive, int):
        return [_check_core(directive, core_count, program_name)]
    raise AssignmentError(
        f"Invalid program_cpu_assignment for {program_name} - must be string or sequence"
    )


def resolve_assignment(
    directives: Mapping[str, CpuDirective],
    core_count: int,
    find_program: Callable[[str], Optional[ProgramHandle]],
) -> CoreAssignment:
    """
    Expand a program -> CPU directive map into a dense CoreAssignment.

    Args:
        directives: Program name -> directive, in declaration order.
        core_count: Number of CPU slots.
        find_program: Looks a program up by name in the test's object,
                      returning None when it does not exist.

    Raises:
        AssignmentError: Malformed directive or CPU index out of range.
        ProgramNotFoundError: A program name is not in the object.
    """
    if core_count < 1:
        raise AssignmentError(f"CPU count must be at least 1, got {core_count}")

    slots: list[Optional[ProgramHandle]] = [None] * core_count

    for program_name, directive in directives.items():
        handle = find_program(program_name)
        if handle is None:
            raise ProgramNotFoundError(program_name)

        if directive == ALL:
            slots = [handle] * core_count
        elif directive == REMAINING:
            slots = [handle if slot is None else slot for slot in slots]
        else:
            for core in _cores_for(directive, core_count, program_name):
                slots[core] = handle

    return CoreAssignment(slots)
