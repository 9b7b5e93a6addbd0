# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Contracts between the benchmark core and whatever actually runs programs.

The core never talks to libbpf directly. It asks a ModuleProvider to open an
object, asks the returned ProgramModule for program handles by name, and
hands those handles to a ProgramRunner. Handles are opaque: for libbpf they
are program file descriptors, for the fake backend in the tests they are
plain strings.

Contract for ProgramRunner.run:
  - runs `handle` `repeat` times on CPU `cpu` and returns the program's
    return value and the duration the kernel reported
  - data/context buffers are only passed when the matching flag is set
  - raises ProgramRunError when the call itself fails
  - must be safe to call from several threads at once, one call per CPU
"""

from abc import ABC, abstractmethod
from collections.abc import Hashable
from typing import NamedTuple, Optional

ProgramHandle = Hashable


class RunOutcome(NamedTuple):
    """What a single test-run call returns."""

    return_value: int
    duration: int


class ProgramModule(ABC):
    """A loaded object containing one or more named programs."""

    @abstractmethod
    def find_program(self, name: str) -> Optional[ProgramHandle]:
        """Return the handle for `name`, or None if the object has no such program."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the object and every program in it."""
        ...


class ModuleProvider(ABC):
    """Opens and loads objects from disk."""

    @abstractmethod
    def open_module(self, path: str, program_type: Optional[str] = None) -> ProgramModule:
        """
        Open `path`, set every program's type, and load it.

        Args:
            path: Path to the compiled object.
            program_type: Program type name for every program in the object,
                          or None for the platform default.

        Raises:
            ModuleLoadError: The object could not be opened, typed, or loaded.
        """
        ...


class ProgramRunner(ABC):
    """The execution primitive: one timed, repeated run of one program on one CPU."""

    @abstractmethod
    def run(
        self,
        handle: ProgramHandle,
        repeat: int,
        cpu: int,
        batch_size: int,
        pass_data: bool,
        pass_context: bool,
        data_in: bytearray,
        data_out: bytearray,
    ) -> RunOutcome:
        ...


class Backend(ModuleProvider, ProgramRunner):
    """Everything the benchmark runner needs from the platform."""

    @abstractmethod
    def num_possible_cpus(self) -> int:
        """Number of CPUs the kernel can schedule programs on."""
        ...
