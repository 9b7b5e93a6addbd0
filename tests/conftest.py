# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for bpfperf tests.

Fixtures here are available to every test file automatically.
The fake backend stands in for libbpf: objects are registered up front with
the program names they contain, handles are "<path>:<program>" strings, and
every run call is recorded so tests can check what ran where.
"""

import errno
import textwrap
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Optional

import pytest

from bpfperf.bpf.exceptions import ModuleLoadError, ProgramRunError
from bpfperf.bpf.interfaces import Backend, ProgramHandle, ProgramModule, RunOutcome


class FakeModule(ProgramModule):
    def __init__(self, path: str, programs: list[str]) -> None:
        self.path = path
        self.programs = programs
        self.closed = False

    def find_program(self, name: str) -> Optional[ProgramHandle]:
        if name not in self.programs:
            return None
        return f"{self.path}:{name}"

    def close(self) -> None:
        self.closed = True


class FakeBackend(Backend):
    """In-memory backend with per-handle return values, durations and failures."""

    def __init__(self, cpu_count: int = 4) -> None:
        self.cpu_count = cpu_count
        self.objects: dict[str, list[str]] = {}
        self.opened: list[tuple[str, Optional[str]]] = []
        self.modules: list[FakeModule] = []
        self.calls: list[dict[str, object]] = []
        self.return_values: dict[str, int] = {}
        self.durations: dict[str, int] = {}
        self.failures: dict[str, int] = {}
        self.on_run: Optional[Callable[[ProgramHandle, int], None]] = None
        self._lock = threading.Lock()

    def add_object(self, path: str, *programs: str) -> None:
        self.objects[path] = list(programs)

    def open_module(self, path: str, program_type: Optional[str] = None) -> ProgramModule:
        if path not in self.objects:
            raise ModuleLoadError(f"Failed to open BPF object {path}", errno.ENOENT)
        self.opened.append((path, program_type))
        module = FakeModule(path, self.objects[path])
        self.modules.append(module)
        return module

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
        with self._lock:
            self.calls.append({
                "handle": handle,
                "repeat": repeat,
                "cpu": cpu,
                "batch_size": batch_size,
                "pass_data": pass_data,
                "pass_context": pass_context,
                "data_in": data_in,
                "data_out": data_out,
                "thread": threading.current_thread().name,
                "worker": threading.current_thread(),
            })
        if self.on_run is not None:
            self.on_run(handle, cpu)
        if handle in self.failures:
            raise ProgramRunError(self.failures[handle])
        return RunOutcome(
            return_value=self.return_values.get(str(handle), 0),
            duration=self.durations.get(str(handle), 1000 + cpu),
        )

    def num_possible_cpus(self) -> int:
        return self.cpu_count

    def timed_calls(self) -> list[dict[str, object]]:
        """Calls made from worker threads, i.e. excluding preparation runs."""
        return [call for call in self.calls if str(call["thread"]).startswith("bpfperf-")]


@pytest.fixture()
def fake_backend() -> FakeBackend:
    """A four-CPU fake backend with helpers.o containing progA, progB and prepare."""
    backend = FakeBackend(cpu_count=4)
    backend.add_object("helpers.o", "progA", "progB", "prepare")
    return backend


@pytest.fixture()
def write_matrix(tmp_path: Path) -> Callable[[str], Path]:
    """Write a YAML matrix (dedented) into the temp directory and return its path."""

    def _write(content: str, name: str = "tests.yaml") -> Path:
        matrix_file = tmp_path / name
        matrix_file.write_text(textwrap.dedent(content), encoding="utf-8")
        return matrix_file

    return _write


@pytest.fixture()
def minimal_matrix_file(write_matrix: Callable[[str], Path]) -> Path:
    """The smallest matrix that passes validation: one test, one program on all CPUs."""
    return write_matrix("""\
        tests:
          - name: helpers
            elf_file: helpers.o
            iteration_count: 10
            program_cpu_assignment:
              progA: all
    """)


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    matrix_file = tmp_path / "broken.yaml"
    matrix_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return matrix_file
