# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
libbpf backend, bound through ctypes.

This is the only module that touches the kernel. It opens BPF objects with
libbpf (libbpf.so.1 on Linux, ebpfapi.dll from eBPF for Windows), sets every
program's type before loading, and runs programs with
bpf_prog_test_run_opts.

ctypes drops the GIL for the duration of each foreign call, so test runs
issued from several worker threads really do execute in parallel in the
kernel, one per CPU.

Every program in an object gets the same type: the test's program_type if
it names one, otherwise xdp on Linux and sockops on Windows. Type names are
resolved through libbpf_prog_type_by_name so no enum values are hardcoded.
"""

import ctypes
import ctypes.util
from typing import Optional

from bpfperf.bpf.exceptions import BackendError, ModuleLoadError, ProgramRunError
from bpfperf.bpf.interfaces import Backend, ProgramHandle, ProgramModule, RunOutcome
from bpfperf.logging.logger import get_logger
from bpfperf.runtime.environment import WINDOWS, runner_platform

logger = get_logger(__name__)

DEFAULT_PROGRAM_TYPES = {
    "Linux": "xdp",
    WINDOWS: "sockops",
}


class BpfTestRunOpts(ctypes.Structure):
    """Mirror of libbpf's struct bpf_test_run_opts."""

    _fields_ = [
        ("sz", ctypes.c_size_t),
        ("data_in", ctypes.c_void_p),
        ("data_out", ctypes.c_void_p),
        ("data_size_in", ctypes.c_uint32),
        ("data_size_out", ctypes.c_uint32),
        ("ctx_in", ctypes.c_void_p),
        ("ctx_out", ctypes.c_void_p),
        ("ctx_size_in", ctypes.c_uint32),
        ("ctx_size_out", ctypes.c_uint32),
        ("retval", ctypes.c_uint32),
        ("repeat", ctypes.c_int),
        ("duration", ctypes.c_uint32),
        ("flags", ctypes.c_uint32),
        ("cpu", ctypes.c_uint32),
        ("batch_size", ctypes.c_uint32),
    ]


def _default_library_name() -> str:
    if runner_platform() == WINDOWS:
        return "ebpfapi.dll"
    return ctypes.util.find_library("bpf") or "libbpf.so.1"


def _declare_prototypes(lib: ctypes.CDLL) -> None:
    """Give ctypes the real signatures so pointers are not truncated to int."""
    lib.bpf_object__open.argtypes = [ctypes.c_char_p]
    lib.bpf_object__open.restype = ctypes.c_void_p

    lib.bpf_object__load.argtypes = [ctypes.c_void_p]
    lib.bpf_object__load.restype = ctypes.c_int

    lib.bpf_object__close.argtypes = [ctypes.c_void_p]
    lib.bpf_object__close.restype = None

    lib.bpf_object__next_program.argtypes = [ctypes.c_void_p, ctypes.c_void_p]
    lib.bpf_object__next_program.restype = ctypes.c_void_p

    lib.bpf_object__find_program_by_name.argtypes = [ctypes.c_void_p, ctypes.c_char_p]
    lib.bpf_object__find_program_by_name.restype = ctypes.c_void_p

    lib.bpf_program__set_type.argtypes = [ctypes.c_void_p, ctypes.c_int]
    lib.bpf_program__set_type.restype = ctypes.c_int

    lib.bpf_program__fd.argtypes = [ctypes.c_void_p]
    lib.bpf_program__fd.restype = ctypes.c_int

    lib.libbpf_prog_type_by_name.argtypes = [
        ctypes.c_char_p,
        ctypes.POINTER(ctypes.c_int),
        ctypes.POINTER(ctypes.c_int),
    ]
    lib.libbpf_prog_type_by_name.restype = ctypes.c_int

    lib.bpf_prog_test_run_opts.argtypes = [ctypes.c_int, ctypes.POINTER(BpfTestRunOpts)]
    lib.bpf_prog_test_run_opts.restype = ctypes.c_int

    lib.libbpf_num_possible_cpus.argtypes = []
    lib.libbpf_num_possible_cpus.restype = ctypes.c_int


class LibbpfModule(ProgramModule):
    """A loaded struct bpf_object. Program handles are program fds."""

    def __init__(self, lib: ctypes.CDLL, obj: int, path: str) -> None:
        self._lib = lib
        self._obj: Optional[int] = obj
        self.path = path

    def find_program(self, name: str) -> Optional[ProgramHandle]:
        if self._obj is None:
            raise BackendError(f"BPF object {self.path} is already closed")
        program = self._lib.bpf_object__find_program_by_name(self._obj, name.encode())
        if not program:
            return None
        return self._lib.bpf_program__fd(program)

    def close(self) -> None:
        if self._obj is not None:
            self._lib.bpf_object__close(self._obj)
            self._obj = None


class LibbpfBackend(Backend):
    """
    Backend that runs programs in the kernel through libbpf.

    The library is loaded when the backend is constructed. A missing library
    is reported as a ModuleLoadError, since from the user's point of view
    nothing can be loaded.
    """

    def __init__(self, library: Optional[str] = None) -> None:
        name = library or _default_library_name()
        try:
            self._lib = ctypes.CDLL(name, use_errno=True)
        except OSError as err:
            raise ModuleLoadError(f"Cannot load BPF library {name}: {err}") from err
        _declare_prototypes(self._lib)
        self._platform = runner_platform()
        # Only eBPF for Windows accepts batch_size outside XDP live-frame mode;
        # the Linux kernel rejects a non-zero batch_size with EINVAL.
        self._passes_batch_size = self._platform == WINDOWS
        logger.debug("BPF library loaded", extra={"library": name})

    def _resolve_program_type(self, program_type: Optional[str]) -> int:
        type_name = program_type or DEFAULT_PROGRAM_TYPES[self._platform]
        prog_type = ctypes.c_int(0)
        attach_type = ctypes.c_int(0)
        result = self._lib.libbpf_prog_type_by_name(
            type_name.encode(), ctypes.byref(prog_type), ctypes.byref(attach_type),
        )
        if result < 0:
            raise ModuleLoadError(f"Failed to get program type {type_name}")
        return prog_type.value

    def open_module(self, path: str, program_type: Optional[str] = None) -> ProgramModule:
        prog_type = self._resolve_program_type(program_type)

        obj = self._lib.bpf_object__open(path.encode())
        if not obj:
            raise ModuleLoadError(f"Failed to open BPF object {path}", ctypes.get_errno())

        program = self._lib.bpf_object__next_program(obj, None)
        while program:
            self._lib.bpf_program__set_type(program, prog_type)
            program = self._lib.bpf_object__next_program(obj, program)

        if self._lib.bpf_object__load(obj) < 0:
            errno = ctypes.get_errno()
            self._lib.bpf_object__close(obj)
            raise ModuleLoadError(f"Failed to load BPF object {path}", errno)

        return LibbpfModule(self._lib, obj, path)

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
        opts = BpfTestRunOpts()
        opts.sz = ctypes.sizeof(BpfTestRunOpts)
        opts.repeat = repeat
        opts.cpu = cpu
        if self._passes_batch_size:
            opts.batch_size = batch_size

        # The buffer objects must outlive the call, so keep them in locals.
        in_buffer = (ctypes.c_char * len(data_in)).from_buffer(data_in)
        out_buffer = (ctypes.c_char * len(data_out)).from_buffer(data_out)
        in_address = ctypes.addressof(in_buffer)
        out_address = ctypes.addressof(out_buffer)

        if pass_data:
            opts.data_in = in_address
            opts.data_out = out_address
            opts.data_size_in = len(data_in)
            opts.data_size_out = len(data_out)
        if pass_context:
            opts.ctx_in = in_address
            opts.ctx_out = out_address
            opts.ctx_size_in = len(data_in)
            opts.ctx_size_out = len(data_out)

        result = self._lib.bpf_prog_test_run_opts(int(handle), ctypes.byref(opts))
        if result < 0:
            raise ProgramRunError(result)

        return RunOutcome(return_value=opts.retval, duration=opts.duration)

    def num_possible_cpus(self) -> int:
        count = self._lib.libbpf_num_possible_cpus()
        if count <= 0:
            raise BackendError(f"libbpf could not determine the CPU count: {count}")
        return count
