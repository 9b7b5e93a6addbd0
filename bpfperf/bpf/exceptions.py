# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Exceptions raised by the BPF backend: loading objects, finding programs,
and running them through the kernel's test-run interface.
"""

import os

from bpfperf.errors import BpfPerfError


class BackendError(BpfPerfError):
    """Base for all backend failures."""


class ModuleLoadError(BackendError):
    """Raised when a BPF object cannot be opened or loaded into the kernel."""

    def __init__(self, message: str, errno: int | None = None) -> None:
        if errno is not None:
            message = f"{message}: {os.strerror(errno)}/{errno}"
        super().__init__(message)
        self.errno = errno


class ProgramNotFoundError(ModuleLoadError):
    """Raised when a program name does not exist in a loaded object."""

    def __init__(self, program_name: str, module_path: str | None = None) -> None:
        message = f"Failed to find program {program_name}"
        if module_path is not None:
            message += f" in {module_path}"
        super().__init__(message)
        self.program_name = program_name


class ProgramRunError(BackendError):
    """
    Raised when the test-run call itself fails, as opposed to the program
    returning an unexpected value. `code` is the negative status the call
    returned.
    """

    def __init__(self, code: int, message: str | None = None) -> None:
        super().__init__(message or f"Program test run failed with status {code}")
        self.code = code
