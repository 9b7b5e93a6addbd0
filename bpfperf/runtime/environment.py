# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Environment checks for bpfperf.

Checks that the interpreter is new enough and tells the rest of the system
which platform it is running on. The platform name is what `platform:` in a
test matrix is compared against, so it uses the same spelling matrix authors
use: "Linux" or "Windows".
"""

import os
import platform
import sys
from typing import NamedTuple, Optional

MINIMUM_PYTHON = (3, 11)

LINUX = "Linux"
WINDOWS = "Windows"


class SystemInfo(NamedTuple):
    """What the CLI logs about the host at startup."""

    python_version: str
    platform: str
    release: str
    architecture: str
    online_cpus: Optional[int]


def get_python_version() -> tuple[int, int, int]:
    """Return the current Python version as a (major, minor, micro) tuple."""
    return sys.version_info[:3]


def check_minimum_python() -> None:
    """
    Refuse to run on an interpreter older than MINIMUM_PYTHON.

    Raises:
        RuntimeError: The interpreter is too old.
    """
    current = get_python_version()
    if current[:2] < MINIMUM_PYTHON:
        required = ".".join(str(part) for part in MINIMUM_PYTHON)
        raise RuntimeError(
            f"bpfperf requires Python >= {required}, "
            f"but you're running {current[0]}.{current[1]}. Please upgrade."
        )


def runner_platform() -> str:
    """
    Name of the platform tests are filtered against.

    eBPF runs either on Linux (libbpf) or on Windows (eBPF for Windows).
    Everything that is not Windows is treated as Linux, since that is the
    only other place the libbpf backend can work.
    """
    if platform.system() == WINDOWS:
        return WINDOWS
    return LINUX


def get_system_info() -> SystemInfo:
    """
    Collect host details for the startup log.

    online_cpus is what the OS reports as usable right now, which can be
    lower than the possible CPU count the backend uses for the CSV columns.
    """
    return SystemInfo(
        python_version=platform.python_version(),
        platform=runner_platform(),
        release=platform.release(),
        architecture=platform.machine(),
        online_cpus=os.cpu_count(),
    )
