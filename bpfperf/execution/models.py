# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Per-CPU outcome of a timed run.

Each worker thread builds exactly one RunResult for its own CPU slot. After
the join they are only ever read.
"""

from dataclasses import dataclass
from typing import Optional

BUFFER_SIZE = 1024


@dataclass(frozen=True)
class RunResult:
    """
    What came back from running one program on one CPU.

    duration is in nanoseconds, as reported by the kernel for the whole
    repeated run. When the test-run call itself failed, return_value holds
    the negative status code and error holds the reason; the duration is
    then 0.
    """

    core: int
    duration: int
    return_value: int
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None
