# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Exceptions raised while executing a test case.
"""

from bpfperf.errors import BpfPerfError


class ExecutionError(BpfPerfError):
    """Base for failures during the preparation or timed phases."""


class ResultMismatchError(ExecutionError):
    """
    Raised when a program returns something other than the test's
    expected_result and return codes are not being ignored.
    """

    def __init__(self, message: str, test_name: str, actual: int, expected: int) -> None:
        super().__init__(message)
        self.test_name = test_name
        self.actual = actual
        self.expected = expected
