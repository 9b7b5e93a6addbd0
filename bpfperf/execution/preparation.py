# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Map state preparation.

Some benchmarks measure lookups in maps that must be filled first. A test
can name a preparation program that runs once, synchronously, before any
timed worker starts. Its timing is thrown away.
"""

from typing import Optional

from bpfperf.bpf.exceptions import ProgramNotFoundError, ProgramRunError
from bpfperf.bpf.interfaces import ProgramModule, ProgramRunner
from bpfperf.execution.exceptions import ResultMismatchError
from bpfperf.execution.models import BUFFER_SIZE
from bpfperf.logging.logger import get_logger
from bpfperf.matrix.models import TestCase

logger = get_logger(__name__)


def run_preparation(
    test_case: TestCase,
    module: ProgramModule,
    runner: ProgramRunner,
    ignore_return_code: bool = False,
) -> Optional[str]:
    """
    Run the test's preparation program, if it has one.

    Returns the mismatch message when the return value was wrong and
    ignore_return_code is on, otherwise None.

    Raises:
        ProgramNotFoundError: The preparation program is not in the object.
        ProgramRunError: The test-run call failed.
        ResultMismatchError: The program returned something other than
                             expected_result and ignore_return_code is off.
    """
    preparation = test_case.preparation
    if preparation is None:
        return None

    handle = module.find_program(preparation.program)
    if handle is None:
        raise ProgramNotFoundError(preparation.program, test_case.module_path)

    data_in = bytearray(BUFFER_SIZE)
    data_out = bytearray(BUFFER_SIZE)

    try:
        outcome = runner.run(
            handle,
            repeat=preparation.iteration_count,
            cpu=0,
            batch_size=test_case.batch_size,
            pass_data=test_case.pass_data,
            pass_context=test_case.pass_context,
            data_in=data_in,
            data_out=data_out,
        )
    except ProgramRunError as err:
        raise ProgramRunError(
            err.code,
            f"Failed to run map_state_preparation program {preparation.program}: {err}",
        ) from err

    logger.debug(
        "Map state preparation finished",
        extra={
            "test": test_case.name,
            "program": preparation.program,
            "iterations": preparation.iteration_count,
            "return_value": outcome.return_value,
        },
    )

    if outcome.return_value != test_case.expected_result:
        message = (
            f"map_state_preparation program {preparation.program} returned unexpected value "
            f"{outcome.return_value} expected {test_case.expected_result}"
        )
        if not ignore_return_code:
            raise ResultMismatchError(
                message, test_case.name, outcome.return_value, test_case.expected_result,
            )
        logger.info(message, extra={"test": test_case.name})
        return message

    return None
