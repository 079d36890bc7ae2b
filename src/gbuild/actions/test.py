"""Test - run the test driver in every listed unit that has test sources."""

from typing import Iterable, Optional, Sequence, TextIO

from .. import output
from ..packages.unit import PackageUnit
from ..toolchain.binaries import BinaryNotFoundError, ToolchainPaths
from ..toolchain.invoker import ToolRunner, run_external


def run_tests(
    units: Iterable[PackageUnit],
    tools: ToolchainPaths,
    runner: ToolRunner = run_external,
    args: Sequence[str] = (),
    sink: Optional[TextIO] = None,
) -> int:
    """Run unit tests.

    Broken units are skipped. The first failing test run stops the action.

    Args:
        units: Listed units, in build order
        tools: Resolved toolchain binaries
        runner: Toolchain invoker
        args: Extra arguments for the test driver
        sink: Stream receiving test output

    Returns:
        Number of units tested

    Raises:
        BinaryNotFoundError: If no test driver is available
        ToolchainError: If a test run fails
    """
    tested = 0
    for unit in units:
        if not unit.test_source_files or unit.status.is_failure:
            continue
        if tools.tester is None:
            raise BinaryNotFoundError(["gotest"])
        output.log_unit(str(unit.directory), f'testing "{unit.name}"')
        runner(tools.tester, unit.directory, list(args), sink)
        tested += 1
    return tested
