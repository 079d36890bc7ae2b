"""Format - rewrite listed units' sources in place with the formatter."""

from typing import Iterable, Optional, TextIO

from .. import output
from ..packages.unit import PackageUnit
from ..toolchain.binaries import BinaryNotFoundError, ToolchainPaths
from ..toolchain.invoker import ToolRunner, run_external


def format_units(
    units: Iterable[PackageUnit],
    tools: ToolchainPaths,
    runner: ToolRunner = run_external,
    sink: Optional[TextIO] = None,
) -> int:
    """Run ``<formatter> -w`` over each unit's sources and test sources.

    Returns:
        Number of units formatted

    Raises:
        BinaryNotFoundError: If no formatter is available
        ToolchainError: On the first formatter failure
    """
    formatted = 0
    for unit in units:
        files = unit.source_files + unit.test_source_files
        if not files:
            continue
        if tools.formatter is None:
            raise BinaryNotFoundError(["gofmt"])
        output.log_unit(str(unit.directory), "formatting sources", verbose_only=True)
        runner(tools.formatter, unit.directory, ["-w"] + files, sink)
        formatted += 1
    return formatted
