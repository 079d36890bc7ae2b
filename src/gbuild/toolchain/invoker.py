"""Toolchain invoker.

Runs one external tool (compiler, assembler, linker, archiver, install helper)
as a blocking subprocess. The tool's standard output is copied line by line to
a caller-supplied sink; its error output goes straight to this process's
stderr. Concurrency is the caller's business: the invoker always blocks until
the subprocess exits.
"""

import logging
import subprocess
import sys
from pathlib import Path
from typing import Iterable, Optional, Protocol, TextIO, Union, cast

from ..subprocess_utils import safe_popen

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ToolchainError(Exception):
    """Base class for failures raised while running a toolchain binary."""

    def __init__(self, argv: list[str], message: str):
        self.argv = list(argv)
        self.message = message
        super().__init__(f"{self.argv}: {message}")


class ToolchainCommandError(ToolchainError):
    """The tool ran but exited with a nonzero status."""

    def __init__(self, argv: list[str], returncode: int):
        self.returncode = returncode
        super().__init__(argv, f"exit status {returncode}")


class ToolchainExecError(ToolchainError):
    """The tool could not be started at all (missing binary, permissions)."""

    def __init__(self, argv: list[str], reason: str):
        super().__init__(argv, f"could not execute: {reason}")


class ToolRunner(Protocol):
    """Callable signature shared by run_external() and test doubles."""

    def __call__(self, command: PathLike, workdir: PathLike, args: Iterable[str], sink: Optional[TextIO] = None) -> None: ...


def split_args(args: Iterable[str]) -> list[str]:
    """Split arguments that carry several whitespace-separated tokens.

    Lets callers compose argument lists from pre-joined strings such as
    extra compiler flags taken from the command line.

    Args:
        args: Raw argument strings

    Returns:
        Flat list of individual arguments (empty strings dropped)
    """
    result: list[str] = []
    for arg in args:
        result.extend(str(arg).split())
    return result


def run_external(command: PathLike, workdir: PathLike, args: Iterable[str], sink: Optional[TextIO] = None) -> None:
    """Run a toolchain binary and wait for it to finish.

    Args:
        command: Path to the tool binary
        workdir: Working directory for the subprocess
        args: Arguments (each may hold several space-separated tokens)
        sink: Stream receiving the tool's stdout (defaults to sys.stdout)

    Raises:
        ToolchainExecError: If the process could not be started
        ToolchainCommandError: If the process exited with a nonzero status
    """
    argv = [str(command)] + split_args(args)
    out = sink if sink is not None else sys.stdout

    logger.debug("run %s (in %s)", " ".join(argv), workdir)

    try:
        proc = safe_popen(
            argv,
            cwd=str(workdir),
            stdout=subprocess.PIPE,
            stderr=None,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise ToolchainExecError(argv, e.strerror or str(e)) from e

    with proc:
        # stdout=PIPE always yields a stream
        for line in cast(TextIO, proc.stdout):
            out.write(line)
        returncode = proc.wait()

    if returncode != 0:
        logger.debug("%s exited with status %d", argv[0], returncode)
        raise ToolchainCommandError(argv, returncode)
