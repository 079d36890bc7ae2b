"""Toolchain discovery and invocation."""

from .binaries import BinaryNotFoundError, ToolchainFinder, ToolchainPaths
from .invoker import (
    ToolchainCommandError,
    ToolchainError,
    ToolchainExecError,
    ToolRunner,
    run_external,
    split_args,
)

__all__ = [
    "BinaryNotFoundError",
    "ToolRunner",
    "ToolchainCommandError",
    "ToolchainError",
    "ToolchainExecError",
    "ToolchainFinder",
    "ToolchainPaths",
    "run_external",
    "split_args",
]
