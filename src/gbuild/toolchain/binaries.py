"""Toolchain Binary Finder Utilities.

This module locates the toolchain binaries a run needs before anything is
scheduled.

Binary Naming Conventions:
    - Compiler / assembler / linker carry the architecture character:
      6g, 6a, 6l (amd64), 8g, 8a, 8l (386), 5g, 5a, 5l (arm)
    - Archiver: gopack (older trees ship it as pack)
    - Helpers: cp (install), gofmt (format), gotest (test)

Search order for each binary:
    1. PATH
    2. GOBIN/<name>
    3. GOBIN/tool/<name>
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from ..config import BuildOptions, ToolchainEnv

logger = logging.getLogger(__name__)


class BinaryNotFoundError(Exception):
    """Raised when a required toolchain binary is not found."""

    def __init__(self, names: Sequence[str]):
        self.names = list(names)
        super().__init__(f"Could not find '{self.names[0]}' in path")


@dataclass(frozen=True)
class ToolchainPaths:
    """Resolved toolchain binaries.

    The four build tools are always present; helper tools are None when they
    were not requested and could not be found.
    """

    compiler: Path
    assembler: Path
    linker: Path
    archiver: Path
    install_helper: Optional[Path] = None
    formatter: Optional[Path] = None
    tester: Optional[Path] = None


class ToolchainFinder:
    """Finds toolchain binaries on PATH and in the toolchain bin directory."""

    def __init__(self, env: ToolchainEnv, search_path: Optional[str] = None):
        """Initialize the binary finder.

        Args:
            env: Toolchain environment
            search_path: PATH override (defaults to the process PATH)
        """
        self.env = env
        self.search_path = search_path

    def find_binary(self, name: str) -> Optional[Path]:
        """Find a single binary.

        Args:
            name: Binary name without extension

        Returns:
            Path to the binary, or None if not found
        """
        found = shutil.which(name, path=self.search_path)
        if found:
            return Path(found)

        for candidate_dir in (self.env.bin_dir, self.env.bin_dir / "tool"):
            for ext in ("", ".exe"):
                candidate = candidate_dir / f"{name}{ext}"
                if candidate.is_file():
                    return candidate

        return None

    def find_first(self, names: Sequence[str]) -> Optional[Path]:
        """Return the first binary found among alternative names."""
        for name in names:
            path = self.find_binary(name)
            if path is not None:
                return path
        return None

    def require(self, names: Sequence[str]) -> Path:
        """Find a binary or fail.

        Args:
            names: Alternative names, most preferred first

        Returns:
            Path to the first binary found

        Raises:
            BinaryNotFoundError: If none of the names can be found
        """
        path = self.find_first(names)
        if path is None:
            raise BinaryNotFoundError(names)
        return path

    def resolve(self, options: BuildOptions) -> ToolchainPaths:
        """Resolve every binary the requested modes need.

        Args:
            options: Normalized build options

        Returns:
            ToolchainPaths with all required binaries

        Raises:
            BinaryNotFoundError: If a required binary is missing
        """
        char = self.env.arch_char
        compiler = self.require([f"{char}g"])
        assembler = self.require([f"{char}a"])
        linker = self.require([f"{char}l"])
        archiver = self.require(["gopack", "pack"])

        install_helper = self.require(["cp"]) if options.install else self.find_binary("cp")
        formatter = self.require(["gofmt"]) if options.format else self.find_binary("gofmt")
        tester = self.require(["gotest"]) if options.test else self.find_binary("gotest")

        logger.debug("toolchain: %s %s %s %s", compiler, assembler, linker, archiver)

        return ToolchainPaths(
            compiler=compiler,
            assembler=assembler,
            linker=linker,
            archiver=archiver,
            install_helper=install_helper,
            formatter=formatter,
            tester=tester,
        )
