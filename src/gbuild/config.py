"""Run configuration - toolchain environment and build options.

This module defines:
- ToolchainEnv: where the toolchain lives and which OS/architecture it targets,
  read once from the process environment
- BuildOptions: the mode selection and target filter for a single run

Design:
    Both are frozen dataclasses created before anything is scanned. They flow
    from the CLI into run() and down to the scanner, status engine and
    pipeline, so no part of a run depends on module-level state.
"""

import os
import platform
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional


class ConfigError(Exception):
    """Raised when the toolchain environment is missing or unusable."""

    pass


# Architecture -> toolchain character (6g, 8g, 5g ...)
ARCH_CHARS: dict[str, str] = {
    "amd64": "6",
    "386": "8",
    "arm": "5",
}

_MACHINE_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
}


def _host_os() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform.startswith("darwin"):
        return "darwin"
    if sys.platform.startswith("freebsd"):
        return "freebsd"
    return "linux"


def _host_arch() -> str:
    machine = platform.machine().lower()
    if machine.startswith("arm") or machine == "aarch64":
        return "arm"
    return _MACHINE_ARCH.get(machine, machine)


@dataclass(frozen=True)
class ToolchainEnv:
    """Toolchain installation and target platform.

    Attributes:
        root: Toolchain root directory (GOROOT)
        bin_dir: Directory holding toolchain binaries (GOBIN)
        os_name: Target operating system (GOOS)
        arch: Target architecture (GOARCH)
    """

    root: Path
    bin_dir: Path
    os_name: str
    arch: str

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "ToolchainEnv":
        """Read the toolchain environment.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Resolved ToolchainEnv

        Raises:
            ConfigError: If GOROOT is unset or the architecture is unsupported
        """
        env = dict(os.environ if environ is None else environ)

        root_str = env.get("GOROOT", "").strip()
        if not root_str:
            raise ConfigError("GOROOT is not set")
        root = Path(root_str)

        bin_str = env.get("GOBIN", "").strip()
        bin_dir = Path(bin_str) if bin_str else root / "bin"

        os_name = env.get("GOOS", "").strip() or _host_os()
        arch = env.get("GOARCH", "").strip() or _host_arch()
        if arch not in ARCH_CHARS:
            raise ConfigError(f"unsupported GOARCH '{arch}' (expected one of {', '.join(sorted(ARCH_CHARS))})")

        return cls(root=root, bin_dir=bin_dir, os_name=os_name, arch=arch)

    @property
    def arch_char(self) -> str:
        """Toolchain prefix character for the target architecture."""
        return ARCH_CHARS[self.arch]

    @property
    def object_ext(self) -> str:
        """Object file extension produced by compiler and assembler."""
        return "." + self.arch_char

    @property
    def src_dir(self) -> Path:
        """Source tree of the toolchain's own standard library."""
        return self.root / "src"

    @property
    def pkg_dir(self) -> Path:
        """Installed-archive directory for the target platform."""
        return self.root / "pkg" / f"{self.os_name}_{self.arch}"

    def installed_archive(self, target: str) -> Path:
        """Path of the installed archive for a library target."""
        return self.pkg_dir / f"{target}.a"

    def contains(self, path: Path) -> bool:
        """Return True if path lies inside the toolchain root."""
        try:
            path.resolve().relative_to(self.root.resolve())
        except ValueError:
            return False
        return True


@dataclass(frozen=True)
class BuildOptions:
    """Mode selection and target filter for one run.

    Attributes:
        build: Compile, assemble and link stale units
        install: Copy artifacts into the toolchain tree
        clean: Remove build outputs
        nuke: Clean installed copies as well
        scan: Print one line per listed unit
        scan_list: Also list each unit's resolved dependencies
        test: Run the test driver for units with test sources
        exclusive: Listed targets match exactly instead of by path prefix
        include_toolchain_tree: Scan and build the toolchain's own source tree
        concurrent: Build independent units in parallel
        jobs: Worker bound for concurrent builds (None = unbounded)
        verbose: Echo every toolchain command
        generate_makefiles: Write Makefiles and a root build script
        force: Overwrite without asking and treat every unit as stale
        format: Run the source formatter
        packages: Act on library units
        commands: Act on command units
        distribution: Assemble a _dist_ directory
        listed_targets: Directory filter supplied on the command line
        compiler_args: Extra arguments appended to every compile
        linker_args: Extra arguments appended to every link
    """

    build: bool = False
    install: bool = False
    clean: bool = False
    nuke: bool = False
    scan: bool = False
    scan_list: bool = False
    test: bool = False
    exclusive: bool = False
    include_toolchain_tree: bool = False
    concurrent: bool = False
    jobs: Optional[int] = None
    verbose: bool = False
    generate_makefiles: bool = False
    force: bool = False
    format: bool = False
    packages: bool = False
    commands: bool = False
    distribution: bool = False
    listed_targets: tuple[str, ...] = field(default_factory=tuple)
    compiler_args: tuple[str, ...] = field(default_factory=tuple)
    linker_args: tuple[str, ...] = field(default_factory=tuple)

    def normalized(self) -> "BuildOptions":
        """Apply implied modes.

        Build is implied when no other primary action was requested, and by
        install and test. Selecting neither packages nor commands selects
        both.

        Returns:
            A new BuildOptions with implied flags set
        """
        clean = self.clean or self.nuke
        build = (
            self.build
            or (not self.generate_makefiles and not clean and not self.format and not self.scan and not self.scan_list)
            or self.install
            or self.test
        )
        neither = not self.packages and not self.commands
        return replace(
            self,
            build=build,
            clean=clean,
            scan=self.scan or self.scan_list,
            packages=self.packages or neither,
            commands=self.commands or neither,
        )
