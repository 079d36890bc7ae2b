"""Build Layout - where intermediate objects and artifacts live.

Per-unit intermediates go to ``<unit dir>/_obj`` (tests to ``_test``).
Library archives are collected under ``<root>/_obj/<target>.a`` so every unit
compiles against one include directory; commands land in ``<root>/bin``.
Units that belong to the toolchain's own tree build straight into the
toolchain's installed-archive directory.
"""

import sys
from dataclasses import dataclass
from pathlib import Path

from .config import ToolchainEnv
from .packages.unit import PackageUnit

OBJ_DIR = "_obj"
TEST_DIR = "_test"
BIN_DIR = "bin"
DIST_DIR = "_dist_"


@dataclass(frozen=True)
class BuildLayout:
    """Path conventions for one project root."""

    root: Path
    env: ToolchainEnv

    @property
    def pkg_dir(self) -> Path:
        """Shared include/library directory."""
        return self.root / OBJ_DIR

    @property
    def cmd_dir(self) -> Path:
        return self.root / BIN_DIR

    def object_dir(self, unit: PackageUnit) -> Path:
        return unit.directory / OBJ_DIR

    def test_dir(self, unit: PackageUnit) -> Path:
        return unit.directory / TEST_DIR

    def main_object(self, unit: PackageUnit) -> Path:
        """Object file produced by compiling all of a unit's sources."""
        return self.object_dir(unit) / f"_go_{self.env.object_ext}"

    def asm_object(self, unit: PackageUnit, asm_file: str) -> Path:
        return self.object_dir(unit) / (Path(asm_file).stem + self.env.object_ext)

    def artifact_path(self, unit: PackageUnit) -> Path:
        """The archive or executable a build produces."""
        if unit.in_toolchain_root:
            return self.install_path(unit)
        if unit.is_command:
            return self.cmd_dir / _exe_name(unit.name)
        return self.pkg_dir / f"{unit.name}.a"

    def install_path(self, unit: PackageUnit) -> Path:
        """Where install copies the artifact."""
        if unit.is_command:
            return self.env.bin_dir / _exe_name(unit.name.rsplit("/", 1)[-1])
        return self.env.installed_archive(unit.name)


def _exe_name(name: str) -> str:
    return f"{name}.exe" if sys.platform == "win32" else name
