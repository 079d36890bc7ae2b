"""Directory scanner.

Walks a source tree and builds one PackageUnit per directory that holds
source files, registering each under its target key. No manifest is needed:
kind, name and dependencies all come from the sources themselves, with an
optional ``target.gb`` file or ``//target:`` directive overriding the name.

Skipped directories:
    _obj, _test, _dist_, bin   (generated outputs)
    .anything                  (hidden, except the scan root itself)

A ``src`` subdirectory is scanned as a fresh resolution root: its children are
named relative to ``src`` and never nested under the parent's target.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..config import ToolchainEnv
from .registry import Registry
from .source_parser import (
    is_asm_source,
    is_source,
    is_test_source,
    parse_source_file,
    read_target_file,
)
from .unit import InvalidTargetError, PackageUnit, TargetKey, UnitKind

logger = logging.getLogger(__name__)

SKIP_DIRS = frozenset({"_obj", "_test", "_dist_", "bin"})
RESOLUTION_ROOT_DIR = "src"
COMMAND_PACKAGE = "main"


class ScanError(Exception):
    """A directory could not be turned into a unit."""

    def __init__(self, directory: Path, message: str):
        self.directory = directory
        self.message = message
        super().__init__(f"(in {directory}) {message}")


@dataclass
class ScanResult:
    """Registry produced by a scan plus every non-fatal error met on the way."""

    registry: Registry
    errors: list[ScanError] = field(default_factory=list)

    def error_for(self, directory: Path) -> Optional[ScanError]:
        """Return the error recorded for a directory, if any."""
        for error in self.errors:
            if error.directory == directory:
                return error
        return None


def join_base(base: str, name: str) -> str:
    """Append a path component to a resolution-relative base."""
    if base in ("", "."):
        return name
    return f"{base}/{name}"


def should_skip(name: str) -> bool:
    """Return True for directories that never hold units."""
    return name in SKIP_DIRS or (name != "." and name.startswith("."))


class DirectoryScanner:
    """Builds a Registry from a directory tree."""

    def __init__(self, env: Optional[ToolchainEnv] = None):
        """Initialize the scanner.

        Args:
            env: Toolchain environment, used to flag units in the toolchain tree
        """
        self.env = env

    def scan(self, root: Path, base: str = ".", registry: Optional[Registry] = None) -> ScanResult:
        """Scan a tree.

        Args:
            root: Directory to start from
            base: Resolution-relative path of root ("." for a project root,
                "" for a resolution root such as the toolchain's src)
            registry: Registry to add to (a new one is created if omitted)

        Returns:
            ScanResult with the populated registry and collected errors
        """
        result = ScanResult(registry=registry if registry is not None else Registry())
        self._scan_directory(base, root, result, is_root=True)
        logger.debug("scanned %s: %d units, %d errors", root, len(result.registry), len(result.errors))
        return result

    def _scan_directory(self, base: str, directory: Path, result: ScanResult, is_root: bool) -> None:
        if not is_root and should_skip(directory.name):
            return

        child_base = base
        try:
            unit = self.build_unit(base, directory)
        except ScanError as e:
            logger.debug("scan error: %s", e)
            result.errors.append(e)
            unit = None

        if unit is not None:
            result.registry.register(unit)
            child_base = unit.base
        else:
            # A target.gb without sources still re-roots the subtree
            explicit = read_target_file(directory)
            if explicit:
                child_base = explicit

        for subdir in _subdirectories(directory):
            if subdir.name == RESOLUTION_ROOT_DIR:
                self._scan_directory("", subdir, result, is_root=False)
            else:
                self._scan_directory(join_base(child_base, subdir.name), subdir, result, is_root=False)

    def build_unit(self, base: str, directory: Path) -> Optional[PackageUnit]:
        """Construct the unit for one directory.

        Args:
            base: Resolution-relative path of the directory
            directory: Directory to inspect

        Returns:
            The unit, or None if the directory holds no source files

        Raises:
            ScanError: If the sources cannot be read, disagree on their package,
                or no usable target name can be inferred
        """
        try:
            names = sorted(p.name for p in directory.iterdir() if p.is_file())
        except OSError as e:
            raise ScanError(directory, f"cannot read directory: {e}") from e

        sources = [n for n in names if is_source(n)]
        if not sources:
            return None
        tests = [n for n in names if is_test_source(n)]
        asm = [n for n in names if is_asm_source(n)]

        package_name: Optional[str] = None
        package_file = ""
        directive: Optional[str] = None
        imports: set[str] = set()
        for name in sources:
            try:
                info = parse_source_file(directory / name)
            except OSError as e:
                raise ScanError(directory, f"cannot read {name}: {e}") from e
            if info.package_name is None:
                raise ScanError(directory, f"{name} has no package clause")
            if package_name is None:
                package_name, package_file = info.package_name, name
            elif info.package_name != package_name:
                raise ScanError(
                    directory,
                    f"found packages {package_name} ({package_file}) and {info.package_name} ({name})",
                )
            if directive is None and info.target:
                directive = info.target
            imports.update(info.imports)

        test_imports: set[str] = set()
        for name in tests:
            try:
                test_imports.update(parse_source_file(directory / name).imports)
            except OSError as e:
                raise ScanError(directory, f"cannot read {name}: {e}") from e

        if package_name is None:
            raise ScanError(directory, "no package clause found")
        kind = UnitKind.COMMAND if package_name == COMMAND_PACKAGE else UnitKind.LIBRARY

        explicit = directive or read_target_file(directory)
        if explicit:
            target_name = explicit
            unit_base = explicit
        else:
            unit_base = base
            target_name = base.rsplit("/", 1)[-1] if kind == UnitKind.COMMAND else base

        try:
            target = TargetKey(target_name)
        except InvalidTargetError as e:
            if str(e) == "package has no name":
                raise ScanError(
                    directory,
                    "package has no name specified. Either create 'target.gb' or run gbuild from above.",
                ) from e
            raise ScanError(directory, str(e)) from e

        unit = PackageUnit(
            target=target,
            directory=directory,
            base=unit_base,
            kind=kind,
            package_name=package_name,
            source_files=sources,
            test_source_files=tests,
            asm_files=asm,
            dependency_names=imports,
            test_dependency_names=test_imports - imports,
            in_toolchain_root=self.env.contains(directory) if self.env is not None else False,
        )
        logger.debug("unit %s (%s) in %s", unit.target, kind.value, directory)
        return unit


def _subdirectories(directory: Path) -> list[Path]:
    try:
        return sorted(p for p in directory.iterdir() if p.is_dir() and not p.is_symlink())
    except OSError:
        logger.warning("cannot list %s", directory)
        return []


def scan_tree(root: Path, env: Optional[ToolchainEnv] = None, include_toolchain_tree: bool = False) -> ScanResult:
    """Scan a project root and optionally the toolchain's own source tree.

    Args:
        root: Project root
        env: Toolchain environment
        include_toolchain_tree: Also scan <toolchain root>/src as a resolution root

    Returns:
        Combined ScanResult; toolchain units are registered first so project
        units with the same target win
    """
    scanner = DirectoryScanner(env)
    registry = Registry()
    errors: list[ScanError] = []

    if include_toolchain_tree and env is not None and env.src_dir.is_dir():
        toolchain_result = scanner.scan(env.src_dir, base="", registry=registry)
        errors.extend(toolchain_result.errors)

    project_result = scanner.scan(root, base=".", registry=registry)
    errors.extend(project_result.errors)
    return ScanResult(registry=registry, errors=errors)
