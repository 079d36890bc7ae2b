"""Data models for package units.

Defines the core types shared by the scanner, resolver, status engine and
build pipeline:
- TargetKey: Validated registry key for a unit
- UnitKind: Library vs. command
- UnitStatus: Per-unit state machine
- PackageUnit: One discoverable compilable target rooted at a directory
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class InvalidTargetError(ValueError):
    """Raised when a string cannot be used as a target key."""

    pass


@dataclass(frozen=True, order=True)
class TargetKey:
    """Validated, normalized target name.

    Backslashes are converted to forward slashes and surrounding slashes are
    stripped. Empty names, "." and names containing whitespace are rejected.
    """

    name: str

    def __post_init__(self) -> None:
        normalized = self.name.replace("\\", "/").strip("/")
        while "//" in normalized:
            normalized = normalized.replace("//", "/")
        if not normalized or normalized == ".":
            raise InvalidTargetError("package has no name")
        if any(ch.isspace() for ch in normalized):
            raise InvalidTargetError(f"invalid target name '{self.name}'")
        object.__setattr__(self, "name", normalized)

    def __str__(self) -> str:
        return self.name


class UnitKind(Enum):
    """Kind of artifact a unit produces."""

    LIBRARY = "library"
    COMMAND = "command"


class UnitStatus(Enum):
    """Status of a unit within a single run.

    DISCOVERED -> RESOLVED -> {UP_TO_DATE | STALE | BROKEN}
    STALE -> BUILDING -> {BUILT | BUILD_FAILED}
    BUILT -> INSTALLED (optional)
    """

    DISCOVERED = "discovered"
    RESOLVED = "resolved"
    UP_TO_DATE = "up-to-date"
    STALE = "stale"
    BROKEN = "broken"
    BUILDING = "building"
    BUILT = "built"
    BUILD_FAILED = "build-failed"
    INSTALLED = "installed"

    @property
    def is_terminal_success(self) -> bool:
        return self in _SUCCESS_STATES

    @property
    def is_failure(self) -> bool:
        return self in (UnitStatus.BROKEN, UnitStatus.BUILD_FAILED)

    @property
    def is_fresh_this_run(self) -> bool:
        """True when dependents must rebuild because this unit changed."""
        return self in (UnitStatus.STALE, UnitStatus.BUILDING, UnitStatus.BUILT)


_SUCCESS_STATES = frozenset({UnitStatus.UP_TO_DATE, UnitStatus.BUILT, UnitStatus.INSTALLED})


@dataclass(eq=False)
class PackageUnit:
    """A single buildable directory.

    Attributes:
        target: Unique registry key
        directory: Directory holding the unit's sources
        base: Resolution-relative path of the directory
        kind: Library or command
        package_name: Name from the package clause
        source_files: Ordered non-test source file names (relative to directory)
        test_source_files: Ordered test source file names
        asm_files: Ordered assembler input names
        dependency_names: Import paths declared by the sources
        test_dependency_names: Import paths declared only by test sources
        resolved_dependencies: Dependencies found in the registry, by key
        external_dependencies: Dependencies satisfied by installed archives
        in_toolchain_root: True if the unit belongs to the toolchain's own tree
        status: Current state
        rebuilt: True once the unit has been rebuilt in this run
        broken_reasons: Human-readable reasons the unit is broken or failed
    """

    target: TargetKey
    directory: Path
    base: str
    kind: UnitKind
    package_name: str = ""
    source_files: list[str] = field(default_factory=list)
    test_source_files: list[str] = field(default_factory=list)
    asm_files: list[str] = field(default_factory=list)
    dependency_names: set[str] = field(default_factory=set)
    test_dependency_names: set[str] = field(default_factory=set)
    resolved_dependencies: dict[TargetKey, "PackageUnit"] = field(default_factory=dict)
    external_dependencies: dict[str, Path] = field(default_factory=dict)
    in_toolchain_root: bool = False
    status: UnitStatus = UnitStatus.DISCOVERED
    rebuilt: bool = False
    broken_reasons: list[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def name(self) -> str:
        return self.target.name

    @property
    def is_command(self) -> bool:
        return self.kind == UnitKind.COMMAND

    @property
    def changed_this_run(self) -> bool:
        """True when dependents must rebuild because this unit changed.

        Installing an unchanged unit does not count as a change.
        """
        return self.rebuilt or self.status.is_fresh_this_run

    def mark_broken(self, reason: str) -> bool:
        """Force the unit into BROKEN.

        Safe to call from several threads: only the first call for a unit that
        is not already failed performs the transition. Later reasons are still
        recorded.

        Args:
            reason: Why the unit is broken

        Returns:
            True if this call moved the unit into BROKEN
        """
        with self._lock:
            if reason not in self.broken_reasons:
                self.broken_reasons.append(reason)
            if self.status.is_failure:
                return False
            self.status = UnitStatus.BROKEN
            return True

    def mark_built(self) -> None:
        """Record a successful rebuild."""
        with self._lock:
            self.rebuilt = True
            self.status = UnitStatus.BUILT

    def mark_failed(self, reason: str) -> None:
        """Record a failed build step."""
        with self._lock:
            self.broken_reasons.append(reason)
            self.status = UnitStatus.BUILD_FAILED

    def set_status(self, status: UnitStatus) -> None:
        with self._lock:
            self.status = status

    def dependency_keys(self) -> list[TargetKey]:
        """Resolved dependency keys in sorted order."""
        return sorted(self.resolved_dependencies)

    def input_files(self) -> list[str]:
        """Every file whose change should trigger a rebuild."""
        return self.source_files + self.asm_files

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "target": self.name,
            "directory": str(self.directory),
            "base": self.base,
            "kind": self.kind.value,
            "package_name": self.package_name,
            "source_files": list(self.source_files),
            "test_source_files": list(self.test_source_files),
            "asm_files": list(self.asm_files),
            "dependencies": sorted(self.dependency_names),
            "resolved_dependencies": [k.name for k in self.dependency_keys()],
            "external_dependencies": sorted(self.external_dependencies),
            "in_toolchain_root": self.in_toolchain_root,
            "status": self.status.value,
            "rebuilt": self.rebuilt,
            "broken_reasons": list(self.broken_reasons),
        }
