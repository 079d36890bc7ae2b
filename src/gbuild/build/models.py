"""Data models for the build pipeline.

Defines:
- BuildCounters: Thread-safe tallies of built, installed and broken units
- InstallFailure: One unit whose artifact could not be installed
- PipelineResult: Aggregated outcome of running the pipeline over a plan
"""

import threading
from dataclasses import dataclass, field
from typing import Any

from ..packages.unit import PackageUnit, UnitStatus


class BuildCounters:
    """Run-wide counters, safe to increment from worker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._built = 0
        self._installed = 0
        self._broken = 0

    def add_built(self) -> None:
        with self._lock:
            self._built += 1

    def add_installed(self) -> None:
        with self._lock:
            self._installed += 1

    def add_broken(self) -> None:
        with self._lock:
            self._broken += 1

    @property
    def built(self) -> int:
        with self._lock:
            return self._built

    @property
    def installed(self) -> int:
        with self._lock:
            return self._installed

    @property
    def broken(self) -> int:
        with self._lock:
            return self._broken

    def to_dict(self) -> dict[str, int]:
        """Serialize to dictionary."""
        with self._lock:
            return {"built": self._built, "installed": self._installed, "broken": self._broken}


@dataclass
class InstallFailure:
    """An install step that failed after the unit itself built."""

    target: str
    directory: str
    message: str

    def format(self) -> str:
        return f'(in {self.directory}) could not install "{self.target}": {self.message}'


@dataclass
class PipelineResult:
    """Aggregated result of running the pipeline.

    Attributes:
        units: Final state of every unit in the plan
        build_order: Targets in the order their build step started
        install_failures: Install steps that failed
        total_elapsed: Total wall-clock time in seconds
    """

    units: list[PackageUnit]
    build_order: list[str] = field(default_factory=list)
    install_failures: list[InstallFailure] = field(default_factory=list)
    total_elapsed: float = 0.0

    @property
    def success(self) -> bool:
        """True if no unit in the plan ended broken or failed."""
        return not any(u.status.is_failure for u in self.units)

    @property
    def failed_units(self) -> list[PackageUnit]:
        return [u for u in self.units if u.status.is_failure]

    def status_of(self, target: str) -> UnitStatus:
        for unit in self.units:
            if unit.name == target:
                return unit.status
        raise KeyError(f"Unknown target: {target}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "units": [u.to_dict() for u in self.units],
            "build_order": list(self.build_order),
            "install_failures": [f.__dict__.copy() for f in self.install_failures],
            "total_elapsed": self.total_elapsed,
            "success": self.success,
        }
