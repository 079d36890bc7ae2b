"""Package discovery, dependency resolution and status computation.

Public API:
    scan_tree: Scan a project (and optionally the toolchain tree) into a Registry
    DependencyResolver: Resolve declared imports into registry edges
    StatusEngine: Classify units as up-to-date, stale or broken
"""

from .unit import InvalidTargetError, PackageUnit, TargetKey, UnitKind, UnitStatus
from .registry import Registry
from .scanner import DirectoryScanner, ScanError, ScanResult, scan_tree
from .resolver import DependencyResolver, resolve_dependencies
from .status import StatusEngine, find_cycles

__all__ = [
    "DependencyResolver",
    "DirectoryScanner",
    "InvalidTargetError",
    "PackageUnit",
    "Registry",
    "ScanError",
    "ScanResult",
    "StatusEngine",
    "TargetKey",
    "UnitKind",
    "UnitStatus",
    "find_cycles",
    "resolve_dependencies",
    "scan_tree",
]
