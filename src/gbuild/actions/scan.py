"""Scan reports - one line per unit with its status and dependencies."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from .. import output
from ..packages.unit import PackageUnit


@dataclass
class UnitReport:
    """Per-unit outcome for scan and summary output.

    Attributes:
        target: Target name
        directory: Unit directory, relative to the project root where possible
        kind: "library" or "command"
        status: Final status value
        dependencies: Resolved dependency targets, sorted
        external: Dependencies satisfied by installed archives, sorted
        reasons: Why the unit is broken (empty otherwise)
    """

    target: str
    directory: str
    kind: str
    status: str
    dependencies: list[str] = field(default_factory=list)
    external: list[str] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)

    @classmethod
    def from_unit(cls, unit: PackageUnit, root: Optional[Path] = None) -> "UnitReport":
        return cls(
            target=unit.name,
            directory=display_dir(unit.directory, root),
            kind=unit.kind.value,
            status=unit.status.value,
            dependencies=[key.name for key in unit.dependency_keys()],
            external=sorted(unit.external_dependencies),
            reasons=list(unit.broken_reasons),
        )

    def format(self) -> str:
        return f'(in {self.directory}) {self.kind} "{self.target}" [{self.status}]'

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "directory": self.directory,
            "kind": self.kind,
            "status": self.status,
            "dependencies": list(self.dependencies),
            "external": list(self.external),
            "reasons": list(self.reasons),
        }


def display_dir(directory: Path, root: Optional[Path] = None) -> str:
    """Directory as shown to the user: relative to root when below it."""
    if root is not None:
        try:
            relative = directory.resolve().relative_to(root.resolve())
        except ValueError:
            pass
        else:
            return relative.as_posix() or "."
    return directory.as_posix()


def build_reports(units: Iterable[PackageUnit], root: Optional[Path] = None) -> list[UnitReport]:
    """Reports for the given units, sorted by target."""
    return [UnitReport.from_unit(u, root) for u in sorted(units, key=lambda u: u.target)]


def print_scan(reports: Iterable[UnitReport], list_dependencies: bool = False) -> None:
    """Print one line per unit, optionally followed by its dependencies."""
    for report in reports:
        output.log(report.format())
        for reason in report.reasons:
            output.log_detail(reason)
        if list_dependencies:
            for dep in report.dependencies:
                output.log_detail(f"imports {dep}")
            for dep in report.external:
                output.log_detail(f"imports {dep} (installed)")
