"""Unit registry.

The registry maps TargetKey -> PackageUnit for a single run. It is created by
the scanner and passed explicitly to the resolver, status engine and pipeline;
after resolution it is only read.
"""

import logging
from typing import Iterator, Optional, Union

from .unit import InvalidTargetError, PackageUnit, TargetKey

logger = logging.getLogger(__name__)


class Registry:
    """Mapping from target key to unit."""

    def __init__(self) -> None:
        self._units: dict[TargetKey, PackageUnit] = {}

    def register(self, unit: PackageUnit) -> None:
        """Add a unit, replacing any unit already registered under its key.

        Args:
            unit: Unit to register
        """
        previous = self._units.get(unit.target)
        if previous is not None and previous is not unit:
            logger.warning(
                "target '%s' in %s replaces the one in %s",
                unit.target,
                unit.directory,
                previous.directory,
            )
        self._units[unit.target] = unit

    def get(self, key: Union[TargetKey, str]) -> Optional[PackageUnit]:
        """Look up a unit by key or raw name.

        Returns:
            The unit, or None if unknown or the name is not a valid key
        """
        if isinstance(key, str):
            try:
                key = TargetKey(key)
            except InvalidTargetError:
                return None
        return self._units.get(key)

    def __getitem__(self, key: Union[TargetKey, str]) -> PackageUnit:
        unit = self.get(key)
        if unit is None:
            raise KeyError(f"Unknown target: {key}")
        return unit

    def __contains__(self, key: object) -> bool:
        if isinstance(key, (TargetKey, str)):
            return self.get(key) is not None
        return False

    def __iter__(self) -> Iterator[PackageUnit]:
        return iter(self.units())

    def __len__(self) -> int:
        return len(self._units)

    def keys(self) -> list[TargetKey]:
        return sorted(self._units)

    def units(self) -> list[PackageUnit]:
        """All units sorted by target."""
        return [self._units[k] for k in sorted(self._units)]

    def merge(self, other: "Registry") -> None:
        """Register every unit of another registry (later wins)."""
        for unit in other.units():
            self.register(unit)

    def dependents_map(self) -> dict[TargetKey, list[PackageUnit]]:
        """Reverse edges: key -> units that resolved a dependency on it."""
        reverse: dict[TargetKey, list[PackageUnit]] = {k: [] for k in self._units}
        for unit in self.units():
            for dep_key in unit.dependency_keys():
                reverse.setdefault(dep_key, []).append(unit)
        return reverse
