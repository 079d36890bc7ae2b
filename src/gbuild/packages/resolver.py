"""Dependency resolver.

Turns each unit's declared import names into edges to other units in the
registry. Names that are not in the registry may still be satisfied by an
archive already installed in the toolchain tree; anything else leaves the unit
broken. Resolution never stops early, so every unresolved name in the tree is
reported in one pass, and running it again over the same registry yields the
same edges.
"""

import logging
from pathlib import Path
from typing import Optional

from ..config import ToolchainEnv
from .registry import Registry
from .unit import PackageUnit, TargetKey, UnitStatus

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Resolves declared dependency names against a registry."""

    def __init__(self, env: Optional[ToolchainEnv] = None):
        """Initialize the resolver.

        Args:
            env: Toolchain environment used to find installed archives
        """
        self.env = env

    def resolve(self, registry: Registry) -> list[PackageUnit]:
        """Resolve every unit in the registry.

        Args:
            registry: Registry to resolve in place

        Returns:
            Units left broken by resolution
        """
        broken = []
        for unit in registry.units():
            if not self.resolve_unit(unit, registry):
                broken.append(unit)
        logger.debug("resolved %d units, %d broken", len(registry), len(broken))
        return broken

    def resolve_unit(self, unit: PackageUnit, registry: Registry) -> bool:
        """Resolve one unit's dependencies.

        Replaces any previous resolution result, so repeated calls are safe.

        Args:
            unit: Unit to resolve
            registry: Registry to look dependencies up in

        Returns:
            True if every dependency resolved
        """
        resolved: dict[TargetKey, PackageUnit] = {}
        external: dict[str, Path] = {}
        reasons: list[str] = []

        for name in sorted(unit.dependency_names):
            dep = registry.get(name)
            if dep is unit:
                reasons.append(f'"{unit.name}" imports itself')
                continue
            if dep is not None:
                resolved[dep.target] = dep
                continue
            archive = self._installed_archive(name)
            if archive is not None:
                external[name] = archive
                continue
            reasons.append(f'unresolved dependency "{name}"')

        unit.resolved_dependencies = resolved
        unit.external_dependencies = external
        unit.broken_reasons = reasons
        unit.status = UnitStatus.BROKEN if reasons else UnitStatus.RESOLVED
        return not reasons

    def _installed_archive(self, name: str) -> Optional[Path]:
        if self.env is None:
            return None
        archive = self.env.installed_archive(name)
        return archive if archive.is_file() else None


def resolve_dependencies(registry: Registry, env: Optional[ToolchainEnv] = None) -> list[PackageUnit]:
    """Resolve a registry in place; returns units left broken."""
    return DependencyResolver(env).resolve(registry)
