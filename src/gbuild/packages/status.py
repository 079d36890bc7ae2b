"""Status engine.

Classifies every resolved unit as UP_TO_DATE, STALE or BROKEN:

1. Cycle pass: a three-colour depth-first walk marks every unit on a detected
   dependency cycle as broken.
2. Propagation pass: brokenness spreads to all transitive dependents through
   the reverse edges, so no fixed-point iteration is needed.
3. Freshness pass: the remaining (acyclic) units are classified dependencies
   first, so staleness flows downstream through the graph.

refresh() re-classifies a single unit; the pipeline calls it right before a
unit would be built, after its dependencies may have produced new artifacts.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .registry import Registry
from .source_parser import TARGET_FILE
from .unit import PackageUnit, TargetKey, UnitStatus

if TYPE_CHECKING:
    from ..layout import BuildLayout

logger = logging.getLogger(__name__)

WHITE, GRAY, BLACK = 0, 1, 2


def find_cycles(registry: Registry) -> list[list[PackageUnit]]:
    """Detect dependency cycles using DFS with coloring (white/gray/black).

    Iterative, so deep dependency chains stay clear of the recursion limit.

    Args:
        registry: Resolved registry

    Returns:
        Each detected cycle as a list of units, first unit repeated at the end
    """
    color: dict[TargetKey, int] = {key: WHITE for key in registry.keys()}
    cycles: list[list[PackageUnit]] = []

    for root in registry.units():
        if color[root.target] != WHITE:
            continue
        color[root.target] = GRAY
        path = [root]
        pending = [iter(root.dependency_keys())]
        while pending:
            unit = path[-1]
            dep_key = next(pending[-1], None)
            if dep_key is None:
                pending.pop()
                path.pop()
                color[unit.target] = BLACK
                continue
            dep = unit.resolved_dependencies[dep_key]
            dep_color = color.get(dep_key, BLACK)
            if dep_color == GRAY:
                # Back edge - everything from dep to here is on the cycle
                start = path.index(dep)
                cycles.append(path[start:] + [dep])
            elif dep_color == WHITE:
                color[dep_key] = GRAY
                path.append(dep)
                pending.append(iter(dep.dependency_keys()))

    return cycles


def _mtime(path: Path) -> Optional[float]:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


class StatusEngine:
    """Computes and refreshes unit status for one registry."""

    def __init__(self, registry: Registry, layout: "BuildLayout", force: bool = False):
        """Initialize the engine.

        Args:
            registry: Resolved registry
            layout: Path conventions used to locate artifacts
            force: Treat every non-broken unit as stale
        """
        self.registry = registry
        self.layout = layout
        self.force = force

    def evaluate(self) -> None:
        """Classify every unit in the registry."""
        for cycle in find_cycles(self.registry):
            route = " -> ".join(u.name for u in cycle)
            for unit in cycle[:-1]:
                unit.mark_broken(f"dependency cycle: {route}")

        self.propagate_broken()

        done: set[TargetKey] = set()
        for unit in self.registry.units():
            self._classify_tree(unit, done)

    def propagate_broken(self) -> list[PackageUnit]:
        """Mark every transitive dependent of a broken unit as broken.

        Returns:
            Units newly marked by this call
        """
        dependents = self.registry.dependents_map()
        queue = [u for u in self.registry.units() if u.status.is_failure]
        newly: list[PackageUnit] = []
        while queue:
            failed = queue.pop(0)
            for dependent in dependents.get(failed.target, []):
                if dependent.mark_broken(f'depends on broken "{failed.name}"'):
                    newly.append(dependent)
                    queue.append(dependent)
        return newly

    def _classify_tree(self, root: PackageUnit, done: set[TargetKey]) -> None:
        if root.target in done:
            return
        done.add(root.target)
        if root.status.is_failure:
            return
        # Post-order: dependencies are refreshed before their dependents
        stack = [(root, iter(root.dependency_keys()))]
        while stack:
            unit, deps = stack[-1]
            dep_key = next(deps, None)
            if dep_key is None:
                stack.pop()
                self.refresh(unit)
                continue
            dep = unit.resolved_dependencies[dep_key]
            if dep.target in done:
                continue
            done.add(dep.target)
            if not dep.status.is_failure:
                stack.append((dep, iter(dep.dependency_keys())))

    def refresh(self, unit: PackageUnit) -> UnitStatus:
        """Re-classify one unit from its dependencies' current status.

        Broken units stay broken. Dependencies must already be classified.

        Args:
            unit: Unit to classify

        Returns:
            The unit's new status
        """
        if unit.status.is_failure:
            return unit.status
        for dep in unit.resolved_dependencies.values():
            if dep.status.is_failure:
                unit.mark_broken(f'depends on broken "{dep.name}"')
                return unit.status
        unit.set_status(UnitStatus.STALE if self.is_stale(unit) else UnitStatus.UP_TO_DATE)
        return unit.status

    def is_stale(self, unit: PackageUnit) -> bool:
        """Decide whether a unit needs rebuilding.

        A unit is stale when forced, when its artifact is missing, when any
        input file is newer than the artifact, when any dependency is stale or
        was rebuilt in this run, or when any dependency artifact is newer.
        """
        if self.force:
            return True

        artifact_time = _mtime(self.layout.artifact_path(unit))
        if artifact_time is None:
            logger.debug("%s: no artifact", unit.target)
            return True

        inputs = [unit.directory / name for name in unit.input_files()]
        inputs.append(unit.directory / TARGET_FILE)
        for path in inputs:
            mtime = _mtime(path)
            if mtime is not None and mtime > artifact_time:
                logger.debug("%s: %s is newer than artifact", unit.target, path.name)
                return True

        for dep in unit.resolved_dependencies.values():
            if dep.changed_this_run:
                logger.debug("%s: dependency %s changed", unit.target, dep.target)
                return True
            dep_time = _mtime(self.layout.artifact_path(dep))
            if dep_time is not None and dep_time > artifact_time:
                return True

        for archive in unit.external_dependencies.values():
            ext_time = _mtime(archive)
            if ext_time is not None and ext_time > artifact_time:
                return True

        return False
