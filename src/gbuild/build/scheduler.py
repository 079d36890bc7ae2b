"""DAG-based dependency scheduler for the build pipeline.

Orders the units of a build plan so that a unit only becomes ready once every
dependency inside the plan has finished successfully. Readiness is tracked
with a pending-dependency counter per unit; a unit is handed out exactly once,
when its counter reaches zero. A failure removes every transitive dependent
from scheduling and marks it broken.

Dependencies outside the plan are not built by this run and count as
satisfied unless they are broken (the status engine has already propagated
that).
"""

import heapq
import threading
from typing import Any, Iterable

from ..packages.unit import PackageUnit, TargetKey


class CyclicDependencyError(ValueError):
    """Raised when the plan's dependency graph contains a cycle."""

    pass


def _either_failed(a: PackageUnit, b: PackageUnit) -> bool:
    return a.status.is_failure or b.status.is_failure


def topological_order(units: Iterable[PackageUnit]) -> list[PackageUnit]:
    """Order units dependencies-first.

    Only edges between the given units are considered, and edges touching a
    unit that is already broken are ignored (broken units may sit on a cycle).
    Ties are broken by target name, so the order is deterministic for a given
    set of units.

    Args:
        units: Units to order

    Returns:
        Units in dependency-first order

    Raises:
        CyclicDependencyError: If the units contain a cycle
    """
    by_key = {u.target: u for u in units}
    pending = {key: 0 for key in by_key}
    dependents: dict[TargetKey, list[TargetKey]] = {key: [] for key in by_key}
    for key, unit in by_key.items():
        for dep_key in unit.resolved_dependencies:
            if dep_key in by_key and dep_key != key and not _either_failed(unit, by_key[dep_key]):
                pending[key] += 1
                dependents[dep_key].append(key)

    heap = [key for key, count in pending.items() if count == 0]
    heapq.heapify(heap)
    order: list[PackageUnit] = []
    while heap:
        key = heapq.heappop(heap)
        order.append(by_key[key])
        for dependent in dependents[key]:
            pending[dependent] -= 1
            if pending[dependent] == 0:
                heapq.heappush(heap, dependent)

    if len(order) != len(by_key):
        stuck = sorted(k.name for k, count in pending.items() if count > 0)
        raise CyclicDependencyError(f"Cyclic dependency detected among: {', '.join(stuck)}")
    return order


class DependencyScheduler:
    """Schedules plan units based on their dependency DAG.

    Thread-safe: worker threads may report completion concurrently while the
    main loop collects newly ready units.

    Usage:
        scheduler = DependencyScheduler(plan)
        scheduler.validate()  # raises CyclicDependencyError if cycle detected

        ready = scheduler.start()
        while ready or work in flight:
            ...
            ready = scheduler.mark_succeeded(unit.target)  # or mark_failed()
    """

    def __init__(self, units: Iterable[PackageUnit]) -> None:
        self._units: dict[TargetKey, PackageUnit] = {}
        for unit in units:
            if unit.target in self._units:
                raise ValueError(f"Duplicate target: {unit.target}")
            self._units[unit.target] = unit

        self._pending: dict[TargetKey, int] = {key: 0 for key in self._units}
        self._dependents: dict[TargetKey, list[TargetKey]] = {key: [] for key in self._units}
        for key, unit in self._units.items():
            for dep_key in unit.resolved_dependencies:
                if dep_key not in self._units:
                    continue
                # Failed units still block their dependents but hold no pending count
                self._dependents[dep_key].append(key)
                if not _either_failed(unit, self._units[dep_key]):
                    self._pending[key] += 1

        self._dispatched: set[TargetKey] = set()
        self._finished: set[TargetKey] = set()
        self._lock = threading.Lock()

    def validate(self) -> None:
        """Check that the plan is acyclic.

        Raises:
            CyclicDependencyError: If the dependency graph contains a cycle.
        """
        topological_order(self._units.values())

    def order(self) -> list[PackageUnit]:
        """All plan units in dependency-first order."""
        return topological_order(self._units.values())

    def start(self) -> list[PackageUnit]:
        """Return the units that are ready before anything has run.

        Units that are already failed are retired immediately and their
        dependents blocked; they are never returned as ready.
        """
        with self._lock:
            failed = [u for u in self._units.values() if u.status.is_failure]
        for unit in failed:
            self.mark_failed(unit.target)

        with self._lock:
            ready_keys = sorted(
                key
                for key, count in self._pending.items()
                if count == 0 and key not in self._dispatched and key not in self._finished
            )
            self._dispatched.update(ready_keys)
            return [self._units[key] for key in ready_keys]

    def mark_succeeded(self, key: TargetKey) -> list[PackageUnit]:
        """Record a successful unit and release its dependents.

        Args:
            key: Target that finished successfully

        Returns:
            Dependents whose last pending dependency was this unit
        """
        with self._lock:
            if key not in self._units:
                raise KeyError(f"Unknown target: {key}")
            self._finished.add(key)
            ready: list[TargetKey] = []
            for dependent in self._dependents[key]:
                self._pending[dependent] -= 1
                if self._pending[dependent] == 0 and dependent not in self._dispatched and dependent not in self._finished:
                    self._dispatched.add(dependent)
                    ready.append(dependent)
            return [self._units[k] for k in sorted(ready)]

    def mark_failed(self, key: TargetKey) -> list[PackageUnit]:
        """Record a failed unit and block all of its transitive dependents.

        Each blocked dependent is marked broken exactly once, even if several
        failures reach it.

        Args:
            key: Target that failed

        Returns:
            Dependents newly blocked by this call
        """
        with self._lock:
            if key not in self._units:
                raise KeyError(f"Unknown target: {key}")
            self._finished.add(key)
            blocked: list[PackageUnit] = []
            queue = [(dependent, key) for dependent in self._dependents[key]]
            while queue:
                dependent_key, parent_key = queue.pop(0)
                if dependent_key in self._finished:
                    continue
                self._finished.add(dependent_key)
                dependent = self._units[dependent_key]
                if not dependent.status.is_failure:
                    dependent.mark_broken(f'depends on broken "{parent_key.name}"')
                    blocked.append(dependent)
                queue.extend((k, dependent_key) for k in self._dependents[dependent_key])
            return blocked

    def all_done(self) -> bool:
        """Check if every unit has reached a terminal state."""
        with self._lock:
            return len(self._finished) == len(self._units)

    def get_unit(self, key: TargetKey) -> PackageUnit:
        with self._lock:
            if key not in self._units:
                raise KeyError(f"Unknown target: {key}")
            return self._units[key]

    @property
    def unit_count(self) -> int:
        """Total number of units."""
        with self._lock:
            return len(self._units)

    def to_dict(self) -> dict[str, Any]:
        """Serialize scheduler state to dictionary."""
        with self._lock:
            return {
                "pending": {k.name: v for k, v in self._pending.items()},
                "finished": sorted(k.name for k in self._finished),
            }
