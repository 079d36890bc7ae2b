"""Progress callback protocol for the build pipeline.

Defines the callback interface the pipeline and unit builder use to report
progress to the display layer.
"""

from typing import Protocol, runtime_checkable

from ..packages.unit import UnitStatus


@runtime_checkable
class ProgressCallback(Protocol):
    """Protocol for receiving progress updates from the build pipeline.

    Implementations receive updates as units move through building,
    installing and their terminal states. The TUI display layer implements
    this protocol to render a live table.
    """

    def on_progress(self, task_name: str, phase: UnitStatus, progress: float, total: float, detail: str) -> None:
        """Called when a unit makes progress.

        Args:
            task_name: Target name of the unit.
            phase: Current unit status.
            progress: Current step number within the phase.
            total: Total number of steps. May be 0 if unknown.
            detail: Human-readable status detail (e.g. "compile 4 sources").
        """
        ...


class NullCallback:
    """No-op callback implementation for tests and non-interactive use."""

    def on_progress(self, task_name: str, phase: UnitStatus, progress: float, total: float, detail: str) -> None:
        """Discard progress update."""
        pass
