"""Rich-based live progress display for concurrent builds.

Renders one line per planned unit that transitions through its states:

    Waiting -> Building [=====>     ] 2/3 compile -> Built (checkmark) 1.4s
    Waiting -> Up to date
    Waiting -> Broken (cross) depends on broken "pkgA"

Thread-safe: pool worker threads call on_progress() concurrently while the
display renders in the main thread.

TextProgressCallback is the non-interactive counterpart used when stdout is
not a terminal: it writes one timestamped line per terminal state change.
"""

import threading
import time
from typing import Any

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from .. import output
from ..packages.unit import UnitStatus

_SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")

_WAITING = (UnitStatus.DISCOVERED, UnitStatus.RESOLVED, UnitStatus.STALE)

_PHASE_LABELS = {
    UnitStatus.DISCOVERED: ("Waiting", "dim"),
    UnitStatus.RESOLVED: ("Waiting", "dim"),
    UnitStatus.STALE: ("Waiting", "dim"),
    UnitStatus.UP_TO_DATE: ("Up to date", "dim green"),
    UnitStatus.BUILDING: ("Building", "blue"),
    UnitStatus.BUILT: ("Built", "green"),
    UnitStatus.INSTALLED: ("Installed", "green"),
    UnitStatus.BUILD_FAILED: ("Failed", "red bold"),
    UnitStatus.BROKEN: ("Broken", "red"),
}


class _UnitDisplayState:
    """Internal state for a single unit's display line."""

    __slots__ = ("name", "kind", "phase", "progress", "total", "detail", "elapsed", "start_time")

    def __init__(self, name: str, kind: str) -> None:
        self.name = name
        self.kind = kind
        self.phase = UnitStatus.RESOLVED
        self.progress: float = 0.0
        self.total: float = 0.0
        self.detail: str = ""
        self.elapsed: float = 0.0
        self.start_time: float | None = None


class BuildProgressDisplay:
    """Live table of unit states using Rich.

    Implements ProgressCallback.

    Args:
        console: Rich Console instance for rendering. If None, creates a new one.
        root_name: Project name for the header line.
        refresh_per_second: Display refresh rate.
    """

    def __init__(self, console: Console | None, root_name: str, refresh_per_second: int = 10) -> None:
        self._console = console if console is not None else Console()
        self._root_name = root_name
        self._refresh_per_second = refresh_per_second
        self._states: dict[str, _UnitDisplayState] = {}
        self._order: list[str] = []
        self._lock = threading.Lock()
        self._live: Live | None = None

    def register_task(self, name: str, kind: str = "") -> None:
        """Register a unit for display before the pipeline starts.

        Args:
            name: Target name.
            kind: "library" or "command", shown next to the name.
        """
        with self._lock:
            if name not in self._states:
                self._states[name] = _UnitDisplayState(name, kind)
                self._order.append(name)

    def on_progress(self, task_name: str, phase: UnitStatus, progress: float, total: float, detail: str) -> None:
        """Update the display state for a unit. Thread-safe."""
        with self._lock:
            state = self._states.get(task_name)
            if state is None:
                state = _UnitDisplayState(task_name, "")
                self._states[task_name] = state
                self._order.append(task_name)

            if state.start_time is None and phase not in _WAITING:
                state.start_time = time.monotonic()

            state.phase = phase
            state.progress = progress
            state.total = total
            state.detail = detail
            if state.start_time is not None:
                state.elapsed = time.monotonic() - state.start_time

        self.update()

    def start(self) -> None:
        """Start the live display. Call before pipeline.run()."""
        self._live = Live(
            self._render_display(),
            console=self._console,
            refresh_per_second=self._refresh_per_second,
            transient=False,
        )
        self._live.start()

    def stop(self) -> None:
        """Stop the live display. Call after pipeline.run()."""
        if self._live is not None:
            self._live.update(self._render_display())
            self._live.stop()
            self._live = None

    def update(self) -> None:
        """Force a display refresh."""
        if self._live is not None:
            self._live.update(self._render_display())

    def _render_display(self) -> Group:
        header = Text(f"\nBuilding {self._root_name}...\n", style="bold")
        return Group(header, self._render_table(), self._render_footer())

    def _render_table(self) -> Table:
        table = Table(
            show_header=False,
            show_edge=False,
            show_lines=False,
            box=None,
            padding=(0, 1),
            expand=False,
        )
        table.add_column("Target", style="bold", no_wrap=True, min_width=28)
        table.add_column("Phase", no_wrap=True, min_width=12)
        table.add_column("Status", no_wrap=True, min_width=40)

        with self._lock:
            for name in self._order:
                state = self._states[name]
                table.add_row(self._format_name(state), self._format_phase(state), self._format_status(state))
        return table

    def _render_footer(self) -> Text:
        with self._lock:
            total = len(self._states)
            done = sum(1 for s in self._states.values() if s.phase.is_terminal_success)
            failed = sum(1 for s in self._states.values() if s.phase.is_failure)
            active = sum(1 for s in self._states.values() if s.phase == UnitStatus.BUILDING)

        parts = [f"{total} targets"]
        if active > 0:
            parts.append(f"{active} active")
        if done > 0:
            parts.append(f"{done} done")
        if failed > 0:
            parts.append(f"{failed} broken")
        return Text(f"\n  {', '.join(parts)}", style="dim")

    def _format_name(self, state: _UnitDisplayState) -> Text:
        kind = f" ({state.kind})" if state.kind else ""
        if state.phase.is_failure:
            style = "red"
        elif state.phase.is_terminal_success:
            style = "green"
        elif state.phase in _WAITING:
            style = "dim"
        else:
            style = "bold cyan"
        return Text(f"{state.name}{kind}", style=style)

    def _format_phase(self, state: _UnitDisplayState) -> Text:
        label, style = _PHASE_LABELS.get(state.phase, ("Unknown", "dim"))
        return Text(label, style=style)

    def _format_status(self, state: _UnitDisplayState) -> Text:
        if state.phase in _WAITING or state.phase == UnitStatus.UP_TO_DATE:
            return Text("")

        if state.phase == UnitStatus.BUILDING:
            if state.total > 0:
                return self._format_progress_bar(state)
            spinner = _SPINNER_FRAMES[int(time.monotonic() * 8) % len(_SPINNER_FRAMES)]
            return Text(f"{spinner} {state.detail or 'Working...'}", style="blue")

        if state.phase.is_failure:
            return Text(f"✗ {state.detail or 'Error'}", style="red")

        elapsed = f"{state.elapsed:.1f}s" if state.elapsed > 0 else ""
        return Text(f"✓ {elapsed}", style="green")

    def _format_progress_bar(self, state: _UnitDisplayState) -> Text:
        """Format a text progress bar like [======>     ] 2/3 link."""
        bar_width = 20
        pct = min(state.progress / state.total, 1.0) if state.total > 0 else 0.0
        filled = int(bar_width * pct)
        remaining = bar_width - filled

        if 0 < filled < bar_width:
            bar = "=" * (filled - 1) + ">" + " " * remaining
        elif filled == bar_width:
            bar = "=" * bar_width
        else:
            bar = " " * bar_width

        return Text(f"[{bar}] {state.progress:.0f}/{state.total:.0f} {state.detail}", style="blue")

    def get_snapshot(self) -> list[dict[str, Any]]:
        """Get a snapshot of current display states for testing."""
        with self._lock:
            return [
                {
                    "name": s.name,
                    "kind": s.kind,
                    "phase": s.phase,
                    "progress": s.progress,
                    "total": s.total,
                    "detail": s.detail,
                    "elapsed": s.elapsed,
                }
                for s in (self._states[name] for name in self._order)
            ]

    def __enter__(self) -> "BuildProgressDisplay":
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()


class TextProgressCallback:
    """Writes one line per unit state change through the output module."""

    def on_progress(self, task_name: str, phase: UnitStatus, progress: float, total: float, detail: str) -> None:
        if phase == UnitStatus.BUILDING:
            output.log_detail(f"{task_name}: [{progress:.0f}/{total:.0f}] {detail}", verbose_only=True)
        elif phase.is_failure:
            output.log_detail(f"{task_name}: {phase.value}: {detail}")
        elif phase == UnitStatus.UP_TO_DATE:
            output.log_detail(f"{task_name}: up to date", verbose_only=True)
        else:
            output.log_detail(f"{task_name}: {phase.value}", verbose_only=True)
