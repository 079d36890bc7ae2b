"""Build pipeline connecting scheduler + builder.

Coordinates a build over a plan of units by:
1. Using DependencyScheduler to decide which units are ready
2. Re-checking each ready unit's status right before it would build, since
   dependencies may have just produced new artifacts
3. Building stale units (sequentially, or on a worker pool) and installing
   when requested
4. Blocking every transitive dependent of a failed unit
5. Tallying built / installed / broken counts once every unit is terminal

Sequential mode builds in topological order on the calling thread. Concurrent
mode dispatches units to a ThreadPoolExecutor as soon as all their
dependencies have succeeded; each worker captures its unit's toolchain output
and flushes it in one piece when the unit finishes.
"""

import io
import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Optional, TextIO

from .. import output
from ..packages.status import StatusEngine
from ..packages.unit import PackageUnit, UnitStatus
from ..toolchain.invoker import ToolchainError
from .builder import UnitBuilder
from .callbacks import NullCallback, ProgressCallback
from .error_collector import ErrorCollector
from .models import BuildCounters, InstallFailure, PipelineResult
from .scheduler import DependencyScheduler

logger = logging.getLogger(__name__)


class BuildPipeline:
    """Builds a plan of units in dependency order.

    Args:
        builder: Unit builder driving the toolchain
        status_engine: Engine used to re-check staleness before each build
        counters: Run-wide counters to update
        errors: Collector for non-fatal failures
        callback: Progress callback
        install: Install each unit after it builds (or is found up to date)
        sink: Stream receiving toolchain stdout (defaults to the output stream)
    """

    def __init__(
        self,
        builder: UnitBuilder,
        status_engine: StatusEngine,
        counters: Optional[BuildCounters] = None,
        errors: Optional[ErrorCollector] = None,
        callback: Optional[ProgressCallback] = None,
        install: bool = False,
        sink: Optional[TextIO] = None,
    ) -> None:
        self.builder = builder
        self.status_engine = status_engine
        self.counters = counters if counters is not None else BuildCounters()
        self.errors = errors if errors is not None else ErrorCollector()
        self.callback: ProgressCallback = callback if callback is not None else NullCallback()
        self.install = install
        self.sink = sink
        self._build_order: list[str] = []
        self._install_failures: list[InstallFailure] = []
        self._sink_lock = threading.Lock()

    def run(self, plan: list[PackageUnit], concurrent: bool = False, jobs: Optional[int] = None) -> PipelineResult:
        """Execute the pipeline on the given plan.

        Returns when every unit is in a terminal state. A failing unit never
        stops the run.

        Args:
            plan: Units to build (status already evaluated)
            concurrent: Build independent units in parallel
            jobs: Worker bound for concurrent mode (None = one worker per unit)

        Returns:
            PipelineResult with final unit states and timing
        """
        start_time = time.monotonic()
        self._build_order = []
        self._install_failures = []

        if not plan:
            return PipelineResult(units=[])

        scheduler = DependencyScheduler(plan)
        scheduler.validate()

        if concurrent:
            self._run_concurrent(scheduler, jobs if jobs else len(plan))
        else:
            self._run_sequential(scheduler)

        for unit in plan:
            if unit.status.is_failure:
                self.counters.add_broken()
                self.errors.add("build", "; ".join(unit.broken_reasons) or "broken", str(unit.directory), unit.name)

        return PipelineResult(
            units=list(plan),
            build_order=list(self._build_order),
            install_failures=list(self._install_failures),
            total_elapsed=time.monotonic() - start_time,
        )

    def _run_sequential(self, scheduler: DependencyScheduler) -> None:
        scheduler.start()
        for unit in scheduler.order():
            if unit.status.is_failure:
                continue
            if self.process_unit(unit, self._sink()):
                scheduler.mark_succeeded(unit.target)
            else:
                self._fail(scheduler, unit)

    def _run_concurrent(self, scheduler: DependencyScheduler, max_workers: int) -> None:
        active: dict[Future[bool], PackageUnit] = {}

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="gbuild") as pool:
            for unit in scheduler.start():
                active[pool.submit(self._process_buffered, unit)] = unit

            while active:
                done, _ = wait(active, return_when=FIRST_COMPLETED)
                for future in done:
                    unit = active.pop(future)
                    try:
                        ok = future.result()
                    except KeyboardInterrupt:
                        raise
                    except Exception as e:
                        logger.exception("unexpected error building %s", unit.target)
                        unit.mark_failed(f"internal error: {e}")
                        ok = False

                    if ok:
                        for ready in scheduler.mark_succeeded(unit.target):
                            active[pool.submit(self._process_buffered, ready)] = ready
                    else:
                        self._fail(scheduler, unit)

    def _fail(self, scheduler: DependencyScheduler, unit: PackageUnit) -> None:
        for blocked in scheduler.mark_failed(unit.target):
            self.callback.on_progress(blocked.name, UnitStatus.BROKEN, 0, 0, f'depends on broken "{unit.name}"')

    def _process_buffered(self, unit: PackageUnit) -> bool:
        buffer = io.StringIO()
        try:
            return self.process_unit(unit, buffer)
        finally:
            captured = buffer.getvalue()
            if captured:
                if self.sink is not None:
                    with self._sink_lock:
                        self.sink.write(captured)
                else:
                    output.write_block(captured)

    def _sink(self) -> TextIO:
        return self.sink if self.sink is not None else output.get_output_stream()

    def process_unit(self, unit: PackageUnit, sink: TextIO) -> bool:
        """Bring one ready unit up to date.

        Args:
            unit: Unit whose dependencies have all succeeded
            sink: Stream receiving toolchain stdout

        Returns:
            True if the unit ended in a success state
        """
        status = self.status_engine.refresh(unit)
        if status.is_failure:
            return False

        if status == UnitStatus.STALE:
            unit.set_status(UnitStatus.BUILDING)
            self._build_order.append(unit.name)
            output.log_unit(str(unit.directory), f'building "{unit.name}"', verbose_only=True)
            try:
                self.builder.build(unit, sink)
            except ToolchainError as e:
                unit.mark_failed(str(e))
                self.callback.on_progress(unit.name, UnitStatus.BUILD_FAILED, 0, 0, e.message)
                return False
            unit.mark_built()
            self.counters.add_built()
            self.callback.on_progress(unit.name, UnitStatus.BUILT, 1, 1, "built")
        else:
            self.callback.on_progress(unit.name, UnitStatus.UP_TO_DATE, 1, 1, "up to date")

        if self.install:
            try:
                destination = self.builder.install(unit, sink)
            except ToolchainError as e:
                failure = InstallFailure(target=unit.name, directory=str(unit.directory), message=e.message)
                self._install_failures.append(failure)
                self.errors.add("install", failure.format(), str(unit.directory), unit.name)
            else:
                unit.set_status(UnitStatus.INSTALLED)
                self.counters.add_installed()
                self.callback.on_progress(unit.name, UnitStatus.INSTALLED, 1, 1, str(destination))

        return True
