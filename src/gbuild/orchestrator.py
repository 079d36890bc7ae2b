"""
Run orchestration for gbuild.

One run goes through a fixed sequence:

1. Resolve the toolchain binaries the requested modes need (fatal if missing)
2. Scan the project (and optionally the toolchain tree) into a registry
3. Resolve dependencies and classify every unit
4. Select the plan: listed units, in dependency-first order
5. Run the requested actions over the plan:
   scan -> format -> makefiles -> distribution -> clean -> build/install -> test
6. Print the summary and compute the exit code

Non-fatal failures are collected and reported together at the end; only
precondition failures (missing binary, unnamed package at the scan root) and
failures of the secondary actions abort a run.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, TextIO

from . import output
from .actions import (
    DistributionError,
    UnitReport,
    build_reports,
    clean_units,
    collect_distribution_files,
    display_dir,
    format_units,
    make_dist,
    print_scan,
    run_tests,
    write_build_script,
    write_makefiles,
)
from .build import (
    BuildCounters,
    BuildPipeline,
    BuildProgressDisplay,
    ErrorCollector,
    ErrorSeverity,
    InstallFailure,
    ProgressCallback,
    UnitBuilder,
    topological_order,
)
from .config import BuildOptions, ConfigError, ToolchainEnv
from .filter import ListedTargetFilter
from .layout import BuildLayout
from .packages import DependencyResolver, PackageUnit, Registry, StatusEngine, UnitKind, scan_tree
from .toolchain import BinaryNotFoundError, ToolchainError, ToolchainFinder, ToolchainPaths, ToolRunner, run_external

logger = logging.getLogger(__name__)


class PreconditionError(Exception):
    """A failure that aborts the whole run before any unit is built."""

    pass


@dataclass
class RunResult:
    """Outcome of one gbuild run.

    Attributes:
        counters: Built / installed / broken tallies
        reports: Final per-unit outcome for every planned unit
        plan: Planned targets in dependency-first order
        install_failures: Install steps that failed
        errors: Every collected error, formatted one per line
        exit_code: 0 on success, 1 if any unit broke or a precondition failed
    """

    counters: BuildCounters = field(default_factory=BuildCounters)
    reports: list[UnitReport] = field(default_factory=list)
    plan: list[str] = field(default_factory=list)
    install_failures: list[InstallFailure] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    exit_code: int = 0

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def report_for(self, target: str) -> UnitReport:
        for report in self.reports:
            if report.target == target:
                return report
        raise KeyError(f"Unknown target: {target}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "counters": self.counters.to_dict(),
            "reports": [r.to_dict() for r in self.reports],
            "plan": list(self.plan),
            "install_failures": [f.format() for f in self.install_failures],
            "errors": list(self.errors),
            "exit_code": self.exit_code,
        }


def plan_units(registry: Registry, root: Path, options: BuildOptions, env: Optional[ToolchainEnv] = None) -> list[PackageUnit]:
    """Select the units an action applies to, dependencies first.

    A unit takes part when it matches the listed-target filter, its kind is
    selected, and it is not part of the toolchain's own tree (unless the run
    itself happens inside that tree).

    Args:
        registry: Resolved and classified registry
        root: Project root
        options: Normalized build options
        env: Toolchain environment

    Returns:
        Planned units in dependency-first order
    """
    listed = ListedTargetFilter(options.listed_targets, options.exclusive)
    in_toolchain_tree = env is not None and env.contains(root)

    selected = []
    for unit in registry:
        if unit.in_toolchain_root and not in_toolchain_tree:
            continue
        if unit.kind == UnitKind.LIBRARY and not options.packages:
            continue
        if unit.kind == UnitKind.COMMAND and not options.commands:
            continue
        if listed.is_listed(display_dir(unit.directory, root)):
            selected.append(unit)
    return topological_order(selected)


class BuildOrchestrator:
    """Drives one complete run over a project root."""

    def __init__(
        self,
        env: ToolchainEnv,
        options: BuildOptions,
        tools: Optional[ToolchainPaths] = None,
        runner: ToolRunner = run_external,
        callback: Optional[ProgressCallback] = None,
        display: Optional[BuildProgressDisplay] = None,
        sink: Optional[TextIO] = None,
        confirm: Optional[Callable[[Path], bool]] = None,
    ):
        """Initialize the orchestrator.

        Args:
            env: Toolchain environment
            options: Build options (normalized on run)
            tools: Pre-resolved toolchain binaries (found on PATH when None)
            runner: Toolchain invoker
            callback: Progress callback for the build pipeline
            display: Live display wrapped around the build (used as callback)
            sink: Stream receiving toolchain output
            confirm: Prompt used before overwriting an existing build script
        """
        self.env = env
        self.options = options.normalized()
        self.tools = tools
        self.runner = runner
        self.callback = callback
        self.display = display
        self.sink = sink
        self.confirm = confirm
        self.errors = ErrorCollector()

    def run(self, root: Path) -> RunResult:
        """Run every requested action over the project at root.

        Args:
            root: Project root

        Returns:
            RunResult with counters, per-unit reports and the exit code
        """
        result = RunResult()
        start_time = time.time()
        try:
            self._run(root.resolve(), result)
        except (PreconditionError, BinaryNotFoundError, ConfigError, DistributionError, ToolchainError) as e:
            output.log_error(str(e))
            self.errors.add("run", str(e), severity=ErrorSeverity.FATAL)
            result.exit_code = 1

        result.errors = self.errors.format_errors()
        output.log_build_complete(time.time() - start_time, verbose_only=True)
        return result

    def _run(self, root: Path, result: RunResult) -> None:
        options = self.options
        tools = self.tools if self.tools is not None else ToolchainFinder(self.env).resolve(options)
        layout = BuildLayout(root, self.env)

        with output.TimedLogger(f"Scanning {root}", verbose_only=True):
            scan = scan_tree(root, self.env, options.include_toolchain_tree)

        root_error = scan.error_for(root)
        if root_error is not None:
            raise PreconditionError(str(root_error))
        for error in scan.errors:
            output.log(str(error))
            self.errors.add("scan", error.message, str(error.directory))

        registry = scan.registry
        DependencyResolver(self.env).resolve(registry)
        StatusEngine(registry, layout, force=options.force).evaluate()

        plan = plan_units(registry, root, options, self.env)
        result.plan = [u.name for u in plan]
        logger.debug("plan: %s", ", ".join(result.plan))

        if options.scan:
            print_scan(build_reports(plan, root), options.scan_list)

        if options.format:
            format_units(plan, tools, self.runner, self.sink)

        if options.generate_makefiles:
            write_build_script(plan, root, force=options.force, confirm=self.confirm)
            write_makefiles(plan)

        if options.distribution:
            make_dist(root, collect_distribution_files(root, plan))

        removed = 0
        if options.clean:
            removed = clean_units(plan, layout, remove_shared=not options.listed_targets, nuke=options.nuke)

        if options.build:
            self._build(plan, tools, layout, registry, result)

        if options.test:
            run_tests(plan, tools, self.runner, options.compiler_args, self.sink)

        result.reports = build_reports(plan, root)
        self._print_summary(result, removed)

    def _build(self, plan: list[PackageUnit], tools: ToolchainPaths, layout: BuildLayout, registry: Registry, result: RunResult) -> None:
        options = self.options
        callback = self.display if self.display is not None else self.callback
        builder = UnitBuilder(
            tools,
            layout,
            runner=self.runner,
            compiler_args=options.compiler_args,
            linker_args=options.linker_args,
            callback=callback,
        )
        pipeline = BuildPipeline(
            builder,
            StatusEngine(registry, layout, force=options.force),
            counters=result.counters,
            errors=self.errors,
            callback=callback,
            install=options.install,
            sink=self.sink,
        )

        if self.display is not None:
            for unit in plan:
                self.display.register_task(unit.name, unit.kind.value)
            with self.display:
                outcome = pipeline.run(plan, concurrent=options.concurrent, jobs=options.jobs)
        else:
            outcome = pipeline.run(plan, concurrent=options.concurrent, jobs=options.jobs)

        for unit in outcome.failed_units:
            for reason in unit.broken_reasons:
                output.log_unit(display_dir(unit.directory, layout.root), reason)
        for failure in outcome.install_failures:
            output.log(failure.format())
        result.install_failures = outcome.install_failures

    def _print_summary(self, result: RunResult, removed: int) -> None:
        options = self.options
        counters = result.counters
        if options.clean and removed == 0:
            output.log("No mess to clean")
        if not options.build:
            return

        if counters.built:
            output.log_success(f"Built {_plural(counters.built)}")
        if counters.installed:
            output.log_success(f"Installed {_plural(counters.installed)}")
        if counters.built == 0 and counters.installed == 0 and counters.broken == 0:
            output.log_success("Up to date")
        if counters.broken:
            output.log(f"{counters.broken} broken target{'s' if counters.broken != 1 else ''}")
            result.exit_code = 1


def _plural(count: int) -> str:
    return "1 target" if count == 1 else f"{count} targets"


def run(
    root: Path,
    options: BuildOptions,
    env: Optional[ToolchainEnv] = None,
    tools: Optional[ToolchainPaths] = None,
    runner: ToolRunner = run_external,
    callback: Optional[ProgressCallback] = None,
    display: Optional[BuildProgressDisplay] = None,
    sink: Optional[TextIO] = None,
    confirm: Optional[Callable[[Path], bool]] = None,
) -> RunResult:
    """Run gbuild over a project root.

    Args:
        root: Project root
        options: Build options
        env: Toolchain environment (read from os.environ when None)
        tools: Pre-resolved toolchain binaries
        runner: Toolchain invoker
        callback: Progress callback
        display: Live display for the build phase
        sink: Stream receiving toolchain output
        confirm: Overwrite prompt for the build script

    Returns:
        RunResult; exit_code is 1 if the toolchain environment is unusable
    """
    if env is None:
        try:
            env = ToolchainEnv.from_environ()
        except ConfigError as e:
            output.log_error(str(e))
            return RunResult(errors=[str(e)], exit_code=1)
    orchestrator = BuildOrchestrator(env, options, tools, runner, callback, display, sink, confirm)
    return orchestrator.run(root)
