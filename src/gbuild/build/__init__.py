"""Build pipeline: scheduling, toolchain steps and progress reporting.

Public API:
    BuildPipeline: Builds a plan of units in dependency order, sequentially
                   or on a worker pool.
    UnitBuilder: Runs the compile/assemble/link/install steps for one unit.
    DependencyScheduler: Readiness tracking over the plan's dependency DAG.
    BuildProgressDisplay: Rich live table implementing ProgressCallback.
"""

from .builder import UnitBuilder
from .callbacks import NullCallback, ProgressCallback
from .error_collector import BuildError, ErrorCollector, ErrorSeverity
from .models import BuildCounters, InstallFailure, PipelineResult
from .pipeline import BuildPipeline
from .progress_display import BuildProgressDisplay, TextProgressCallback
from .scheduler import CyclicDependencyError, DependencyScheduler, topological_order

__all__ = [
    "BuildCounters",
    "BuildError",
    "BuildPipeline",
    "BuildProgressDisplay",
    "CyclicDependencyError",
    "DependencyScheduler",
    "ErrorCollector",
    "ErrorSeverity",
    "InstallFailure",
    "NullCallback",
    "PipelineResult",
    "ProgressCallback",
    "TextProgressCallback",
    "UnitBuilder",
    "topological_order",
]
