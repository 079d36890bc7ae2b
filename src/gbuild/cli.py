"""
Command-line interface for gbuild.

This module provides the `gbuild` CLI tool: configuration-free building of
package trees. Single-letter flags combine, so `gbuild -ipv` installs with a
concurrent, verbose build.
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console

from gbuild import __version__, output
from gbuild.build import BuildProgressDisplay, TextProgressCallback
from gbuild.config import BuildOptions
from gbuild.orchestrator import run


@dataclass
class CliArgs:
    """Parsed command-line arguments."""

    project_dir: Path
    targets: list[str] = field(default_factory=list)
    install: bool = False
    clean: bool = False
    nuke: bool = False
    build: bool = False
    scan: bool = False
    scan_list: bool = False
    test: bool = False
    exclusive: bool = False
    verbose: bool = False
    use_makefiles: bool = False
    generate_makefiles: bool = False
    force: bool = False
    concurrent: bool = False
    jobs: Optional[int] = None
    format: bool = False
    packages: bool = False
    commands: bool = False
    distribution: bool = False
    include_toolchain_tree: bool = False
    compiler_args: list[str] = field(default_factory=list)
    linker_args: list[str] = field(default_factory=list)

    def to_options(self) -> BuildOptions:
        """Convert to BuildOptions; building through makefiles counts as a build."""
        return BuildOptions(
            build=self.build or (self.use_makefiles and not self.clean),
            install=self.install,
            clean=self.clean or self.nuke,
            nuke=self.nuke,
            scan=self.scan or self.scan_list,
            scan_list=self.scan_list,
            test=self.test,
            exclusive=self.exclusive,
            include_toolchain_tree=self.include_toolchain_tree,
            concurrent=self.concurrent or self.jobs is not None,
            jobs=self.jobs,
            verbose=self.verbose,
            generate_makefiles=self.generate_makefiles,
            force=self.force,
            format=self.format,
            packages=self.packages,
            commands=self.commands,
            distribution=self.distribution,
            listed_targets=tuple(self.targets),
            compiler_args=tuple(self.compiler_args),
            linker_args=tuple(self.linker_args),
        )


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid job count: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError("job count must be at least 1")
    return number


def create_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="gbuild",
        description="gbuild - configuration-free builds for package trees",
        epilog="Targets are directories; a unit is selected when its directory lies below a listed target (or equals it with -e).",
    )
    parser.add_argument("--version", action="version", version=f"gbuild {__version__}")
    parser.add_argument("targets", nargs="*", help="Directories to act on (default: everything)")
    parser.add_argument("-i", "--install", action="store_true", help="Install built targets into the toolchain tree")
    parser.add_argument("-c", "--clean", action="store_true", help="Remove build outputs")
    parser.add_argument("-N", "--nuke", action="store_true", help="Clean, including installed copies")
    parser.add_argument("-b", "--build", action="store_true", help="Build (implied unless another action is given)")
    parser.add_argument("-s", "--scan", action="store_true", help="List targets and their status")
    parser.add_argument("-S", "--scan-list", action="store_true", help="List targets with their dependencies")
    parser.add_argument("-t", "--test", action="store_true", help="Run tests for targets with test sources")
    parser.add_argument("-e", "--exclusive", action="store_true", help="Match listed targets exactly")
    parser.add_argument("-v", "--verbose", action="store_true", help="Echo every toolchain command")
    parser.add_argument("-m", "--use-makefiles", action="store_true", help="Build (kept for compatibility)")
    parser.add_argument("-M", "--generate-makefiles", action="store_true", help="Write Makefiles and a build script")
    parser.add_argument("-f", "--force", action="store_true", help="Rebuild everything and overwrite without asking")
    parser.add_argument("-p", "--concurrent", action="store_true", help="Build independent targets in parallel")
    parser.add_argument("-j", "--jobs", type=_positive_int, default=None, metavar="N", help="Parallel worker bound (implies -p)")
    parser.add_argument("-F", "--format", action="store_true", help="Format sources in place")
    parser.add_argument("-P", "--packages", action="store_true", help="Only act on library targets")
    parser.add_argument("-C", "--commands", action="store_true", help="Only act on command targets")
    parser.add_argument("-D", "--distribution", action="store_true", help="Copy distribution files into _dist_")
    parser.add_argument("-R", "--toolchain-tree", action="store_true", help="Also scan the toolchain's own source tree")
    parser.add_argument("--gcflags", action="append", default=[], metavar="ARGS", help="Extra compiler arguments")
    parser.add_argument("--ldflags", action="append", default=[], metavar="ARGS", help="Extra linker arguments")
    parser.add_argument("--project-dir", type=Path, default=None, help="Project root (default: current directory)")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> CliArgs:
    """Parse command-line arguments into CliArgs."""
    parsed = create_parser().parse_args(argv)
    return CliArgs(
        project_dir=parsed.project_dir if parsed.project_dir is not None else Path.cwd(),
        targets=list(parsed.targets),
        install=parsed.install,
        clean=parsed.clean,
        nuke=parsed.nuke,
        build=parsed.build,
        scan=parsed.scan,
        scan_list=parsed.scan_list,
        test=parsed.test,
        exclusive=parsed.exclusive,
        verbose=parsed.verbose,
        use_makefiles=parsed.use_makefiles,
        generate_makefiles=parsed.generate_makefiles,
        force=parsed.force,
        concurrent=parsed.concurrent,
        jobs=parsed.jobs,
        format=parsed.format,
        packages=parsed.packages,
        commands=parsed.commands,
        distribution=parsed.distribution,
        include_toolchain_tree=parsed.toolchain_tree,
        compiler_args=list(parsed.gcflags),
        linker_args=list(parsed.ldflags),
    )


def build_command(args: CliArgs) -> int:
    """Run gbuild with parsed arguments.

    Returns:
        Process exit code
    """
    output.init_timer()
    output.set_verbose(args.verbose)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    options = args.to_options()
    display = None
    callback = None
    if options.concurrent and not args.verbose and sys.stdout.isatty():
        display = BuildProgressDisplay(Console(), args.project_dir.name or str(args.project_dir))
    else:
        callback = TextProgressCallback()

    try:
        result = run(args.project_dir, options, callback=callback, display=display)
        return result.exit_code

    except KeyboardInterrupt:
        output.log_warning("Build interrupted")
        return 130  # Standard exit code for SIGINT


def main(argv: Optional[Sequence[str]] = None) -> None:
    """gbuild - configuration-free builds for package trees."""
    args = parse_args(argv)
    if not args.project_dir.is_dir():
        output.log_error(f"Path is not a directory: {args.project_dir}")
        sys.exit(2)
    sys.exit(build_command(args))


if __name__ == "__main__":
    main()
