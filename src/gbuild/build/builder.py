"""Unit builder - drives the toolchain for one unit.

A build is a fixed sequence of toolchain calls, each run in the unit's
directory:

    compile   <compiler> -o _obj/_go_.6 -I <root>/_obj <sources...>
    assemble  <assembler> -o _obj/<stem>.6 <file.s>       (per .s file)
    archive   <archiver> grc <root>/_obj/<target>.a <objects...>    (library)
    link      <linker> -o <root>/bin/<target> -L <root>/_obj _obj/_go_.6  (command)

Install copies the artifact with the install helper. The first failing call
raises and the remaining steps of that unit are skipped.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, TextIO

from .. import output
from ..layout import BuildLayout
from ..packages.unit import PackageUnit, UnitStatus
from ..toolchain.binaries import ToolchainPaths
from ..toolchain.invoker import ToolchainExecError, ToolRunner, run_external
from .callbacks import NullCallback, ProgressCallback

logger = logging.getLogger(__name__)


class UnitBuilder:
    """Runs compile/assemble/link/install steps for units."""

    def __init__(
        self,
        tools: ToolchainPaths,
        layout: BuildLayout,
        runner: ToolRunner = run_external,
        compiler_args: Sequence[str] = (),
        linker_args: Sequence[str] = (),
        callback: Optional[ProgressCallback] = None,
    ):
        """Initialize the builder.

        Args:
            tools: Resolved toolchain binaries
            layout: Path conventions
            runner: Toolchain invoker (replaceable in tests)
            compiler_args: Extra arguments for every compile
            linker_args: Extra arguments for every link
            callback: Progress callback
        """
        self.tools = tools
        self.layout = layout
        self.runner = runner
        self.compiler_args = list(compiler_args)
        self.linker_args = list(linker_args)
        self.callback: ProgressCallback = callback if callback is not None else NullCallback()

    def step_count(self, unit: PackageUnit) -> int:
        """Number of toolchain calls a build of this unit makes."""
        return 2 + len(unit.asm_files)

    def build(self, unit: PackageUnit, sink: Optional[TextIO] = None) -> Path:
        """Compile, assemble and link or archive a unit.

        Args:
            unit: Unit to build
            sink: Stream receiving toolchain stdout

        Returns:
            Path of the produced artifact

        Raises:
            ToolchainError: If any step fails
        """
        total = self.step_count(unit)
        step = 0

        self.layout.object_dir(unit).mkdir(parents=True, exist_ok=True)
        main_object = self._relative(unit, self.layout.main_object(unit))

        step += 1
        self._report(unit, step, total, f"compile {len(unit.source_files)} sources")
        compile_args = ["-o", main_object]
        if not unit.in_toolchain_root:
            compile_args += ["-I", str(self.layout.pkg_dir)]
        compile_args += self.compiler_args + unit.source_files
        self._run(unit, self.tools.compiler, compile_args, sink)

        objects = [main_object]
        for asm_file in unit.asm_files:
            step += 1
            self._report(unit, step, total, f"assemble {asm_file}")
            asm_object = self._relative(unit, self.layout.asm_object(unit, asm_file))
            self._run(unit, self.tools.assembler, ["-o", asm_object, asm_file], sink)
            objects.append(asm_object)

        artifact = self.layout.artifact_path(unit)
        artifact.parent.mkdir(parents=True, exist_ok=True)

        step += 1
        if unit.is_command:
            self._report(unit, step, total, "link")
            link_args = ["-o", str(artifact)]
            if not unit.in_toolchain_root:
                link_args += ["-L", str(self.layout.pkg_dir)]
            link_args += self.linker_args + objects
            self._run(unit, self.tools.linker, link_args, sink)
        else:
            self._report(unit, step, total, "archive")
            # The archiver appends to an existing archive
            if artifact.exists():
                artifact.unlink()
            self._run(unit, self.tools.archiver, ["grc", str(artifact)] + objects, sink)

        return artifact

    def install(self, unit: PackageUnit, sink: Optional[TextIO] = None) -> Path:
        """Copy a unit's artifact to its install location.

        Args:
            unit: Built or up-to-date unit
            sink: Stream receiving toolchain stdout

        Returns:
            Install destination

        Raises:
            ToolchainError: If the copy fails or no install helper is available
        """
        artifact = self.layout.artifact_path(unit)
        destination = self.layout.install_path(unit)
        if artifact == destination:
            return destination

        self.callback.on_progress(unit.name, UnitStatus.INSTALLED, 0, 1, f"install {destination}")
        if self.tools.install_helper is None:
            raise ToolchainExecError(["cp", str(artifact), str(destination)], "install helper not found")

        destination.parent.mkdir(parents=True, exist_ok=True)
        self._run(unit, self.tools.install_helper, [str(artifact), str(destination)], sink)
        return destination

    def _run(self, unit: PackageUnit, tool: Path, args: list[str], sink: Optional[TextIO]) -> None:
        if output.is_verbose():
            output.log_detail(f"{tool.name} {' '.join(args)}")
        self.runner(tool, unit.directory, args, sink)

    def _report(self, unit: PackageUnit, step: int, total: int, detail: str) -> None:
        logger.debug("%s: [%d/%d] %s", unit.target, step, total, detail)
        self.callback.on_progress(unit.name, UnitStatus.BUILDING, step, total, detail)

    @staticmethod
    def _relative(unit: PackageUnit, path: Path) -> str:
        try:
            return path.relative_to(unit.directory).as_posix()
        except ValueError:
            return str(path)
