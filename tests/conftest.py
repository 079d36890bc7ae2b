"""Pytest configuration and fixtures for gbuild tests.

Provides:
- stdio restoration (Python 3.13 closes captured streams during teardown)
- an isolated toolchain environment rooted in tmp_path
- a source-tree writer for building throwaway projects
- FakeToolchain: a recording ToolRunner that creates the files each
  toolchain step would produce, and can be told to fail specific steps
"""

import io
import shutil
import sys
import threading
import warnings
from pathlib import Path
from typing import Iterable, Optional, TextIO

import pytest

from gbuild import output
from gbuild.config import ToolchainEnv
from gbuild.toolchain import ToolchainCommandError, ToolchainPaths, split_args

# Suppress ResourceWarnings from file cleanup in Python 3.13
if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test."""
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


@pytest.fixture(autouse=True)
def captured_output():
    """Route gbuild.output to a buffer for the duration of a test."""
    previous = output.get_output_stream()
    buffer = io.StringIO()
    output.set_output_stream(buffer)
    output.set_verbose(False)
    output.set_output_file(None)
    yield buffer
    output.set_output_stream(previous)
    output.set_verbose(False)


class FakeToolchain:
    """Thread-safe ToolRunner double.

    Records every call as (tool name, working directory, argv) and creates the
    output file each step names, so status checks on a second run see real
    artifacts.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Path, list[str]]] = []
        self._failures: set[tuple[str, str]] = set()
        self._lock = threading.Lock()

    def fail(self, tool: str, directory_name: str) -> None:
        """Make `tool` exit nonzero when run in a directory with this name."""
        self._failures.add((tool, directory_name))

    def __call__(self, command, workdir, args: Iterable[str], sink: Optional[TextIO] = None) -> None:
        tool = Path(command).name
        workdir = Path(workdir)
        argv = split_args(args)
        with self._lock:
            self.calls.append((tool, workdir, argv))

        if (tool, workdir.name) in self._failures:
            raise ToolchainCommandError([str(command)] + argv, 1)

        if "-o" in argv:
            produced = workdir / argv[argv.index("-o") + 1]
            produced.parent.mkdir(parents=True, exist_ok=True)
            produced.write_text(f"{tool} output\n")
        elif argv[:1] == ["grc"]:
            archive = Path(argv[1])
            archive.parent.mkdir(parents=True, exist_ok=True)
            archive.write_text("archive\n")
        elif tool == "cp":
            destination = Path(argv[1])
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(argv[0], destination)

        if sink is not None:
            sink.write(f"{tool} ok\n")

    def tools_run(self) -> list[str]:
        with self._lock:
            return [c[0] for c in self.calls]

    def directories_for(self, tool: str) -> list[str]:
        """Names of the directories a tool ran in, in call order."""
        with self._lock:
            return [c[1].name for c in self.calls if c[0] == tool]


@pytest.fixture
def fake_toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def tool_paths(tmp_path: Path) -> ToolchainPaths:
    """Toolchain binary paths; never executed, only passed to the fake runner."""
    bin_dir = tmp_path / "goroot" / "bin"
    return ToolchainPaths(
        compiler=bin_dir / "6g",
        assembler=bin_dir / "6a",
        linker=bin_dir / "6l",
        archiver=bin_dir / "gopack",
        install_helper=bin_dir / "cp",
        formatter=bin_dir / "gofmt",
        tester=bin_dir / "gotest",
    )


@pytest.fixture
def toolchain_env(tmp_path: Path) -> ToolchainEnv:
    goroot = tmp_path / "goroot"
    (goroot / "bin").mkdir(parents=True, exist_ok=True)
    return ToolchainEnv(root=goroot, bin_dir=goroot / "bin", os_name="linux", arch="amd64")


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


def _render_source(package: str, imports: Iterable[str], directive: Optional[str]) -> str:
    lines = []
    if directive:
        lines.append(f"//target:{directive}")
    lines.append(f"package {package}")
    lines.append("")
    imports = list(imports)
    if imports:
        lines.append("import (")
        lines += [f'\t"{name}"' for name in imports]
        lines.append(")")
        lines.append("")
    lines.append("func F() {}")
    return "\n".join(lines) + "\n"


@pytest.fixture
def write_unit():
    """Factory writing one unit directory.

    Usage:
        write_unit(root, "net/http", "http", imports=["net"])
    """

    def _write(
        root: Path,
        relative: str,
        package: str,
        imports: Iterable[str] = (),
        filename: Optional[str] = None,
        directive: Optional[str] = None,
        test_imports: Optional[Iterable[str]] = None,
        asm: Iterable[str] = (),
    ) -> Path:
        directory = root / relative
        directory.mkdir(parents=True, exist_ok=True)
        name = filename or f"{Path(relative).name or package}.go"
        (directory / name).write_text(_render_source(package, imports, directive))
        if test_imports is not None:
            stem = Path(name).stem
            (directory / f"{stem}_test.go").write_text(_render_source(package, test_imports, None))
        for asm_name in asm:
            (directory / asm_name).write_text("TEXT ·F(SB),7,$0\n")
        return directory

    return _write
