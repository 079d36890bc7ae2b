"""Unit tests for BuildPipeline.

Units are written to disk, scanned, resolved and classified exactly as a real
run does; the toolchain is the recording FakeToolchain from conftest.
"""

import io
import os
from pathlib import Path

import pytest

from gbuild.build import BuildCounters, BuildPipeline, ErrorCollector, UnitBuilder, topological_order
from gbuild.config import ToolchainEnv
from gbuild.layout import BuildLayout
from gbuild.packages.registry import Registry
from gbuild.packages.resolver import resolve_dependencies
from gbuild.packages.scanner import DirectoryScanner
from gbuild.packages.status import StatusEngine
from gbuild.packages.unit import UnitStatus


class RecordingCallback:
    def __init__(self):
        self.events = []

    def on_progress(self, task_name, phase, progress, total, detail):
        self.events.append((task_name, phase))

    def phases_for(self, name):
        return [phase for task, phase in self.events if task == name]


class Harness:
    """Scan/resolve/evaluate a project and run the pipeline over it."""

    def __init__(self, project: Path, env: ToolchainEnv, tools, runner):
        self.project = project
        self.env = env
        self.tools = tools
        self.runner = runner
        self.layout = BuildLayout(project, env)
        self.registry = Registry()
        self.counters = BuildCounters()
        self.errors = ErrorCollector()

    def prepare(self, force: bool = False):
        self.registry = DirectoryScanner(self.env).scan(self.project).registry
        resolve_dependencies(self.registry, self.env)
        self.engine = StatusEngine(self.registry, self.layout, force=force)
        self.engine.evaluate()
        self.counters = BuildCounters()
        self.errors = ErrorCollector()
        return topological_order(self.registry.units())

    def run(self, concurrent=False, jobs=None, install=False, callback=None, sink=None, force=False):
        plan = self.prepare(force=force)
        builder = UnitBuilder(self.tools, self.layout, runner=self.runner)
        pipeline = BuildPipeline(
            builder,
            self.engine,
            counters=self.counters,
            errors=self.errors,
            callback=callback,
            install=install,
            sink=sink,
        )
        return pipeline.run(plan, concurrent=concurrent, jobs=jobs)


@pytest.fixture
def harness(project, toolchain_env, tool_paths, fake_toolchain) -> Harness:
    return Harness(project, toolchain_env, tool_paths, fake_toolchain)


@pytest.fixture
def two_units(project, write_unit):
    write_unit(project, "pkgA", "pkgA")
    write_unit(project, "pkgB", "pkgB", imports=["pkgA"])


class TestSequential:
    def test_builds_dependencies_first(self, harness, two_units, fake_toolchain):
        result = harness.run()

        assert result.success
        assert result.build_order == ["pkgA", "pkgB"]
        assert fake_toolchain.directories_for("6g") == ["pkgA", "pkgB"]
        assert harness.counters.to_dict() == {"built": 2, "installed": 0, "broken": 0}
        assert result.status_of("pkgA") == UnitStatus.BUILT
        assert result.status_of("pkgB") == UnitStatus.BUILT

    def test_compile_failure_breaks_dependents(self, harness, two_units, fake_toolchain):
        fake_toolchain.fail("6g", "pkgA")
        callback = RecordingCallback()
        result = harness.run(callback=callback)

        assert not result.success
        assert result.status_of("pkgA") == UnitStatus.BUILD_FAILED
        assert result.status_of("pkgB") == UnitStatus.BROKEN
        # pkgB is never handed to the toolchain
        assert fake_toolchain.directories_for("6g") == ["pkgA"]
        assert harness.counters.broken == 2
        assert harness.counters.built == 0
        assert UnitStatus.BROKEN in callback.phases_for("pkgB")
        assert len(harness.errors.get_errors_by_phase("build")) == 2

    def test_second_run_is_up_to_date(self, harness, two_units, fake_toolchain):
        harness.run()
        calls_after_first = len(fake_toolchain.calls)

        callback = RecordingCallback()
        result = harness.run(callback=callback)

        assert result.success
        assert result.build_order == []
        assert len(fake_toolchain.calls) == calls_after_first
        assert harness.counters.built == 0
        assert callback.phases_for("pkgA") == [UnitStatus.UP_TO_DATE]

    def test_force_rebuilds(self, harness, two_units):
        harness.run()
        result = harness.run(force=True)
        assert result.build_order == ["pkgA", "pkgB"]

    def test_rebuilt_dependency_rebuilds_dependents(self, harness, two_units, project):
        harness.run()
        # pkgA's artifact disappears, so pkgA rebuilds and pkgB follows
        (project / "_obj" / "pkgA.a").unlink()
        result = harness.run()
        assert result.build_order == ["pkgA", "pkgB"]

    def test_unrelated_units_still_build(self, harness, project, write_unit, fake_toolchain):
        write_unit(project, "bad", "bad")
        write_unit(project, "good", "good")
        fake_toolchain.fail("6g", "bad")

        result = harness.run()
        assert result.status_of("good") == UnitStatus.BUILT
        assert harness.counters.broken == 1

    def test_unresolved_dependency_is_counted(self, harness, project, write_unit, fake_toolchain):
        write_unit(project, "app", "main", imports=["nowhere"])
        result = harness.run()
        assert result.status_of("app") == UnitStatus.BROKEN
        assert fake_toolchain.calls == []
        assert harness.counters.broken == 1

    def test_toolchain_output_goes_to_output_stream(self, harness, two_units, captured_output):
        harness.run()
        assert "6g ok" in captured_output.getvalue()

    def test_empty_plan(self, harness):
        result = harness.run()
        assert result.units == []
        assert result.success


class TestInstall:
    def test_installs_after_build(self, harness, two_units, toolchain_env, fake_toolchain):
        result = harness.run(install=True)

        assert harness.counters.installed == 2
        assert result.status_of("pkgB") == UnitStatus.INSTALLED
        assert toolchain_env.installed_archive("pkgA").exists()
        # Each unit installs before its dependents compile
        assert fake_toolchain.tools_run() == ["6g", "gopack", "cp", "6g", "gopack", "cp"]

    def test_up_to_date_units_are_installed(self, harness, two_units):
        harness.run()
        harness.run(install=True)
        assert harness.counters.built == 0
        assert harness.counters.installed == 2

    @pytest.mark.parametrize("concurrent", [False, True])
    def test_repeated_install_runs_rebuild_nothing(self, harness, two_units, fake_toolchain, concurrent):
        harness.run(install=True, concurrent=concurrent)
        fake_toolchain.calls.clear()

        result = harness.run(install=True, concurrent=concurrent)
        assert result.build_order == []
        assert harness.counters.to_dict() == {"built": 0, "installed": 2, "broken": 0}
        assert fake_toolchain.tools_run() == ["cp", "cp"]

    def test_rebuilt_dependency_still_rebuilds_dependents_when_installed(self, harness, two_units, project):
        harness.run(install=True)
        source = project / "pkgA" / "pkgA.go"
        source.write_text(source.read_text() + "\n// changed\n")
        bump = source.stat().st_mtime + 10
        os.utime(source, (bump, bump))

        result = harness.run(install=True)
        assert result.build_order == ["pkgA", "pkgB"]
        assert result.status_of("pkgA") == UnitStatus.INSTALLED

    def test_install_failure_is_recorded(self, harness, two_units, fake_toolchain):
        fake_toolchain.fail("cp", "pkgA")
        result = harness.run(install=True)

        assert [f.target for f in result.install_failures] == ["pkgA"]
        assert "exit status 1" in result.install_failures[0].format()
        assert result.status_of("pkgA") == UnitStatus.BUILT
        # A failed install does not break dependents
        assert result.status_of("pkgB") == UnitStatus.INSTALLED
        assert harness.counters.broken == 0
        assert harness.errors.get_errors_by_phase("install")


class TestConcurrent:
    @pytest.fixture
    def diamond(self, project, write_unit):
        write_unit(project, "base", "base")
        write_unit(project, "left", "left", imports=["base"])
        write_unit(project, "right", "right", imports=["base"])
        write_unit(project, "top", "main", imports=["left", "right"])

    def test_diamond_order(self, harness, diamond):
        sink = io.StringIO()
        result = harness.run(concurrent=True, sink=sink)

        assert result.success
        assert result.build_order[0] == "base"
        assert result.build_order[-1] == "top"
        assert set(result.build_order[1:3]) == {"left", "right"}
        assert harness.counters.built == 4
        assert sink.getvalue().count("6g ok") == 4

    def test_bounded_workers(self, harness, diamond):
        result = harness.run(concurrent=True, jobs=1)
        assert result.build_order[0] == "base"
        assert harness.counters.built == 4

    def test_failure_blocks_only_dependents(self, harness, diamond, fake_toolchain):
        fake_toolchain.fail("6g", "left")
        result = harness.run(concurrent=True)

        assert result.status_of("left") == UnitStatus.BUILD_FAILED
        assert result.status_of("right") == UnitStatus.BUILT
        assert result.status_of("top") == UnitStatus.BROKEN
        assert "top" not in fake_toolchain.directories_for("6g")
        assert harness.counters.broken == 2

    def test_unexpected_error_fails_unit(self, harness, diamond):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        harness.runner = explode
        result = harness.run(concurrent=True)

        assert result.status_of("base") == UnitStatus.BUILD_FAILED
        assert harness.registry["base"].broken_reasons == ["internal error: boom"]
        assert harness.counters.broken == 4
