"""Unit tests for the clean action."""

from pathlib import Path

import pytest

from gbuild.actions.clean import clean_units, remove_path
from gbuild.config import ToolchainEnv
from gbuild.layout import BuildLayout
from gbuild.packages.unit import PackageUnit, TargetKey, UnitKind


def _unit(directory: Path, name: str, kind=UnitKind.LIBRARY, in_toolchain_root=False) -> PackageUnit:
    directory.mkdir(parents=True, exist_ok=True)
    return PackageUnit(
        target=TargetKey(name),
        directory=directory,
        base=name,
        kind=kind,
        source_files=[f"{name}.go"],
        in_toolchain_root=in_toolchain_root,
    )


def _create(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("x")
    return path


@pytest.fixture
def layout(project: Path, toolchain_env: ToolchainEnv) -> BuildLayout:
    return BuildLayout(project, toolchain_env)


def test_remove_path(tmp_path: Path, captured_output):
    tree = tmp_path / "tree"
    _create(tree / "a" / "b.txt")
    single = _create(tmp_path / "single")

    assert remove_path(tree)
    assert remove_path(single)
    assert not remove_path(tmp_path / "missing")
    assert not tree.exists() and not single.exists()
    assert f"Removing {tree}" in captured_output.getvalue()


def test_clean_removes_intermediates_and_artifact(project, layout):
    unit = _unit(project / "pkgA", "pkgA")
    obj = _create(layout.main_object(unit))
    test_dir = _create(layout.test_dir(unit) / "x")
    artifact = _create(layout.artifact_path(unit))
    source = _create(unit.directory / "pkgA.go")

    removed = clean_units([unit], layout)

    assert removed == 3
    assert not obj.exists() and not test_dir.exists() and not artifact.exists()
    assert source.exists()


def test_clean_keeps_installed_copy(project, layout, toolchain_env):
    unit = _unit(project / "pkgA", "pkgA")
    installed = _create(toolchain_env.installed_archive("pkgA"))
    clean_units([unit], layout)
    assert installed.exists()


def test_nuke_removes_installed_copy(project, layout, toolchain_env):
    unit = _unit(project / "hello", "hello", kind=UnitKind.COMMAND)
    installed = _create(toolchain_env.bin_dir / "hello")
    artifact = _create(layout.artifact_path(unit))

    assert clean_units([unit], layout, nuke=True) == 2
    assert not installed.exists() and not artifact.exists()


def test_remove_shared_directories(project, layout):
    _create(layout.pkg_dir / "orphan.a")
    _create(layout.cmd_dir / "orphan")
    assert clean_units([], layout, remove_shared=True) == 2
    assert not layout.pkg_dir.exists()
    assert not layout.cmd_dir.exists()


def test_toolchain_unit_artifact_kept_unless_nuked(toolchain_env):
    layout = BuildLayout(toolchain_env.src_dir, toolchain_env)
    unit = _unit(toolchain_env.src_dir / "fmt", "fmt", in_toolchain_root=True)
    installed = _create(toolchain_env.installed_archive("fmt"))

    clean_units([unit], layout)
    assert installed.exists()

    clean_units([unit], layout, nuke=True)
    assert not installed.exists()


def test_nothing_to_clean(project, layout):
    unit = _unit(project / "pkgA", "pkgA")
    assert clean_units([unit], layout) == 0
