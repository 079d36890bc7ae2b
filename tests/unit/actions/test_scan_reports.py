"""Unit tests for scan reports."""

from pathlib import Path

from gbuild.actions.scan import UnitReport, build_reports, display_dir, print_scan
from gbuild.config import ToolchainEnv
from gbuild.packages.resolver import resolve_dependencies
from gbuild.packages.scanner import DirectoryScanner


def _scan(project: Path, env: ToolchainEnv):
    registry = DirectoryScanner(env).scan(project).registry
    resolve_dependencies(registry, env)
    return registry


def test_display_dir(project: Path, tmp_path: Path):
    assert display_dir(project / "net" / "http", project) == "net/http"
    assert display_dir(project, project) == "."
    assert display_dir(tmp_path / "elsewhere", project) == (tmp_path / "elsewhere").as_posix()
    assert display_dir(Path("a/b")) == "a/b"


def test_reports_sorted_by_target(project, toolchain_env, write_unit):
    write_unit(project, "zeta", "zeta")
    write_unit(project, "alpha", "alpha")
    reports = build_reports(_scan(project, toolchain_env).units(), project)
    assert [r.target for r in reports] == ["alpha", "zeta"]


def test_report_fields(project, toolchain_env, write_unit):
    archive = toolchain_env.installed_archive("fmt")
    archive.parent.mkdir(parents=True)
    archive.write_text("archive")
    write_unit(project, "pkgA", "pkgA")
    write_unit(project, "cmd/hello", "main", imports=["pkgA", "fmt"])

    registry = _scan(project, toolchain_env)
    report = UnitReport.from_unit(registry["hello"], project)

    assert report.directory == "cmd/hello"
    assert report.kind == "command"
    assert report.status == "resolved"
    assert report.dependencies == ["pkgA"]
    assert report.external == ["fmt"]
    assert report.format() == '(in cmd/hello) command "hello" [resolved]'
    assert report.to_dict()["external"] == ["fmt"]


def test_print_scan(project, toolchain_env, write_unit, captured_output):
    write_unit(project, "pkgA", "pkgA")
    write_unit(project, "pkgB", "pkgB", imports=["pkgA", "missing"])
    reports = build_reports(_scan(project, toolchain_env).units(), project)

    print_scan(reports)
    text = captured_output.getvalue()
    assert '(in pkgA) library "pkgA" [resolved]' in text
    assert '(in pkgB) library "pkgB" [broken]' in text
    assert 'unresolved dependency "missing"' in text
    assert "imports" not in text


def test_print_scan_lists_dependencies(project, toolchain_env, write_unit, captured_output):
    write_unit(project, "pkgA", "pkgA")
    write_unit(project, "pkgB", "pkgB", imports=["pkgA"])
    print_scan(build_reports(_scan(project, toolchain_env).units(), project), list_dependencies=True)
    assert "imports pkgA" in captured_output.getvalue()
