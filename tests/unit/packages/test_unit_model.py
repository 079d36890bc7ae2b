"""Unit tests for TargetKey, PackageUnit and Registry."""

import threading
from pathlib import Path

import pytest

from gbuild.packages.registry import Registry
from gbuild.packages.unit import InvalidTargetError, PackageUnit, TargetKey, UnitKind, UnitStatus


def _unit(name: str, directory: str = "/src", kind: UnitKind = UnitKind.LIBRARY) -> PackageUnit:
    return PackageUnit(target=TargetKey(name), directory=Path(directory) / name, base=name, kind=kind)


class TestTargetKey:
    """Key validation and normalization."""

    def test_plain_name(self):
        assert TargetKey("net/http").name == "net/http"

    def test_normalizes_slashes(self):
        assert TargetKey("\\net\\\\http/").name == "net/http"

    def test_equal_after_normalization(self):
        assert TargetKey("a/b/") == TargetKey("a//b")
        assert hash(TargetKey("a/b/")) == hash(TargetKey("a/b"))

    @pytest.mark.parametrize("name", ["", ".", "/", "//"])
    def test_empty_names_rejected(self, name: str):
        with pytest.raises(InvalidTargetError, match="package has no name"):
            TargetKey(name)

    def test_whitespace_rejected(self):
        with pytest.raises(InvalidTargetError, match="invalid target name"):
            TargetKey("my lib")

    def test_ordering(self):
        assert sorted([TargetKey("b"), TargetKey("a")]) == [TargetKey("a"), TargetKey("b")]

    def test_str(self):
        assert str(TargetKey("fmt")) == "fmt"


class TestUnitStatus:
    """Status classification helpers."""

    def test_failures(self):
        assert UnitStatus.BROKEN.is_failure
        assert UnitStatus.BUILD_FAILED.is_failure
        assert not UnitStatus.STALE.is_failure

    def test_terminal_success(self):
        assert UnitStatus.UP_TO_DATE.is_terminal_success
        assert UnitStatus.BUILT.is_terminal_success
        assert UnitStatus.INSTALLED.is_terminal_success
        assert not UnitStatus.BUILDING.is_terminal_success

    def test_fresh_this_run(self):
        assert UnitStatus.STALE.is_fresh_this_run
        assert UnitStatus.BUILT.is_fresh_this_run
        assert not UnitStatus.UP_TO_DATE.is_fresh_this_run
        assert not UnitStatus.INSTALLED.is_fresh_this_run


class TestPackageUnit:
    """State transitions on a single unit."""

    def test_mark_broken_once(self):
        unit = _unit("a")
        assert unit.mark_broken("first") is True
        assert unit.mark_broken("second") is False
        assert unit.status == UnitStatus.BROKEN
        assert unit.broken_reasons == ["first", "second"]

    def test_mark_broken_does_not_repeat_reason(self):
        unit = _unit("a")
        unit.mark_broken("same")
        unit.mark_broken("same")
        assert unit.broken_reasons == ["same"]

    def test_mark_broken_keeps_build_failed(self):
        unit = _unit("a")
        unit.mark_failed("exit status 1")
        assert unit.mark_broken("depends on broken") is False
        assert unit.status == UnitStatus.BUILD_FAILED

    def test_mark_broken_concurrently(self):
        """Exactly one of many concurrent callers performs the transition."""
        unit = _unit("a")
        results: list[bool] = []
        lock = threading.Lock()

        def worker(i: int) -> None:
            moved = unit.mark_broken(f"reason {i}")
            with lock:
                results.append(moved)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert len(unit.broken_reasons) == 16

    def test_input_files(self):
        unit = _unit("a")
        unit.source_files = ["a.go"]
        unit.asm_files = ["a_amd64.s"]
        unit.test_source_files = ["a_test.go"]
        assert unit.input_files() == ["a.go", "a_amd64.s"]

    def test_dependency_keys_sorted(self):
        unit = _unit("a")
        b, c = _unit("b"), _unit("c")
        unit.resolved_dependencies = {c.target: c, b.target: b}
        assert unit.dependency_keys() == [TargetKey("b"), TargetKey("c")]

    def test_mark_built_records_rebuild(self):
        unit = _unit("a")
        assert not unit.changed_this_run
        unit.mark_built()
        assert unit.rebuilt
        assert unit.status == UnitStatus.BUILT

        # Installing afterwards keeps the rebuild visible to dependents
        unit.set_status(UnitStatus.INSTALLED)
        assert unit.changed_this_run

    def test_installed_without_rebuild_is_unchanged(self):
        unit = _unit("a")
        unit.set_status(UnitStatus.INSTALLED)
        assert not unit.changed_this_run

    def test_to_dict(self):
        unit = _unit("cmd", kind=UnitKind.COMMAND)
        data = unit.to_dict()
        assert data["target"] == "cmd"
        assert data["kind"] == "command"
        assert data["status"] == "discovered"


class TestRegistry:
    """Registry lookups and replacement."""

    def test_register_and_get(self):
        registry = Registry()
        unit = _unit("fmt")
        registry.register(unit)
        assert registry.get("fmt") is unit
        assert registry[TargetKey("fmt")] is unit
        assert "fmt" in registry
        assert len(registry) == 1

    def test_get_unknown(self):
        registry = Registry()
        assert registry.get("missing") is None
        assert registry.get("") is None
        with pytest.raises(KeyError, match="Unknown target"):
            registry["missing"]

    def test_later_registration_wins(self, caplog):
        registry = Registry()
        first = _unit("fmt", "/goroot/src")
        second = _unit("fmt", "/project")
        registry.register(first)
        registry.register(second)
        assert registry.get("fmt") is second
        assert "replaces" in caplog.text

    def test_units_sorted(self):
        registry = Registry()
        for name in ["c", "a", "b"]:
            registry.register(_unit(name))
        assert [u.name for u in registry] == ["a", "b", "c"]

    def test_dependents_map(self):
        registry = Registry()
        a, b = _unit("a"), _unit("b")
        b.resolved_dependencies = {a.target: a}
        registry.register(a)
        registry.register(b)
        assert registry.dependents_map()[a.target] == [b]
        assert registry.dependents_map()[b.target] == []
