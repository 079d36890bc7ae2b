"""Unit tests for dependency resolution."""

from pathlib import Path

from gbuild.config import ToolchainEnv
from gbuild.packages.registry import Registry
from gbuild.packages.resolver import DependencyResolver, resolve_dependencies
from gbuild.packages.unit import PackageUnit, TargetKey, UnitKind, UnitStatus


def _registry(spec: dict[str, list[str]]) -> Registry:
    """Build a registry from {target: [dependency names]}."""
    registry = Registry()
    for name, deps in spec.items():
        registry.register(
            PackageUnit(
                target=TargetKey(name),
                directory=Path("/project") / name,
                base=name,
                kind=UnitKind.LIBRARY,
                source_files=[f"{name}.go"],
                dependency_names=set(deps),
            )
        )
    return registry


def _edges(registry: Registry) -> dict[str, list[str]]:
    return {u.name: [k.name for k in u.dependency_keys()] for u in registry}


class TestDependencyResolver:
    def test_resolves_registry_edges(self):
        registry = _registry({"pkgA": [], "pkgB": ["pkgA"]})
        broken = resolve_dependencies(registry)

        assert broken == []
        assert _edges(registry) == {"pkgA": [], "pkgB": ["pkgA"]}
        assert registry["pkgB"].resolved_dependencies[TargetKey("pkgA")] is registry["pkgA"]
        assert all(u.status == UnitStatus.RESOLVED for u in registry)

    def test_unresolved_dependency(self):
        registry = _registry({"pkgA": ["missing"], "pkgB": []})
        broken = resolve_dependencies(registry)

        assert broken == [registry["pkgA"]]
        assert registry["pkgA"].status == UnitStatus.BROKEN
        assert registry["pkgA"].broken_reasons == ['unresolved dependency "missing"']
        # Other units are still resolved
        assert registry["pkgB"].status == UnitStatus.RESOLVED

    def test_all_unresolved_names_reported(self):
        registry = _registry({"pkgA": ["x", "y"]})
        resolve_dependencies(registry)
        assert registry["pkgA"].broken_reasons == ['unresolved dependency "x"', 'unresolved dependency "y"']

    def test_self_import_is_broken(self):
        registry = _registry({"pkgA": ["pkgA"]})
        resolve_dependencies(registry)
        unit = registry["pkgA"]
        assert unit.status == UnitStatus.BROKEN
        assert unit.target not in unit.resolved_dependencies
        assert unit.broken_reasons == ['"pkgA" imports itself']

    def test_installed_archive_is_external(self, toolchain_env: ToolchainEnv):
        archive = toolchain_env.installed_archive("fmt")
        archive.parent.mkdir(parents=True)
        archive.write_text("archive")

        registry = _registry({"app": ["fmt"]})
        DependencyResolver(toolchain_env).resolve(registry)

        unit = registry["app"]
        assert unit.status == UnitStatus.RESOLVED
        assert unit.resolved_dependencies == {}
        assert unit.external_dependencies == {"fmt": archive}

    def test_idempotent(self):
        """Resolving twice over the same registry yields identical edges."""
        registry = _registry({"a": [], "b": ["a"], "c": ["a", "b"], "d": ["nope"]})
        resolver = DependencyResolver()

        resolver.resolve(registry)
        first = _edges(registry)
        first_reasons = {u.name: list(u.broken_reasons) for u in registry}

        resolver.resolve(registry)
        assert _edges(registry) == first
        assert {u.name: list(u.broken_reasons) for u in registry} == first_reasons

    def test_no_implicit_edges(self):
        """Transitive dependencies are not added as direct edges."""
        registry = _registry({"a": [], "b": ["a"], "c": ["b"]})
        resolve_dependencies(registry)
        assert _edges(registry)["c"] == ["b"]
