"""依赖影响分析测试"""

from modkeeper.models import InstalledMod
from modkeeper.services import ImpactAnalyzer, ModRegistry, load_declarations

from conftest import declaration


def ids(decls):
    return [d.project_id for d in decls]


class TestRemovalImpact:
    def test_direct_and_indirect(self, platform_registry):
        analyzer = ImpactAnalyzer(platform_registry)
        impact = analyzer.removal_impact(platform_registry.get("p"))
        assert ids(impact.direct) == ["x", "y"]
        assert ids(impact.indirect) == ["z"]
        assert impact.total == 3
        assert analyzer.total_impact(platform_registry.get("p")) == 3

    def test_accepts_installed_mod(self, platform_registry):
        analyzer = ImpactAnalyzer(platform_registry)
        installed = InstalledMod(
            declaration=platform_registry.get("p"),
            filename="p-1.jar",
            filepath="/srv/mods/p-1.jar",
        )
        assert analyzer.total_impact(installed) == 3

    def test_non_platform_has_no_impact(self, platform_registry):
        analyzer = ImpactAnalyzer(platform_registry)
        impact = analyzer.removal_impact(platform_registry.get("x"))
        assert impact.safe_to_remove

    def test_indirect_through_non_platform_dependent(self, mods_dir):
        """直接依赖者不是平台模组时，它的依赖者仍然计入间接影响"""
        graph = load_declarations(
            [
                declaration("p", is_platform=True),
                declaration("y", depends_on=["p"]),
                declaration("z", depends_on=["y"]),
            ]
        )
        analyzer = ImpactAnalyzer(ModRegistry(graph, str(mods_dir)))
        impact = analyzer.removal_impact(graph[0])
        assert ids(impact.direct) == ["y"]
        assert ids(impact.indirect) == ["z"]

    def test_indirect_is_one_hop(self, mods_dir):
        graph = load_declarations(
            [
                declaration("p", is_platform=True),
                declaration("a", depends_on=["p"]),
                declaration("b", depends_on=["a"]),
                declaration("c", depends_on=["b"]),
            ]
        )
        analyzer = ImpactAnalyzer(ModRegistry(graph, str(mods_dir)))
        assert ids(analyzer.indirect_dependents(graph[0])) == ["b"]

    def test_indirect_excludes_direct_and_duplicates(self, mods_dir):
        graph = load_declarations(
            [
                declaration("p", is_platform=True),
                declaration("a", depends_on=["p"]),
                declaration("b", depends_on=["p", "a"]),
                declaration("c", depends_on=["a", "b"]),
            ]
        )
        analyzer = ImpactAnalyzer(ModRegistry(graph, str(mods_dir)))
        impact = analyzer.removal_impact(graph[0])
        assert ids(impact.direct) == ["a", "b"]
        assert ids(impact.indirect) == ["c"]


class TestDependencyChain:
    def test_transitive_chain(self, platform_registry):
        analyzer = ImpactAnalyzer(platform_registry)
        chain = analyzer.dependency_chain(platform_registry.get("z"))
        assert ids(chain.dependencies) == ["y", "p"]
        assert not chain.has_cycle

    def test_unresolved(self, mods_dir):
        graph = load_declarations([declaration("a", depends_on=["ghost"])])
        analyzer = ImpactAnalyzer(ModRegistry(graph, str(mods_dir)))
        chain = analyzer.dependency_chain(graph[0])
        assert chain.unresolved == ["ghost"]
        assert chain.dependencies == []

    def test_cycle_is_reported_not_followed(self, mods_dir):
        graph = load_declarations(
            [
                declaration("a", depends_on=["b"]),
                declaration("b", depends_on=["c"]),
                declaration("c", depends_on=["a"]),
            ]
        )
        analyzer = ImpactAnalyzer(ModRegistry(graph, str(mods_dir)))
        chain = analyzer.dependency_chain(graph[0])
        assert ids(chain.dependencies) == ["b", "c"]
        assert chain.cycles == [("a", "b", "c", "a")]

    def test_self_dependency(self, mods_dir):
        graph = load_declarations([declaration("a", depends_on=["a"])])
        analyzer = ImpactAnalyzer(ModRegistry(graph, str(mods_dir)))
        assert analyzer.dependency_chain(graph[0]).cycles == [("a", "a")]


def test_platform_summary(platform_registry):
    summary = ImpactAnalyzer(platform_registry).platform_summary()
    assert [(d.project_id, ids(deps)) for d, deps in summary.active] == [
        ("p", ["x", "y"]),
        ("y", ["z"]),
    ]
    assert ids(summary.removal_candidates) == ["lonely"]
