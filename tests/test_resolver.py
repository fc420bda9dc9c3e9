"""兼容性解析测试"""

import pytest

from modkeeper.exceptions import APIServerError, APITimeoutError, CompatibilityError
from modkeeper.models import InstalledMod, MinecraftVersion
from modkeeper.services import (
    CompatibilityReport,
    CompatibilityResolver,
    ImpactAnalyzer,
    NoCommonReason,
    common_version,
    load_declarations,
)

from conftest import FakeProvider, declaration


def v(value):
    return MinecraftVersion(value)


def installed(decls):
    return [
        InstalledMod(
            declaration=decl,
            filename=f"{decl.project_id}-1.jar",
            filepath=f"/srv/mods/{decl.project_id}-1.jar",
        )
        for decl in decls
    ]


class TestCommonVersion:
    def test_highest_in_intersection(self):
        lists = [
            [v("1.20.1"), v("1.21"), v("1.21.1")],
            [v("1.21"), v("1.21.1")],
            [v("1.20.1"), v("1.21")],
        ]
        assert common_version(lists) == v("1.21")

    def test_disjoint(self):
        assert common_version([[v("1.20")], [v("1.21")]]) is None

    def test_no_lists(self):
        assert common_version([]) is None

    def test_empty_list(self):
        assert common_version([[v("1.21")], []]) is None


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_upgrade_available(self):
        mods = installed(load_declarations([declaration("a"), declaration("b")]))
        provider = FakeProvider({"a": ["1.20.1", "1.21", "1.21.1"], "b": ["1.20.1", "1.21"]})
        report = await CompatibilityResolver(provider, "fabric").analyze(mods, v("1.20.1"))

        assert report.common_version == v("1.21")
        assert report.target_version == v("1.21")
        assert report.upgrade_available
        assert [m.project_id for m in report.blocking_mods] == ["b"]
        assert report.highest_seen == v("1.21.1")

    @pytest.mark.asyncio
    async def test_blocking_ties_all_listed(self):
        mods = installed(
            load_declarations([declaration("a"), declaration("b"), declaration("c")])
        )
        provider = FakeProvider(
            {"a": ["1.20", "1.21"], "b": ["1.20", "1.21"], "c": ["1.20", "1.21", "1.22"]}
        )
        report = await CompatibilityResolver(provider, "fabric").analyze(mods, v("1.20"))
        assert [m.project_id for m in report.blocking_mods] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_not_newer_than_current(self):
        mods = installed(load_declarations([declaration("a")]))
        provider = FakeProvider({"a": ["1.20", "1.21"]})
        report = await CompatibilityResolver(provider, "fabric").analyze(mods, v("1.21"))
        assert report.common_version == v("1.21")
        assert not report.upgrade_available

    @pytest.mark.asyncio
    async def test_disjoint(self):
        mods = installed(load_declarations([declaration("a"), declaration("b")]))
        provider = FakeProvider({"a": ["1.20"], "b": ["1.21"]})
        report = await CompatibilityResolver(provider, "fabric").analyze(mods, v("1.19"))
        assert report.common_version is None
        assert report.no_common_reason == NoCommonReason.DISJOINT
        assert report.blocking_mods == []

    @pytest.mark.asyncio
    async def test_unsupported_mod(self):
        mods = installed(load_declarations([declaration("a"), declaration("b")]))
        provider = FakeProvider({"a": ["1.21"], "b": []})
        report = await CompatibilityResolver(provider, "fabric").analyze(mods, v("1.20"))
        assert report.no_common_reason == NoCommonReason.UNSUPPORTED_MODS
        assert [m.project_id for m in report.unsupported_mods] == ["b"]

    @pytest.mark.asyncio
    async def test_no_mods(self):
        report = await CompatibilityResolver(FakeProvider(), "fabric").analyze([], v("1.20"))
        assert report.common_version is None
        assert report.no_common_reason == NoCommonReason.NO_MODS

    @pytest.mark.asyncio
    async def test_ignore_optional(self):
        mods = installed(
            load_declarations([declaration("a"), declaration("opt", optional=True)])
        )
        provider = FakeProvider({"a": ["1.20", "1.21"], "opt": ["1.20"]})
        resolver = CompatibilityResolver(provider, "fabric")

        plain = await resolver.analyze(mods, v("1.20"))
        assert not plain.upgrade_available
        assert not plain.required_only

        relaxed = await resolver.analyze(mods, v("1.20"), ignore_optional=True)
        assert relaxed.common_version == v("1.20")
        assert relaxed.required_common_version == v("1.21")
        assert relaxed.target_version == v("1.21")
        assert relaxed.required_only
        assert relaxed.upgrade_available

    @pytest.mark.asyncio
    async def test_ignore_optional_unused_when_full_set_upgrades(self):
        mods = installed(
            load_declarations([declaration("a"), declaration("opt", optional=True)])
        )
        provider = FakeProvider({"a": ["1.20", "1.21", "1.22"], "opt": ["1.20", "1.21"]})
        report = await CompatibilityResolver(provider, "fabric").analyze(
            mods, v("1.20"), ignore_optional=True
        )
        assert report.target_version == v("1.21")
        assert not report.required_only

    @pytest.mark.asyncio
    async def test_blocking_platform_impact(self, platform_registry):
        mods = installed([platform_registry.get("p"), platform_registry.get("x")])
        provider = FakeProvider({"p": ["1.20", "1.21"], "x": ["1.20", "1.21", "1.22"]})
        resolver = CompatibilityResolver(
            provider, "fabric", analyzer=ImpactAnalyzer(platform_registry)
        )
        report = await resolver.analyze(mods, v("1.20"))
        assert [m.project_id for m in report.blocking_mods] == ["p"]
        assert report.blocking_impacts["p"].total == 3


class TestFetchFailures:
    @pytest.mark.asyncio
    async def test_any_failure_aborts(self):
        mods = installed(
            load_declarations([declaration("a"), declaration("b"), declaration("c")])
        )
        provider = FakeProvider(
            {"a": ["1.21"], "c": ["1.21"]},
            errors={"b": APIServerError("boom")},
        )
        with pytest.raises(CompatibilityError) as exc_info:
            await CompatibilityResolver(provider, "fabric").analyze(mods, v("1.20"))
        assert list(exc_info.value.failures) == ["b"]
        assert sorted(provider.queried) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_all_failures_reported(self):
        mods = installed(load_declarations([declaration("a"), declaration("b")]))
        provider = FakeProvider(
            errors={"a": APITimeoutError("slow"), "b": APIServerError("boom")}
        )
        with pytest.raises(CompatibilityError) as exc_info:
            await CompatibilityResolver(provider, "fabric").fetch_supported(mods)
        assert sorted(exc_info.value.failures) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_same_display_name_kept_apart(self):
        mods = installed(
            load_declarations([declaration("a", "Shared"), declaration("b", "Shared")])
        )
        provider = FakeProvider(
            errors={"a": APITimeoutError("slow"), "b": APIServerError("boom")}
        )
        with pytest.raises(CompatibilityError) as exc_info:
            await CompatibilityResolver(provider, "fabric").fetch_supported(mods)
        assert isinstance(exc_info.value.failures["a"], APITimeoutError)
        assert isinstance(exc_info.value.failures["b"], APIServerError)
        assert exc_info.value.message.startswith("2 ")


def test_group_by_maximum(platform_registry):
    mods = installed(
        [platform_registry.get("p"), platform_registry.get("x"), platform_registry.get("y")]
    )
    resolver = CompatibilityResolver(
        FakeProvider(), "fabric", analyzer=ImpactAnalyzer(platform_registry)
    )
    supported = {
        "p": [v("1.20"), v("1.21")],
        "x": [v("1.20"), v("1.21"), v("1.22")],
        "y": [v("1.20"), v("1.21")],
    }
    report = CompatibilityReport(current_version=v("1.20"), mods=mods, supported=supported)
    groups = resolver.group_by_maximum(report)
    assert [(str(version), [m.project_id for m in group]) for version, group in groups] == [
        ("1.21", ["p", "y"]),
        ("1.22", ["x"]),
    ]

