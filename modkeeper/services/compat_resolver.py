"""
兼容性解析服务

计算所有已安装模组共同支持的最高 Minecraft 版本，并找出限制升级的模组。
任何一个模组的版本查询失败都会中止计算，不会把部分交集当作结论。
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger

from modkeeper.api.base import CompatibilityProvider
from modkeeper.exceptions import CompatibilityError
from modkeeper.models import InstalledMod, MinecraftVersion
from modkeeper.services.impact_analyzer import ImpactAnalyzer, RemovalImpact


class NoCommonReason(Enum):
    """没有共同版本的原因"""

    NO_MODS = "no_mods"
    UNSUPPORTED_MODS = "unsupported_mods"
    DISJOINT = "disjoint"


@dataclass
class CompatibilityReport:
    """一次兼容性分析的结果"""

    current_version: MinecraftVersion
    mods: List[InstalledMod]
    supported: Dict[str, List[MinecraftVersion]]
    common_version: Optional[MinecraftVersion] = None
    required_common_version: Optional[MinecraftVersion] = None
    target_version: Optional[MinecraftVersion] = None
    upgrade_available: bool = False
    required_only: bool = False
    no_common_reason: Optional[NoCommonReason] = None
    unsupported_mods: List[InstalledMod] = field(default_factory=list)
    blocking_mods: List[InstalledMod] = field(default_factory=list)
    blocking_impacts: Dict[str, RemovalImpact] = field(default_factory=dict)

    def maximum_for(self, mod: InstalledMod) -> Optional[MinecraftVersion]:
        versions = self.supported.get(mod.project_id) or []
        return versions[-1] if versions else None

    def supports(self, mod: InstalledMod, version: MinecraftVersion) -> bool:
        return version in (self.supported.get(mod.project_id) or [])

    @property
    def highest_seen(self) -> Optional[MinecraftVersion]:
        maximums = [v for v in (self.maximum_for(m) for m in self.mods) if v]
        return max(maximums) if maximums else None


def common_version(
    version_lists: Iterable[Iterable[MinecraftVersion]],
) -> Optional[MinecraftVersion]:
    """所有列表交集中的最高版本；没有列表或交集为空时返回 None"""
    common = None
    for versions in version_lists:
        current = set(versions)
        common = current if common is None else common & current
        if not common:
            return None
    if not common:
        return None
    return max(common)


class CompatibilityResolver:
    """兼容性解析器"""

    def __init__(
        self,
        provider: CompatibilityProvider,
        loader: str,
        analyzer: Optional[ImpactAnalyzer] = None,
        max_concurrent: int = 5,
    ):
        self.provider = provider
        self.loader = loader
        self.analyzer = analyzer
        self.max_concurrent = max_concurrent

    async def fetch_supported(
        self, mods: List[InstalledMod]
    ) -> Dict[str, List[MinecraftVersion]]:
        """
        并发查询每个模组支持的版本

        所有查询完成后才汇总；只要有一个失败就抛出 CompatibilityError，
        其中列出全部失败的模组。
        """
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def query(mod: InstalledMod) -> List[MinecraftVersion]:
            async with semaphore:
                logger.debug(f"[查询] {mod.name} ({mod.project_id})")
                return await self.provider.supported_versions(
                    mod.project_id, self.loader
                )

        results = await asyncio.gather(
            *(query(mod) for mod in mods), return_exceptions=True
        )

        supported: Dict[str, List[MinecraftVersion]] = {}
        failures: Dict[str, Exception] = {}
        for mod, result in zip(mods, results):
            if isinstance(result, Exception):
                logger.error(f"[查询] 获取 {mod.name} 支持的版本失败: {result}")
                failures[mod.project_id] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                supported[mod.project_id] = list(result)

        if failures:
            first = next(iter(failures.values()))
            raise CompatibilityError(
                f"{len(failures)} 个模组的版本查询失败: "
                + ", ".join(mod.name for mod in mods if mod.project_id in failures),
                failures=failures,
            ) from first
        return supported

    def blocking_mods(
        self,
        mods: List[InstalledMod],
        supported: Dict[str, List[MinecraftVersion]],
        common: Optional[MinecraftVersion],
    ) -> List[InstalledMod]:
        """自身最高支持版本恰好等于共同版本的模组，并列时全部列出"""
        if common is None:
            return []
        blocking = []
        for mod in mods:
            versions = supported.get(mod.project_id) or []
            if versions and versions[-1] == common:
                blocking.append(mod)
        return blocking

    async def analyze(
        self,
        mods: List[InstalledMod],
        current_version: MinecraftVersion,
        ignore_optional: bool = False,
    ) -> CompatibilityReport:
        """
        分析升级可能性

        Args:
            mods: 已安装模组
            current_version: 当前配置的 Minecraft 版本
            ignore_optional: 全部模组无法升级时，改为只考虑非可选模组

        Returns:
            CompatibilityReport
        """
        supported = await self.fetch_supported(mods)
        report = CompatibilityReport(
            current_version=current_version, mods=list(mods), supported=supported
        )

        report.unsupported_mods = [m for m in mods if not supported.get(m.project_id)]
        report.common_version = common_version(
            supported[m.project_id] for m in mods
        )

        if report.common_version is None:
            if not mods:
                report.no_common_reason = NoCommonReason.NO_MODS
            elif report.unsupported_mods:
                report.no_common_reason = NoCommonReason.UNSUPPORTED_MODS
            else:
                report.no_common_reason = NoCommonReason.DISJOINT
            logger.warning(
                f"[兼容] 所有模组之间没有共同的 Minecraft 版本 "
                f"({report.no_common_reason.value})"
            )
        else:
            logger.info(f"[兼容] 所有模组共同支持的最高版本: {report.common_version}")

        report.target_version = report.common_version
        report.upgrade_available = (
            report.common_version is not None
            and report.common_version > current_version
        )

        if not report.upgrade_available and ignore_optional:
            report.required_common_version = common_version(
                supported[m.project_id] for m in mods if m.declaration.required
            )
            required = report.required_common_version
            if required is not None and required > current_version:
                report.target_version = required
                report.required_only = True
                report.upgrade_available = True
                logger.info(f"[兼容] 忽略可选模组后可以升级到 {required}")

        report.blocking_mods = self.blocking_mods(
            mods, supported, report.common_version
        )
        if self.analyzer is not None:
            for mod in report.blocking_mods:
                if mod.is_platform:
                    report.blocking_impacts[mod.project_id] = (
                        self.analyzer.removal_impact(mod)
                    )
        return report

    def group_by_maximum(
        self, report: CompatibilityReport
    ) -> List[Tuple[Optional[MinecraftVersion], List[InstalledMod]]]:
        """
        按各模组自身最高支持版本分组，版本升序；组内按依赖者数量降序

        没有已知最高版本的模组放在最前面。
        """
        groups: Dict[Optional[MinecraftVersion], List[InstalledMod]] = {}
        for mod in report.mods:
            groups.setdefault(report.maximum_for(mod), []).append(mod)

        def dependent_count(mod: InstalledMod) -> int:
            if self.analyzer is None:
                return 0
            return len(self.analyzer.direct_dependents(mod))

        ordered = sorted(
            groups.items(),
            key=lambda item: (item[0] is not None, item[0].sort_key if item[0] else ()),
        )
        return [
            (version, sorted(group, key=lambda m: -dependent_count(m)))
            for version, group in ordered
        ]
