"""
主协调器

整合注册表、兼容性解析、影响分析与更新流程，为命令行提供完整的升级编排。
"""

from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from modkeeper.api.base import CompatibilityProvider
from modkeeper.download import DownloadManager
from modkeeper.exceptions import APIAuthError, APIError, RevertError
from modkeeper.models import (
    MinecraftVersion,
    ModDeclaration,
    ScanReport,
    ServerConfig,
)
from modkeeper.services import (
    CompatibilityReport,
    CompatibilityResolver,
    ImpactAnalyzer,
    ModrinthClient,
    ModRegistry,
)
from modkeeper.updater import Backup, BackupManager, PipelineResult, UpdatePipeline
from modkeeper.updater.pipeline import ConfirmRetry


@dataclass
class UpgradePlan:
    """升级决策：目标版本与要更新的模组"""

    report: CompatibilityReport
    target_version: Optional[MinecraftVersion] = None
    declarations: List[ModDeclaration] = field(default_factory=list)
    skipped: List[ModDeclaration] = field(default_factory=list)
    forced: bool = False

    @property
    def can_proceed(self) -> bool:
        return self.target_version is not None and bool(self.declarations)


class ModKeeperOrchestrator:
    """ModKeeper 主协调器"""

    def __init__(
        self,
        config: ServerConfig,
        provider: Optional[CompatibilityProvider] = None,
        downloader: Optional[DownloadManager] = None,
    ):
        self.config = config
        # 声明错误在任何网络或文件系统操作之前暴露
        self.registry = ModRegistry.from_config(config)
        self.provider = provider or ModrinthClient(
            token=config.modrinth_token, timeout=config.request_timeout
        )
        self.downloader = downloader or DownloadManager(
            max_retries=config.max_retries, retry_delay=config.retry_delay
        )
        self.analyzer = ImpactAnalyzer(self.registry)
        self.resolver = CompatibilityResolver(
            self.provider,
            config.mod_loader.value,
            analyzer=self.analyzer,
            max_concurrent=config.max_concurrent,
        )
        self.backups = BackupManager(config.backup_dir, config.max_backups)
        self._scan: Optional[ScanReport] = None

    def scan(self) -> ScanReport:
        if self._scan is None:
            logger.info(f"[扫描] 已加载 {len(self.registry.declarations)} 个模组声明")
            self._scan = self.registry.scan()
            logger.info(
                f"[扫描] 已安装 {len(self._scan.installed)}，缺失 {len(self._scan.missing)}，"
                f"冲突 {len(self._scan.ambiguous)}，未声明 {len(self._scan.undeclared)}"
            )
            for decl, dep_id in self.registry.dangling_dependencies():
                logger.warning(f"[依赖] {decl.name} 依赖未声明的项目 {dep_id}")
        return self._scan

    async def check(self, ignore_optional: bool = False) -> CompatibilityReport:
        scan = self.scan()
        return await self.resolver.analyze(
            scan.installed, self.config.minecraft_version, ignore_optional=ignore_optional
        )

    async def plan_upgrade(
        self, ignore_optional: bool = False, force: bool = False
    ) -> UpgradePlan:
        """
        决定升级目标

        不可升级时，force 允许以当前能解析出的共同版本重新安装所有模组。
        """
        report = await self.check(ignore_optional=ignore_optional)
        plan = UpgradePlan(report=report)

        if report.upgrade_available:
            plan.target_version = report.target_version
        elif force:
            plan.target_version = report.required_common_version or report.common_version
            plan.forced = plan.target_version is not None
            if plan.forced:
                logger.warning(
                    f"[升级] 强制使用 {plan.target_version}，"
                    f"它并不比当前的 {self.config.minecraft_version} 更新"
                )

        if plan.target_version is None:
            return plan

        scan = self.scan()
        for mod in scan.installed:
            if (
                report.required_only
                and mod.optional
                and not report.supports(mod, plan.target_version)
            ):
                plan.skipped.append(mod.declaration)
                continue
            plan.declarations.append(mod.declaration)

        for decl in scan.missing:
            if report.required_only and decl.optional:
                plan.skipped.append(decl)
                continue
            plan.declarations.append(decl)

        for decl in plan.skipped:
            logger.warning(f"[升级] 可选模组 {decl.name} 不支持 {plan.target_version}，保持原样")
        return plan

    def new_pipeline(self, target_version: MinecraftVersion) -> UpdatePipeline:
        return UpdatePipeline(
            provider=self.provider,
            downloader=self.downloader,
            backups=self.backups,
            mods_dir=self.config.mods_dir,
            target_version=target_version,
            loader=self.config.mod_loader.value,
            max_concurrent=self.config.max_concurrent,
        )

    async def upgrade(
        self, plan: UpgradePlan, confirm_retry: Optional[ConfirmRetry] = None
    ) -> PipelineResult:
        """执行升级；成功后按保留策略清理旧备份"""
        if not plan.can_proceed:
            raise ValueError("升级计划没有目标版本或没有要更新的模组")

        logger.info(f"[升级] 正在升级到 Minecraft {plan.target_version}...")
        pipeline = self.new_pipeline(plan.target_version)
        result = await pipeline.run(plan.declarations, confirm_retry=confirm_retry)
        if result.applied:
            self.backups.prune()
            self._scan = None
        return result

    def revert(self, backup_name: Optional[str] = None) -> Backup:
        """
        回滚到指定备份（默认最新）

        回滚前会先备份当前模组目录，回滚本身也可以撤销。
        """
        backups = self.backups.list_backups()
        if not backups:
            raise RevertError("没有可回滚的备份")

        if backup_name is None:
            target = backups[-1]
        else:
            target = self.backups.get(backup_name)
            if target is None:
                raise RevertError(
                    f"备份不存在: {backup_name}", context={"backup": backup_name}
                )

        self.backups.create(self.config.mods_dir)
        self.backups.restore(target, self.config.mods_dir)
        self._scan = None
        return target

    async def validate_token(self) -> Optional[str]:
        """
        校验 Modrinth 令牌

        令牌无效时抛出 APIAuthError；网络等其它错误只记录警告，不阻止运行。
        """
        if not self.config.modrinth_token or not isinstance(
            self.provider, ModrinthClient
        ):
            return None
        try:
            username = await self.provider.get_authenticated_user()
        except APIAuthError:
            raise
        except APIError as e:
            logger.warning(f"[令牌] 无法校验 Modrinth 令牌: {e}")
            return None
        logger.info(f"[令牌] Modrinth 令牌有效，用户: {username}")
        return username

    async def close(self):
        await self.provider.close()
        await self.downloader.close()
