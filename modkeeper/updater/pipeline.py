"""
更新流程

Staging → Verified → BackedUp → Applied，暂存阶段任一模组失败则整体进入 Failed，
模组目录保持原样。每次更新尝试使用一个新的 UpdatePipeline 实例。
"""

import asyncio
import inspect
import os
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Union

from loguru import logger

from modkeeper.api.base import CompatibilityProvider
from modkeeper.download import DownloadManager, FileVerifier
from modkeeper.exceptions import (
    APIError,
    APINotFoundError,
    ApplyError,
    BackupError,
    DownloadChecksumError,
    DownloadError,
    StagingError,
    UpdateError,
)
from modkeeper.models import MinecraftVersion, ModDeclaration, RemoteArtifact
from modkeeper.updater.backup import Backup, BackupManager
from modkeeper.utils import remove_path, sibling_path, swap_directory

MAX_APPLY_ATTEMPTS = 2

ConfirmRetry = Callable[[Exception], Union[bool, Awaitable[bool]]]


class PipelineState(Enum):
    PENDING = "pending"
    STAGING = "staging"
    VERIFIED = "verified"
    BACKED_UP = "backed_up"
    APPLIED = "applied"
    FAILED = "failed"


class StageStatus(Enum):
    STAGED = "staged"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class StageOutcome:
    """单个模组的暂存结果"""

    declaration: ModDeclaration
    status: StageStatus
    artifact: Optional[RemoteArtifact] = None
    staged_path: Optional[str] = None
    reason: str = ""
    error: Optional[Exception] = None

    @property
    def name(self) -> str:
        return self.declaration.name


@dataclass
class PipelineResult:
    state: PipelineState
    target_version: MinecraftVersion
    outcomes: List[StageOutcome] = field(default_factory=list)
    backup: Optional[Backup] = None
    error: Optional[Exception] = None

    @property
    def applied(self) -> bool:
        return self.state == PipelineState.APPLIED

    @property
    def failed(self) -> List[StageOutcome]:
        return [o for o in self.outcomes if o.status == StageStatus.FAILED]

    @property
    def aborted(self) -> List[StageOutcome]:
        return [o for o in self.outcomes if o.status == StageStatus.ABORTED]


class UpdatePipeline:
    """全部成功或完全不改的模组更新流程"""

    def __init__(
        self,
        provider: CompatibilityProvider,
        downloader: DownloadManager,
        backups: BackupManager,
        mods_dir: str,
        target_version: MinecraftVersion,
        loader: str,
        staging_dir: Optional[str] = None,
        max_concurrent: int = 5,
    ):
        self.provider = provider
        self.downloader = downloader
        self.backups = backups
        self.mods_dir = mods_dir
        self.target_version = target_version
        self.loader = loader
        self.max_concurrent = max_concurrent
        self.staging_dir = staging_dir or tempfile.mkdtemp(prefix="modkeeper-upgrade-")
        self.state = PipelineState.PENDING
        self.outcomes: List[StageOutcome] = []
        self.backup: Optional[Backup] = None
        self.apply_failures = 0

    def _require(self, *states: PipelineState):
        if self.state not in states:
            raise UpdateError(
                f"当前状态 {self.state.value} 不允许此操作",
                context={"state": self.state.value},
            )

    async def _stage_one(self, declaration: ModDeclaration) -> StageOutcome:
        name = declaration.name
        try:
            artifact = await self.provider.resolve_artifact(
                declaration.project_id, str(self.target_version), self.loader
            )
        except APINotFoundError as e:
            logger.warning(f"[暂存] 找不到 {name} 适用于 {self.target_version} 的版本")
            return StageOutcome(declaration, StageStatus.FAILED, reason="not found", error=e)
        except APIError as e:
            logger.error(f"[暂存] 查询 {name} 的更新失败: {e}")
            return StageOutcome(declaration, StageStatus.FAILED, reason=str(e), error=e)

        filename = os.path.basename(artifact.filename or "")
        if not filename or filename != artifact.filename or filename in (".", ".."):
            return StageOutcome(
                declaration,
                StageStatus.FAILED,
                artifact=artifact,
                reason=f"非法文件名: {artifact.filename!r}",
            )
        if not artifact.sha512:
            logger.error(f"[暂存] {name} 没有 SHA-512 哈希，无法校验")
            return StageOutcome(
                declaration, StageStatus.FAILED, artifact=artifact, reason="no sha512"
            )

        temp_path = os.path.join(self.staging_dir, f"{filename}.part")
        final_path = os.path.join(self.staging_dir, filename)
        try:
            await self.downloader.download_file(artifact.download_url, temp_path)
        except DownloadError as e:
            return StageOutcome(
                declaration, StageStatus.FAILED, artifact=artifact, reason=str(e), error=e
            )

        if not await FileVerifier.verify_sha512(temp_path, artifact.sha512):
            if os.path.exists(temp_path):
                os.remove(temp_path)
            logger.error(f"[校验] {name} 的 SHA-512 校验失败，已删除 {filename}")
            return StageOutcome(
                declaration,
                StageStatus.FAILED,
                artifact=artifact,
                reason="checksum mismatch",
                error=DownloadChecksumError(
                    f"{filename} 的 SHA-512 与发布的哈希不一致",
                    context={"project_id": declaration.project_id, "url": artifact.download_url},
                ),
            )

        os.replace(temp_path, final_path)
        logger.success(f"[暂存] {name} -> {filename}")
        return StageOutcome(
            declaration, StageStatus.STAGED, artifact=artifact, staged_path=final_path
        )

    async def stage(self, declarations: List[ModDeclaration]) -> List[StageOutcome]:
        """
        并发解析、下载、校验所有模组

        单个模组失败不会取消其它模组，所有任务完成后再统一决定是否继续。
        """
        self._require(PipelineState.PENDING)
        self.state = PipelineState.STAGING
        os.makedirs(self.staging_dir, exist_ok=True)
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def run(declaration: ModDeclaration) -> StageOutcome:
            async with semaphore:
                return await self._stage_one(declaration)

        results = await asyncio.gather(
            *(run(decl) for decl in declarations), return_exceptions=True
        )

        outcomes: List[StageOutcome] = []
        for declaration, result in zip(declarations, results):
            if isinstance(result, StageOutcome):
                outcomes.append(result)
            elif isinstance(result, Exception):
                logger.error(f"[暂存] {declaration.name} 出现意外错误: {result}")
                outcomes.append(
                    StageOutcome(
                        declaration, StageStatus.FAILED, reason=str(result), error=result
                    )
                )
            else:
                raise result

        self.outcomes = outcomes
        if any(o.status == StageStatus.FAILED for o in outcomes):
            for outcome in outcomes:
                if outcome.status == StageStatus.STAGED:
                    outcome.status = StageStatus.ABORTED
                    outcome.reason = "pipeline aborted"
            self.state = PipelineState.FAILED
            logger.error(
                "[暂存] 以下模组更新失败，未做任何修改: "
                + ", ".join(o.name for o in outcomes if o.status == StageStatus.FAILED)
            )
        else:
            self.state = PipelineState.VERIFIED
        return outcomes

    def create_backup(self) -> Backup:
        """备份整个模组目录，失败时流程进入 Failed，不触碰模组目录"""
        self._require(PipelineState.VERIFIED)
        try:
            self.backup = self.backups.create(self.mods_dir)
        except BackupError:
            self.state = PipelineState.FAILED
            raise
        self.state = PipelineState.BACKED_UP
        return self.backup

    def _is_replaced(self, filename: str, patterns: List["re.Pattern"]) -> bool:
        return any(pattern.search(filename) for pattern in patterns)

    def apply(self) -> None:
        """
        用暂存的文件替换模组目录中对应的模组

        新目录在旁边完整构建好之后再与模组目录交换，被替换模组的旧文件不会保留。
        这个方法没有 await 点，开始后不会被任务取消打断。
        """
        self._require(PipelineState.BACKED_UP, PipelineState.APPLIED)
        if self.apply_failures >= MAX_APPLY_ATTEMPTS:
            raise ApplyError(
                "替换已失败两次，不再自动尝试",
                context={"backup": self.backup.path if self.backup else None},
            )

        staged = [o for o in self.outcomes if o.status == StageStatus.STAGED]
        patterns = [re.compile(o.declaration.filename_pattern, re.IGNORECASE) for o in staged]
        incoming = sibling_path(self.mods_dir, "incoming")

        try:
            if os.path.lexists(incoming):
                remove_path(incoming)
            os.makedirs(incoming)

            if os.path.isdir(self.mods_dir):
                for entry in sorted(os.listdir(self.mods_dir)):
                    source = os.path.join(self.mods_dir, entry)
                    if os.path.isfile(source) and self._is_replaced(entry, patterns):
                        logger.debug(f"[替换] 移除旧文件 {entry}")
                        continue
                    if os.path.isdir(source):
                        shutil.copytree(source, os.path.join(incoming, entry))
                    else:
                        shutil.copy2(source, os.path.join(incoming, entry))

            for outcome in staged:
                shutil.copy2(
                    outcome.staged_path,
                    os.path.join(incoming, os.path.basename(outcome.staged_path)),
                )

            swap_directory(self.mods_dir, incoming)
        except OSError as e:
            self.apply_failures += 1
            if os.path.lexists(incoming):
                shutil.rmtree(incoming, ignore_errors=True)
            raise ApplyError(
                f"替换模组目录失败: {e}",
                context={
                    "mods_dir": self.mods_dir,
                    "backup": self.backup.path if self.backup else None,
                },
            ) from e

        self.state = PipelineState.APPLIED
        logger.success(f"[替换] 已应用 {len(staged)} 个模组更新")

    async def apply_with_retry(self, confirm_retry: Optional[ConfirmRetry] = None):
        """替换失败时，经确认后只重试一次替换本身"""
        try:
            self.apply()
            return
        except ApplyError as e:
            logger.error(f"[替换] {e.message}")
            if confirm_retry is None:
                raise
            answer = confirm_retry(e)
            if inspect.isawaitable(answer):
                answer = await answer
            if not answer:
                raise

        try:
            self.apply()
        except ApplyError as e:
            logger.error(
                f"[替换] 再次失败: {e.message}，请从备份 "
                f"{self.backup.path if self.backup else '-'} 手动恢复"
            )
            raise

    def cleanup(self):
        """删除暂存目录"""
        if os.path.isdir(self.staging_dir):
            shutil.rmtree(self.staging_dir, ignore_errors=True)

    def result(self, error: Optional[Exception] = None) -> PipelineResult:
        return PipelineResult(
            state=self.state,
            target_version=self.target_version,
            outcomes=list(self.outcomes),
            backup=self.backup,
            error=error,
        )

    async def run(
        self,
        declarations: List[ModDeclaration],
        confirm_retry: Optional[ConfirmRetry] = None,
    ) -> PipelineResult:
        """
        执行完整流程

        暂存或备份失败时返回 Failed 结果；替换失败（含一次重试）时抛出 ApplyError，
        备份保留在磁盘上。
        """
        try:
            await self.stage(declarations)
            if self.state == PipelineState.FAILED:
                failed = [o.name for o in self.outcomes if o.status == StageStatus.FAILED]
                return self.result(
                    error=StagingError(
                        f"{len(failed)} 个模组暂存失败: {', '.join(failed)}",
                        context={"failed": failed},
                    )
                )

            try:
                self.create_backup()
            except BackupError as e:
                logger.error(f"[备份] {e.message}")
                return self.result(error=e)

            await self.apply_with_retry(confirm_retry)
            return self.result()
        finally:
            self.cleanup()
