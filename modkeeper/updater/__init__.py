"""
ModKeeper 更新层

包含备份管理与更新流程。
"""

from modkeeper.updater.backup import Backup, BackupManager
from modkeeper.updater.pipeline import (
    PipelineResult,
    PipelineState,
    StageOutcome,
    StageStatus,
    UpdatePipeline,
)

__all__ = [
    "Backup",
    "BackupManager",
    "PipelineResult",
    "PipelineState",
    "StageOutcome",
    "StageStatus",
    "UpdatePipeline",
]
