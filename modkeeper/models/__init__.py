"""
ModKeeper 数据模型包

包含版本模型、模组声明、配置模型和 API 模型定义。
"""

from modkeeper.models.version import (
    MinecraftVersion,
    compare_versions,
    is_release,
    latest,
    parse_version,
)
from modkeeper.models.mod import (
    ModType,
    ModDeclaration,
    ModMetadata,
    UNKNOWN_METADATA,
    InstalledMod,
    ModFound,
    ModMissing,
    ModAmbiguous,
    MatchResult,
    ScanReport,
)
from modkeeper.models.config import ModLoader, ServerConfig
from modkeeper.models.api import (
    ProjectInfo,
    FileInfo,
    VersionInfo,
    RemoteArtifact,
)

__all__ = [
    # 版本
    "MinecraftVersion",
    "compare_versions",
    "is_release",
    "latest",
    "parse_version",
    # 模组
    "ModType",
    "ModDeclaration",
    "ModMetadata",
    "UNKNOWN_METADATA",
    "InstalledMod",
    "ModFound",
    "ModMissing",
    "ModAmbiguous",
    "MatchResult",
    "ScanReport",
    # 配置
    "ModLoader",
    "ServerConfig",
    # API 模型
    "ProjectInfo",
    "FileInfo",
    "VersionInfo",
    "RemoteArtifact",
]
