"""
ModKeeper 服务层

包含业务逻辑服务：API 客户端、模组注册表、兼容性解析、依赖影响分析。
"""

from modkeeper.services.api_client import ModrinthClient
from modkeeper.services.registry import (
    ModRegistry,
    extract_metadata,
    load_declarations,
    match_installed,
)
from modkeeper.services.impact_analyzer import (
    DependencyChain,
    ImpactAnalyzer,
    PlatformSummary,
    RemovalImpact,
)
from modkeeper.services.compat_resolver import (
    CompatibilityReport,
    CompatibilityResolver,
    NoCommonReason,
    common_version,
)

__all__ = [
    "ModrinthClient",
    "ModRegistry",
    "extract_metadata",
    "load_declarations",
    "match_installed",
    "DependencyChain",
    "ImpactAnalyzer",
    "PlatformSummary",
    "RemovalImpact",
    "CompatibilityReport",
    "CompatibilityResolver",
    "NoCommonReason",
    "common_version",
]
