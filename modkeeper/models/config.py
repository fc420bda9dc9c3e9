"""
配置模型

服务器目录下的配置文件被解析为 ServerConfig，模组声明保持原始记录形式，
由注册表统一校验。
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger

from modkeeper.exceptions import DeclarationError
from modkeeper.models.version import MinecraftVersion


class ModLoader(Enum):
    FABRIC = "fabric"
    FORGE = "forge"
    NEOFORGE = "neoforge"
    QUILT = "quilt"


DEFAULT_MAX_CONCURRENT = 5
DEFAULT_MAX_BACKUPS = 10


@dataclass
class ServerConfig:
    """单个服务器的 modkeeper 配置"""

    base_dir: str
    minecraft_version: MinecraftVersion
    mod_loader: ModLoader = ModLoader.FABRIC
    mods: List[Dict[str, Any]] = field(default_factory=list)
    mods_dir: str = ""
    backup_dir: str = ""
    max_backups: int = DEFAULT_MAX_BACKUPS
    modrinth_token: Optional[str] = None
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0

    def __post_init__(self):
        if not self.mods_dir:
            self.mods_dir = os.path.join(self.base_dir, "mods")
        if not self.backup_dir:
            self.backup_dir = os.path.join(self.base_dir, "modkeeper_backup")

    @classmethod
    def from_dict(cls, data: Any, base_dir: str) -> "ServerConfig":
        if not isinstance(data, dict):
            raise DeclarationError(
                f"{base_dir} 中的配置格式无效，应为包含 'mods' 列表的映射",
                context={"base_dir": base_dir},
            )

        version = data.get("minecraft_version")
        if not version:
            raise DeclarationError(
                "配置缺少 'minecraft_version'", context={"base_dir": base_dir}
            )

        mods = data.get("mods")
        if not isinstance(mods, list):
            raise DeclarationError(
                f"{base_dir} 中的配置格式无效，'mods' 必须是模组声明列表",
                context={"base_dir": base_dir},
            )

        loader_name = str(data.get("mod_loader") or ModLoader.FABRIC.value).lower()
        try:
            mod_loader = ModLoader(loader_name)
        except ValueError:
            raise DeclarationError(
                f"mod_loader 必须为 fabric/forge/neoforge/quilt，当前为 '{loader_name}'"
            )

        max_concurrent = data.get("max_concurrent", DEFAULT_MAX_CONCURRENT)
        if not isinstance(max_concurrent, int) or max_concurrent <= 0:
            logger.warning(
                f"max_concurrent 配置无效，将使用默认值 {DEFAULT_MAX_CONCURRENT}"
            )
            max_concurrent = DEFAULT_MAX_CONCURRENT

        def resolve_dir(key: str) -> str:
            value = data.get(key)
            if not value:
                return ""
            return value if os.path.isabs(value) else os.path.join(base_dir, value)

        return cls(
            base_dir=base_dir,
            minecraft_version=MinecraftVersion(str(version)),
            mod_loader=mod_loader,
            mods=mods,
            mods_dir=resolve_dir("mods_dir"),
            backup_dir=resolve_dir("backup_dir"),
            max_backups=int(data.get("max_backups", DEFAULT_MAX_BACKUPS)),
            modrinth_token=data.get("modrinth_token")
            or os.environ.get("MODRINTH_TOKEN")
            or None,
            max_concurrent=max_concurrent,
            request_timeout=float(data.get("request_timeout", 30.0)),
            max_retries=int(data.get("max_retries", 3)),
            retry_delay=float(data.get("retry_delay", 1.0)),
        )
