"""
配置文件加载

在服务器目录中查找 modkeeper 配置文件并解析为 ServerConfig。
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

import toml
import yaml

from modkeeper.exceptions import ConfigError, ConfigParseError
from modkeeper.models.config import ServerConfig

CONFIG_NAMES = (
    "modkeeper.yml",
    "modkeeper.yaml",
    "modkeeper.toml",
    "modkeeper.json",
)


def find_config_file(base_dir: str) -> Optional[str]:
    """按固定顺序返回第一个存在的配置文件"""
    for name in CONFIG_NAMES:
        candidate = os.path.join(base_dir, name)
        if os.path.isfile(candidate):
            return candidate
    return None


def load_config_data(config_path: str) -> Any:
    """按扩展名解析配置文件"""
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"配置文件不存在: {config_path}")

    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")

    try:
        if suffix == ".toml":
            return toml.loads(text)
        elif suffix == ".json":
            return json.loads(text)
        elif suffix in (".yaml", ".yml"):
            return yaml.safe_load(text)
    except (toml.TomlDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(
            f"配置文件语法错误: {e}", context={"path": config_path}
        ) from e

    raise ConfigError(f"不支持的配置文件格式: {suffix}")


def load_server_config(base_dir: str) -> ServerConfig:
    """加载服务器目录中的配置"""
    base_dir = os.path.abspath(base_dir)
    config_path = find_config_file(base_dir)
    if config_path is None:
        raise ConfigError(
            f"在 {base_dir} 中找不到配置文件 ({', '.join(CONFIG_NAMES)})",
            context={"base_dir": base_dir},
        )
    return ServerConfig.from_dict(load_config_data(config_path), base_dir)
