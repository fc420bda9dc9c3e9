"""
模组声明与安装记录

声明描述“期望安装什么”，安装记录描述“实际找到了哪个 JAR”。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from modkeeper.exceptions import AmbiguousModError, MissingModError


class ModType(Enum):
    """模组运行端"""

    SERVER_ONLY = "server_only"
    CLIENT_AND_SERVER = "client_and_server"

    @property
    def label(self) -> str:
        return self.value.replace("_", "-")


@dataclass(frozen=True)
class ModDeclaration:
    """
    模组声明

    project_id 是唯一键；depends_on 中的 ID 不要求能解析到已知声明。
    """

    project_id: str
    name: str
    type: ModType
    filename_pattern: str
    depends_on: Tuple[str, ...] = ()
    is_platform: bool = False
    optional: bool = False

    @property
    def required(self) -> bool:
        return not self.optional

    def __str__(self) -> str:
        return f"{self.name} ({self.project_id})"


@dataclass(frozen=True)
class ModMetadata:
    """从 JAR 内嵌元数据中提取的版本信息，取不到时为 None"""

    version: Optional[str] = None
    minecraft_version: Optional[str] = None

    @property
    def is_unknown(self) -> bool:
        return self.version is None and self.minecraft_version is None


UNKNOWN_METADATA = ModMetadata()


@dataclass(frozen=True)
class InstalledMod:
    """与唯一一个 JAR 匹配成功的声明"""

    declaration: ModDeclaration
    filename: str
    filepath: str
    version: Optional[str] = None
    minecraft_version: Optional[str] = None

    @property
    def project_id(self) -> str:
        return self.declaration.project_id

    @property
    def name(self) -> str:
        return self.declaration.name

    @property
    def is_platform(self) -> bool:
        return self.declaration.is_platform

    @property
    def optional(self) -> bool:
        return self.declaration.optional

    @property
    def display_version(self) -> str:
        return self.version or "unknown"


@dataclass(frozen=True)
class ModFound:
    installed: InstalledMod

    @property
    def declaration(self) -> ModDeclaration:
        return self.installed.declaration


@dataclass(frozen=True)
class ModMissing:
    declaration: ModDeclaration

    def to_error(self) -> MissingModError:
        return MissingModError(
            f"没有已安装的 JAR 匹配模组 {self.declaration.name} 的文件名模式",
            context={
                "project_id": self.declaration.project_id,
                "pattern": self.declaration.filename_pattern,
            },
        )


@dataclass(frozen=True)
class ModAmbiguous:
    declaration: ModDeclaration
    filenames: Tuple[str, ...] = field(default_factory=tuple)

    def to_error(self) -> AmbiguousModError:
        return AmbiguousModError(
            f"多个 JAR 匹配模组 {self.declaration.name}: {', '.join(self.filenames)}",
            filenames=list(self.filenames),
            context={
                "project_id": self.declaration.project_id,
                "pattern": self.declaration.filename_pattern,
            },
        )


MatchResult = Union[ModFound, ModMissing, ModAmbiguous]


@dataclass
class ScanReport:
    """一次模组目录扫描的结果"""

    installed: List[InstalledMod] = field(default_factory=list)
    missing: List[ModDeclaration] = field(default_factory=list)
    ambiguous: List[ModAmbiguous] = field(default_factory=list)
    undeclared: List[str] = field(default_factory=list)

    @property
    def problems(self) -> List[Union[MissingModError, AmbiguousModError]]:
        errors: List[Union[MissingModError, AmbiguousModError]] = [
            ModMissing(decl).to_error() for decl in self.missing
        ]
        errors.extend(entry.to_error() for entry in self.ambiguous)
        return errors
