"""
API 数据模型

定义兼容性服务返回的项目信息、版本信息和下载制品。
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class ProjectInfo:
    """
    模组项目信息。
    """

    id: str
    slug: str
    title: str
    project_type: str
    game_versions: List[str] = field(default_factory=list)
    loaders: List[str] = field(default_factory=list)

    @classmethod
    def from_modrinth(cls, data: dict) -> "ProjectInfo":
        return cls(
            id=data.get("id", ""),
            slug=data.get("slug", ""),
            title=data.get("title", ""),
            project_type=data.get("project_type", "mod"),
            game_versions=data.get("game_versions", []),
            loaders=data.get("loaders", []),
        )


@dataclass
class FileInfo:
    """文件信息"""

    url: str
    filename: str
    primary: bool = False
    size: int = 0
    hashes: Dict[str, str] = field(default_factory=dict)


@dataclass
class VersionInfo:
    """
    模组版本信息。
    """

    id: str
    version_number: str
    game_versions: List[str]
    loaders: List[str]
    files: List[FileInfo]

    @classmethod
    def from_modrinth(cls, data: dict) -> "VersionInfo":
        """
        将 Modrinth API 返回的版本信息转换为 VersionInfo 对象。
        """
        files = [
            FileInfo(
                url=file["url"],
                filename=file["filename"],
                primary=file.get("primary", False),
                size=file.get("size", 0),
                hashes=file.get("hashes") or {},
            )
            for file in data.get("files", [])
        ]

        return cls(
            id=data.get("id", ""),
            version_number=data.get("version_number", ""),
            game_versions=data.get("game_versions", []),
            loaders=data.get("loaders", []),
            files=files,
        )

    @property
    def primary_file(self) -> Optional[FileInfo]:
        """优先选择 primary 文件，否则返回第一个文件"""
        if not self.files:
            return None
        for file in self.files:
            if file.primary:
                return file
        return self.files[0]


@dataclass(frozen=True)
class RemoteArtifact:
    """某个模组在目标版本下的下载制品，每次更新临时获取，不做持久化"""

    project_id: str
    filename: str
    download_url: str
    sha512: Optional[str]
    minecraft_version: str
    version_number: str = ""
