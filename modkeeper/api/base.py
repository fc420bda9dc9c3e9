from abc import ABC, abstractmethod
from typing import List

from modkeeper.models import MinecraftVersion, RemoteArtifact


class CompatibilityProvider(ABC):
    """
    兼容性数据来源。

    实现方在同一进程内必须对相同参数返回相同结果，建议按 (project_id, loader) 缓存。
    """

    @abstractmethod
    async def supported_versions(
        self, project_id: str, loader: str
    ) -> List[MinecraftVersion]:
        """
        返回项目支持的正式版 Minecraft 版本，升序且去重。

        项目不存在时抛出 APINotFoundError，其它失败抛出 APIError。
        """
        pass

    @abstractmethod
    async def resolve_artifact(
        self, project_id: str, minecraft_version: str, loader: str
    ) -> RemoteArtifact:
        """
        返回目标版本下第一个匹配版本的主文件。

        没有匹配版本时抛出 APINotFoundError。
        """
        pass

    async def close(self):
        pass
