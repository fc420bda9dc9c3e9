"""
Modrinth API 客户端

实现 CompatibilityProvider，按客户端实例缓存版本查询结果。
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from loguru import logger

from modkeeper import __version__
from modkeeper.api.base import CompatibilityProvider
from modkeeper.exceptions import (
    APIAuthError,
    APIError,
    APINotFoundError,
    APIRateLimitError,
    APIServerError,
    APITimeoutError,
)
from modkeeper.models import (
    MinecraftVersion,
    ProjectInfo,
    RemoteArtifact,
    VersionInfo,
    is_release,
)

MODRINTH_BASE_URL = "https://api.modrinth.com/v2"
USER_AGENT = f"modkeeper/{__version__}"


class ModrinthClient(CompatibilityProvider):
    """Modrinth API 客户端"""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        token: Optional[str] = None,
        timeout: float = 30.0,
        base_url: str = MODRINTH_BASE_URL,
    ):
        self._session = session
        self._owned_session = session is None
        self.token = token
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._supported_cache: Dict[Tuple[str, str], List[MinecraftVersion]] = {}
        self._artifact_cache: Dict[Tuple[str, str, str], RemoteArtifact] = {}

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"User-Agent": USER_AGENT}
        if self.token:
            headers["Authorization"] = self.token
        return headers

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owned_session = True
        return self._session

    async def _request(self, endpoint: str, params: Optional[dict] = None) -> Any:
        """发送 API 请求，非 2xx 状态映射为对应的 APIError 子类"""
        url = f"{self.base_url}{endpoint}"
        try:
            async with self.session.get(
                url, params=params, headers=self.headers
            ) as response:
                if 200 <= response.status < 300:
                    return await response.json()
                if response.status == 401:
                    raise APIAuthError("Modrinth API 令牌无效", response=response)
                if response.status == 404:
                    raise APINotFoundError(
                        f"资源不存在: {endpoint}", response=response
                    )
                if response.status == 429:
                    raise APIRateLimitError("Modrinth API 速率限制", response=response)
                if response.status >= 500:
                    raise APIServerError(
                        f"Modrinth 服务器错误 (状态码: {response.status})",
                        response=response,
                    )
                raise APIError(
                    f"API 请求失败 (状态码: {response.status})", response=response
                )
        except asyncio.TimeoutError as e:
            raise APITimeoutError(
                f"请求超时 ({self.timeout}s): {endpoint}", context={"url": url}
            ) from e
        except aiohttp.ClientError as e:
            raise APIError(f"请求失败: {e}", context={"url": url}) from e

    async def get_project(self, project_id: str) -> ProjectInfo:
        """获取项目信息"""
        response = await self._request(f"/project/{project_id}")
        return ProjectInfo.from_modrinth(response)

    async def get_versions(
        self,
        project_id: str,
        loader: Optional[str] = None,
        minecraft_version: Optional[str] = None,
    ) -> List[VersionInfo]:
        """按加载器和游戏版本过滤的版本列表，保持服务端的“最新在前”顺序"""
        params = {}
        if loader:
            params["loaders"] = json.dumps([loader])
        if minecraft_version:
            params["game_versions"] = json.dumps([minecraft_version])
        response = await self._request(f"/project/{project_id}/version", params)
        return [VersionInfo.from_modrinth(item) for item in response or []]

    async def supported_versions(
        self, project_id: str, loader: str
    ) -> List[MinecraftVersion]:
        cache_key = (project_id, loader)
        if cache_key in self._supported_cache:
            return list(self._supported_cache[cache_key])

        versions = await self.get_versions(project_id, loader=loader)
        if not versions:
            raise APINotFoundError(
                f"项目 {project_id} 没有符合过滤条件的版本",
                context={"project_id": project_id, "loader": loader},
            )

        game_versions = {
            game_version
            for version in versions
            for game_version in version.game_versions
            if is_release(game_version)
        }
        result = sorted(MinecraftVersion(v) for v in game_versions)
        logger.debug(
            f"[查询] {project_id} ({loader}) 支持 {len(result)} 个正式版 Minecraft 版本"
        )
        self._supported_cache[cache_key] = result
        return list(result)

    async def resolve_artifact(
        self, project_id: str, minecraft_version: str, loader: str
    ) -> RemoteArtifact:
        cache_key = (project_id, str(minecraft_version), loader)
        if cache_key in self._artifact_cache:
            return self._artifact_cache[cache_key]

        versions = await self.get_versions(
            project_id, loader=loader, minecraft_version=str(minecraft_version)
        )
        if not versions:
            raise APINotFoundError(
                f"项目 {project_id} 没有适用于 Minecraft {minecraft_version} 的版本",
                context={
                    "project_id": project_id,
                    "minecraft_version": str(minecraft_version),
                    "loader": loader,
                },
            )

        version = versions[0]
        primary = version.primary_file
        if primary is None:
            raise APINotFoundError(
                f"项目 {project_id} 的版本 {version.version_number} 没有可下载文件",
                context={"project_id": project_id, "version": version.id},
            )

        artifact = RemoteArtifact(
            project_id=project_id,
            filename=primary.filename,
            download_url=primary.url,
            sha512=primary.hashes.get("sha512"),
            minecraft_version=str(minecraft_version),
            version_number=version.version_number,
        )
        self._artifact_cache[cache_key] = artifact
        return artifact

    async def get_authenticated_user(self) -> str:
        """返回令牌对应的用户名，令牌无效时抛出 APIAuthError"""
        response = await self._request("/user")
        return response.get("username", "")

    async def close(self):
        """关闭客户端"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()
