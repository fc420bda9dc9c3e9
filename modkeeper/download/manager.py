"""
下载管理器

负责把远程文件流式写入调用方指定的临时路径。校验与改名由更新流程负责。
"""

import asyncio
import os
from dataclasses import dataclass
from typing import Optional

import aiofiles
import aiohttp
from loguru import logger

from modkeeper import __version__
from modkeeper.exceptions import (
    DownloadEmptyError,
    DownloadError,
    DownloadFileError,
    DownloadNetworkError,
)


@dataclass
class DownloadStats:
    """下载统计"""

    total: int = 0
    completed: int = 0
    failed: int = 0
    bytes_downloaded: int = 0


class DownloadManager:
    """下载管理器"""

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 300.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.stats = DownloadStats()
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": f"modkeeper/{__version__}"},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owned_session = True
        return self._session

    async def _fetch(self, url: str, temp_path: str) -> int:
        filename = os.path.basename(temp_path)
        async with self.session.get(url) as response:
            if response.status != 200:
                raise DownloadNetworkError(
                    f"HTTP {response.status}",
                    context={"url": url, "status": response.status},
                )

            total_size = int(response.headers.get("Content-Length", 0))
            downloaded = 0
            last_percent = 0.0

            try:
                async with aiofiles.open(temp_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(8192):
                        await f.write(chunk)
                        downloaded += len(chunk)

                        if total_size > 0:
                            percent = (downloaded / total_size) * 100
                            if percent - last_percent >= 5:
                                logger.debug(f"[进度] {filename}: {percent:.1f}%")
                                last_percent = percent
            except OSError as e:
                raise DownloadFileError(
                    f"写入文件失败: {e}", context={"path": temp_path}
                ) from e

        if downloaded == 0:
            raise DownloadEmptyError(
                f"下载内容为空: {filename}", context={"url": url}
            )
        return downloaded

    async def download_file(self, url: str, temp_path: str) -> int:
        """
        下载单个文件到临时路径

        网络错误按指数退避重试；失败时删除不完整的文件。

        Returns:
            写入的字节数
        """
        os.makedirs(os.path.dirname(temp_path) or ".", exist_ok=True)
        filename = os.path.basename(temp_path)
        self.stats.total += 1
        logger.info(f"[下载] 开始: {filename}")

        for attempt in range(self.max_retries + 1):
            try:
                size = await self._fetch(url, temp_path)
                self.stats.completed += 1
                self.stats.bytes_downloaded += size
                logger.debug(f"[下载] '{filename}' 完成 ({size / (1024 * 1024):.2f} MB)")
                return size

            except (DownloadNetworkError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                self._discard(temp_path)
                if attempt < self.max_retries:
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(
                        f"[重试] 下载 '{filename}' 失败 (第 {attempt + 1} 次): {e}. "
                        f"{delay:.1f}s 后重试..."
                    )
                    await asyncio.sleep(delay)
                    continue

                self.stats.failed += 1
                logger.error(f"[错误] 下载 '{filename}' 最终失败: {e}")
                if isinstance(e, DownloadError):
                    raise
                raise DownloadNetworkError(
                    f"下载失败: {filename}: {e}", context={"url": url}
                ) from e

            except DownloadError:
                self._discard(temp_path)
                self.stats.failed += 1
                raise

        raise DownloadError(f"下载失败: {filename}", context={"url": url})

    @staticmethod
    def _discard(path: str):
        if os.path.exists(path):
            try:
                os.remove(path)
            except OSError as e:
                logger.warning(f"[清理] 无法删除不完整的文件 {path}: {e}")

    def get_stats(self) -> DownloadStats:
        """获取下载统计"""
        return self.stats

    async def close(self):
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()
