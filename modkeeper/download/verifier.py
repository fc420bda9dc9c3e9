"""
文件校验器

实现 SHA-512 校验。
"""

import hashlib
import os
from typing import Optional

import aiofiles

CHUNK_SIZE = 65536


class FileVerifier:
    """文件校验器"""

    @staticmethod
    async def calc_hash(file_path: str, algorithm: str = "sha512") -> Optional[str]:
        """
        计算文件的哈希值

        Args:
            file_path: 文件路径
            algorithm: hashlib 支持的算法名

        Returns:
            十六进制摘要，文件不存在或不可读时返回 None
        """
        if not os.path.exists(file_path):
            return None

        digest = hashlib.new(algorithm)
        try:
            async with aiofiles.open(file_path, "rb") as f:
                while True:
                    data = await f.read(CHUNK_SIZE)
                    if not data:
                        break
                    digest.update(data)
            return digest.hexdigest()
        except (IOError, OSError):
            return None

    @staticmethod
    async def calc_sha512(file_path: str) -> Optional[str]:
        return await FileVerifier.calc_hash(file_path, "sha512")

    @staticmethod
    async def verify_sha512(file_path: str, expected_sha512: Optional[str]) -> bool:
        """
        校验文件的 SHA-512 是否匹配

        没有预期值时视为不通过，未经校验的文件不能进入安装流程。
        """
        if not expected_sha512:
            return False

        current = await FileVerifier.calc_sha512(file_path)
        if current is None:
            return False

        return current.lower() == expected_sha512.strip().lower()
