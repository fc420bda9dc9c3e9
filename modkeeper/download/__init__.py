"""
ModKeeper 下载层

包含下载管理与文件校验。
"""

from modkeeper.download.manager import DownloadManager, DownloadStats
from modkeeper.download.verifier import FileVerifier

__all__ = [
    "DownloadManager",
    "DownloadStats",
    "FileVerifier",
]
