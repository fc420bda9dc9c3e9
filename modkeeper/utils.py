import os
import shutil
from datetime import datetime
from typing import Optional

from loguru import logger


def timestamp(now: Optional[datetime] = None) -> str:
    """可按字典序排序的时间戳"""
    return (now or datetime.now()).strftime("%Y%m%d%H%M%S")


def sibling_path(path: str, suffix: str) -> str:
    """与 path 同目录的临时路径，保证 rename 不跨文件系统"""
    path = os.path.abspath(path)
    return os.path.join(os.path.dirname(path), f".{os.path.basename(path)}.{suffix}")


def remove_path(path: str):
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


def swap_directory(live_dir: str, new_dir: str) -> None:
    """
    用 new_dir 整体替换 live_dir

    两次 rename 之间如果失败，会把原目录放回去；旧目录在替换成功后才删除。
    """
    old_dir = sibling_path(live_dir, f"old-{timestamp()}")
    had_live = os.path.exists(live_dir)
    if had_live:
        os.rename(live_dir, old_dir)
    try:
        os.rename(new_dir, live_dir)
    except OSError:
        if had_live:
            os.rename(old_dir, live_dir)
        raise

    if had_live:
        try:
            shutil.rmtree(old_dir)
        except OSError as e:
            logger.warning(f"[清理] 无法删除旧目录 {old_dir}: {e}")
