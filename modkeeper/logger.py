"""
日志模块

控制台输出给操作者看，可选的日志文件保留完整的调试信息，便于升级失败后排查。
"""

import os
import sys
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message}"


def resolve_level(level: Optional[str] = None) -> str:
    """显式参数优先，其次是 MODKEEPER_DEBUG 环境变量"""
    if level:
        return level.upper()
    return "DEBUG" if os.environ.get("MODKEEPER_DEBUG", "0") == "1" else "INFO"


def setup_logger(
    level: Optional[str] = None,
    sink=sys.stdout,
    log_file: Optional[str] = None,
    enqueue: bool = True,
    colorize: bool = True,
) -> None:
    """
    设置日志记录器

    Args:
        level: 控制台日志级别 (DEBUG, INFO, WARNING, ERROR)
        sink: 控制台输出目标
        log_file: 日志文件路径，文件始终记录 DEBUG 级别
        enqueue: 是否启用队列（线程安全）
        colorize: 是否启用颜色
    """
    level = resolve_level(level)
    debug_mode = level == "DEBUG"

    logger.remove()
    logger.add(
        sink=sink,
        format=CONSOLE_FORMAT,
        enqueue=enqueue,
        level=level,
        colorize=colorize,
        backtrace=debug_mode,
        diagnose=debug_mode,
    )

    if log_file:
        logger.add(
            sink=log_file,
            format=FILE_FORMAT,
            enqueue=enqueue,
            level="DEBUG",
            rotation="5 MB",
            retention=3,
            backtrace=True,
            diagnose=False,
        )

    if debug_mode:
        logger.debug("DEBUG 模式已启用")


__all__ = ["logger", "setup_logger", "resolve_level"]
