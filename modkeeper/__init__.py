"""
ModKeeper - Minecraft 服务器模组升级管理工具

声明期望的模组，匹配已安装的 JAR，计算所有模组共同支持的最高版本，
并以“全部成功或完全不改”的方式完成校验、备份和替换。
"""

__version__ = "0.3.0"
