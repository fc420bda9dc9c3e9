"""
ModKeeper 统一异常体系

提供分层的异常结构，支持错误代码和上下文信息。
"""

from typing import Any, Dict, List, Optional
import aiohttp


class ModKeeperError(Exception):
    """ModKeeper 基础异常类"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self._get_default_code()
        self.context = context or {}

    def _get_default_code(self) -> str:
        """获取默认错误代码"""
        return "E000"

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(ModKeeperError):
    """配置相关错误"""

    def _get_default_code(self) -> str:
        return "E100"


class ConfigParseError(ConfigError):
    """配置解析错误"""

    def _get_default_code(self) -> str:
        return "E101"


class DeclarationError(ConfigError):
    """模组声明不完整或格式错误，对整次运行是致命的"""

    def _get_default_code(self) -> str:
        return "E102"


class ModDiscoveryError(ModKeeperError):
    """
    模组发现错误

    这一组异常作为扫描报告中的值使用，匹配过程本身不会抛出它们。
    """

    def _get_default_code(self) -> str:
        return "E110"


class MissingModError(ModDiscoveryError):
    """没有任何已安装的 JAR 匹配声明的文件名模式"""

    def _get_default_code(self) -> str:
        return "E111"


class AmbiguousModError(ModDiscoveryError):
    """多个 JAR 同时匹配声明的文件名模式"""

    def __init__(
        self,
        message: str,
        filenames: Optional[List[str]] = None,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code, context)
        self.filenames = list(filenames or [])
        self.context.setdefault("filenames", self.filenames)

    def _get_default_code(self) -> str:
        return "E112"


class APIError(ModKeeperError):
    """API 相关错误"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        response: Optional[aiohttp.ClientResponse] = None,
    ):
        super().__init__(message, code, context)
        self.response = response
        if response:
            self.context["status_code"] = response.status
            self.context["url"] = str(response.url)

    def _get_default_code(self) -> str:
        return "E200"


class APIAuthError(APIError):
    """API 令牌无效"""

    def _get_default_code(self) -> str:
        return "E401"


class APINotFoundError(APIError):
    """API 资源不存在"""

    def _get_default_code(self) -> str:
        return "E404"


class APITimeoutError(APIError):
    """API 请求超时（可重试的临时错误）"""

    def _get_default_code(self) -> str:
        return "E408"


class APIRateLimitError(APIError):
    """API 速率限制"""

    def _get_default_code(self) -> str:
        return "E429"


class APIServerError(APIError):
    """API 服务器错误"""

    def _get_default_code(self) -> str:
        return "E500"


class DownloadError(ModKeeperError):
    """下载相关错误"""

    def _get_default_code(self) -> str:
        return "E300"


class DownloadNetworkError(DownloadError):
    """下载网络错误"""

    def _get_default_code(self) -> str:
        return "E301"


class DownloadChecksumError(DownloadError):
    """下载校验错误"""

    def _get_default_code(self) -> str:
        return "E302"


class DownloadFileError(DownloadError):
    """下载文件操作错误"""

    def _get_default_code(self) -> str:
        return "E303"


class DownloadEmptyError(DownloadError):
    """下载内容为空"""

    def _get_default_code(self) -> str:
        return "E304"


class CompatibilityError(ModKeeperError):
    """
    兼容性计算失败

    任何一个模组的版本查询失败都会中止整次计算，failures 按 project_id 记录了所有失败的模组。
    """

    def __init__(
        self,
        message: str,
        failures: Optional[Dict[str, Exception]] = None,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code, context)
        self.failures = dict(failures or {})
        self.context.setdefault(
            "failures", {name: str(err) for name, err in self.failures.items()}
        )

    def _get_default_code(self) -> str:
        return "E600"


class UpdateError(ModKeeperError):
    """更新流程错误"""

    def _get_default_code(self) -> str:
        return "E700"


class StagingError(UpdateError):
    """至少一个模组暂存失败，未做任何修改"""

    def _get_default_code(self) -> str:
        return "E701"


class BackupError(UpdateError):
    """备份失败"""

    def _get_default_code(self) -> str:
        return "E702"


class ApplyError(UpdateError):
    """替换模组目录失败"""

    def _get_default_code(self) -> str:
        return "E703"


class RevertError(UpdateError):
    """回滚失败"""

    def _get_default_code(self) -> str:
        return "E704"


__all__ = [
    # 基础异常
    "ModKeeperError",
    # 配置异常
    "ConfigError",
    "ConfigParseError",
    "DeclarationError",
    # 模组发现
    "ModDiscoveryError",
    "MissingModError",
    "AmbiguousModError",
    # API 异常
    "APIError",
    "APIAuthError",
    "APINotFoundError",
    "APITimeoutError",
    "APIRateLimitError",
    "APIServerError",
    # 下载异常
    "DownloadError",
    "DownloadNetworkError",
    "DownloadChecksumError",
    "DownloadFileError",
    "DownloadEmptyError",
    # 兼容性
    "CompatibilityError",
    # 更新异常
    "UpdateError",
    "StagingError",
    "BackupError",
    "ApplyError",
    "RevertError",
]
