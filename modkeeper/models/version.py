"""
Minecraft 版本模型

版本按点分数字逐段比较，前缀排在其扩展之前（"1.21" < "1.21.1"）。
相等性只看原始字符串，数字段相同但写法不同的版本（如 "1.21" 与 "1.21-pre1"）
既不相等也不互相小于。
"""

import re
from typing import Optional, Tuple, Union

RELEASE_PATTERN = re.compile(r"\d+\.\d+(\.\d+)?")
UNSTABLE_MARKERS = ("experimental", "snapshot", "pre", "rc")
_LEADING_DIGITS = re.compile(r"^\d+")


def _numeric_parts(value: str) -> Tuple[int, ...]:
    parts = []
    for segment in value.split("."):
        match = _LEADING_DIGITS.match(segment.strip())
        parts.append(int(match.group()) if match else 0)
    return tuple(parts)


class MinecraftVersion:
    """不可变的 Minecraft 版本值"""

    __slots__ = ("_value", "_key")

    def __init__(self, value: Optional[str]):
        self._value = "" if value is None else str(value)
        self._key = _numeric_parts(self._value)

    @classmethod
    def parse(cls, raw: Union[str, "MinecraftVersion", None]) -> "MinecraftVersion":
        if isinstance(raw, cls):
            return raw
        return cls(raw)

    @property
    def value(self) -> str:
        return self._value

    @property
    def sort_key(self) -> Tuple[int, ...]:
        return self._key

    @property
    def is_release(self) -> bool:
        return is_release(self._value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MinecraftVersion):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __lt__(self, other: "MinecraftVersion") -> bool:
        if not isinstance(other, MinecraftVersion):
            return NotImplemented
        return self._key < other._key

    def __le__(self, other: "MinecraftVersion") -> bool:
        if not isinstance(other, MinecraftVersion):
            return NotImplemented
        return self._key < other._key or self == other

    def __gt__(self, other: "MinecraftVersion") -> bool:
        if not isinstance(other, MinecraftVersion):
            return NotImplemented
        return self._key > other._key

    def __ge__(self, other: "MinecraftVersion") -> bool:
        if not isinstance(other, MinecraftVersion):
            return NotImplemented
        return self._key > other._key or self == other

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"MinecraftVersion({self._value!r})"


def parse_version(raw: Union[str, MinecraftVersion, None]) -> MinecraftVersion:
    return MinecraftVersion.parse(raw)


def compare_versions(
    a: Union[str, MinecraftVersion], b: Union[str, MinecraftVersion]
) -> int:
    """返回 -1 / 0 / 1；数字段相同但字符串不同的版本视为 0"""
    left, right = MinecraftVersion.parse(a), MinecraftVersion.parse(b)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def is_release(version: Union[str, MinecraftVersion, None]) -> bool:
    """
    判断是否为正式版

    正式版形如 major.minor 或 major.minor.patch，且不包含快照、预发布等标记。
    """
    if version is None:
        return False
    value = version.value if isinstance(version, MinecraftVersion) else str(version)
    if not value:
        return False
    if not RELEASE_PATTERN.fullmatch(value):
        return False
    return not any(marker in value for marker in UNSTABLE_MARKERS)


def latest(versions) -> Optional[MinecraftVersion]:
    """已排序列表的最后一个元素，空列表返回 None"""
    versions = list(versions)
    return versions[-1] if versions else None
