"""
模组注册表

加载模组声明，将其与模组目录中的 JAR 匹配，提取内嵌元数据，并提供依赖图查询。
一次运行内声明列表不可变，因此依赖查询结果按 project_id 缓存。
"""

import glob
import json
import os
import re
import zipfile
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from loguru import logger

from modkeeper.exceptions import DeclarationError
from modkeeper.models import (
    InstalledMod,
    ModAmbiguous,
    ModDeclaration,
    ModFound,
    ModMetadata,
    ModMissing,
    ModType,
    MatchResult,
    ScanReport,
    ServerConfig,
    UNKNOWN_METADATA,
)

REQUIRED_FIELDS = ("project_id", "name", "type", "filename_pattern")
METADATA_ENTRY = "fabric.mod.json"
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def _validate_record(record: Any, index: int) -> None:
    if not isinstance(record, dict):
        raise DeclarationError(
            f"第 {index + 1} 个模组声明不是映射", context={"index": index}
        )

    missing = [name for name in REQUIRED_FIELDS if not record.get(name)]
    if missing:
        raise DeclarationError(
            f"模组声明缺少必填字段: {', '.join(missing)}",
            context={"index": index, "missing": missing},
        )

    valid_types = [t.value for t in ModType]
    if record["type"] not in valid_types:
        raise DeclarationError(
            f"模组 '{record['name']}' 的类型 '{record['type']}' 无效，"
            f"必须为 {' 或 '.join(valid_types)}",
            context={"index": index, "type": record["type"]},
        )

    if not isinstance(record["filename_pattern"], str):
        raise DeclarationError(
            f"模组 '{record['name']}' 的 filename_pattern 必须是字符串",
            context={"index": index, "pattern": record["filename_pattern"]},
        )
    try:
        re.compile(record["filename_pattern"], re.IGNORECASE)
    except re.error as e:
        raise DeclarationError(
            f"模组 '{record['name']}' 的 filename_pattern 不是合法的正则: {e}",
            context={"index": index, "pattern": record["filename_pattern"]},
        ) from e

    depends_on = record.get("depends_on") or []
    if not isinstance(depends_on, list) or not all(
        isinstance(dep, str) for dep in depends_on
    ):
        raise DeclarationError(
            f"模组 '{record['name']}' 的 depends_on 必须是 project_id 列表",
            context={"index": index},
        )


def load_declarations(source: Any) -> List[ModDeclaration]:
    """
    校验并构建模组声明列表

    Args:
        source: 模组声明记录列表

    Returns:
        按原顺序排列的 ModDeclaration 列表

    Raises:
        DeclarationError: 结构错误、缺少必填字段、类型无效或 project_id 重复
    """
    if not isinstance(source, list):
        raise DeclarationError("模组声明必须是记录列表")

    declarations: List[ModDeclaration] = []
    seen: Dict[str, str] = {}
    for index, record in enumerate(source):
        _validate_record(record, index)
        project_id = str(record["project_id"])
        if project_id in seen:
            raise DeclarationError(
                f"project_id '{project_id}' 被 '{seen[project_id]}' 和 "
                f"'{record['name']}' 重复声明",
                context={"project_id": project_id},
            )
        seen[project_id] = record["name"]

        declarations.append(
            ModDeclaration(
                project_id=project_id,
                name=str(record["name"]),
                type=ModType(record["type"]),
                filename_pattern=record["filename_pattern"],
                depends_on=tuple(dict.fromkeys(record.get("depends_on") or [])),
                is_platform=bool(record.get("is_platform", False)),
                optional=bool(record.get("optional", False)),
            )
        )
    return declarations


def extract_metadata(filepath: str) -> ModMetadata:
    """
    从 JAR 的 fabric.mod.json 中提取模组版本和 Minecraft 版本约束

    任何失败（条目缺失、解析错误、压缩包损坏）都返回 UNKNOWN_METADATA，不向外抛出。
    """
    try:
        with zipfile.ZipFile(filepath) as archive:
            if METADATA_ENTRY not in archive.namelist():
                return UNKNOWN_METADATA
            raw = archive.read(METADATA_ENTRY).decode("utf-8", errors="replace")

        data = json.loads(_CONTROL_CHARS.sub("", raw))
        if not isinstance(data, dict):
            return UNKNOWN_METADATA

        version = data.get("version")
        depends = data.get("depends")
        minecraft = depends.get("minecraft") if isinstance(depends, dict) else None
        if isinstance(minecraft, list):
            minecraft = " || ".join(str(item) for item in minecraft)

        return ModMetadata(
            version=str(version) if version is not None else None,
            minecraft_version=str(minecraft) if minecraft is not None else None,
        )
    except Exception as e:
        logger.debug(f"[元数据] 无法读取 {os.path.basename(filepath)}: {e}")
        return UNKNOWN_METADATA


def match_installed(
    declaration: ModDeclaration, candidate_filenames: Iterable[str]
) -> MatchResult:
    """
    用声明的文件名模式（忽略大小写）匹配候选文件的文件名部分

    Returns:
        ModFound / ModMissing / ModAmbiguous 三者之一
    """
    pattern = re.compile(declaration.filename_pattern, re.IGNORECASE)
    matches = [
        path for path in candidate_filenames if pattern.search(os.path.basename(path))
    ]

    if not matches:
        return ModMissing(declaration)
    if len(matches) > 1:
        return ModAmbiguous(
            declaration, tuple(sorted(os.path.basename(path) for path in matches))
        )

    filepath = matches[0]
    metadata = extract_metadata(filepath)
    return ModFound(
        InstalledMod(
            declaration=declaration,
            filename=os.path.basename(filepath),
            filepath=filepath,
            version=metadata.version,
            minecraft_version=metadata.minecraft_version,
        )
    )


class ModRegistry:
    """一次运行内的模组声明与安装状态"""

    def __init__(self, declarations: List[ModDeclaration], mods_dir: str):
        self.declarations = list(declarations)
        self.mods_dir = mods_dir
        self._by_id: Dict[str, ModDeclaration] = {
            decl.project_id: decl for decl in self.declarations
        }
        self._dependents_cache: Dict[str, List[ModDeclaration]] = {}
        self._jar_files: Optional[List[str]] = None

    @classmethod
    def from_config(cls, config: ServerConfig) -> "ModRegistry":
        return cls(load_declarations(config.mods), config.mods_dir)

    def get(self, project_id: str) -> Optional[ModDeclaration]:
        return self._by_id.get(project_id)

    def find(self, name_fragment: str) -> Optional[ModDeclaration]:
        """按名称片段（忽略大小写）查找声明，也接受精确的 project_id"""
        if name_fragment in self._by_id:
            return self._by_id[name_fragment]
        needle = name_fragment.lower()
        for decl in self.declarations:
            if needle in decl.name.lower():
                return decl
        return None

    @property
    def jar_files(self) -> List[str]:
        if self._jar_files is None:
            self._jar_files = sorted(glob.glob(os.path.join(self.mods_dir, "*.jar")))
        return self._jar_files

    def match(self, declaration: ModDeclaration) -> MatchResult:
        return match_installed(declaration, self.jar_files)

    def scan(self) -> ScanReport:
        """匹配所有声明，并列出未被任何声明认领的 JAR"""
        report = ScanReport()
        undeclared = list(self.jar_files)

        for decl in self.declarations:
            result = self.match(decl)
            if isinstance(result, ModFound):
                report.installed.append(result.installed)
                if result.installed.filepath in undeclared:
                    undeclared.remove(result.installed.filepath)
                logger.debug(
                    f"[扫描] {decl.name} [{decl.type.label}] - "
                    f"v{result.installed.display_version}"
                )
            elif isinstance(result, ModMissing):
                report.missing.append(decl)
                logger.warning(f"[扫描] {result.to_error().message}")
            else:
                report.ambiguous.append(result)
                logger.warning(f"[扫描] {result.to_error().message}")

        report.undeclared = [os.path.basename(path) for path in undeclared]
        return report

    def _declared_dependents(self, project_id: str) -> List[ModDeclaration]:
        if project_id not in self._dependents_cache:
            self._dependents_cache[project_id] = [
                decl for decl in self.declarations if project_id in decl.depends_on
            ]
        return self._dependents_cache[project_id]

    def dependents_of(
        self, mod: Union[ModDeclaration, InstalledMod]
    ) -> List[ModDeclaration]:
        """
        依赖该模组的声明列表

        只对平台模组有意义，非平台模组按约定返回空列表。
        """
        declaration = mod.declaration if isinstance(mod, InstalledMod) else mod
        if not isinstance(declaration, ModDeclaration):
            raise TypeError(
                f"需要 InstalledMod 或 ModDeclaration，实际为 {type(mod).__name__}"
            )
        if not declaration.is_platform:
            return []
        return list(self._declared_dependents(declaration.project_id))

    def declared_dependents(self, project_id: str) -> List[ModDeclaration]:
        """不区分平台模组的原始依赖图查询"""
        return list(self._declared_dependents(project_id))

    def dangling_dependencies(self) -> List[Tuple[ModDeclaration, str]]:
        """depends_on 中引用了未声明 project_id 的条目"""
        return [
            (decl, dep_id)
            for decl in self.declarations
            for dep_id in decl.depends_on
            if dep_id not in self._by_id
        ]
