"""
模组目录备份

每次更新前把整个模组目录原样复制到以时间戳命名的新目录。备份创建后不再修改，
只会被保留策略整体删除。
"""

import os
import shutil
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from loguru import logger

from modkeeper.exceptions import BackupError, RevertError
from modkeeper.utils import remove_path, sibling_path, swap_directory, timestamp

BACKUP_PREFIX = "backup_"


@dataclass(frozen=True)
class Backup:
    name: str
    path: str

    @property
    def created_at(self) -> Optional[datetime]:
        stamp = self.name[len(BACKUP_PREFIX):][:14]
        try:
            return datetime.strptime(stamp, "%Y%m%d%H%M%S")
        except ValueError:
            return None

    @property
    def files(self) -> List[str]:
        return sorted(os.listdir(self.path))


class BackupManager:
    """备份管理器"""

    def __init__(self, backup_dir: str, max_backups: int = 10):
        self.backup_dir = backup_dir
        self.max_backups = max_backups

    def _next_name(self) -> str:
        base = f"{BACKUP_PREFIX}{timestamp()}"
        name, counter = base, 1
        while os.path.exists(os.path.join(self.backup_dir, name)):
            name = f"{base}_{counter:02d}"
            counter += 1
        return name

    def create(self, mods_dir: str) -> Backup:
        """
        复制整个模组目录

        先复制到临时名称，完整复制后再改名，不会留下看起来完整的半成品备份。
        模组目录还不存在时（新服务器）记录一个空备份，回滚后同样没有任何模组。
        """
        if os.path.exists(mods_dir) and not os.path.isdir(mods_dir):
            raise BackupError(
                f"模组路径不是目录: {mods_dir}", context={"mods_dir": mods_dir}
            )

        os.makedirs(self.backup_dir, exist_ok=True)
        name = self._next_name()
        final_path = os.path.join(self.backup_dir, name)
        partial_path = os.path.join(self.backup_dir, f".{name}.partial")

        try:
            if os.path.isdir(mods_dir):
                shutil.copytree(mods_dir, partial_path)
            else:
                logger.info(f"[备份] 模组目录 {mods_dir} 不存在，记录空备份")
                os.makedirs(partial_path)
            os.rename(partial_path, final_path)
        except OSError as e:
            if os.path.exists(partial_path):
                shutil.rmtree(partial_path, ignore_errors=True)
            raise BackupError(
                f"备份模组目录失败: {e}",
                context={"mods_dir": mods_dir, "backup": final_path},
            ) from e

        logger.info(f"[备份] 模组已备份到 {final_path}")
        return Backup(name=name, path=final_path)

    def list_backups(self) -> List[Backup]:
        """按时间升序列出备份"""
        if not os.path.isdir(self.backup_dir):
            return []
        return [
            Backup(name=name, path=os.path.join(self.backup_dir, name))
            for name in sorted(os.listdir(self.backup_dir))
            if name.startswith(BACKUP_PREFIX)
            and os.path.isdir(os.path.join(self.backup_dir, name))
        ]

    def get(self, name: str) -> Optional[Backup]:
        for backup in self.list_backups():
            if backup.name == name:
                return backup
        return None

    def prune(self, keep: Optional[int] = None) -> List[Backup]:
        """只保留最近的 keep 个备份，返回被删除的备份"""
        keep = self.max_backups if keep is None else keep
        if keep <= 0:
            return []

        backups = self.list_backups()
        if len(backups) <= keep:
            return []

        removed = []
        for backup in backups[:-keep]:
            try:
                shutil.rmtree(backup.path)
                removed.append(backup)
                logger.info(f"[清理] 删除旧备份: {backup.name}")
            except OSError as e:
                logger.warning(f"[清理] 无法删除 {backup.name}: {e}")
        return removed

    def restore(self, backup: Backup, mods_dir: str) -> None:
        """用备份内容整体替换模组目录"""
        if not os.path.isdir(backup.path):
            raise RevertError(f"备份不存在: {backup.path}")

        staging = sibling_path(mods_dir, f"restore-{timestamp()}")
        try:
            if os.path.exists(staging):
                remove_path(staging)
            shutil.copytree(backup.path, staging)
            swap_directory(mods_dir, staging)
        except OSError as e:
            if os.path.exists(staging):
                shutil.rmtree(staging, ignore_errors=True)
            raise RevertError(
                f"从备份 {backup.name} 恢复失败: {e}",
                context={"backup": backup.path, "mods_dir": mods_dir},
            ) from e

        logger.success(f"[回滚] 已恢复备份 {backup.name}")
