"""备份管理测试"""

import os

import pytest

from modkeeper.exceptions import BackupError, RevertError
from modkeeper.updater import Backup, BackupManager
from modkeeper.updater import backup as backup_module


@pytest.fixture
def manager(tmp_path):
    return BackupManager(str(tmp_path / "backups"), max_backups=2)


def fill(mods_dir, *names):
    for name in names:
        (mods_dir / name).write_text(name)


class TestCreate:
    def test_copies_whole_directory(self, manager, mods_dir):
        fill(mods_dir, "a-1.jar", "notes.txt")
        (mods_dir / "sub").mkdir()
        (mods_dir / "sub" / "inner.cfg").write_text("x")

        backup = manager.create(str(mods_dir))

        assert backup.name.startswith("backup_")
        assert backup.created_at is not None
        assert backup.files == ["a-1.jar", "notes.txt", "sub"]
        assert os.path.isfile(os.path.join(backup.path, "sub", "inner.cfg"))

    def test_same_second_gets_suffix(self, manager, mods_dir, monkeypatch):
        monkeypatch.setattr(backup_module, "timestamp", lambda: "20240101120000")
        first = manager.create(str(mods_dir))
        second = manager.create(str(mods_dir))
        assert first.name == "backup_20240101120000"
        assert second.name == "backup_20240101120000_01"

    def test_missing_mods_dir_gives_empty_backup(self, manager, tmp_path):
        backup = manager.create(str(tmp_path / "nope"))
        assert os.path.isdir(backup.path)
        assert backup.files == []

    def test_mods_path_is_a_file(self, manager, tmp_path):
        (tmp_path / "mods").write_text("not a directory")
        with pytest.raises(BackupError):
            manager.create(str(tmp_path / "mods"))

    def test_no_partial_left_on_failure(self, manager, mods_dir, monkeypatch):
        def broken_copytree(src, dst):
            os.makedirs(dst)
            raise OSError("disk full")

        monkeypatch.setattr(backup_module.shutil, "copytree", broken_copytree)
        with pytest.raises(BackupError):
            manager.create(str(mods_dir))
        assert os.listdir(manager.backup_dir) == []


class TestRetention:
    def test_list_sorted_oldest_first(self, manager, tmp_path):
        for name in ("backup_20240103000000", "backup_20240101000000", "unrelated"):
            os.makedirs(tmp_path / "backups" / name)
        assert [b.name for b in manager.list_backups()] == ["backup_20240101000000", "backup_20240103000000"]

    def test_prune_keeps_newest(self, manager, tmp_path):
        for day in ("01", "02", "03"):
            os.makedirs(tmp_path / "backups" / f"backup_202401{day}000000")
        removed = manager.prune()
        assert [b.name for b in removed] == ["backup_20240101000000"]
        assert [b.name for b in manager.list_backups()] == [
            "backup_20240102000000",
            "backup_20240103000000",
        ]

    def test_prune_disabled(self, manager, tmp_path):
        os.makedirs(tmp_path / "backups" / "backup_20240101000000")
        assert manager.prune(keep=0) == []
        assert len(manager.list_backups()) == 1

    def test_get(self, manager, mods_dir):
        backup = manager.create(str(mods_dir))
        assert manager.get(backup.name) == backup
        assert manager.get("backup_19990101000000") is None


class TestRestore:
    def test_restores_exact_contents(self, manager, mods_dir):
        fill(mods_dir, "a-1.jar", "b-1.jar")
        backup = manager.create(str(mods_dir))

        (mods_dir / "a-1.jar").unlink()
        fill(mods_dir, "a-2.jar")

        manager.restore(backup, str(mods_dir))
        assert sorted(os.listdir(mods_dir)) == ["a-1.jar", "b-1.jar"]
        assert os.path.isdir(backup.path)
        assert not [n for n in os.listdir(mods_dir.parent) if n.startswith(".mods.")]

    def test_missing_backup(self, manager, mods_dir, tmp_path):
        with pytest.raises(RevertError):
            manager.restore(Backup("backup_x", str(tmp_path / "gone")), str(mods_dir))
