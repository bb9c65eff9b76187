from pathlib import Path

import pytest

from wellness_tracker.db.backup import backup, list_backups


@pytest.mark.db
class TestBackup:
    def test_copies_database(self, db_path, tmp_path):
        backup_dir = tmp_path / "backups"
        path = backup(db_path, "pre cleanup", backup_dir=backup_dir)

        assert path.parent == backup_dir
        assert path.name.endswith("_pre_cleanup.db")
        assert path.read_bytes() == Path(db_path).read_bytes()

    def test_missing_database_returns_none(self, tmp_path):
        assert backup(tmp_path / "nope.db", backup_dir=tmp_path / "backups") is None
        assert not (tmp_path / "backups").exists()

    def test_size_mismatch_raises(self, db_path, tmp_path, monkeypatch):
        def truncated_copy(src, dst):
            with open(dst, "wb") as f:
                f.write(b"short")

        monkeypatch.setattr("wellness_tracker.db.backup.shutil.copy2", truncated_copy)
        with pytest.raises(OSError, match="size mismatch"):
            backup(db_path, backup_dir=tmp_path / "backups")

    def test_list_backups(self, db_path, tmp_path):
        backup_dir = tmp_path / "backups"
        assert list_backups(backup_dir) == []
        path = backup(db_path, "first", backup_dir=backup_dir)
        (backup_dir / "notes.txt").write_text("ignored")
        assert list_backups(backup_dir) == [path]
