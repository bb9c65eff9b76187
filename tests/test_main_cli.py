"""
Tests for the command-line entry point (wellness_tracker.main).

Covers:
- init-db / cleanup-duplicates / list-backups / import / add-admin routing
- --db-path handling and exit codes
- Error reporting ("Error: ..." on stderr, exit status 1)
"""

from unittest.mock import patch

import pytest

from wellness_tracker import constants
from wellness_tracker.main import main, run_cleanup, run_import
from wellness_tracker.managers import DbManager
from wellness_tracker.models import EntityKind
from wellness_tracker.webapp import api as apimod
from tests.fixtures.data_specs import UploadRowSpec


@pytest.fixture
def cli_db(tmp_path):
    path = tmp_path / "cli" / "wellness.db"
    assert main(["--db-path", str(path), "init-db"]) == 0
    with DbManager(str(path)) as db:
        db.create_event({"event_type": "Seminar", "event_name": "Yoga Basics", "event_date": "2025-03-01"})
    return str(path)


@pytest.mark.integration
class TestInitDb:
    def test_creates_database(self, tmp_path, capsys):
        path = tmp_path / "new" / "wellness.db"
        assert main(["--db-path", str(path), "init-db"]) == 0
        assert path.exists()
        assert "Database ready" in capsys.readouterr().out


@pytest.mark.integration
class TestImport:
    def test_import_prints_summary_and_skips(self, cli_db, upload_csv_builder, capsys):
        path = upload_csv_builder(EntityKind.REGISTRATION, [
            UploadRowSpec(employee_no="E001", event_name="Yoga Basics"),
            UploadRowSpec(employee_no="E001", event_name="Yoga Basics"),
            UploadRowSpec(employee_no="E002", event_name="Pilates"),
        ])

        assert main(["--db-path", cli_db, "import", "registration", str(path)]) == 0

        out = capsys.readouterr().out
        assert "Inserted: 1" in out
        assert "Skipped: 2" in out
        assert "row 2: Duplicate in this file" in out
        assert 'row 3: Event "Pilates" not found' in out

    def test_dry_run_writes_nothing(self, cli_db, upload_csv_builder):
        path = upload_csv_builder(EntityKind.REGISTRATION, [UploadRowSpec(employee_no="E001", event_name="Yoga Basics")])
        result = run_import(cli_db, "registration", str(path), dry_run=True)
        assert result.inserted == 1
        with DbManager(cli_db) as db:
            assert db.list_records(EntityKind.REGISTRATION)[1] == 0

    def test_unsupported_file_is_an_error(self, cli_db, tmp_path, capsys):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        assert main(["--db-path", cli_db, "import", "attendance", str(path)]) == 1
        assert "Error: Unsupported file type" in capsys.readouterr().err

    def test_missing_file_is_an_error(self, cli_db, tmp_path, capsys):
        assert main(["--db-path", cli_db, "import", "attendance", str(tmp_path / "missing.csv")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_unreadable_file_is_an_error(self, cli_db, tmp_path, capsys):
        path = tmp_path / "attendance.xlsx"
        path.write_bytes(b"not really a workbook")
        assert main(["--db-path", cli_db, "import", "attendance", str(path)]) == 1
        assert "Error: Could not read" in capsys.readouterr().err

    def test_unknown_kind_is_rejected_by_argparse(self, cli_db):
        with pytest.raises(SystemExit):
            main(["--db-path", cli_db, "import", "feedback", "file.csv"])


@pytest.mark.integration
class TestCleanup:
    def test_cleanup_reports_counts(self, legacy_db_path, event_factory, record_factory, capsys):
        with DbManager(legacy_db_path) as db:
            event = event_factory(db)
            for _ in range(3):
                record_factory(db, EntityKind.ATTENDANCE, event["id"], employee_no="E001")

        assert main(["--db-path", legacy_db_path, "cleanup-duplicates"]) == 0

        out = capsys.readouterr().out
        assert "attendance: 2 duplicate(s) removed" in out
        assert "Indexes created: 6" in out

    def test_dry_run_message(self, cli_db, capsys):
        assert main(["--db-path", cli_db, "cleanup-duplicates", "--dry-run"]) == 0
        out = capsys.readouterr().out
        assert "would be removed" in out
        assert "Indexes created" not in out

    def test_backup_before_cleanup(self, cli_db, tmp_path, monkeypatch):
        backup_dir = tmp_path / "backups"
        monkeypatch.setattr(constants, "BACKUP_DIR", str(backup_dir))
        run_cleanup(cli_db, with_backup=True)
        backups = list(backup_dir.glob("*_pre_cleanup_duplicates.db"))
        assert len(backups) == 1

    def test_no_backup_on_dry_run(self, cli_db, tmp_path, monkeypatch):
        backup_dir = tmp_path / "backups"
        monkeypatch.setattr(constants, "BACKUP_DIR", str(backup_dir))
        run_cleanup(cli_db, with_backup=True, dry_run=True)
        assert not backup_dir.exists()

    def test_list_backups(self, cli_db, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(constants, "BACKUP_DIR", str(tmp_path / "backups"))
        assert main(["--db-path", cli_db, "list-backups"]) == 0
        assert "No backups found." in capsys.readouterr().out

        run_cleanup(cli_db, with_backup=True)
        capsys.readouterr()
        assert main(["--db-path", cli_db, "list-backups"]) == 0
        assert "_pre_cleanup_duplicates.db" in capsys.readouterr().out


@pytest.mark.integration
class TestAdminsAndRouting:
    def test_add_admin(self, cli_db, capsys):
        assert main(["--db-path", cli_db, "add-admin", "--username", "ops", "--token", "t0k"]) == 0
        assert "Admin ops added" in capsys.readouterr().out
        with DbManager(cli_db) as db:
            assert db.get_admin_by_token("t0k")["username"] == "ops"

    def test_duplicate_admin_is_an_error(self, cli_db, capsys):
        main(["--db-path", cli_db, "add-admin", "--username", "ops", "--token", "t0k"])
        assert main(["--db-path", cli_db, "add-admin", "--username", "ops", "--token", "other"]) == 1
        assert "Error: UNIQUE constraint failed" in capsys.readouterr().err

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_serve_points_the_api_at_the_database(self, cli_db, monkeypatch):
        monkeypatch.setattr(apimod, "DB_PATH", apimod.DB_PATH)
        monkeypatch.setenv("WELLNESS_DB_PATH", "unused.db")
        with patch("uvicorn.run") as run:
            assert main(["--db-path", cli_db, "serve", "--port", "8123"]) == 0

        run.assert_called_once_with("wellness_tracker.webapp.main:app", host="127.0.0.1", port=8123, reload=False)
        assert apimod.DB_PATH == cli_db
