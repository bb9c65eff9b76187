import argparse
import os
import sqlite3
import sys

from wellness_tracker import constants
from wellness_tracker.db.backup import backup, list_backups
from wellness_tracker.db.cleanup_duplicates import cleanup_duplicates
from wellness_tracker.db.import_upload import UploadImporter
from wellness_tracker.db.migrate import init_db
from wellness_tracker.exceptions import WellnessError
from wellness_tracker.file_io import load_upload_file
from wellness_tracker.logging_config import configure_root_logger, get_logger
from wellness_tracker.managers import DbManager
from wellness_tracker.models import EntityKind


def run_import(db_path, kind_name, file_path, dry_run=False, verbose=False):
    """
    Import a CSV/XLSX file of records into the database.

    Args:
        db_path: SQLite database file
        kind_name: 'registration', 'attendance' or 'evaluation'
        file_path: Spreadsheet to import
        dry_run: Process every row but roll back the writes
        verbose: Log each imported row

    Returns:
        ImportResult
    """
    kind = EntityKind.from_string(kind_name)
    rows = load_upload_file(file_path)
    with DbManager(db_path) as db:
        result = UploadImporter(db, kind, verbose=verbose, dry_run=dry_run).import_rows(rows)

    print(f"Inserted: {result.inserted}")
    print(f"Skipped: {len(result.skipped)}")
    for skipped in result.skipped:
        print(f"  row {skipped.row}: {skipped.reason}")
    return result


def run_cleanup(db_path, with_backup=False, dry_run=False, logger=None):
    if with_backup and not dry_run:
        backup_path = backup(db_path, backup_label="pre_cleanup_duplicates")
        if backup_path and logger:
            logger.info(f"Backup written to {backup_path}")
    with DbManager(db_path) as db:
        result = cleanup_duplicates(db, dry_run=dry_run)

    for table, count in result.deleted.items():
        print(f"{table}: {count} duplicate(s) {'would be ' if dry_run else ''}removed")
    if not dry_run:
        print(f"Indexes created: {len(result.indexes_created)}, already present: {len(result.indexes_existing)}, "
              f"failed: {len(result.indexes_failed)}")
    return result


def main(argv=None):
    parser = argparse.ArgumentParser(description="Wellness Tracker CLI")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose (DEBUG) logging")
    parser.add_argument(
        "--db-path",
        default=os.getenv("WELLNESS_DB_PATH", constants.DB_PATH),
        help="SQLite database file (default: %(default)s)",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init-db", help="Create the schema and reconcile duplicates")

    cleanup_parser = subparsers.add_parser("cleanup-duplicates", help="Remove duplicate records and add unique indexes")
    cleanup_parser.add_argument("--backup", action="store_true", help="Back up the database first")
    cleanup_parser.add_argument("--dry-run", action="store_true", help="Report deletions without committing")

    subparsers.add_parser("list-backups", help="List database backups")

    import_parser = subparsers.add_parser("import", help="Import a CSV/XLSX file")
    import_parser.add_argument("kind", choices=[k.value for k in EntityKind], help="Record kind in the file")
    import_parser.add_argument("file", help="Path to the .csv or .xlsx file")
    import_parser.add_argument("--dry-run", action="store_true", help="Validate rows without committing")

    admin_parser = subparsers.add_parser("add-admin", help="Register an API bearer token")
    admin_parser.add_argument("--username", required=True)
    admin_parser.add_argument("--token", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")

    args = parser.parse_args(argv)
    configure_root_logger(level="DEBUG" if args.verbose else None, console_output=False)
    logger = get_logger("cli", "cli", level="DEBUG" if args.verbose else None)

    try:
        if args.command == "init-db":
            result = init_db(args.db_path)
            deleted = result.total_deleted if result else 0
            print(f"Database ready at {args.db_path} ({deleted} duplicate(s) removed)")
        elif args.command == "cleanup-duplicates":
            run_cleanup(args.db_path, with_backup=args.backup, dry_run=args.dry_run, logger=logger)
        elif args.command == "list-backups":
            backups = list_backups()
            if not backups:
                print("No backups found.")
            for path in backups:
                print(f"- {path.name} ({path.stat().st_size / (1024 * 1024):.1f}MB)")
        elif args.command == "import":
            run_import(args.db_path, args.kind, args.file, dry_run=args.dry_run, verbose=args.verbose)
        elif args.command == "add-admin":
            with DbManager(args.db_path) as db:
                admin_id = db.create_admin(args.username, args.token)
            print(f"Admin {args.username} added (id {admin_id})")
        elif args.command == "serve":
            import uvicorn
            from wellness_tracker.webapp import api as apimod
            os.environ["WELLNESS_DB_PATH"] = args.db_path
            apimod.DB_PATH = args.db_path
            uvicorn.run("wellness_tracker.webapp.main:app", host=args.host, port=args.port, reload=args.reload)
        else:
            parser.print_help()
            return 1
    except (WellnessError, sqlite3.Error, OSError) as e:
        message = e.details if isinstance(e, WellnessError) else str(e)
        logger.error(f"{args.command} failed: {message}")
        print(f"Error: {message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
