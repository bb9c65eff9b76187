"""Database bootstrap: apply the schema, then reconcile duplicates."""

import sqlite3
from pathlib import Path
from typing import Optional

from wellness_tracker import constants
from wellness_tracker.db.cleanup_duplicates import CleanupResult, cleanup_duplicates
from wellness_tracker.logging_config import get_logger
from wellness_tracker.managers import DbManager


def apply_schema(db: DbManager, schema_path: Path = constants.SCHEMA_PATH) -> None:
    db.apply_schema(Path(schema_path).read_text(encoding="utf-8"))


def init_db(db_path: str, run_cleanup: bool = True) -> Optional[CleanupResult]:
    """
    Create the database (and its directory) if needed, apply the schema and
    run duplicate reconciliation.

    Reconciliation is a best-effort repair: if it fails with a storage error
    the failure is logged and None is returned, so startup can continue.
    Schema errors propagate.
    """
    logger = get_logger('migrate', 'migrations')
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    with DbManager(db_path) as db:
        apply_schema(db)
        logger.info("Schema applied to %s", db_path)
        if not run_cleanup:
            return None
        try:
            return cleanup_duplicates(db)
        except sqlite3.Error as e:
            logger.warning("Duplicate cleanup failed, continuing without it: %s", e)
            return None
