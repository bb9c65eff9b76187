"""
Duplicate reconciliation for registrations, attendance and evaluations.

Older databases were filled before uniqueness was enforced, so the same
attendee can appear several times for one event. This routine repairs that
data and then installs unique indexes so it cannot happen again.

Per table, inside one write transaction:
    1. Numbered duplicates: rows sharing (employee_no, event_id) are reduced
       to the row with the lowest id.
    2. Walk-in duplicates: rows without an employee number sharing
       (name key, event_id) are reduced to the row with the lowest id.
    3. Legacy "no number" markers are rewritten as NULL.

The legacy markers (blank or "NA") are only honoured on the first run,
recorded in PRAGMA user_version. After that "NA" is a real employee number,
the same as the record service treats it.

Then, per table, two partial unique indexes are created. An index that
already exists counts as installed; any other failure is logged as a
warning and the remaining indexes are still attempted.

The lowest id always wins: it is the oldest insertion and the one that
existing references point at. Running the routine again deletes nothing.

Usage:
    wellness-tracker cleanup-duplicates --backup
    wellness-tracker cleanup-duplicates --dry-run
"""

import sqlite3
from dataclasses import dataclass, field

from wellness_tracker import constants
from wellness_tracker.logging_config import get_logger
from wellness_tracker.managers import DbManager

RECONCILED_TABLES = ("registrations", "attendance", "evaluations")

# SQL fragments: row carries a real employee number
_HAS_NUMBER = "employee_no IS NOT NULL"
_LEGACY_HAS_NUMBER = (
    "employee_no IS NOT NULL AND TRIM(employee_no) != '' AND employee_no != '{sentinel}'"
).format(sentinel=constants.LEGACY_NO_NUMBER)


def unique_indexes(table: str) -> list[tuple[str, str]]:
    """(index name, CREATE statement) pairs that enforce one record per attendee per event."""
    return [
        (
            f"ux_{table}_employee_event",
            f"CREATE UNIQUE INDEX ux_{table}_employee_event "
            f"ON {table} (employee_no, event_id) WHERE employee_no IS NOT NULL",
        ),
        (
            f"ux_{table}_walk_in_event",
            f"CREATE UNIQUE INDEX ux_{table}_walk_in_event "
            f"ON {table} (name_key(employee_name), event_id) WHERE employee_no IS NULL",
        ),
    ]


@dataclass
class CleanupResult:
    deleted: dict[str, int] = field(default_factory=dict)
    normalized: dict[str, int] = field(default_factory=dict)
    indexes_created: list[str] = field(default_factory=list)
    indexes_existing: list[str] = field(default_factory=list)
    indexes_failed: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())

    def to_dict(self) -> dict:
        return {
            "deleted": dict(self.deleted),
            "total_deleted": self.total_deleted,
            "normalized": dict(self.normalized),
            "indexes_created": list(self.indexes_created),
            "indexes_existing": list(self.indexes_existing),
            "indexes_failed": list(self.indexes_failed),
            "dry_run": self.dry_run,
        }


def _delete_number_duplicates(conn: sqlite3.Connection, table: str, has_number: str) -> int:
    cur = conn.execute(
        f"""
        DELETE FROM {table}
        WHERE {has_number}
          AND id NOT IN (
              SELECT MIN(id) FROM {table}
              WHERE {has_number}
              GROUP BY employee_no, event_id
          )
        """
    )
    return cur.rowcount


def _delete_walk_in_duplicates(conn: sqlite3.Connection, table: str, has_number: str) -> int:
    cur = conn.execute(
        f"""
        DELETE FROM {table}
        WHERE NOT ({has_number})
          AND employee_name IS NOT NULL
          AND id NOT IN (
              SELECT MIN(id) FROM {table}
              WHERE NOT ({has_number}) AND employee_name IS NOT NULL
              GROUP BY name_key(employee_name), event_id
          )
        """
    )
    return cur.rowcount


def _clear_legacy_numbers(conn: sqlite3.Connection, table: str) -> int:
    cur = conn.execute(
        f"UPDATE {table} SET employee_no = NULL WHERE employee_no IS NOT NULL AND NOT ({_LEGACY_HAS_NUMBER})"
    )
    return cur.rowcount


def _legacy_markers_pending(conn: sqlite3.Connection) -> bool:
    return conn.execute("PRAGMA user_version").fetchone()[0] < constants.LEGACY_NUMBERS_CLEARED_VERSION


def install_unique_indexes(conn: sqlite3.Connection, result: CleanupResult, logger) -> None:
    for table in RECONCILED_TABLES:
        for name, statement in unique_indexes(table):
            try:
                conn.execute(statement)
                conn.commit()
                result.indexes_created.append(name)
                logger.info("Created unique index %s", name)
            except sqlite3.OperationalError as e:
                conn.rollback()
                if "already exists" in str(e):
                    result.indexes_existing.append(name)
                    logger.debug("Unique index %s already exists", name)
                else:
                    result.indexes_failed.append(name)
                    logger.warning("Could not create unique index %s: %s", name, e)
            except sqlite3.Error as e:
                conn.rollback()
                result.indexes_failed.append(name)
                logger.warning("Could not create unique index %s: %s", name, e)


def cleanup_duplicates(db: DbManager, dry_run: bool = False, logger=None) -> CleanupResult:
    """
    Remove duplicate records and install the unique indexes.

    Args:
        db: Open database manager
        dry_run: Report what would be deleted, then roll back and skip index creation
        logger: Logger to use (defaults to the 'migrations' log)

    Returns:
        CleanupResult with per-table deletion counts and index outcomes
    """
    logger = logger or get_logger('cleanup_duplicates', 'migrations')
    result = CleanupResult(dry_run=dry_run)

    with db.transaction(dry_run=dry_run):
        legacy = _legacy_markers_pending(db.conn)
        has_number = _LEGACY_HAS_NUMBER if legacy else _HAS_NUMBER
        for table in RECONCILED_TABLES:
            numbered = _delete_number_duplicates(db.conn, table, has_number)
            walk_ins = _delete_walk_in_duplicates(db.conn, table, has_number)
            result.deleted[table] = numbered + walk_ins
            result.normalized[table] = _clear_legacy_numbers(db.conn, table) if legacy else 0
            if numbered or walk_ins:
                logger.info(
                    "%s: removed %d duplicate numbered row(s) and %d duplicate walk-in row(s)",
                    table, numbered, walk_ins,
                )
            if result.normalized[table]:
                logger.info("%s: cleared %d legacy employee number marker(s)", table, result.normalized[table])
        if legacy:
            db.conn.execute(f"PRAGMA user_version = {constants.LEGACY_NUMBERS_CLEARED_VERSION}")

    if dry_run:
        logger.info("Dry run: %d duplicate row(s) would be removed", result.total_deleted)
        return result

    install_unique_indexes(db.conn, result, logger)
    logger.info(
        "Duplicate cleanup finished: %d row(s) removed, %d index(es) created, %d already present, %d failed",
        result.total_deleted,
        len(result.indexes_created),
        len(result.indexes_existing),
        len(result.indexes_failed),
    )
    return result

