"""
Bulk import of registration, attendance and evaluation spreadsheets.

Rows are processed one at a time in file order. Each row is checked in
this order:

    1. columns present (header normalization)
    2. event exists
    3. entity fields valid (mode, ratings, helpful flag)
    4. attendee identity (employee number, or walk-in name)
    5. not already accepted earlier in this file
    6. not already stored
    7. (attendance) registration status computed
    8. written and committed

A failing row is skipped with a reason and never stops the rest of the
file. Every accepted row is committed on its own, so an interrupted run
leaves exactly the rows before the interruption in place.

Usage:
    with DbManager(db_path) as db:
        result = UploadImporter(db, EntityKind.ATTENDANCE).import_rows(rows)
        print(result.to_response())
"""

from dataclasses import dataclass, field
from typing import Iterable

from wellness_tracker.exceptions import (
    DuplicateFound,
    EventNotFound,
    InvalidFieldValue,
    MissingColumns,
    MissingIdentity,
)
from wellness_tracker.file_io import KIND_COLUMNS, UploadRow, normalize_row, parse_upload_row
from wellness_tracker.logging_config import get_logger
from wellness_tracker.managers import DbManager
from wellness_tracker.models import EntityKind, Identity
from wellness_tracker.services import PreparedRecord, RecordService

WALK_IN_REASON = "Employee Name required for walk-in"


class RowSkipped(Exception):
    """Internal signal: the current row is rejected with ``reason``."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass
class SkippedRow:
    row: int
    values: dict
    reason: str

    def to_dict(self) -> dict:
        return {"row": self.row, **self.values, "reason": self.reason}


@dataclass
class ImportResult:
    kind: EntityKind
    inserted: int = 0
    skipped: list[SkippedRow] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total(self) -> int:
        return self.inserted + len(self.skipped)

    def to_response(self) -> dict:
        """Upload response body: skip fields only appear when rows were skipped."""
        response = {"inserted": self.inserted}
        if self.skipped:
            response["skipped"] = len(self.skipped)
            response["skip_details"] = [s.to_dict() for s in self.skipped]
        return response


class UploadImporter:
    """
    Imports parsed spreadsheet rows for one record kind.

    The ``seen`` set of (identity, event_id) pairs lives only for the
    duration of one import_rows() call.
    """

    def __init__(self, db: DbManager, kind: EntityKind, verbose: bool = False, dry_run: bool = False):
        self.db = db
        self.kind = kind
        self.dry_run = dry_run
        self.service = RecordService(db)
        self.logger = get_logger('upload_importer', 'import', level='DEBUG' if verbose else 'INFO')

    def import_rows(self, rows: Iterable[dict]) -> ImportResult:
        result = ImportResult(kind=self.kind, dry_run=self.dry_run)
        seen: dict[tuple[Identity, int], int] = {}

        for row_number, raw in enumerate(rows, start=1):
            try:
                self._import_row(row_number, raw, seen)
                result.inserted += 1
            except RowSkipped as skip:
                values = self._row_values(raw)
                result.skipped.append(SkippedRow(row=row_number, values=values, reason=skip.reason))
                self.logger.warning("Row %d skipped: %s", row_number, skip.reason)

        self.logger.info(
            "%s import%s: %d inserted, %d skipped (%d rows)",
            self.kind.label.capitalize(),
            " (dry run)" if self.dry_run else "",
            result.inserted,
            len(result.skipped),
            result.total,
        )
        return result

    def _import_row(self, row_number: int, raw: dict, seen: dict) -> None:
        try:
            upload_row = parse_upload_row(self.kind, raw)
        except MissingColumns as e:
            raise RowSkipped(e.details) from e

        prepared = self._prepare(upload_row)
        key = (prepared.identity, prepared.event_id)

        if key in seen:
            raise RowSkipped(
                f'Duplicate in this file: {prepared.identity.describe()} for event '
                f'"{prepared.event["event_name"]}" (same as row {seen[key]})'
            )

        try:
            record = self.service.persist(prepared)
        except DuplicateFound as e:
            raise RowSkipped(f"Already exists: {e.details}") from e

        if self.dry_run:
            self.db.rollback()
        else:
            self.db.commit()
        seen[key] = row_number
        self.logger.debug("Row %d imported as %s %s", row_number, self.kind.label, record["id"])

    def _prepare(self, upload_row: UploadRow) -> PreparedRecord:
        try:
            return self.service.prepare(self.kind, upload_row.values(), defaults=True)
        except EventNotFound as e:
            raise RowSkipped(e.details) from e
        except MissingIdentity as e:
            raise RowSkipped(WALK_IN_REASON) from e
        except InvalidFieldValue as e:
            raise RowSkipped(e.details) from e

    def _row_values(self, raw: dict) -> dict:
        normalized = normalize_row(raw)
        return {column: normalized.get(column, "") for column in KIND_COLUMNS[self.kind]}
