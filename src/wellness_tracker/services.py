"""Record rules shared by the API and the bulk importer.

``RecordService`` owns the decisions around a write: which event a record
belongs to, who the attendee is, whether they already have a record for the
event, and (for attendance) whether they registered beforehand. The storage
layer only runs SQL.
"""

import sqlite3
from dataclasses import dataclass, field
from typing import Optional

from wellness_tracker import constants
from wellness_tracker.exceptions import (
    DuplicateFound,
    EventNotFound,
    InvalidFieldValue,
    RecordNotFound,
)
from wellness_tracker.identity import normalize_employee_no, resolve
from wellness_tracker.logging_config import get_logger
from wellness_tracker.managers import DbManager
from wellness_tracker.models import (
    ByName,
    EntityKind,
    Identity,
    Mode,
    ValidationStatus,
    parse_helpful,
    parse_rating,
)

EVENT_FIELDS = ("event_type", "event_name", "event_date")


def is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    return "UNIQUE constraint failed" in str(exc)


def _clean_text(value) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


@dataclass
class PreparedRecord:
    """A record that passed field validation and identity resolution."""
    kind: EntityKind
    identity: Identity
    event: dict
    fields: dict = field(default_factory=dict)

    @property
    def event_id(self) -> int:
        return self.event["id"]


class RecordService:
    def __init__(self, db: DbManager):
        self.db = db
        self.logger = get_logger("record_service", "api")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def resolve_event(self, event_id: Optional[int] = None, event_name: Optional[str] = None) -> dict:
        """Look up an event by id, or by name (exact then case-insensitive)."""
        if event_id is not None:
            event = self.db.get_event(event_id)
            if event is None:
                raise EventNotFound(event_id)
            return event
        name = _clean_text(event_name)
        if not name:
            raise InvalidFieldValue("event_name", "", details="Event Name is required")
        event = self.db.find_event_by_name(name)
        if event is None:
            raise EventNotFound(name)
        return event

    def _clean_event_fields(self, payload: dict) -> dict:
        fields = {}
        for name in EVENT_FIELDS:
            value = _clean_text(payload.get(name))
            if not value:
                raise InvalidFieldValue(name, "", details=f"{name} is required")
            fields[name] = value
        return fields

    def create_event(self, payload: dict) -> dict:
        fields = self._clean_event_fields(payload)
        self._ensure_event_unique(fields)
        try:
            return self.db.create_event(fields)
        except sqlite3.IntegrityError as exc:
            if is_unique_violation(exc):
                raise self._event_duplicate(fields) from exc
            raise

    def update_event(self, event_id: int, payload: dict) -> dict:
        existing = self.db.get_event(event_id)
        if existing is None:
            raise EventNotFound(event_id)
        merged = {name: payload.get(name, existing[name]) for name in EVENT_FIELDS}
        fields = self._clean_event_fields(merged)
        self._ensure_event_unique(fields, exclude_id=event_id)
        try:
            return self.db.update_event(event_id, fields)
        except sqlite3.IntegrityError as exc:
            if is_unique_violation(exc):
                raise self._event_duplicate(fields) from exc
            raise

    def delete_event(self, event_id: int) -> dict:
        event = self.db.get_event(event_id)
        if event is None:
            raise EventNotFound(event_id)
        removed = self.db.event_record_counts(event_id)
        self.db.delete_event(event_id)
        return removed

    def _ensure_event_unique(self, fields: dict, exclude_id: Optional[int] = None) -> None:
        existing = self.db.find_event(fields["event_type"], fields["event_name"], exclude_id=exclude_id)
        if existing is not None:
            raise self._event_duplicate(fields, existing)

    def _event_duplicate(self, fields: dict, existing: Optional[dict] = None) -> DuplicateFound:
        self.logger.warning("Duplicate event rejected: %s / %s", fields["event_type"], fields["event_name"])
        return DuplicateFound(
            f'An event named "{fields["event_name"]}" of type "{fields["event_type"]}" already exists',
            existing=existing,
        )

    # ------------------------------------------------------------------
    # Duplicate guard and validation status
    # ------------------------------------------------------------------

    def check_duplicate(
        self,
        identity: Identity,
        event_id: int,
        exclude_id: Optional[int] = None,
        kind: EntityKind = EntityKind.ATTENDANCE,
    ) -> Optional[dict]:
        """
        Find an existing record of ``kind`` for the same attendee and event.

        Employee numbers are compared verbatim ("E001" and "e001" are different
        people). Walk-in names are compared case-insensitively and only against
        other walk-ins, so two walk-ins sharing a name collide.

        Args:
            identity: Resolved attendee identity
            event_id: Event the record belongs to
            exclude_id: Record being updated, ignored when matching
            kind: Which record table to check

        Returns:
            The conflicting row, or None
        """
        if isinstance(identity, ByName):
            return self.db.find_by_name(kind, identity.value, event_id, exclude_id)
        return self.db.find_by_number(kind, identity.value, event_id, exclude_id)

    def ensure_unique(self, prepared: PreparedRecord, exclude_id: Optional[int] = None) -> None:
        existing = self.check_duplicate(prepared.identity, prepared.event_id, exclude_id, prepared.kind)
        if existing is not None:
            raise self.duplicate_error(prepared, existing)

    def duplicate_error(self, prepared: PreparedRecord, existing: Optional[dict] = None) -> DuplicateFound:
        event_name = prepared.event.get("event_name")
        if existing is not None:
            details = (
                f'{prepared.identity.describe()} already has a {prepared.kind.label} record '
                f'(id {existing["id"]}) for event "{event_name}"'
            )
        else:
            details = f'{prepared.identity.describe()} already has a {prepared.kind.label} record for event "{event_name}"'
        self.logger.warning("Duplicate %s rejected: %s", prepared.kind.label, details)
        return DuplicateFound(details, existing=existing)

    def compute_status(self, identity: Identity, event_id: int) -> ValidationStatus:
        """Registered only when the employee number has a registration for the event."""
        if isinstance(identity, ByName):
            return ValidationStatus.NOT_REGISTERED
        if self.db.registration_exists(identity.value, event_id):
            return ValidationStatus.REGISTERED
        return ValidationStatus.NOT_REGISTERED

    # ------------------------------------------------------------------
    # Record writes
    # ------------------------------------------------------------------

    def prepare(self, kind: EntityKind, values: dict, defaults: bool = True) -> PreparedRecord:
        """
        Validate raw values and resolve the event and identity for a write.

        Checks run in this order: event, entity fields, identity. Employees
        with a number but no name or department are filled in from the
        employee directory.

        Args:
            kind: Record kind being written
            values: Raw values keyed by column name; the event is given as
                ``event_id`` or ``event_name``
            defaults: Fill omitted mode/rating/helpful values with defaults

        Returns:
            PreparedRecord ready for the duplicate check and write
        """
        event = self.resolve_event(values.get("event_id"), values.get("event_name"))
        fields = self._clean_entity_fields(kind, values, defaults)
        identity = resolve(values.get("employee_no"), values.get("employee_name"))

        fields["employee_no"] = normalize_employee_no(values.get("employee_no"))
        fields["employee_name"] = _clean_text(values.get("employee_name"))
        if kind is not EntityKind.EVALUATION:
            fields["department"] = _clean_text(values.get("department"))
        fields["event_id"] = event["id"]
        self._autofill_from_directory(kind, fields)

        if kind.requires_name and not fields["employee_name"]:
            raise InvalidFieldValue(
                "employee_name", "",
                details=f'Employee Name is required (no directory entry for employee "{fields["employee_no"]}")',
            )
        return PreparedRecord(kind=kind, identity=identity, event=event, fields=fields)

    def _clean_entity_fields(self, kind: EntityKind, values: dict, defaults: bool) -> dict:
        fields = {}
        if kind is EntityKind.ATTENDANCE:
            raw_mode = values.get("mode")
            if _clean_text(raw_mode) is None:
                if not defaults:
                    raise InvalidFieldValue("mode", "", constants.MODE_CHOICES)
                raw_mode = constants.DEFAULT_MODE
            fields["mode"] = Mode.from_string(raw_mode).value
        elif kind is EntityKind.EVALUATION:
            for rating in constants.RATING_FIELDS:
                if rating in values or defaults:
                    fields[rating] = parse_rating(rating, values.get(rating))
            if "session_helpful" in values or defaults:
                fields["session_helpful"] = parse_helpful(values.get("session_helpful"))
        return fields

    def _autofill_from_directory(self, kind: EntityKind, fields: dict) -> None:
        employee_no = fields.get("employee_no")
        if not employee_no:
            return
        if fields.get("employee_name") and (kind is EntityKind.EVALUATION or fields.get("department")):
            return
        employee = self.db.get_employee(employee_no)
        if employee is None:
            return
        if not fields.get("employee_name"):
            fields["employee_name"] = employee["employee_name"]
        if kind is not EntityKind.EVALUATION and not fields.get("department"):
            fields["department"] = employee["department"]

    def persist(self, prepared: PreparedRecord, record_id: Optional[int] = None) -> dict:
        """
        Run the storage duplicate check and write the record.

        A unique-constraint violation from the write is reported the same way
        as a duplicate found by the check.
        """
        self.ensure_unique(prepared, exclude_id=record_id)
        fields = dict(prepared.fields)
        if prepared.kind is EntityKind.ATTENDANCE:
            fields["validation_status"] = self.compute_status(prepared.identity, prepared.event_id).value
        try:
            if record_id is None:
                return self.db.create_record(prepared.kind, fields)
            return self.db.update_record(prepared.kind, record_id, fields)
        except sqlite3.IntegrityError as exc:
            if is_unique_violation(exc):
                raise self.duplicate_error(prepared) from exc
            raise

    def create(self, kind: EntityKind, values: dict) -> dict:
        return self.persist(self.prepare(kind, values, defaults=kind is not EntityKind.ATTENDANCE))

    def update(self, kind: EntityKind, record_id: int, changes: dict) -> dict:
        """
        Apply a partial update. Omitted or null fields keep their stored values; an
        ``employee_no`` of "" clears the number and turns the record into a
        walk-in. Attendance status is always recomputed.
        """
        existing = self.db.get_record(kind, record_id)
        if existing is None:
            raise RecordNotFound(kind.label, record_id)

        merged = {column: existing.get(column) for column in kind.columns if column != "validation_status"}
        merged.update({k: v for k, v in changes.items() if v is not None and k not in ("event_id", "event_name")})
        if changes.get("event_id") is not None:
            merged["event_id"] = changes["event_id"]
        elif _clean_text(changes.get("event_name")):
            merged["event_id"] = None
            merged["event_name"] = changes["event_name"]

        prepared = self.prepare(kind, merged, defaults=True)
        return self.persist(prepared, record_id=record_id)

    def delete(self, kind: EntityKind, record_id: int) -> dict:
        existing = self.db.get_record(kind, record_id)
        if existing is None:
            raise RecordNotFound(kind.label, record_id)
        self.db.delete_record(kind, record_id)
        return existing
