"""Domain errors for the wellness tracker.

Every error carries the HTTP status it maps to and a ``details`` message
suitable for showing to the operator. The web layer renders them as
``{"error": ..., "details": ...}``; the importer turns them into per-row
skip reasons.
"""

from typing import Optional

from wellness_tracker.constants import FIELD_LABELS


class WellnessError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 500
    error = "Internal error"

    def __init__(self, details: str):
        super().__init__(details)
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.error, "details": self.details}


class MissingIdentity(WellnessError):
    status_code = 400
    error = "Validation error"
    message = "Employee Name is required for walk-in records."

    def __init__(self, details: Optional[str] = None):
        super().__init__(details or self.message)


class InvalidFieldValue(WellnessError, ValueError):
    """A field is missing or outside its allowed set of values."""

    status_code = 400
    error = "Validation error"

    def __init__(self, field: str, value, allowed=None, details: Optional[str] = None):
        self.field = field
        self.value = value
        self.allowed = tuple(allowed) if allowed else ()
        if details is None:
            label = FIELD_LABELS.get(field, field)
            details = f'Invalid {label} "{value}"'
            if self.allowed:
                details += f" (allowed: {', '.join(self.allowed)})"
        super().__init__(details)


class MissingColumns(WellnessError):
    status_code = 400
    error = "Validation error"

    def __init__(self, columns: list[str]):
        self.columns = list(columns)
        super().__init__(f"Missing column(s): {', '.join(self.columns)}")


class UnsupportedFileType(WellnessError):
    status_code = 400
    error = "Validation error"

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f'Unsupported file type for "{filename}"; upload a .csv or .xlsx file')


class UnreadableFile(WellnessError):
    """The file has a supported extension but its contents cannot be parsed."""

    status_code = 400
    error = "Validation error"

    def __init__(self, filename: str, reason: str):
        self.filename = filename
        super().__init__(f'Could not read "{filename}": {reason}')


class AuthenticationFailed(WellnessError):
    status_code = 401
    error = "Unauthorized"

    def __init__(self, details: str = "A valid bearer token is required"):
        super().__init__(details)


class EventNotFound(WellnessError):
    status_code = 404
    error = "Not found"

    def __init__(self, reference):
        self.reference = reference
        if isinstance(reference, int):
            details = f"Event {reference} not found"
        else:
            details = f'Event "{reference}" not found'
        super().__init__(details)


class RecordNotFound(WellnessError):
    status_code = 404
    error = "Not found"

    def __init__(self, label: str, record_id):
        self.record_id = record_id
        super().__init__(f"{label.capitalize()} {record_id} not found")


class DuplicateFound(WellnessError):
    """An identity already has a record for the event.

    Raised both when the pre-write check finds a match and when the
    storage layer rejects the write with a unique-constraint violation.
    """

    status_code = 409
    error = "Duplicate record"

    def __init__(self, details: str, existing: Optional[dict] = None):
        self.existing = existing
        super().__init__(details)
