from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from wellness_tracker import constants
from wellness_tracker.exceptions import InvalidFieldValue


@dataclass(frozen=True)
class ByNumber:
    """An attendee identified by their employee number (compared verbatim)."""
    value: str

    @property
    def employee_no(self) -> str:
        return self.value

    def describe(self) -> str:
        return f'Employee "{self.value}"'


@dataclass(frozen=True)
class ByName:
    """A walk-in identified by lowercased name.

    Two walk-ins with the same name at the same event are the same identity.
    ``display`` keeps the original spelling for messages.
    """
    value: str
    display: str = field(default="", compare=False)

    @property
    def employee_no(self) -> None:
        return None

    def describe(self) -> str:
        return f'Walk-in "{self.display or self.value}"'


Identity = Union[ByNumber, ByName]


class EntityKind(Enum):
    REGISTRATION = "registration"
    ATTENDANCE = "attendance"
    EVALUATION = "evaluation"

    @property
    def table(self) -> str:
        return _TABLES[self]

    @property
    def columns(self) -> tuple[str, ...]:
        return _COLUMNS[self]

    @property
    def label(self) -> str:
        return self.value

    @property
    def requires_name(self) -> bool:
        return self is not EntityKind.REGISTRATION

    @classmethod
    def from_string(cls, value: str) -> "EntityKind":
        cleaned = (value or "").strip().lower()
        for kind in cls:
            if cleaned in (kind.value, kind.table):
                return kind
        raise ValueError(f"unknown record kind: {value}")


_TABLES = {
    EntityKind.REGISTRATION: "registrations",
    EntityKind.ATTENDANCE: "attendance",
    EntityKind.EVALUATION: "evaluations",
}

_COLUMNS = {
    EntityKind.REGISTRATION: ("employee_no", "employee_name", "department", "event_id"),
    EntityKind.ATTENDANCE: (
        "employee_no", "employee_name", "department", "event_id", "mode", "validation_status",
    ),
    EntityKind.EVALUATION: (
        "employee_no", "employee_name", "event_id", *constants.RATING_FIELDS, "session_helpful",
    ),
}


class Mode(Enum):
    ONSITE = "Onsite"
    VIRTUAL = "Virtual"

    @classmethod
    def from_string(cls, value) -> "Mode":
        cleaned = str(value or "").strip().lower()
        for mode in cls:
            if mode.value.lower() == cleaned:
                return mode
        raise InvalidFieldValue("mode", value, constants.MODE_CHOICES)


class ValidationStatus(Enum):
    REGISTERED = "Registered"
    NOT_REGISTERED = "Not Registered"


def parse_rating(field_name: str, value) -> str:
    """Normalize a rating cell to one of '1'..'5' or 'NA'. Blank means 'NA'."""
    if value is None:
        return constants.DEFAULT_RATING
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    cleaned = str(value).strip().upper()
    if cleaned.endswith(".0"):
        cleaned = cleaned[:-2]
    if not cleaned:
        return constants.DEFAULT_RATING
    if cleaned in ("N/A", "N.A."):
        cleaned = "NA"
    if cleaned not in constants.RATING_CHOICES:
        raise InvalidFieldValue(field_name, value, constants.RATING_CHOICES)
    return cleaned


def parse_helpful(value) -> str:
    """Normalize the session-helpful flag to 'Yes' or 'No'. Blank means 'No'."""
    cleaned = str(value or "").strip().lower()
    if not cleaned:
        return constants.DEFAULT_HELPFUL
    if cleaned in ("yes", "y"):
        return "Yes"
    if cleaned in ("no", "n"):
        return "No"
    raise InvalidFieldValue("session_helpful", value, constants.HELPFUL_CHOICES)
