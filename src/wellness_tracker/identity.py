"""Attendee identity resolution.

An attendee is either an employee with a number or a walk-in known only by
name. The choice is made once here; everything downstream works with the
resulting ``ByNumber`` / ``ByName`` value instead of re-inspecting raw fields.
"""

from typing import Optional

from wellness_tracker.exceptions import MissingIdentity
from wellness_tracker.models import ByName, ByNumber, Identity


def _clean(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def normalize_employee_no(value) -> Optional[str]:
    """Storage form of an employee number: trimmed string, or None when blank."""
    cleaned = _clean(value)
    return cleaned or None


def name_key(value) -> Optional[str]:
    """Comparison key for walk-in names, shared by Python checks and SQL (see DbManager)."""
    return _clean(value).lower() or None


def resolve(raw_employee_no, raw_employee_name) -> Identity:
    """
    Resolve the identity used for duplicate checks.

    Args:
        raw_employee_no: Employee number as submitted (may be None or blank)
        raw_employee_name: Employee name as submitted (may be None or blank)

    Returns:
        ByNumber when a number is present (it takes precedence over the name),
        otherwise ByName with the lowercased name.

    Raises:
        MissingIdentity: if both the number and the name are blank
    """
    employee_no = _clean(raw_employee_no)
    if employee_no:
        return ByNumber(employee_no)

    key = name_key(raw_employee_name)
    if key is None:
        raise MissingIdentity()
    return ByName(key, display=_clean(raw_employee_name))
