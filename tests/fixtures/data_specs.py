"""Shared data specification classes for building upload files.

Tests describe spreadsheet rows with these dataclasses and hand them to the
file builder fixtures, which write them with the production header labels.

Usage:
    rows = [
        UploadRowSpec(employee_no="E001", employee_name="Jane Doe", event_name="Yoga Basics", mode="Onsite"),
        UploadRowSpec(employee_name="Walk In", event_name="Yoga Basics"),
    ]
    path = upload_csv_builder(EntityKind.ATTENDANCE, rows)
"""

from dataclasses import dataclass, field

from wellness_tracker import constants
from wellness_tracker.models import EntityKind


@dataclass
class UploadRowSpec:
    """Specification for one upload row.

    Attributes:
        employee_no: Employee number cell (blank for walk-ins)
        employee_name: Employee name cell
        department: Department cell (ignored for evaluations)
        event_name: Event name cell
        mode: Mode of Attendance cell (attendance only)
        ratings: Rating column -> cell value (evaluation only); missing columns are blank
        session_helpful: Session Helpful cell (evaluation only)
    """
    employee_no: str = ""
    employee_name: str = ""
    department: str = ""
    event_name: str = ""
    mode: str = ""
    ratings: dict = field(default_factory=dict)
    session_helpful: str = ""

    def to_row(self, kind: EntityKind) -> dict:
        """Render as a header-label keyed row in template column order."""
        values = {
            "Employee No": self.employee_no,
            "Employee Name": self.employee_name,
            "Department": self.department,
            "Event Name": self.event_name,
            "Mode of Attendance": self.mode,
            "Session Helpful": self.session_helpful,
        }
        for column, label in constants.RATING_COLUMNS.items():
            values[label] = self.ratings.get(column, "")
        return {header: values[header] for header in constants.TEMPLATE_HEADERS[kind.value]}
