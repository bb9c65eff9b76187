import os
from pathlib import Path

# Private data root - can be overridden by environment
PRIVATE_DATA_ROOT = os.getenv("WELLNESS_DATA_PATH", "wellness_data")

# Database paths
SCHEMA_PATH = Path(__file__).parent / "db" / "schema.sql"
DEFAULT_DB_PATH = os.path.join(PRIVATE_DATA_ROOT, "wellness.db")
DB_PATH = os.getenv("WELLNESS_DB_PATH", DEFAULT_DB_PATH)
BACKUP_DIR = os.getenv("WELLNESS_BACKUP_DIR", os.path.join(PRIVATE_DATA_ROOT, "backups"))

# Pagination
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Legacy rows used this string to mean "no employee number"
LEGACY_NO_NUMBER = "NA"

# PRAGMA user_version once the legacy markers have been cleared; after that
# "NA" is an ordinary employee number
LEGACY_NUMBERS_CLEARED_VERSION = 1

MODE_CHOICES = ("Onsite", "Virtual")
DEFAULT_MODE = "Virtual"

RATING_CHOICES = ("1", "2", "3", "4", "5", "NA")
DEFAULT_RATING = "NA"
HELPFUL_CHOICES = ("Yes", "No")
DEFAULT_HELPFUL = "No"

# Evaluation rating column -> spreadsheet header
RATING_COLUMNS = {
    "objectives_met": "Objectives Met",
    "relevance": "Relevance",
    "venue": "Venue",
    "activity": "Activity",
    "value_time_spent": "Value of Time Spent",
    "overall_rating": "Overall Rating",
    "topic_clear_effective": "Discussed Topic Clearly and Effectively",
    "answered_questions": "Answered Questions Appropriately",
    "presentation_materials": "Presentation/Materials",
}
RATING_FIELDS = tuple(RATING_COLUMNS)

# Human-readable labels for every field that can appear in an upload
FIELD_LABELS = {
    "employee_no": "Employee No",
    "employee_name": "Employee Name",
    "department": "Department",
    "event_name": "Event Name",
    "mode": "Mode of Attendance",
    "session_helpful": "Session Helpful",
    **RATING_COLUMNS,
}

# Header variants seen in uploaded spreadsheets, keyed by their folded form
# (lowercase, alphanumerics only). Canonical labels are added below.
HEADER_ALIASES = {
    "employeeno": "employee_no",
    "employeenumber": "employee_no",
    "empno": "employee_no",
    "employeeid": "employee_no",
    "employeename": "employee_name",
    "name": "employee_name",
    "fullname": "employee_name",
    "department": "department",
    "dept": "department",
    "eventname": "event_name",
    "event": "event_name",
    "modeofattendance": "mode",
    "mode": "mode",
    "attendancemode": "mode",
    "sessionhelpful": "session_helpful",
    "wasthesessionhelpful": "session_helpful",
    "valueoftime": "value_time_spent",
    "overall": "overall_rating",
    "presentationmaterials": "presentation_materials",
}

# Column order for downloadable templates and exports
TEMPLATE_HEADERS = {
    "registration": ["Employee No", "Employee Name", "Department", "Event Name"],
    "attendance": ["Employee No", "Employee Name", "Department", "Event Name", "Mode of Attendance"],
    "evaluation": ["Employee No", "Employee Name", "Event Name", *RATING_COLUMNS.values(), "Session Helpful"],
}
