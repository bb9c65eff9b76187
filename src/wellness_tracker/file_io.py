import csv
import datetime
import io
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from wellness_tracker import constants
from wellness_tracker.exceptions import MissingColumns, UnreadableFile, UnsupportedFileType
from wellness_tracker.models import EntityKind

CSV_EXTENSIONS = (".csv",)
XLSX_EXTENSIONS = (".xlsx", ".xlsm")
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Columns every upload row must carry (by internal name)
REQUIRED_COLUMNS = ("event_name",)
IDENTITY_COLUMNS = ("employee_no", "employee_name")

KIND_COLUMNS = {
    EntityKind.REGISTRATION: ("employee_no", "employee_name", "department", "event_name"),
    EntityKind.ATTENDANCE: ("employee_no", "employee_name", "department", "event_name", "mode"),
    EntityKind.EVALUATION: (
        "employee_no", "employee_name", "event_name", *constants.RATING_FIELDS, "session_helpful",
    ),
}


def fold_header(header) -> str:
    """Reduce a header to lowercase alphanumerics so spelling variants compare equal."""
    return re.sub(r"[^a-z0-9]", "", str(header or "").lower())


_HEADER_LOOKUP = {fold_header(label): name for name, label in constants.FIELD_LABELS.items()}
_HEADER_LOOKUP.update(constants.HEADER_ALIASES)


def canonical_column(header) -> Optional[str]:
    return _HEADER_LOOKUP.get(fold_header(header))


def _normalize_text(s: str) -> str:
    # Replace smart quotes with ASCII quotes and collapse runs of whitespace
    s = s.replace("’", "'").replace("‘", "'").replace("“", '"').replace("”", '"')
    return re.sub(r"\s+", " ", s).strip()


def cell_to_str(value) -> str:
    """Render a spreadsheet cell as trimmed text (12345.0 -> '12345')."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime.datetime):
        return value.date().isoformat() if value.time() == datetime.time() else value.isoformat(sep=" ")
    if isinstance(value, datetime.date):
        return value.isoformat()
    return _normalize_text(str(value))


# -- Reading uploads --

def read_csv_rows(data: bytes) -> list[dict]:
    """
    Parse CSV bytes into a list of header-keyed rows.

    Headers and values are trimmed; fully blank lines are dropped.
    """
    text = data.decode("utf-8-sig")
    reader = csv.reader(io.StringIO(text, newline=""))
    try:
        raw_headers = next(reader)
    except StopIteration:
        return []

    headers = [_normalize_text(h) for h in raw_headers]
    rows = []
    for values in reader:
        if not any(v.strip() for v in values):
            continue
        padded = list(values) + [""] * (len(headers) - len(values))
        rows.append({h: cell_to_str(v) for h, v in zip(headers, padded) if h})
    return rows


def read_xlsx_rows(data: bytes) -> list[dict]:
    """Parse the first worksheet of an .xlsx workbook into header-keyed rows."""
    wb = load_workbook(filename=io.BytesIO(data), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        row_iter = ws.iter_rows(values_only=True)
        try:
            header_row = next(row_iter)
        except StopIteration:
            return []
        headers = [cell_to_str(h) for h in header_row]
        rows = []
        for values in row_iter:
            if values is None or all(cell_to_str(v) == "" for v in values):
                continue
            padded = list(values) + [None] * (len(headers) - len(values))
            rows.append({h: cell_to_str(v) for h, v in zip(headers, padded) if h})
        return rows
    finally:
        wb.close()


def load_upload(filename: str, data: bytes) -> list[dict]:
    """
    Dispatch on file extension.

    Raises:
        UnsupportedFileType: extension is not .csv or .xlsx
        UnreadableFile: contents cannot be decoded or parsed
    """
    suffix = Path(filename or "").suffix.lower()
    if suffix in CSV_EXTENSIONS:
        try:
            return read_csv_rows(data)
        except UnicodeDecodeError as exc:
            raise UnreadableFile(filename, "CSV files must be saved as UTF-8") from exc
        except csv.Error as exc:
            raise UnreadableFile(filename, str(exc)) from exc
    if suffix in XLSX_EXTENSIONS:
        try:
            return read_xlsx_rows(data)
        except (zipfile.BadZipFile, InvalidFileException, KeyError) as exc:
            raise UnreadableFile(filename, "not a valid Excel workbook") from exc
    raise UnsupportedFileType(filename or "")


def load_upload_file(path) -> list[dict]:
    path = Path(path)
    return load_upload(path.name, path.read_bytes())


# -- Row normalization --

@dataclass
class UploadRow:
    """One spreadsheet row mapped onto the internal column names."""
    kind: EntityKind
    employee_no: str = ""
    employee_name: str = ""
    department: str = ""
    event_name: str = ""
    extra: dict = field(default_factory=dict)

    def values(self) -> dict:
        """Values keyed by internal column name, ready for RecordService.prepare."""
        values = {
            "employee_no": self.employee_no,
            "employee_name": self.employee_name,
            "event_name": self.event_name,
            **self.extra,
        }
        if self.kind is not EntityKind.EVALUATION:
            values["department"] = self.department
        return values


def normalize_row(raw: dict) -> dict:
    """Map raw headers onto internal column names, dropping unknown columns."""
    normalized = {}
    for header, value in raw.items():
        column = canonical_column(header)
        if column is not None and column not in normalized:
            normalized[column] = cell_to_str(value)
    return normalized


def parse_upload_row(kind: EntityKind, raw: dict) -> UploadRow:
    """
    Convert one raw row into an UploadRow for ``kind``.

    Raises:
        MissingColumns: if the row lacks the event column or both identity columns
    """
    normalized = normalize_row(raw)
    missing = [constants.FIELD_LABELS[c] for c in REQUIRED_COLUMNS if c not in normalized]
    if not any(c in normalized for c in IDENTITY_COLUMNS):
        missing.append(f"{constants.FIELD_LABELS['employee_no']} or {constants.FIELD_LABELS['employee_name']}")
    if missing:
        raise MissingColumns(missing)

    extra = {
        column: normalized.get(column, "")
        for column in KIND_COLUMNS[kind]
        if column not in ("employee_no", "employee_name", "department", "event_name")
    }
    return UploadRow(
        kind=kind,
        employee_no=normalized.get("employee_no", ""),
        employee_name=normalized.get("employee_name", ""),
        department=normalized.get("department", ""),
        event_name=normalized.get("event_name", ""),
        extra=extra,
    )


# -- Writing templates and exports --

def build_workbook(sheets: list[tuple[str, list[str], list[list]]]) -> bytes:
    """
    Build an .xlsx workbook in memory.

    Args:
        sheets: (title, header, rows) per worksheet, in order

    Returns:
        Workbook bytes
    """
    wb = Workbook()
    wb.remove(wb.active)
    for title, header, rows in sheets:
        ws = wb.create_sheet(title=title[:31])
        ws.append(header)
        for row in rows:
            ws.append(["" if v is None else v for v in row])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def build_csv(header: list[str], rows: list[list]) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue().encode("utf-8")


def _template_example_row(kind: EntityKind, event_name: str) -> list:
    if kind is EntityKind.REGISTRATION:
        return ["E001", "Jane Doe", "Finance", event_name]
    if kind is EntityKind.ATTENDANCE:
        return ["E001", "Jane Doe", "Finance", event_name, "Onsite"]
    return ["E001", "Jane Doe", event_name, *["5"] * len(constants.RATING_FIELDS), "Yes"]


def build_template(kind: EntityKind, events: list[dict]) -> tuple[bytes, str, str]:
    """
    Build the upload template for ``kind``.

    Registration and attendance templates are workbooks with an
    "Events Reference" sheet listing valid event names; the evaluation
    template is a plain CSV.

    Returns:
        (content, filename, media_type)
    """
    header = constants.TEMPLATE_HEADERS[kind.value]
    example_event = events[0]["event_name"] if events else "Sample Event"
    example = _template_example_row(kind, example_event)

    if kind is EntityKind.EVALUATION:
        return build_csv(header, [example]), "evaluation_template.csv", "text/csv"

    reference_rows = [[e["event_name"], e["event_type"], e["event_date"]] for e in events]
    content = build_workbook([
        (f"{kind.label.capitalize()} Template", header, [example]),
        ("Events Reference", ["Event Name", "Event Type", "Event Date"], reference_rows),
    ])
    return content, f"{kind.label}_template.xlsx", XLSX_MEDIA_TYPE


def export_rows(kind: EntityKind, records) -> list[list]:
    """Flatten stored records into export rows (header from export_header)."""
    rows = []
    for record in records:
        row = [record["id"], record.get("employee_no"), record.get("employee_name")]
        if kind is not EntityKind.EVALUATION:
            row.append(record.get("department"))
        row.extend([record.get("event_name"), record.get("event_type"), record.get("event_date")])
        if kind is EntityKind.ATTENDANCE:
            row.extend([record.get("mode"), record.get("validation_status")])
        elif kind is EntityKind.EVALUATION:
            row.extend(record.get(f) for f in constants.RATING_FIELDS)
            row.append(record.get("session_helpful"))
        rows.append(row)
    return rows


def export_header(kind: EntityKind) -> list[str]:
    header = ["ID", "Employee No", "Employee Name"]
    if kind is not EntityKind.EVALUATION:
        header.append("Department")
    header.extend(["Event Name", "Event Type", "Event Date"])
    if kind is EntityKind.ATTENDANCE:
        header.extend(["Mode of Attendance", "Validation Status"])
    elif kind is EntityKind.EVALUATION:
        header.extend([*constants.RATING_COLUMNS.values(), "Session Helpful"])
    return header


def build_export(kind: EntityKind, records) -> bytes:
    title = {EntityKind.REGISTRATION: "Registrations", EntityKind.ATTENDANCE: "Attendance",
             EntityKind.EVALUATION: "Evaluations"}[kind]
    return build_workbook([(title, export_header(kind), export_rows(kind, records))])
