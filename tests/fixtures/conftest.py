"""File builder fixtures for upload tests.

Each builder writes rows in the same layout an operator would upload and
returns the path of the written file.
"""

import csv
from pathlib import Path

import pytest
from openpyxl import Workbook

from wellness_tracker import constants
from wellness_tracker.models import EntityKind
from tests.fixtures.data_specs import UploadRowSpec


def _rows_and_headers(kind, rows, headers):
    rendered = [r.to_row(kind) if isinstance(r, UploadRowSpec) else dict(r) for r in rows]
    if headers is None:
        headers = list(constants.TEMPLATE_HEADERS[kind.value])
    return rendered, headers


@pytest.fixture
def upload_csv_builder(tmp_path):
    """Factory: write an upload CSV.

    Args:
        kind: EntityKind the file is for (decides default headers)
        rows: UploadRowSpec objects or plain header-keyed dicts
        headers: Override header row (default: template headers for kind)
        filename: Output filename

    Returns:
        Path to the CSV file
    """
    def _build(kind: EntityKind, rows, headers=None, filename="upload.csv") -> Path:
        rendered, headers = _rows_and_headers(kind, rows, headers)
        path = tmp_path / filename
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=headers, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(rendered)
        return path

    return _build


@pytest.fixture
def upload_xlsx_builder(tmp_path):
    """Factory: write an upload workbook (first sheet holds the rows).

    Cell values are written as given, so numbers stay numeric the way they do
    when an operator types them into Excel.
    """
    def _build(kind: EntityKind, rows, headers=None, filename="upload.xlsx") -> Path:
        rendered, headers = _rows_and_headers(kind, rows, headers)
        wb = Workbook()
        ws = wb.active
        ws.title = "Upload"
        ws.append(headers)
        for row in rendered:
            ws.append([row.get(h) for h in headers])
        path = tmp_path / filename
        wb.save(path)
        return path

    return _build
