"""Test fixtures and configuration for the wellness_tracker test suite.

This module implements:
- Session-scoped schema loading (schema_sql)
- Function-scoped databases on disk:
    db_path / db          schema + unique indexes, as after application startup
    legacy_db_path / legacy_db  schema only, so duplicates can be inserted the
                          way older databases accumulated them
- Data factories (event_factory, record_factory, employee_factory)
- Upload file builders re-exported from tests/fixtures
"""

import sqlite3

import pytest

from wellness_tracker.constants import SCHEMA_PATH
from wellness_tracker.db.migrate import init_db
from wellness_tracker.logging_config import cleanup_test_logs
from wellness_tracker.managers import DbManager
from wellness_tracker.models import EntityKind
from tests.fixtures.conftest import upload_csv_builder, upload_xlsx_builder  # noqa: F401


def pytest_sessionfinish(session, exitstatus):
    cleanup_test_logs()


@pytest.fixture(scope='session')
def schema_sql():
    return SCHEMA_PATH.read_text(encoding='utf-8')


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / 'wellness.db'
    init_db(str(path))
    return str(path)


@pytest.fixture
def legacy_db_path(tmp_path, schema_sql):
    path = tmp_path / 'legacy.db'
    conn = sqlite3.connect(path)
    try:
        conn.executescript(schema_sql)
        conn.commit()
    finally:
        conn.close()
    return str(path)


@pytest.fixture
def db(db_path):
    with DbManager(db_path) as manager:
        yield manager


@pytest.fixture
def legacy_db(legacy_db_path):
    with DbManager(legacy_db_path) as manager:
        yield manager


@pytest.fixture
def event_factory():
    """Factory for inserting events; pass id to pin the primary key."""
    def _create(db, event_name='Yoga Basics', event_type='Seminar', event_date='2025-03-01', id=None):
        if id is None:
            cur = db.conn.execute(
                "INSERT INTO events (event_type, event_name, event_date) VALUES (?, ?, ?)",
                (event_type, event_name, event_date),
            )
            id = cur.lastrowid
        else:
            db.conn.execute(
                "INSERT INTO events (id, event_type, event_name, event_date) VALUES (?, ?, ?, ?)",
                (id, event_type, event_name, event_date),
            )
        return db.get_event(id)
    return _create


@pytest.fixture
def record_factory():
    """Factory for inserting records directly, bypassing duplicate checks."""
    def _create(db, kind: EntityKind, event_id, employee_no=None, employee_name=None, id=None, **fields):
        defaults = {'employee_name': employee_name or (f'Employee {employee_no}' if employee_no else 'Walk In')}
        if kind is EntityKind.ATTENDANCE:
            defaults.update({'mode': 'Onsite', 'validation_status': 'Not Registered'})
        if kind is not EntityKind.EVALUATION:
            defaults['department'] = 'Finance'
        defaults.update(fields)
        columns = {'employee_no': employee_no, 'event_id': event_id, **defaults}
        if id is not None:
            columns['id'] = id
        names = ', '.join(columns)
        placeholders = ', '.join('?' for _ in columns)
        cur = db.conn.execute(
            f"INSERT INTO {kind.table} ({names}) VALUES ({placeholders})", list(columns.values())
        )
        return db.get_record(kind, id if id is not None else cur.lastrowid)
    return _create


@pytest.fixture
def employee_factory():
    """Factory for directory entries."""
    def _create(db, employee_no='E001', employee_name='Jane Doe', department='Finance', age=34, gender='Female'):
        db.conn.execute(
            "INSERT INTO employees (employee_no, employee_name, department, age, gender) VALUES (?, ?, ?, ?, ?)",
            (employee_no, employee_name, department, age, gender),
        )
        return db.get_employee(employee_no)
    return _create

