import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from wellness_tracker import constants
from wellness_tracker.identity import name_key
from wellness_tracker.models import EntityKind

# Columns a record listing may be ordered by
SORTABLE_COLUMNS = (
    "id", "employee_no", "employee_name", "department", "event_id", "event_name",
    "mode", "validation_status", "created_at", "updated_at",
)


def _as_dict(row: Optional[sqlite3.Row]) -> Optional[dict]:
    return dict(row) if row is not None else None


def _page_bounds(page, limit) -> tuple[int, int]:
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or constants.DEFAULT_PAGE_SIZE), 1), constants.MAX_PAGE_SIZE)
    return page, limit


class DbManager:
    def __init__(self, db_path: str):
        """
        Open a new SQLite connection from a filesystem path.
        This class owns the connection lifecycle.
        """
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        # Walk-in name comparisons and the walk-in unique index go through Python
        self.conn.create_function("name_key", 1, name_key, deterministic=True)

    def __enter__(self) -> "DbManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc is None:
                self.conn.commit()
            else:
                self.conn.rollback()
        finally:
            self.conn.close()

    @contextmanager
    def transaction(self, dry_run: bool = False):
        if self.conn.in_transaction:
            self.conn.commit()
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            yield
            if dry_run:
                self.conn.rollback()
            else:
                self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()

    def apply_schema(self, schema_sql: str) -> None:
        self.conn.executescript(schema_sql)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def get_event(self, event_id: int) -> Optional[dict]:
        cur = self.conn.execute("SELECT * FROM events WHERE id = ?", (event_id,))
        return _as_dict(cur.fetchone())

    def find_event_by_name(self, name: str) -> Optional[dict]:
        """Exact name match first, then case-insensitive. Oldest event wins ties."""
        name = (name or "").strip()
        if not name:
            return None
        cur = self.conn.execute("SELECT * FROM events WHERE event_name = ? ORDER BY id LIMIT 1", (name,))
        row = cur.fetchone()
        if row is None:
            cur = self.conn.execute(
                "SELECT * FROM events WHERE LOWER(event_name) = LOWER(?) ORDER BY id LIMIT 1", (name,)
            )
            row = cur.fetchone()
        return _as_dict(row)

    def find_event(self, event_type: str, event_name: str, exclude_id: Optional[int] = None) -> Optional[dict]:
        sql = "SELECT * FROM events WHERE event_type = ? AND event_name = ?"
        params: list = [event_type, event_name]
        if exclude_id is not None:
            sql += " AND id != ?"
            params.append(exclude_id)
        return _as_dict(self.conn.execute(sql, params).fetchone())

    def list_events(self, search: Optional[str] = None, page=1, limit=None) -> tuple[list[dict], int]:
        page, limit = _page_bounds(page, limit)
        where, params = "", []
        if search:
            where = "WHERE event_name LIKE ? OR event_type LIKE ?"
            params = [f"%{search}%", f"%{search}%"]
        total = self.conn.execute(f"SELECT COUNT(*) FROM events {where}", params).fetchone()[0]
        cur = self.conn.execute(
            f"SELECT * FROM events {where} ORDER BY event_date DESC, id DESC LIMIT ? OFFSET ?",
            [*params, limit, (page - 1) * limit],
        )
        return [dict(r) for r in cur.fetchall()], int(total)

    def all_events(self) -> list[dict]:
        cur = self.conn.execute("SELECT * FROM events ORDER BY event_date, id")
        return [dict(r) for r in cur.fetchall()]

    def create_event(self, fields: dict) -> dict:
        cur = self.conn.execute(
            "INSERT INTO events (event_type, event_name, event_date) VALUES (?, ?, ?)",
            (fields["event_type"], fields["event_name"], fields["event_date"]),
        )
        return self.get_event(int(cur.lastrowid))

    def update_event(self, event_id: int, fields: dict) -> Optional[dict]:
        cur = self.conn.execute(
            "UPDATE events SET event_type = ?, event_name = ?, event_date = ? WHERE id = ?",
            (fields["event_type"], fields["event_name"], fields["event_date"], event_id),
        )
        if cur.rowcount == 0:
            return None
        return self.get_event(event_id)

    def delete_event(self, event_id: int) -> bool:
        cur = self.conn.execute("DELETE FROM events WHERE id = ?", (event_id,))
        return cur.rowcount > 0

    def event_record_counts(self, event_id: int) -> dict[str, int]:
        counts = {}
        for kind in EntityKind:
            cur = self.conn.execute(f"SELECT COUNT(*) FROM {kind.table} WHERE event_id = ?", (event_id,))
            counts[kind.table] = int(cur.fetchone()[0])
        return counts

    # ------------------------------------------------------------------
    # Registrations / attendance / evaluations
    # ------------------------------------------------------------------

    def get_record(self, kind: EntityKind, record_id: int) -> Optional[dict]:
        cur = self.conn.execute(
            f"""
            SELECT r.*, e.event_name, e.event_type, e.event_date
            FROM {kind.table} r
            LEFT JOIN events e ON e.id = r.event_id
            WHERE r.id = ?
            """,
            (record_id,),
        )
        return _as_dict(cur.fetchone())

    def _record_filters(self, event_id=None, search=None) -> tuple[str, list]:
        clauses, params = [], []
        if event_id is not None:
            clauses.append("r.event_id = ?")
            params.append(event_id)
        if search:
            clauses.append("(r.employee_name LIKE ? OR r.employee_no LIKE ?)")
            params.extend([f"%{search}%", f"%{search}%"])
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def list_records(
        self,
        kind: EntityKind,
        event_id: Optional[int] = None,
        search: Optional[str] = None,
        page=1,
        limit=None,
        sort: str = "id",
        order: str = "DESC",
    ) -> tuple[list[dict], int]:
        """
        Page through records of one kind.

        Args:
            kind: Which record table to read
            event_id: Only records for this event
            search: Substring match on employee name or number
            page: 1-based page number
            limit: Page size (capped at MAX_PAGE_SIZE)
            sort: Column to order by (falls back to id when not sortable)
            order: ASC or DESC

        Returns:
            (rows, total) where total counts every matching record
        """
        page, limit = _page_bounds(page, limit)
        allowed = {"id", "event_name", "created_at", "updated_at", *kind.columns}
        if sort not in SORTABLE_COLUMNS or sort not in allowed:
            sort = "id"
        direction = "ASC" if str(order).upper() == "ASC" else "DESC"
        sort_expr = "e.event_name" if sort == "event_name" else f"r.{sort}"
        where, params = self._record_filters(event_id, search)

        total = self.conn.execute(f"SELECT COUNT(*) FROM {kind.table} r {where}", params).fetchone()[0]
        cur = self.conn.execute(
            f"""
            SELECT r.*, e.event_name, e.event_type, e.event_date
            FROM {kind.table} r
            LEFT JOIN events e ON e.id = r.event_id
            {where}
            ORDER BY {sort_expr} {direction}, r.id {direction}
            LIMIT ? OFFSET ?
            """,
            [*params, limit, (page - 1) * limit],
        )
        return [dict(r) for r in cur.fetchall()], int(total)

    def iter_records(self, kind: EntityKind, event_id: Optional[int] = None, search: Optional[str] = None) -> Iterator[dict]:
        where, params = self._record_filters(event_id, search)
        cur = self.conn.execute(
            f"""
            SELECT r.*, e.event_name, e.event_type, e.event_date
            FROM {kind.table} r
            LEFT JOIN events e ON e.id = r.event_id
            {where}
            ORDER BY r.id
            """,
            params,
        )
        for row in cur:
            yield dict(row)

    def create_record(self, kind: EntityKind, fields: dict) -> dict:
        columns = [c for c in kind.columns if c in fields]
        placeholders = ", ".join("?" for _ in columns)
        cur = self.conn.execute(
            f"INSERT INTO {kind.table} ({', '.join(columns)}) VALUES ({placeholders})",
            [fields[c] for c in columns],
        )
        return self.get_record(kind, int(cur.lastrowid))

    def update_record(self, kind: EntityKind, record_id: int, fields: dict) -> Optional[dict]:
        columns = [c for c in kind.columns if c in fields]
        if not columns:
            return self.get_record(kind, record_id)
        assignments = ", ".join(f"{c} = ?" for c in columns)
        cur = self.conn.execute(
            f"UPDATE {kind.table} SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            [*(fields[c] for c in columns), record_id],
        )
        if cur.rowcount == 0:
            return None
        return self.get_record(kind, record_id)

    def delete_record(self, kind: EntityKind, record_id: int) -> bool:
        cur = self.conn.execute(f"DELETE FROM {kind.table} WHERE id = ?", (record_id,))
        return cur.rowcount > 0

    def find_by_number(self, kind: EntityKind, employee_no: str, event_id: int, exclude_id: Optional[int] = None) -> Optional[dict]:
        sql = f"SELECT * FROM {kind.table} WHERE event_id = ? AND employee_no = ?"
        params: list = [event_id, employee_no]
        if exclude_id is not None:
            sql += " AND id != ?"
            params.append(exclude_id)
        cur = self.conn.execute(sql + " ORDER BY id LIMIT 1", params)
        return _as_dict(cur.fetchone())

    def find_by_name(self, kind: EntityKind, employee_name: str, event_id: int, exclude_id: Optional[int] = None) -> Optional[dict]:
        # Walk-ins only: a numbered record never matches on name
        sql = (
            f"SELECT * FROM {kind.table} WHERE event_id = ? AND employee_no IS NULL "
            "AND name_key(employee_name) = ?"
        )
        params: list = [event_id, name_key(employee_name)]
        if exclude_id is not None:
            sql += " AND id != ?"
            params.append(exclude_id)
        cur = self.conn.execute(sql + " ORDER BY id LIMIT 1", params)
        return _as_dict(cur.fetchone())

    def registration_exists(self, employee_no: str, event_id: int) -> bool:
        cur = self.conn.execute(
            "SELECT 1 FROM registrations WHERE employee_no = ? AND event_id = ? LIMIT 1",
            (employee_no, event_id),
        )
        return cur.fetchone() is not None

    # ------------------------------------------------------------------
    # Employee directory (read-only)
    # ------------------------------------------------------------------

    def get_employee(self, employee_no: str) -> Optional[dict]:
        cur = self.conn.execute(
            "SELECT employee_no, employee_name, department, age, gender FROM employees WHERE employee_no = ?",
            (employee_no,),
        )
        return _as_dict(cur.fetchone())

    def list_departments(self) -> list[str]:
        cur = self.conn.execute(
            "SELECT DISTINCT department FROM employees "
            "WHERE department IS NOT NULL AND TRIM(department) != '' ORDER BY department"
        )
        return [r["department"] for r in cur.fetchall()]

    # ------------------------------------------------------------------
    # Admins
    # ------------------------------------------------------------------

    def get_admin_by_token(self, token: str) -> Optional[dict]:
        cur = self.conn.execute("SELECT id, username FROM admins WHERE api_token = ?", (token,))
        return _as_dict(cur.fetchone())

    def create_admin(self, username: str, token: str) -> int:
        cur = self.conn.execute("INSERT INTO admins (username, api_token) VALUES (?, ?)", (username, token))
        return int(cur.lastrowid)
