"""Database query helpers for the test suite."""

from wellness_tracker.models import EntityKind


def get_table_count(db, table: str, where: str | None = None, params=()) -> int:
    """Row count for ``table`` with an optional WHERE clause (without the keyword)."""
    query = f"SELECT COUNT(*) FROM {table}"
    if where:
        query += f" WHERE {where}"
    return db.conn.execute(query, params).fetchone()[0]


def get_ids(db, kind: EntityKind) -> list[int]:
    return [r[0] for r in db.conn.execute(f"SELECT id FROM {kind.table} ORDER BY id")]


def get_index_names(db, table: str) -> set[str]:
    cur = db.conn.execute("SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = ?", (table,))
    return {r[0] for r in cur.fetchall()}


def find_record(db, kind: EntityKind, **filters) -> dict | None:
    """Oldest ``kind`` row matching every column=value filter (None matches NULL)."""
    clauses, params = [], []
    for column, value in filters.items():
        if value is None:
            clauses.append(f"{column} IS NULL")
        else:
            clauses.append(f"{column} = ?")
            params.append(value)
    where = " AND ".join(clauses) or "1 = 1"
    row = db.conn.execute(f"SELECT * FROM {kind.table} WHERE {where} ORDER BY id LIMIT 1", params).fetchone()
    return dict(row) if row is not None else None
