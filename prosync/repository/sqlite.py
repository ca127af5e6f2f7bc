"""
SQLite backend for the record store.

Single-file database, one table per entity. Each row keeps the full record
as a JSON blob; filters and ordering go through ``json_extract`` so new
fields never need a migration.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from prosync.exceptions import DatabaseError
from prosync.repository.base import TABLES, Mutator, RecordStore
from prosync.repository.changes import ChangeFeed
from prosync.repository.query import Filter, Query
from prosync.security.sql import contains_pattern

logger = logging.getLogger(__name__)


def _column(name: str) -> str:
    # Column names are validated identifiers (see Query), safe to splice.
    return f"json_extract(data_json, '$.{name}')"


def _param(value: Any) -> Any:
    # json_extract() yields 1/0 for JSON booleans.
    if isinstance(value, bool):
        return int(value)
    return value


def compile_filter(flt: Filter) -> tuple[str, list[Any]]:
    """Compile one filter to a SQLite WHERE fragment and its parameters."""
    if flt.op == "search":
        pattern = contains_pattern(flt.value).lower()
        parts = [f"LOWER({_column(c)}) LIKE ? ESCAPE '\\'" for c in flt.columns]
        return "(" + " OR ".join(parts) + ")", [pattern] * len(parts)

    if flt.op == "any_eq":
        parts, params = [], []
        for column, value in zip(flt.columns, flt.value):
            sql, p = compile_filter(Filter("eq", (column,), value))
            parts.append(sql)
            params.extend(p)
        return "(" + " OR ".join(parts) + ")", params

    col = _column(flt.columns[0])
    if flt.op == "in":
        if not flt.value:
            return "0", []
        placeholders = ", ".join("?" for _ in flt.value)
        return f"{col} IN ({placeholders})", [_param(v) for v in flt.value]
    if flt.op == "eq":
        if flt.value is None:
            return f"{col} IS NULL", []
        return f"{col} = ?", [_param(flt.value)]
    if flt.op == "neq":
        if flt.value is None:
            return f"{col} IS NOT NULL", []
        return f"({col} IS NULL OR {col} != ?)", [_param(flt.value)]
    if flt.op == "gte":
        return f"{col} >= ?", [_param(flt.value)]
    if flt.op == "lte":
        return f"{col} <= ?", [_param(flt.value)]
    raise ValueError(f"Unsupported filter operation: {flt.op}")


def compile_where(query: Query) -> tuple[str, list[Any]]:
    if not query.filters:
        return "", []
    parts, params = [], []
    for flt in query.filters:
        sql, p = compile_filter(flt)
        parts.append(sql)
        params.extend(p)
    return " WHERE " + " AND ".join(parts), params


def compile_order(query: Query) -> str:
    if not query.ordering:
        return " ORDER BY seq ASC"
    parts = [f"{_column(c)} {'DESC' if desc else 'ASC'}" for c, desc in query.ordering]
    # Insertion order breaks ties in the direction of the primary key.
    parts.append("seq DESC" if query.ordering[0][1] else "seq ASC")
    return " ORDER BY " + ", ".join(parts)


class SQLiteRecordStore(RecordStore):
    backend = "sqlite"

    def __init__(self, db_path: str | Path = "data/prosync.db", *, changes: ChangeFeed | None = None) -> None:
        super().__init__(changes)
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _conn(self, operation: str, table: str | None = None) -> Iterator[sqlite3.Connection]:
        conn: sqlite3.Connection | None = None
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=10)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL;")
            conn.execute("PRAGMA synchronous = NORMAL;")
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error(
                "sqlite_operation_failed",
                extra={"operation": operation, "table": table, "error": str(exc)},
            )
            raise DatabaseError(operation=operation, table=table) from exc
        finally:
            if conn is not None:
                conn.close()

    def _init_db(self) -> None:
        statements = []
        for table in sorted(TABLES):
            statements.append(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    data_json TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_{table}_user_id ON {table}({_column("user_id")});
                """
            )
        with self._conn("init_db") as conn:
            conn.executescript("\n".join(statements))

    def _insert_row(self, table: str, record: dict[str, Any]) -> None:
        with self._conn("insert", table) as conn:
            conn.execute(
                f"INSERT INTO {table} (id, data_json) VALUES (?, ?)",
                (record["id"], json.dumps(record, ensure_ascii=False)),
            )

    def _select_rows(self, table: str, query: Query) -> list[dict[str, Any]]:
        where, params = compile_where(query)
        sql = f"SELECT data_json FROM {table}{where}{compile_order(query)}"
        if query.max_rows is not None:
            sql += " LIMIT ?"
            params = [*params, query.max_rows]
        with self._conn("select", table) as conn:
            rows = conn.execute(sql, params).fetchall()
            return [json.loads(row["data_json"]) for row in rows]

    def _count_rows(self, table: str, query: Query) -> int:
        where, params = compile_where(query)
        with self._conn("count", table) as conn:
            row = conn.execute(f"SELECT COUNT(*) AS c FROM {table}{where}", params).fetchone()
            return int(row["c"] if row else 0)

    def _get_row(self, table: str, record_id: str) -> dict[str, Any] | None:
        with self._conn("get", table) as conn:
            row = conn.execute(f"SELECT data_json FROM {table} WHERE id = ?", (record_id,)).fetchone()
            return json.loads(row["data_json"]) if row else None

    def _update_row(
        self, table: str, record_id: str, mutate: Mutator
    ) -> tuple[dict[str, Any], dict[str, Any]] | None:
        with self._conn("update", table) as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(f"SELECT data_json FROM {table} WHERE id = ?", (record_id,)).fetchone()
            if not row:
                return None
            old = json.loads(row["data_json"])
            new = mutate(dict(old))
            conn.execute(
                f"UPDATE {table} SET data_json = ? WHERE id = ?",
                (json.dumps(new, ensure_ascii=False), record_id),
            )
            return old, new

    def _delete_row(self, table: str, record_id: str) -> dict[str, Any] | None:
        with self._conn("delete", table) as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(f"SELECT data_json FROM {table} WHERE id = ?", (record_id,)).fetchone()
            if not row:
                return None
            conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            return json.loads(row["data_json"])
