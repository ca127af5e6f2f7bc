"""
PostgreSQL backend for the record store.

Records live in a ``jsonb`` column. Connections are opened per operation
(the hosted database fronts its own pooler); each write runs in its own
transaction and the change event is published only after commit.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import psycopg
from psycopg import OperationalError
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from prosync.exceptions import DatabaseError
from prosync.repository.base import TABLES, Mutator, RecordStore
from prosync.repository.changes import ChangeFeed
from prosync.repository.query import Filter, Query
from prosync.security.sql import contains_pattern

logger = logging.getLogger(__name__)


def _json(column: str) -> str:
    return f"data->'{column}'"


def _text(column: str) -> str:
    return f"data->>'{column}'"


def compile_filter(flt: Filter) -> tuple[str, list[Any]]:
    """Compile one filter to a PostgreSQL WHERE fragment and its parameters."""
    if flt.op == "search":
        pattern = contains_pattern(flt.value)
        parts = [f"{_text(c)} ILIKE %s" for c in flt.columns]
        return "(" + " OR ".join(parts) + ")", [pattern] * len(parts)

    if flt.op == "any_eq":
        parts, params = [], []
        for column, value in zip(flt.columns, flt.value):
            sql, p = compile_filter(Filter("eq", (column,), value))
            parts.append(sql)
            params.extend(p)
        return "(" + " OR ".join(parts) + ")", params

    col = _json(flt.columns[0])
    if flt.op == "in":
        if not flt.value:
            return "FALSE", []
        parts = [f"{col} = %s" for _ in flt.value]
        return "(" + " OR ".join(parts) + ")", [Jsonb(v) for v in flt.value]
    if flt.op == "eq":
        if flt.value is None:
            return f"COALESCE({col}, 'null'::jsonb) = 'null'::jsonb", []
        return f"{col} = %s", [Jsonb(flt.value)]
    if flt.op == "neq":
        if flt.value is None:
            return f"COALESCE({col}, 'null'::jsonb) <> 'null'::jsonb", []
        return f"({col} IS NULL OR {col} <> %s)", [Jsonb(flt.value)]
    if flt.op == "gte":
        return f"{col} >= %s", [Jsonb(flt.value)]
    if flt.op == "lte":
        return f"{col} <= %s", [Jsonb(flt.value)]
    raise ValueError(f"Unsupported filter operation: {flt.op}")


def compile_select(table: str, query: Query, *, columns: str = "data") -> tuple[str, list[Any]]:
    """Compile a full SELECT statement for *table*."""
    sql = f"SELECT {columns} FROM {table}"
    params: list[Any] = []
    if query.filters:
        parts = []
        for flt in query.filters:
            fragment, p = compile_filter(flt)
            parts.append(fragment)
            params.extend(p)
        sql += " WHERE " + " AND ".join(parts)
    if columns == "data":
        if query.ordering:
            order = [f"{_json(c)} {'DESC' if desc else 'ASC'}" for c, desc in query.ordering]
            order.append("seq DESC" if query.ordering[0][1] else "seq ASC")
            sql += " ORDER BY " + ", ".join(order)
        else:
            sql += " ORDER BY seq ASC"
        if query.max_rows is not None:
            sql += " LIMIT %s"
            params.append(query.max_rows)
    return sql, params


class PostgresRecordStore(RecordStore):
    backend = "postgres"

    def __init__(self, db_url: str, *, changes: ChangeFeed | None = None) -> None:
        super().__init__(changes)
        self._db_url = db_url
        self._init_db()
        logger.info("PostgresRecordStore: connected")

    @contextmanager
    def _conn(self, operation: str, table: str | None = None) -> Iterator[psycopg.Connection]:
        try:
            with psycopg.connect(self._db_url, row_factory=dict_row) as conn:
                yield conn
        except (OperationalError, OSError) as exc:
            logger.warning("PostgresRecordStore: %s failed: %s", operation, exc)
            raise DatabaseError(operation=operation, table=table) from exc
        except psycopg.Error as exc:
            logger.error("PostgresRecordStore: %s failed: %s", operation, exc)
            raise DatabaseError(operation=operation, table=table) from exc

    def _init_db(self) -> None:
        with self._conn("init_db") as conn:
            with conn.cursor() as cur:
                for table in sorted(TABLES):
                    cur.execute(
                        f"CREATE TABLE IF NOT EXISTS {table} ("
                        " seq BIGSERIAL,"
                        " id TEXT PRIMARY KEY,"
                        " data JSONB NOT NULL)"
                    )
                    cur.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_user_id ON {table} ((data->>'user_id'))")

    def _insert_row(self, table: str, record: dict[str, Any]) -> None:
        with self._conn("insert", table) as conn:
            conn.execute(f"INSERT INTO {table} (id, data) VALUES (%s, %s)", (record["id"], Jsonb(record)))

    def _select_rows(self, table: str, query: Query) -> list[dict[str, Any]]:
        sql, params = compile_select(table, query)
        with self._conn("select", table) as conn:
            return [row["data"] for row in conn.execute(sql, params).fetchall()]

    def _count_rows(self, table: str, query: Query) -> int:
        sql, params = compile_select(table, query, columns="COUNT(*) AS c")
        with self._conn("count", table) as conn:
            row = conn.execute(sql, params).fetchone()
            return int(row["c"] if row else 0)

    def _get_row(self, table: str, record_id: str) -> dict[str, Any] | None:
        with self._conn("get", table) as conn:
            row = conn.execute(f"SELECT data FROM {table} WHERE id = %s", (record_id,)).fetchone()
            return row["data"] if row else None

    def _update_row(
        self, table: str, record_id: str, mutate: Mutator
    ) -> tuple[dict[str, Any], dict[str, Any]] | None:
        with self._conn("update", table) as conn:
            row = conn.execute(f"SELECT data FROM {table} WHERE id = %s FOR UPDATE", (record_id,)).fetchone()
            if not row:
                return None
            old = row["data"]
            new = mutate(dict(old))
            conn.execute(f"UPDATE {table} SET data = %s WHERE id = %s", (Jsonb(new), record_id))
            return old, new

    def _delete_row(self, table: str, record_id: str) -> dict[str, Any] | None:
        with self._conn("delete", table) as conn:
            row = conn.execute(f"DELETE FROM {table} WHERE id = %s RETURNING data", (record_id,)).fetchone()
            return row["data"] if row else None
