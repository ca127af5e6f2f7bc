"""
Record store contract shared by the SQLite and PostgreSQL backends.

Rows are JSON documents keyed by ``id``. The store stamps ``id``,
``created_at`` and ``updated_at``, and publishes a change event after each
committed write. Backends only implement the raw row operations.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable

from prosync.exceptions import DataStoreError
from prosync.repository.changes import DELETE, INSERT, UPDATE, ChangeEvent, ChangeFeed
from prosync.repository.query import Query

logger = logging.getLogger(__name__)

TABLES = frozenset(
    {
        "tasks",
        "projects",
        "boards",
        "sprints",
        "sprint_tasks",
        "time_entries",
        "expenses",
        "expense_categories",
        "budgets",
        "clients",
        "client_notes",
        "resources",
        "resource_allocations",
        "resource_skills",
        "team_members",
        "risks",
        "risk_mitigations",
        "notifications",
        "knowledge_pages",
        "page_versions",
        "page_comments",
        "tickets",
        "ticket_comments",
        "change_requests",
        "problem_tickets",
        "user_settings",
        "api_keys",
        "activity_logs",
    }
)

# Never changed by update().
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})

Mutator = Callable[[dict[str, Any]], dict[str, Any]]


def utc_now_iso() -> str:
    """Current UTC time as a fixed-width ISO-8601 string (sorts lexically)."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class RecordStore(ABC):
    backend = "abstract"

    def __init__(self, changes: ChangeFeed | None = None) -> None:
        self.changes = changes or ChangeFeed()

    # -- raw row operations -------------------------------------------------

    @abstractmethod
    def _insert_row(self, table: str, record: dict[str, Any]) -> None: ...

    @abstractmethod
    def _select_rows(self, table: str, query: Query) -> list[dict[str, Any]]: ...

    @abstractmethod
    def _count_rows(self, table: str, query: Query) -> int: ...

    @abstractmethod
    def _get_row(self, table: str, record_id: str) -> dict[str, Any] | None: ...

    @abstractmethod
    def _update_row(
        self, table: str, record_id: str, mutate: Mutator
    ) -> tuple[dict[str, Any], dict[str, Any]] | None:
        """Apply *mutate* to the stored row atomically; return (old, new) or None."""

    @abstractmethod
    def _delete_row(self, table: str, record_id: str) -> dict[str, Any] | None: ...

    def close(self) -> None:
        """Release backend resources (no-op by default)."""

    # -- public API ---------------------------------------------------------

    @staticmethod
    def _check_table(table: str) -> str:
        if table not in TABLES:
            raise DataStoreError(f"Unknown table {table!r}", operation="resolve_table", table=table)
        return table

    def _publish(self, table: str, event: str, record: dict | None, old_record: dict | None) -> None:
        self.changes.publish(
            ChangeEvent(
                table=table,
                event=event,
                record=record,
                old_record=old_record,
                committed_at=utc_now_iso(),
            )
        )

    def insert(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        self._check_table(table)
        now = utc_now_iso()
        record = dict(values)
        record["id"] = str(record.get("id") or uuid.uuid4())
        record.setdefault("created_at", now)
        record["updated_at"] = now
        self._insert_row(table, record)
        logger.debug("record_inserted", extra={"table": table, "record_id": record["id"]})
        self._publish(table, INSERT, record, None)
        return record

    def select(self, table: str, query: Query | None = None) -> list[dict[str, Any]]:
        self._check_table(table)
        return self._select_rows(table, query or Query())

    def count(self, table: str, query: Query | None = None) -> int:
        self._check_table(table)
        return self._count_rows(table, query or Query())

    def get(self, table: str, record_id: str) -> dict[str, Any] | None:
        self._check_table(table)
        if not record_id:
            return None
        return self._get_row(table, str(record_id))

    def first(self, table: str, query: Query) -> dict[str, Any] | None:
        rows = self.select(table, query.limit(1))
        return rows[0] if rows else None

    def update(self, table: str, record_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        """Shallow-merge *changes* into the row; ``None`` when it does not exist."""
        self._check_table(table)
        if not record_id:
            return None
        clean = {k: v for k, v in changes.items() if k not in IMMUTABLE_FIELDS}

        def mutate(current: dict[str, Any]) -> dict[str, Any]:
            merged = {**current, **clean}
            merged["updated_at"] = utc_now_iso()
            return merged

        result = self._update_row(table, str(record_id), mutate)
        if result is None:
            return None
        old, new = result
        self._publish(table, UPDATE, new, old)
        return new

    def update_where(self, table: str, query: Query, changes: dict[str, Any]) -> list[dict[str, Any]]:
        updated = []
        for row in self.select(table, query):
            record = self.update(table, row["id"], changes)
            if record is not None:
                updated.append(record)
        return updated

    def delete(self, table: str, record_id: str) -> bool:
        self._check_table(table)
        if not record_id:
            return False
        old = self._delete_row(table, str(record_id))
        if old is None:
            return False
        self._publish(table, DELETE, None, old)
        return True

    def delete_where(self, table: str, query: Query) -> int:
        return sum(1 for row in self.select(table, query) if self.delete(table, row["id"]))
