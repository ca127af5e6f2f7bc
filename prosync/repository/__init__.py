"""Record store backends and the change feed."""

from __future__ import annotations

import logging

from prosync.config import Settings, get_settings
from prosync.exceptions import DatabaseError
from prosync.repository.base import TABLES, RecordStore, utc_now_iso
from prosync.repository.changes import ChangeEvent, ChangeFeed, Subscription
from prosync.repository.query import Query
from prosync.repository.sqlite import SQLiteRecordStore

logger = logging.getLogger(__name__)


def open_store(settings: Settings | None = None) -> RecordStore:
    """
    Open the configured record store.

    PostgreSQL when a database URL is configured and reachable; otherwise
    the local SQLite file.
    """
    settings = settings or get_settings()
    if settings.database_url:
        from prosync.repository.postgres import PostgresRecordStore

        try:
            return PostgresRecordStore(settings.database_url)
        except DatabaseError as exc:
            logger.warning("open_store: PostgreSQL unavailable, using SQLite at %s: %s", settings.db_path, exc)
    return SQLiteRecordStore(settings.db_path)


__all__ = [
    "TABLES",
    "ChangeEvent",
    "ChangeFeed",
    "Query",
    "RecordStore",
    "SQLiteRecordStore",
    "Subscription",
    "open_store",
    "utc_now_iso",
]
