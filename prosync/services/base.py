"""Shared plumbing for the service objects."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Iterable

from prosync.exceptions import AuthenticationRequiredError, RecordNotFoundError, ValidationError
from prosync.repository import Query, RecordStore


def require_user(user_id: str | None) -> str:
    user_id = (user_id or "").strip()
    if not user_id:
        raise AuthenticationRequiredError()
    return user_id


def require_text(value: Any, field: str, *, max_length: int = 500) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError("is required", field=field)
    if len(text) > max_length:
        raise ValidationError(f"must be at most {max_length} characters", field=field)
    return text


def check_choice(value: Any, choices: Iterable[str], field: str) -> str:
    choices = frozenset(choices)
    if value not in choices:
        raise ValidationError(f"must be one of {', '.join(sorted(choices))}", field=field, detail=f"got {value!r}")
    return value


def parse_datetime(value: Any, field: str) -> datetime:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value or "").strip()
        if not text:
            raise ValidationError("is required", field=field)
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError("must be an ISO-8601 date", field=field, detail=f"got {text!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(value: Any, field: str) -> str:
    return parse_datetime(value, field).isoformat(timespec="microseconds")


def drop_none(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


class TableService:
    """Base for services that own one primary table."""

    table: str = ""
    resource_name: str = "Record"
    owner_field: str | None = "user_id"

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def _get_or_raise(self, record_id: str, table: str | None = None, resource_name: str | None = None) -> dict:
        record = self.store.get(table or self.table, record_id)
        if record is None:
            raise RecordNotFoundError(resource_name or self.resource_name, record_id)
        return record

    def _owned(self, record_id: str, user_id: str) -> dict:
        """Fetch a record owned by *user_id*; other users' records read as missing."""
        record = self._get_or_raise(record_id)
        if self.owner_field and record.get(self.owner_field) != user_id:
            raise RecordNotFoundError(self.resource_name, record_id)
        return record

    def _update_or_raise(self, record_id: str, changes: dict[str, Any], table: str | None = None) -> dict:
        record = self.store.update(table or self.table, record_id, changes)
        if record is None:
            raise RecordNotFoundError(self.resource_name, record_id)
        return record

    def _delete_or_raise(self, record_id: str, table: str | None = None) -> None:
        if not self.store.delete(table or self.table, record_id):
            raise RecordNotFoundError(self.resource_name, record_id)

    def _owner_query(self, user_id: str) -> Query:
        return Query().eq(self.owner_field, user_id)
