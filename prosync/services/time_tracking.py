"""TimeTrackPro: time entries and the weekly summary."""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from prosync.config import Settings, get_settings
from prosync.exceptions import ValidationError
from prosync.repository import RecordStore, utc_now_iso
from prosync.services.base import TableService, parse_datetime, require_user, to_iso
from prosync.services.notifications import NotificationService

logger = logging.getLogger(__name__)

_EDITABLE = ("description", "project", "project_id", "task_id", "time_spent", "billable", "date", "tags")


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def week_start(day: date) -> date:
    """Sunday on or before *day*."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _day_bound(value: Any, field: str, *, end: bool) -> str:
    """ISO bound for a date filter; a bare date covers the whole day."""
    text = str(value).strip()
    if len(text) == 10:
        day = parse_datetime(text, field).date()
        moment = datetime.combine(day, time.max if end else time.min, tzinfo=timezone.utc)
        return moment.isoformat(timespec="microseconds")
    return to_iso(text, field)


class TimeTrackingService(TableService):
    table = "time_entries"
    resource_name = "Time entry"

    def __init__(
        self,
        store: RecordStore,
        notifications: NotificationService | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(store)
        self.notifications = notifications
        self.settings = settings or get_settings()

    def _validate(self, values: dict[str, Any]) -> dict[str, Any]:
        if "time_spent" in values:
            try:
                minutes = int(values["time_spent"])
            except (TypeError, ValueError) as exc:
                raise ValidationError("must be a whole number of minutes", field="time_spent") from exc
            if minutes < 0:
                raise ValidationError("must not be negative", field="time_spent")
            values["time_spent"] = minutes
        if values.get("date"):
            values["date"] = to_iso(values["date"], "date")
        if "billable" in values:
            values["billable"] = bool(values["billable"])
        return values

    def _check_long_session(self, user_id: str, entry: dict[str, Any]) -> None:
        minutes = entry.get("time_spent") or 0
        if self.notifications and minutes > self.settings.long_session_minutes:
            hours = round_half_up(minutes / 60, 1)
            self.notifications.notify_time_tracking(
                user_id,
                f'Time entry "{entry.get("description")}" ran for {hours} hours. Remember to take breaks.',
                "session_long",
                entry_id=entry["id"],
            )

    def list_entries(
        self,
        user_id: str,
        *,
        project_id: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[dict[str, Any]]:
        query = self._owner_query(require_user(user_id))
        if project_id:
            query.eq("project_id", project_id)
        if start_date:
            query.gte("date", _day_bound(start_date, "start_date", end=False))
        if end_date:
            query.lte("date", _day_bound(end_date, "end_date", end=True))
        return self.store.select(self.table, query.order("date", desc=True))

    def get_entry(self, user_id: str, entry_id: str) -> dict[str, Any]:
        return self._owned(entry_id, require_user(user_id))

    def create_entry(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        data = self._validate({k: v for k, v in values.items() if k in _EDITABLE and v is not None})
        data.setdefault("description", "Time entry")
        data.setdefault("project", "General")
        data.setdefault("time_spent", 60)
        data.setdefault("billable", False)
        data.setdefault("date", utc_now_iso())
        data["user_id"] = user_id
        entry = self.store.insert(self.table, data)
        logger.info("time_entry_created", extra={"entry_id": entry["id"], "minutes": entry["time_spent"]})
        self._check_long_session(user_id, entry)
        return entry

    def update_entry(self, user_id: str, entry_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        self._owned(entry_id, user_id)
        data = self._validate({k: v for k, v in changes.items() if k in _EDITABLE})
        entry = self._update_or_raise(entry_id, data)
        if "time_spent" in data:
            self._check_long_session(user_id, entry)
        return entry

    def delete_entry(self, user_id: str, entry_id: str) -> None:
        self._owned(entry_id, require_user(user_id))
        self._delete_or_raise(entry_id)

    def summary(self, user_id: str, *, today: date | None = None) -> dict[str, Any]:
        """Hours today and this week (weeks start on Sunday) plus a productivity score."""
        user_id = require_user(user_id)
        today = today or datetime.now(timezone.utc).date()
        start = week_start(today)
        entries = self.list_entries(user_id, start_date=start.isoformat())

        minutes_today = minutes_week = billable_week = counted = 0
        for entry in entries:
            entry_day = parse_datetime(entry["date"], "date").date()
            if entry_day > today:
                continue
            counted += 1
            minutes = entry.get("time_spent") or 0
            minutes_week += minutes
            if entry.get("billable"):
                billable_week += minutes
            if entry_day == today:
                minutes_today += minutes

        total_week = round_half_up(minutes_week / 60, 1)
        billable_hours = round_half_up(billable_week / 60, 1)
        ratio = billable_hours / max(total_week, 1) * 100
        return {
            "week_start": start.isoformat(),
            "total_hours_today": round_half_up(minutes_today / 60, 1),
            "total_hours_week": total_week,
            "billable_hours_week": billable_hours,
            "productivity_score": int(min(95, max(60, round_half_up(ratio)))),
            "entries_this_week": counted,
        }
