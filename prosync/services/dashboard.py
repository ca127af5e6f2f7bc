"""Dashboard counters and productivity insights computed from stored rows."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from prosync.exceptions import ValidationError
from prosync.repository import Query, RecordStore
from prosync.services.base import require_user
from prosync.services.time_tracking import round_half_up


class DashboardService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def _tasks(self, user_id: str, query: Query | None = None) -> list[dict[str, Any]]:
        query = query or Query()
        return self.store.select("tasks", query.any_eq(created_by=user_id, assignee_id=user_id))

    def _minutes(self, user_id: str, query: Query | None = None) -> tuple[int, int]:
        entries = self.store.select("time_entries", (query or Query()).eq("user_id", user_id))
        total = sum(int(e.get("time_spent") or 0) for e in entries)
        billable = sum(int(e.get("time_spent") or 0) for e in entries if e.get("billable"))
        return total, billable

    def dashboard_stats(self, user_id: str) -> dict[str, Any]:
        user_id = require_user(user_id)
        total_minutes, _ = self._minutes(user_id)
        return {
            "completed_tasks": len(self._tasks(user_id, Query().eq("status", "completed"))),
            "hours_tracked": int(round_half_up(total_minutes / 60)),
            "open_issues": self.store.count("risks", Query().eq("status", "open")),
            "team_members": self.store.count("team_members", Query().eq("user_id", user_id)),
        }

    def productivity_metrics(self, user_id: str) -> dict[str, Any]:
        """
        Ratios over everything the user has tracked.

        ``efficiency_score`` averages the billable ratio and the task
        completion ratio, scaled to 0-100.
        """
        user_id = require_user(user_id)
        tasks = self._tasks(user_id)
        completed = sum(1 for t in tasks if t.get("status") == "completed")
        total_minutes, billable_minutes = self._minutes(user_id)
        hours = round_half_up(total_minutes / 60, 1)

        billable_ratio = billable_minutes / total_minutes if total_minutes else 0.0
        completion_ratio = completed / len(tasks) if tasks else 0.0
        return {
            "tasks_total": len(tasks),
            "tasks_completed": completed,
            "hours_tracked": hours,
            "tasks_per_hour": round(completed / hours, 2) if hours else 0.0,
            "billable_ratio": round(billable_ratio, 2),
            "completion_ratio": round(completion_ratio, 2),
            "efficiency_score": int(round_half_up((billable_ratio + completion_ratio) / 2 * 100)),
        }

    def activity_summary(self, user_id: str, days: int = 7, *, now: datetime | None = None) -> dict[str, Any]:
        user_id = require_user(user_id)
        if days < 1 or days > 365:
            raise ValidationError("must be between 1 and 365", field="days")
        since = ((now or datetime.now(timezone.utc)) - timedelta(days=days)).isoformat(timespec="microseconds")

        tasks = self._tasks(user_id, Query().gte("updated_at", since))
        total_minutes, _ = self._minutes(user_id, Query().gte("date", since))
        expenses = self.store.select("expenses", Query().eq("user_id", user_id).gte("created_at", since))
        return {
            "days": days,
            "since": since,
            "tasks_updated": len(tasks),
            "tasks_completed": sum(1 for t in tasks if t.get("status") == "completed"),
            "hours_logged": round_half_up(total_minutes / 60, 1),
            "expenses_added": len(expenses),
            "expense_amount": round(sum(float(e.get("amount") or 0) for e in expenses), 2),
        }
