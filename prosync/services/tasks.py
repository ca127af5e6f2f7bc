"""TaskMaster: tasks and their rule-based priority analysis."""

from __future__ import annotations

import logging
from typing import Any

from prosync.config import TASK_PRIORITIES, TASK_STATUSES
from prosync.exceptions import RecordNotFoundError
from prosync.repository import Query, RecordStore, utc_now_iso
from prosync.services.base import TableService, check_choice, require_text, require_user, to_iso
from prosync.services.notifications import NotificationService

logger = logging.getLogger(__name__)

_EDITABLE = ("title", "description", "status", "priority", "due_date", "project_id", "assignee_id", "effort", "tags")


def score_task(task: dict[str, Any]) -> float:
    """Urgency weight from the due date plus weight from effort."""
    score = 0.6 if task.get("due_date") else 0.2
    score += 0.4 if task.get("effort") == "high" else 0.1
    return round(score, 2)


def analyze_priorities(tasks: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Return copies of *tasks* with ``priority_score`` and ``ai_priority`` added."""
    analyzed = []
    for task in tasks:
        score = score_task(task)
        if score > 0.7:
            suggested = "high"
        elif score < 0.3:
            suggested = "low"
        else:
            suggested = "medium"
        analyzed.append({**task, "priority_score": score, "ai_priority": suggested})
    return analyzed


class TaskService(TableService):
    table = "tasks"
    resource_name = "Task"
    owner_field = "created_by"

    def __init__(self, store: RecordStore, notifications: NotificationService | None = None) -> None:
        super().__init__(store)
        self.notifications = notifications

    def _visible(self, task_id: str, user_id: str) -> dict[str, Any]:
        task = self._get_or_raise(task_id)
        if user_id not in (task.get("created_by"), task.get("assignee_id")):
            raise RecordNotFoundError(self.resource_name, task_id)
        return task

    def _validate(self, values: dict[str, Any]) -> dict[str, Any]:
        if "title" in values:
            values["title"] = require_text(values["title"], "title", max_length=200)
        if "status" in values:
            check_choice(values["status"], TASK_STATUSES, "status")
        if "priority" in values:
            check_choice(values["priority"], TASK_PRIORITIES, "priority")
        if values.get("due_date"):
            values["due_date"] = to_iso(values["due_date"], "due_date")
        return values

    def list_tasks(
        self,
        user_id: str,
        *,
        status: str | None = None,
        priority: str | None = None,
        project_id: str | None = None,
        assignee_id: str | None = None,
    ) -> list[dict[str, Any]]:
        user_id = require_user(user_id)
        query = Query().any_eq(created_by=user_id, assignee_id=user_id)
        if status:
            query.eq("status", status)
        if priority:
            query.eq("priority", priority)
        if project_id:
            query.eq("project_id", project_id)
        if assignee_id:
            query.eq("assignee_id", assignee_id)
        return self.store.select(self.table, query.order("created_at", desc=True))

    def get_task(self, user_id: str, task_id: str) -> dict[str, Any]:
        return self._visible(task_id, require_user(user_id))

    def create_task(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        data = self._validate({k: v for k, v in values.items() if k in _EDITABLE})
        data.setdefault("status", "todo")
        data.setdefault("priority", "medium")
        if "title" not in data:
            require_text(None, "title")
        data["created_by"] = user_id
        task = self.store.insert(self.table, data)
        logger.info("task_created", extra={"task_id": task["id"], "project_id": task.get("project_id")})

        if self.notifications and task.get("assignee_id") and task["assignee_id"] != user_id:
            self.notifications.notify_task(task["assignee_id"], task["title"], "assigned", task_id=task["id"])
        return task

    def update_task(self, user_id: str, task_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        current = self._visible(task_id, user_id)
        data = self._validate({k: v for k, v in changes.items() if k in _EDITABLE})
        completing = data.get("status") == "completed" and current.get("status") != "completed"
        if completing:
            data["completed_at"] = utc_now_iso()
        elif data.get("status") and data["status"] != "completed":
            data["completed_at"] = None
        task = self._update_or_raise(task_id, data)

        if self.notifications:
            new_assignee = data.get("assignee_id")
            if new_assignee and new_assignee != current.get("assignee_id") and new_assignee != user_id:
                self.notifications.notify_task(new_assignee, task["title"], "assigned", task_id=task_id)
            if completing:
                self.notifications.notify_task(task.get("created_by"), task["title"], "completed", task_id=task_id)
        return task

    def delete_task(self, user_id: str, task_id: str) -> None:
        self._visible(task_id, require_user(user_id))
        self._delete_or_raise(task_id)
        self.store.delete_where("sprint_tasks", Query().eq("task_id", task_id))
        logger.info("task_deleted", extra={"task_id": task_id})

    def analyze_user_tasks(self, user_id: str, task_ids: list[str] | None = None) -> list[dict[str, Any]]:
        """Priority analysis for the given tasks, or all of the user's unfinished tasks."""
        if task_ids:
            tasks = [self.get_task(user_id, task_id) for task_id in task_ids]
        else:
            tasks = [t for t in self.list_tasks(user_id) if t.get("status") != "completed"]
        return analyze_priorities(tasks)

    def for_project(self, project_id: str) -> list[dict[str, Any]]:
        return self.store.select(self.table, Query().eq("project_id", project_id))
