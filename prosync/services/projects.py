"""PlanBoard: projects and their progress."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from prosync.config import PROJECT_STATUSES
from prosync.repository import Query, RecordStore
from prosync.services.base import TableService, check_choice, require_text, require_user, to_iso
from prosync.services.notifications import NotificationService

logger = logging.getLogger(__name__)

_EDITABLE = ("name", "description", "status", "start_date", "end_date", "client_id", "color")


class ProjectService(TableService):
    table = "projects"
    resource_name = "Project"

    def __init__(self, store: RecordStore, notifications: NotificationService | None = None) -> None:
        super().__init__(store)
        self.notifications = notifications

    def _validate(self, values: dict[str, Any]) -> dict[str, Any]:
        if "name" in values:
            values["name"] = require_text(values["name"], "name", max_length=200)
        if "status" in values:
            check_choice(values["status"], PROJECT_STATUSES, "status")
        for field in ("start_date", "end_date"):
            if values.get(field):
                values[field] = to_iso(values[field], field)
        return values

    def list_projects(self, user_id: str, *, status: str | None = None) -> list[dict[str, Any]]:
        query = self._owner_query(require_user(user_id))
        if status:
            query.eq("status", status)
        return self.store.select(self.table, query.order("created_at", desc=True))

    def get_project(self, user_id: str, project_id: str) -> dict[str, Any]:
        return self._owned(project_id, require_user(user_id))

    def create_project(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        data = self._validate({k: v for k, v in values.items() if k in _EDITABLE})
        if "name" not in data:
            require_text(None, "name")
        data.setdefault("status", "active")
        data["user_id"] = require_user(user_id)
        project = self.store.insert(self.table, data)
        logger.info("project_created", extra={"project_id": project["id"]})
        return project

    def update_project(self, user_id: str, project_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        self._owned(project_id, require_user(user_id))
        data = self._validate({k: v for k, v in changes.items() if k in _EDITABLE})
        project = self._update_or_raise(project_id, data)
        if self.notifications:
            self.notifications.notify_project(user_id, project["name"], "project_updated", project_id=project_id)
        return project

    def delete_project(self, user_id: str, project_id: str) -> None:
        self._owned(project_id, require_user(user_id))
        self._delete_or_raise(project_id)
        logger.info("project_deleted", extra={"project_id": project_id})

    def project_progress(self, user_id: str, project_id: str) -> dict[str, Any]:
        project = self.get_project(user_id, project_id)
        tasks = self.store.select("tasks", Query().eq("project_id", project_id))
        by_status = Counter(task.get("status", "todo") for task in tasks)
        total = len(tasks)
        completed = by_status.get("completed", 0)
        return {
            "project_id": project["id"],
            "name": project["name"],
            "total_tasks": total,
            "by_status": dict(by_status),
            "completion_percent": round(completed / total * 100) if total else 0,
        }
