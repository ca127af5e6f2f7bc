"""
PlanBoard boards and sprints.

A board belongs to a project and describes how its tasks are laid out
(kanban columns, a scrum backlog, ...). Sprints hang off a board; tasks are
committed to a sprint with story points, and a sprint's velocity is the sum
of the current story points of its completed tasks.
"""

from __future__ import annotations

import logging
from typing import Any

from prosync.config import BOARD_TYPES, SPRINT_STATUSES
from prosync.exceptions import RecordNotFoundError, ValidationError
from prosync.repository import Query, RecordStore, utc_now_iso
from prosync.services.base import TableService, check_choice, parse_datetime, require_text, require_user, to_iso
from prosync.services.tasks import TaskService

logger = logging.getLogger(__name__)

DEFAULT_COLUMNS = (
    {"id": "todo", "name": "To Do"},
    {"id": "in_progress", "name": "In Progress"},
    {"id": "done", "name": "Done"},
)

_BOARD_FIELDS = ("name", "type", "description", "config")
_SPRINT_FIELDS = ("name", "goal", "start_date", "end_date", "status", "capacity")


def _story_points(value: Any) -> int | None:
    if value is None:
        return None
    try:
        points = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("must be a whole number", field="story_points") from exc
    if points < 0:
        raise ValidationError("must not be negative", field="story_points")
    return points


class BoardService(TableService):
    table = "boards"
    resource_name = "Board"

    def __init__(self, store: RecordStore, tasks: TaskService) -> None:
        super().__init__(store)
        self.tasks = tasks

    def _owned_project(self, user_id: str, project_id: str | None) -> dict[str, Any]:
        project = self.store.get("projects", project_id) if project_id else None
        if project is None or project.get("user_id") != user_id:
            raise RecordNotFoundError("Project", project_id)
        return project

    def _validate_board(self, values: dict[str, Any]) -> dict[str, Any]:
        if "name" in values:
            values["name"] = require_text(values["name"], "name", max_length=200)
        if "type" in values:
            check_choice(values["type"], BOARD_TYPES, "type")
        if "config" in values and not isinstance(values["config"], dict):
            raise ValidationError("must be an object", field="config")
        return values

    # -- boards -------------------------------------------------------------

    def list_boards(self, user_id: str, project_id: str) -> list[dict[str, Any]]:
        user_id = require_user(user_id)
        self._owned_project(user_id, project_id)
        query = self._owner_query(user_id).eq("project_id", project_id)
        return self.store.select(self.table, query.order("created_at"))

    def get_board(self, user_id: str, board_id: str) -> dict[str, Any]:
        return self._owned(board_id, require_user(user_id))

    def create_board(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        project = self._owned_project(user_id, values.get("project_id"))
        data = self._validate_board({k: v for k, v in values.items() if k in _BOARD_FIELDS and v is not None})
        if "name" not in data:
            require_text(None, "name")
        data.setdefault("type", "kanban")
        data.setdefault("description", "")
        data.setdefault("config", {"columns": [dict(column) for column in DEFAULT_COLUMNS]})
        data.update({"project_id": project["id"], "user_id": user_id})
        board = self.store.insert(self.table, data)
        logger.info("board_created", extra={"board_id": board["id"], "project_id": project["id"]})
        return board

    def update_board(self, user_id: str, board_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        self._owned(board_id, require_user(user_id))
        data = self._validate_board({k: v for k, v in changes.items() if k in _BOARD_FIELDS})
        return self._update_or_raise(board_id, data)

    def delete_board(self, user_id: str, board_id: str) -> None:
        user_id = require_user(user_id)
        self._owned(board_id, user_id)
        for sprint in self.store.select("sprints", Query().eq("board_id", board_id)):
            self._drop_sprint(sprint["id"])
        self._delete_or_raise(board_id)

    # -- sprints ------------------------------------------------------------

    def _sprint(self, user_id: str, sprint_id: str) -> dict[str, Any]:
        sprint = self.store.get("sprints", sprint_id)
        if sprint is None or sprint.get("user_id") != user_id:
            raise RecordNotFoundError("Sprint", sprint_id)
        return sprint

    def _validate_sprint(self, values: dict[str, Any], current: dict[str, Any] | None = None) -> dict[str, Any]:
        if "name" in values:
            values["name"] = require_text(values["name"], "name", max_length=200)
        if "status" in values:
            check_choice(values["status"], SPRINT_STATUSES, "status")
        if "capacity" in values:
            try:
                values["capacity"] = int(values["capacity"])
            except (TypeError, ValueError) as exc:
                raise ValidationError("must be a whole number", field="capacity") from exc
            if values["capacity"] < 0:
                raise ValidationError("must not be negative", field="capacity")
        for field in ("start_date", "end_date"):
            if values.get(field):
                values[field] = to_iso(values[field], field)

        merged = {**(current or {}), **values}
        if merged.get("start_date") and merged.get("end_date"):
            if parse_datetime(merged["end_date"], "end_date") < parse_datetime(merged["start_date"], "start_date"):
                raise ValidationError("must not be before start_date", field="end_date")
        return values

    def list_sprints(self, user_id: str, board_id: str) -> list[dict[str, Any]]:
        self.get_board(user_id, board_id)
        return self.store.select("sprints", Query().eq("board_id", board_id).order("created_at", desc=True))

    def get_sprint(self, user_id: str, sprint_id: str) -> dict[str, Any]:
        return self._sprint(require_user(user_id), sprint_id)

    def create_sprint(self, user_id: str, board_id: str, values: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        board = self.get_board(user_id, board_id)
        data = self._validate_sprint({k: v for k, v in values.items() if k in _SPRINT_FIELDS and v is not None})
        if "name" not in data:
            require_text(None, "name")
        data.setdefault("status", "planned")
        data.update(
            {
                "board_id": board["id"],
                "project_id": board["project_id"],
                "user_id": user_id,
                "capacity": data.get("capacity", 0),
                "velocity": 0,
            }
        )
        sprint = self.store.insert("sprints", data)
        logger.info("sprint_created", extra={"sprint_id": sprint["id"], "board_id": board["id"]})
        return sprint

    def update_sprint(self, user_id: str, sprint_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply *changes*; completing a sprint records its final velocity."""
        user_id = require_user(user_id)
        current = self._sprint(user_id, sprint_id)
        data = self._validate_sprint({k: v for k, v in changes.items() if k in _SPRINT_FIELDS}, current)
        if data.get("status") == "completed" and current.get("status") != "completed":
            data["velocity"] = self.calculate_velocity(user_id, sprint_id)["velocity"]
            data["completed_at"] = utc_now_iso()
        return self._update_or_raise(sprint_id, data, "sprints")

    def _drop_sprint(self, sprint_id: str) -> None:
        for membership in self.store.select("sprint_tasks", Query().eq("sprint_id", sprint_id)):
            self.store.update("tasks", membership["task_id"], {"sprint_id": None})
        self.store.delete_where("sprint_tasks", Query().eq("sprint_id", sprint_id))
        self.store.delete("sprints", sprint_id)

    def delete_sprint(self, user_id: str, sprint_id: str) -> None:
        self._sprint(require_user(user_id), sprint_id)
        self._drop_sprint(sprint_id)

    # -- sprint membership --------------------------------------------------

    def _membership(self, sprint_id: str, task_id: str) -> dict[str, Any] | None:
        return self.store.first("sprint_tasks", Query().eq("sprint_id", sprint_id).eq("task_id", task_id))

    def list_sprint_tasks(self, user_id: str, sprint_id: str) -> list[dict[str, Any]]:
        self._sprint(require_user(user_id), sprint_id)
        return self.store.select("sprint_tasks", Query().eq("sprint_id", sprint_id).order("committed_at"))

    def add_task_to_sprint(
        self,
        user_id: str,
        sprint_id: str,
        task_id: str,
        story_points: Any = None,
    ) -> dict[str, Any]:
        """Commit a task to the sprint, moving it out of any other sprint."""
        user_id = require_user(user_id)
        self._sprint(user_id, sprint_id)
        task = self.tasks.get_task(user_id, task_id)
        if self._membership(sprint_id, task_id):
            raise ValidationError("is already in this sprint", field="task_id")
        points = _story_points(story_points)

        self.store.delete_where("sprint_tasks", Query().eq("task_id", task["id"]))
        membership = self.store.insert(
            "sprint_tasks",
            {
                "sprint_id": sprint_id,
                "task_id": task["id"],
                "user_id": user_id,
                "committed_at": utc_now_iso(),
                "initial_story_points": points,
                "current_story_points": points,
            },
        )
        self.store.update("tasks", task["id"], {"sprint_id": sprint_id})
        return membership

    def update_story_points(self, user_id: str, sprint_id: str, task_id: str, story_points: Any) -> dict[str, Any]:
        self._sprint(require_user(user_id), sprint_id)
        membership = self._membership(sprint_id, task_id)
        if membership is None:
            raise RecordNotFoundError("Sprint task", task_id)
        return self.store.update(
            "sprint_tasks", membership["id"], {"current_story_points": _story_points(story_points)}
        )

    def remove_task_from_sprint(self, user_id: str, sprint_id: str, task_id: str) -> None:
        self._sprint(require_user(user_id), sprint_id)
        membership = self._membership(sprint_id, task_id)
        if membership is None:
            raise RecordNotFoundError("Sprint task", task_id)
        self.store.delete("sprint_tasks", membership["id"])
        self.store.update("tasks", task_id, {"sprint_id": None})

    def calculate_velocity(self, user_id: str, sprint_id: str) -> dict[str, Any]:
        memberships = self.list_sprint_tasks(user_id, sprint_id)
        committed = completed_points = completed_tasks = 0
        for membership in memberships:
            points = membership.get("current_story_points") or 0
            committed += points
            task = self.store.get("tasks", membership["task_id"])
            if task and task.get("status") == "completed":
                completed_points += points
                completed_tasks += 1
        return {
            "sprint_id": sprint_id,
            "velocity": completed_points,
            "committed_points": committed,
            "completed_tasks": completed_tasks,
            "total_tasks": len(memberships),
        }
