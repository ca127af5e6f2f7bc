"""ResourceHub: people, their allocations and skills, and capacity planning."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from prosync.config import Settings, get_settings
from prosync.exceptions import RecordNotFoundError, ValidationError
from prosync.repository import Query, RecordStore
from prosync.services.base import TableService, require_text, require_user, to_iso
from prosync.services.notifications import NotificationService

logger = logging.getLogger(__name__)

_RESOURCE_FIELDS = ("name", "role", "email", "availability", "hourly_rate", "department")
_ALLOCATION_FIELDS = ("resource_id", "project_id", "percent", "start_date", "end_date", "notes")


def _percent(value: Any) -> float:
    try:
        percent = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("must be a number", field="percent") from exc
    if not 0 < percent <= 100:
        raise ValidationError("must be between 0 (exclusive) and 100", field="percent")
    return percent


def capacity_status(utilization: float, optimal_floor: float = 70.0) -> str:
    if utilization > 100:
        return "over"
    if utilization >= optimal_floor:
        return "optimal"
    return "under"


class ResourceService(TableService):
    table = "resources"
    resource_name = "Resource"

    def __init__(
        self,
        store: RecordStore,
        notifications: NotificationService | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(store)
        self.notifications = notifications
        self.settings = settings or get_settings()

    # -- resources ----------------------------------------------------------

    def list_resources(self, user_id: str) -> list[dict[str, Any]]:
        return self.store.select(self.table, self._owner_query(require_user(user_id)).order("name"))

    def get_resource(self, user_id: str, resource_id: str) -> dict[str, Any]:
        return self._owned(resource_id, require_user(user_id))

    def create_resource(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        data = {k: v for k, v in values.items() if k in _RESOURCE_FIELDS}
        data["name"] = require_text(data.get("name"), "name", max_length=200)
        data.setdefault("availability", "available")
        data["user_id"] = require_user(user_id)
        return self.store.insert(self.table, data)

    def update_resource(self, user_id: str, resource_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        self._owned(resource_id, require_user(user_id))
        data = {k: v for k, v in changes.items() if k in _RESOURCE_FIELDS}
        if "name" in data:
            data["name"] = require_text(data["name"], "name", max_length=200)
        return self._update_or_raise(resource_id, data)

    def delete_resource(self, user_id: str, resource_id: str) -> None:
        self._owned(resource_id, require_user(user_id))
        by_resource = Query().eq("resource_id", resource_id)
        self.store.delete_where("resource_allocations", by_resource)
        self.store.delete_where("resource_skills", by_resource)
        self._delete_or_raise(resource_id)

    # -- allocations --------------------------------------------------------

    def _allocation(self, user_id: str, allocation_id: str) -> dict[str, Any]:
        allocation = self.store.get("resource_allocations", allocation_id)
        if allocation is None or allocation.get("user_id") != user_id:
            raise RecordNotFoundError("Allocation", allocation_id)
        return allocation

    def _allocated_percent(self, resource_id: str) -> float:
        rows = self.store.select("resource_allocations", Query().eq("resource_id", resource_id))
        return sum(float(a.get("percent") or 0) for a in rows)

    def list_allocations(
        self,
        user_id: str,
        *,
        resource_id: str | None = None,
        project_id: str | None = None,
    ) -> list[dict[str, Any]]:
        query = self._owner_query(require_user(user_id))
        if resource_id:
            query.eq("resource_id", resource_id)
        if project_id:
            query.eq("project_id", project_id)
        return self.store.select("resource_allocations", query.order("created_at", desc=True))

    def create_allocation(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        data = {k: v for k, v in values.items() if k in _ALLOCATION_FIELDS}
        resource = self.get_resource(user_id, require_text(data.get("resource_id"), "resource_id"))
        data["percent"] = _percent(data.get("percent"))
        for field in ("start_date", "end_date"):
            if data.get(field):
                data[field] = to_iso(data[field], field)
        data["user_id"] = user_id

        before = self._allocated_percent(resource["id"])
        allocation = self.store.insert("resource_allocations", data)
        after = before + allocation["percent"]
        logger.info(
            "allocation_created",
            extra={"resource_id": resource["id"], "percent": allocation["percent"], "allocated_total": after},
        )
        if self.notifications and after > 100 >= before:
            self.notifications.notify_resource(user_id, resource["name"], "overallocated", resource_id=resource["id"])
        return allocation

    def update_allocation(self, user_id: str, allocation_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        current = self._allocation(user_id, allocation_id)
        data = {k: v for k, v in changes.items() if k in _ALLOCATION_FIELDS and k != "resource_id"}
        if "percent" in data:
            data["percent"] = _percent(data["percent"])
        for field in ("start_date", "end_date"):
            if data.get(field):
                data[field] = to_iso(data[field], field)

        before = self._allocated_percent(current["resource_id"])
        allocation = self.store.update("resource_allocations", allocation_id, data)
        if allocation is None:
            raise RecordNotFoundError("Allocation", allocation_id)
        after = before - float(current.get("percent") or 0) + allocation["percent"]
        if self.notifications and after > 100 >= before:
            resource = self.store.get(self.table, current["resource_id"])
            if resource:
                self.notifications.notify_resource(
                    user_id, resource["name"], "overallocated", resource_id=resource["id"]
                )
        return allocation

    def delete_allocation(self, user_id: str, allocation_id: str) -> None:
        self._allocation(require_user(user_id), allocation_id)
        self.store.delete("resource_allocations", allocation_id)

    # -- skills -------------------------------------------------------------

    def list_skills(self, user_id: str, resource_id: str) -> list[dict[str, Any]]:
        self.get_resource(user_id, resource_id)
        return self.store.select("resource_skills", Query().eq("resource_id", resource_id).order("skill"))

    def add_skill(self, user_id: str, resource_id: str, skill: str, level: str | None = None) -> dict[str, Any]:
        resource = self.get_resource(user_id, resource_id)
        record = self.store.insert(
            "resource_skills",
            {
                "resource_id": resource_id,
                "user_id": user_id,
                "skill": require_text(skill, "skill", max_length=100),
                "level": level or "intermediate",
            },
        )
        if self.notifications:
            self.notifications.notify_resource(user_id, resource["name"], "skill_updated", resource_id=resource_id)
        return record

    def remove_skill(self, user_id: str, skill_id: str) -> None:
        skill = self.store.get("resource_skills", skill_id)
        if skill is None or skill.get("user_id") != require_user(user_id):
            raise RecordNotFoundError("Skill", skill_id)
        self.store.delete("resource_skills", skill_id)

    def skill_matrix(self, user_id: str) -> dict[str, list[str]]:
        """Skill name -> sorted names of the resources that have it."""
        names = {r["id"]: r["name"] for r in self.list_resources(user_id)}
        matrix: dict[str, set[str]] = defaultdict(set)
        for skill in self.store.select("resource_skills", self._owner_query(user_id)):
            if skill.get("resource_id") in names:
                matrix[skill["skill"]].add(names[skill["resource_id"]])
        return {skill: sorted(people) for skill, people in sorted(matrix.items())}

    # -- capacity -----------------------------------------------------------

    def capacity_report(self, user_id: str) -> dict[str, Any]:
        """Allocation totals per resource, bucketed as over/optimal/under."""
        resources = self.list_resources(user_id)
        allocated: dict[str, float] = defaultdict(float)
        for allocation in self.store.select("resource_allocations", self._owner_query(user_id)):
            allocated[allocation.get("resource_id")] += float(allocation.get("percent") or 0)

        rows = []
        summary = {"over": 0, "optimal": 0, "under": 0}
        for resource in resources:
            total = round(allocated.get(resource["id"], 0.0), 2)
            status = capacity_status(total, self.settings.capacity_optimal_percent)
            summary[status] += 1
            rows.append(
                {
                    "resource_id": resource["id"],
                    "name": resource["name"],
                    "role": resource.get("role"),
                    "allocated": total,
                    "available": max(0.0, round(100 - total, 2)),
                    "utilization": total,
                    "status": status,
                }
            )
        return {"resources": rows, "summary": summary, "total_resources": len(rows)}

    # -- team directory -----------------------------------------------------

    def list_team_members(self, user_id: str) -> list[dict[str, Any]]:
        return self.store.select("team_members", self._owner_query(require_user(user_id)).order("name"))

    def add_team_member(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        return self.store.insert(
            "team_members",
            {
                "user_id": require_user(user_id),
                "name": require_text(values.get("name"), "name", max_length=200),
                "email": values.get("email"),
                "role": values.get("role") or "member",
            },
        )

    def remove_team_member(self, user_id: str, member_id: str) -> None:
        member = self.store.get("team_members", member_id)
        if member is None or member.get("user_id") != require_user(user_id):
            raise RecordNotFoundError("Team member", member_id)
        self.store.delete("team_members", member_id)
