"""ServiceCore: tickets with SLA tracking, change requests and problem records."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any

from prosync.config import (
    CHANGE_LEVELS,
    CHANGE_STATUSES,
    CHANGE_TYPES,
    PROBLEM_STATUSES,
    SLA_RESOLUTION_MINUTES,
    TICKET_PRIORITIES,
    TICKET_STATUSES,
    TICKET_TYPES,
)
from prosync.repository import Query, RecordStore, utc_now_iso
from prosync.services.base import TableService, check_choice, parse_datetime, require_text, require_user
from prosync.services.notifications import NotificationService

logger = logging.getLogger(__name__)

_TICKET_FIELDS = ("title", "description", "type", "priority", "status", "assigned_to", "category", "tags")
_CHANGE_FIELDS = (
    "title",
    "description",
    "status",
    "change_type",
    "risk_level",
    "impact_level",
    "scheduled_start",
    "scheduled_end",
    "rollback_plan",
    "ticket_id",
)
_PROBLEM_FIELDS = ("title", "description", "status", "root_cause", "workaround", "related_tickets", "assigned_to")

TICKET_PREFIX = "TKT-"


def sla_due(created_at: str, priority: str) -> str:
    minutes = SLA_RESOLUTION_MINUTES[priority]
    due = parse_datetime(created_at, "created_at") + timedelta(minutes=minutes)
    return due.isoformat(timespec="microseconds")


class ServiceDeskService(TableService):
    table = "tickets"
    resource_name = "Ticket"
    owner_field = None

    def __init__(self, store: RecordStore, notifications: NotificationService | None = None) -> None:
        super().__init__(store)
        self.notifications = notifications
        # Held from reading the latest number until the new ticket is stored.
        self._numbering = threading.Lock()

    def _validate_ticket(self, values: dict[str, Any]) -> dict[str, Any]:
        if "title" in values:
            values["title"] = require_text(values["title"], "title", max_length=200)
        if "type" in values:
            check_choice(values["type"], TICKET_TYPES, "type")
        if "priority" in values:
            check_choice(values["priority"], TICKET_PRIORITIES, "priority")
        if "status" in values:
            check_choice(values["status"], TICKET_STATUSES, "status")
        return values

    def _next_ticket_number(self) -> str:
        latest = self.store.first(self.table, Query().order("ticket_number", desc=True))
        last = 0
        if latest and str(latest.get("ticket_number", "")).startswith(TICKET_PREFIX):
            last = int(latest["ticket_number"][len(TICKET_PREFIX):])
        return f"{TICKET_PREFIX}{last + 1:05d}"

    # -- tickets ------------------------------------------------------------

    def list_tickets(
        self,
        *,
        status: str | None = None,
        priority: str | None = None,
        assigned_to: str | None = None,
    ) -> list[dict[str, Any]]:
        query = Query()
        if status:
            query.eq("status", status)
        if priority:
            query.eq("priority", priority)
        if assigned_to:
            query.eq("assigned_to", assigned_to)
        return self.store.select(self.table, query.order("created_at", desc=True))

    def get_ticket(self, ticket_id: str) -> dict[str, Any]:
        return self._get_or_raise(ticket_id)

    def create_ticket(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        data = self._validate_ticket({k: v for k, v in values.items() if k in _TICKET_FIELDS and k != "status"})
        if "title" not in data:
            require_text(None, "title")
        data.setdefault("type", "incident")
        data.setdefault("priority", "medium")
        data.setdefault("tags", [])
        data.update({"status": "open", "submitted_by": user_id, "resolved_at": None, "closed_at": None})
        with self._numbering:
            now = utc_now_iso()
            data.update(
                {
                    "ticket_number": self._next_ticket_number(),
                    "created_at": now,
                    "sla_due": sla_due(now, data["priority"]),
                }
            )
            ticket = self.store.insert(self.table, data)
        logger.info(
            "ticket_created",
            extra={"ticket_id": ticket["id"], "ticket_number": ticket["ticket_number"], "priority": ticket["priority"]},
        )
        if self.notifications and ticket.get("assigned_to"):
            self.notifications.notify(
                ticket["assigned_to"],
                "ticket",
                "assigned",
                related_id=ticket["id"],
                number=ticket["ticket_number"],
                name=ticket["title"],
            )
        return ticket

    def update_ticket(self, user_id: str, ticket_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        current = self.get_ticket(ticket_id)
        data = self._validate_ticket({k: v for k, v in changes.items() if k in _TICKET_FIELDS})

        status = data.get("status")
        if status and status != current.get("status"):
            now = utc_now_iso()
            if status == "resolved":
                data["resolved_at"] = now
            elif status == "closed":
                data["closed_at"] = now
                data.setdefault("resolved_at", current.get("resolved_at") or now)
            else:
                data["resolved_at"] = None
                data["closed_at"] = None
        if data.get("priority") and data["priority"] != current.get("priority"):
            data["sla_due"] = sla_due(current["created_at"], data["priority"])

        ticket = self._update_or_raise(ticket_id, data)
        if self.notifications:
            assignee = data.get("assigned_to")
            if assignee and assignee != current.get("assigned_to") and assignee != user_id:
                self.notifications.notify(
                    assignee, "ticket", "assigned", related_id=ticket_id,
                    number=ticket["ticket_number"], name=ticket["title"],
                )
            if status == "resolved" and current.get("status") != "resolved":
                self.notifications.notify(
                    ticket.get("submitted_by"), "ticket", "resolved", related_id=ticket_id,
                    number=ticket["ticket_number"], name=ticket["title"],
                )
        return ticket

    def sla_breaches(self, now: datetime | None = None) -> list[dict[str, Any]]:
        """Open or in-progress tickets whose SLA deadline has passed."""
        moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        query = (
            Query()
            .in_("status", ("open", "in_progress"))
            .lte("sla_due", moment.isoformat(timespec="microseconds"))
            .order("sla_due")
        )
        return self.store.select(self.table, query)

    # -- comments -----------------------------------------------------------

    def list_comments(self, ticket_id: str, *, include_private: bool = True) -> list[dict[str, Any]]:
        self.get_ticket(ticket_id)
        query = Query().eq("ticket_id", ticket_id)
        if not include_private:
            query.eq("is_private", False)
        return self.store.select("ticket_comments", query.order("created_at"))

    def add_comment(
        self,
        user_id: str,
        ticket_id: str,
        content: str,
        *,
        is_private: bool = False,
        mentions: list[str] | None = None,
    ) -> dict[str, Any]:
        self.get_ticket(ticket_id)
        return self.store.insert(
            "ticket_comments",
            {
                "ticket_id": ticket_id,
                "user_id": require_user(user_id),
                "content": require_text(content, "content", max_length=10000),
                "is_private": bool(is_private),
                "mentions": list(mentions or []),
            },
        )

    # -- change requests ----------------------------------------------------

    def _validate_change(self, values: dict[str, Any]) -> dict[str, Any]:
        if "title" in values:
            values["title"] = require_text(values["title"], "title", max_length=200)
        if "status" in values:
            check_choice(values["status"], CHANGE_STATUSES, "status")
        if "change_type" in values:
            check_choice(values["change_type"], CHANGE_TYPES, "change_type")
        for field in ("risk_level", "impact_level"):
            if field in values:
                check_choice(values[field], CHANGE_LEVELS, field)
        return values

    def list_change_requests(self, *, status: str | None = None) -> list[dict[str, Any]]:
        query = Query()
        if status:
            query.eq("status", status)
        return self.store.select("change_requests", query.order("created_at", desc=True))

    def create_change_request(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        data = self._validate_change({k: v for k, v in values.items() if k in _CHANGE_FIELDS})
        if "title" not in data:
            require_text(None, "title")
        data.setdefault("status", "draft")
        data.setdefault("change_type", "normal")
        data.setdefault("risk_level", "low")
        data.setdefault("impact_level", "low")
        data["requested_by"] = require_user(user_id)
        return self.store.insert("change_requests", data)

    def update_change_request(self, change_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        self._get_or_raise(change_id, "change_requests", "Change request")
        data = self._validate_change({k: v for k, v in changes.items() if k in _CHANGE_FIELDS})
        return self.store.update("change_requests", change_id, data)

    # -- problems -----------------------------------------------------------

    def list_problems(self, *, status: str | None = None) -> list[dict[str, Any]]:
        query = Query()
        if status:
            query.eq("status", status)
        return self.store.select("problem_tickets", query.order("created_at", desc=True))

    def create_problem(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        data = {k: v for k, v in values.items() if k in _PROBLEM_FIELDS}
        data["title"] = require_text(data.get("title"), "title", max_length=200)
        data["status"] = check_choice(data.get("status", "open"), PROBLEM_STATUSES, "status")
        data.setdefault("related_tickets", [])
        data["reported_by"] = require_user(user_id)
        return self.store.insert("problem_tickets", data)

    def update_problem(self, problem_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        self._get_or_raise(problem_id, "problem_tickets", "Problem")
        data = {k: v for k, v in changes.items() if k in _PROBLEM_FIELDS}
        if "status" in data:
            check_choice(data["status"], PROBLEM_STATUSES, "status")
        if "title" in data:
            data["title"] = require_text(data["title"], "title", max_length=200)
        return self.store.update("problem_tickets", problem_id, data)
