"""
Notifications: storage, read state and the per-module message templates.

Other services call ``notify()`` (or one of the ``notify_*`` shortcuts) to
tell a user something happened. A failing notification is logged and never
fails the operation that triggered it.
"""

from __future__ import annotations

import logging
from typing import Any

from prosync.config import NOTIFICATION_TYPES
from prosync.exceptions import ValidationError
from prosync.logging_config import log_error
from prosync.services.base import TableService, check_choice, require_text, require_user

logger = logging.getLogger(__name__)

# (module, kind) -> (title, message template, notification type, related_to)
TEMPLATES: dict[tuple[str, str], tuple[str, str, str, str]] = {
    ("task", "assigned"): ("New Task Assigned", 'You have been assigned a new task: "{name}"', "info", "task"),
    ("task", "updated"): ("Task Updated", 'Task "{name}" has been updated', "info", "task"),
    ("task", "completed"): ("Task Completed", 'Task "{name}" has been completed', "success", "task"),
    ("task", "due_soon"): ("Task Due Soon", 'Task "{name}" is due soon', "warning", "task"),
    ("time", "reminder"): ("Time Tracking Reminder", "{message}", "info", "time_entry"),
    ("time", "timesheet_due"): ("Timesheet Due", "{message}", "info", "time_entry"),
    ("time", "session_long"): ("Long Session Detected", "{message}", "warning", "time_entry"),
    ("budget", "overspent"): ("Budget Exceeded", 'Project "{name}" has exceeded its budget{overage}', "error", "budget"),
    ("budget", "threshold"): ("Budget Alert", 'Project "{name}" has reached {percentage}% of its budget', "warning", "budget"),
    ("budget", "approved"): ("Expense Approved", 'Your expense for project "{name}" has been approved', "success", "expense"),
    ("client", "new_client"): ("New Client Added", 'New client "{name}" has been added', "info", "client"),
    ("client", "meeting_scheduled"): ("Meeting Scheduled", "Meeting scheduled with {name}", "info", "client"),
    ("client", "follow_up"): ("Follow-up Reminder", "Follow-up reminder for client {name}", "warning", "client"),
    ("risk", "high_risk"): ("High Risk Alert", 'High risk identified: "{name}"', "error", "risk"),
    ("risk", "risk_mitigated"): ("Risk Mitigated", 'Risk "{name}" has been successfully mitigated', "success", "risk"),
    ("risk", "new_risk"): ("New Risk Identified", 'New risk identified: "{name}"', "warning", "risk"),
    ("project", "milestone_reached"): ("Milestone Reached", 'Milestone reached in project "{name}"', "success", "project"),
    ("project", "deadline_approaching"): ("Deadline Approaching", 'Deadline approaching for project "{name}"', "warning", "project"),
    ("project", "project_updated"): ("Project Updated", 'Project "{name}" has been updated', "info", "project"),
    ("resource", "overallocated"): ("Resource Overallocated", 'Resource "{name}" is overallocated', "warning", "resource"),
    ("resource", "available"): ("Resource Available", 'Resource "{name}" is now available', "info", "resource"),
    ("resource", "skill_updated"): ("Skills Updated", 'Skills for "{name}" have been updated', "info", "resource"),
    ("ticket", "assigned"): ("Ticket Assigned", 'Ticket {number} "{name}" has been assigned to you', "info", "ticket"),
    ("ticket", "resolved"): ("Ticket Resolved", 'Ticket {number} "{name}" has been resolved', "success", "ticket"),
}


class NotificationService(TableService):
    table = "notifications"
    resource_name = "Notification"

    def create_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        type: str = "info",
        *,
        related_to: str | None = None,
        related_id: str | None = None,
    ) -> dict[str, Any]:
        record = self.store.insert(
            self.table,
            {
                "user_id": require_user(user_id),
                "title": require_text(title, "title", max_length=200),
                "message": require_text(message, "message", max_length=2000),
                "type": check_choice(type, NOTIFICATION_TYPES, "type"),
                "related_to": related_to,
                "related_id": related_id,
                "read": False,
            },
        )
        logger.info(
            "notification_created",
            extra={"notification_id": record["id"], "notification_type": record["type"], "related_to": related_to},
        )
        return record

    def notify(
        self,
        user_id: str | None,
        module: str,
        kind: str,
        *,
        related_id: str | None = None,
        **fields: Any,
    ) -> dict[str, Any] | None:
        """Create a notification from a template; returns None if it could not be sent."""
        if not user_id:
            return None
        try:
            template = TEMPLATES.get((module, kind))
            if template is None:
                raise ValidationError(f"Unknown notification template {module}.{kind}")
            title, message, notification_type, related_to = template
            return self.create_notification(
                user_id,
                title,
                message.format(**fields),
                notification_type,
                related_to=related_to,
                related_id=related_id,
            )
        except Exception as exc:
            log_error("notification_failed", exc, notification_module=module, kind=kind)
            return None

    def notify_task(self, user_id, task_title, kind, *, task_id=None):
        return self.notify(user_id, "task", kind, related_id=task_id, name=task_title)

    def notify_time_tracking(self, user_id, message, kind, *, entry_id=None):
        return self.notify(user_id, "time", kind, related_id=entry_id, message=message)

    def notify_budget(self, user_id, project_name, kind, *, percentage=None, related_id=None):
        overage = f" by {percentage}%" if percentage else ""
        return self.notify(
            user_id, "budget", kind, related_id=related_id, name=project_name, percentage=percentage, overage=overage
        )

    def notify_client(self, user_id, client_name, kind, *, client_id=None):
        return self.notify(user_id, "client", kind, related_id=client_id, name=client_name)

    def notify_risk(self, user_id, risk_title, kind, *, risk_id=None):
        return self.notify(user_id, "risk", kind, related_id=risk_id, name=risk_title)

    def notify_project(self, user_id, project_name, kind, *, project_id=None):
        return self.notify(user_id, "project", kind, related_id=project_id, name=project_name)

    def notify_resource(self, user_id, resource_name, kind, *, resource_id=None):
        return self.notify(user_id, "resource", kind, related_id=resource_id, name=resource_name)

    # -- reading ------------------------------------------------------------

    def list_notifications(self, user_id: str, *, unread_only: bool = False, limit: int | None = None) -> list[dict]:
        query = self._owner_query(require_user(user_id))
        if unread_only:
            query.eq("read", False)
        query.order("created_at", desc=True)
        if limit is not None:
            query.limit(limit)
        return self.store.select(self.table, query)

    def unread_count(self, user_id: str) -> int:
        return self.store.count(self.table, self._owner_query(require_user(user_id)).eq("read", False))

    def mark_read(self, user_id: str, notification_id: str) -> dict[str, Any]:
        record = self._owned(notification_id, require_user(user_id))
        if record.get("read"):
            return record
        return self._update_or_raise(notification_id, {"read": True})

    def mark_all_read(self, user_id: str) -> int:
        query = self._owner_query(require_user(user_id)).eq("read", False)
        return len(self.store.update_where(self.table, query, {"read": True}))

    def delete_notification(self, user_id: str, notification_id: str) -> None:
        self._owned(notification_id, require_user(user_id))
        self._delete_or_raise(notification_id)

    def subscribe(self, user_id: str):
        """Subscribe to change events for *user_id*'s notifications."""
        user_id = require_user(user_id)
        return self.store.changes.subscribe(
            self.table,
            predicate=lambda event: event.current.get("user_id") == user_id,
        )
