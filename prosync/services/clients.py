"""ClientConnect: clients and the notes kept on them."""

from __future__ import annotations

import logging
import re
from typing import Any

from prosync.exceptions import RecordNotFoundError, ValidationError
from prosync.repository import Query, RecordStore
from prosync.security.sql import validate_search_input
from prosync.services.base import TableService, require_text, require_user
from prosync.services.notifications import NotificationService

logger = logging.getLogger(__name__)

_EDITABLE = ("name", "email", "phone", "company", "status", "address", "website")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ClientService(TableService):
    table = "clients"
    resource_name = "Client"

    def __init__(self, store: RecordStore, notifications: NotificationService | None = None) -> None:
        super().__init__(store)
        self.notifications = notifications

    def _validate(self, values: dict[str, Any]) -> dict[str, Any]:
        if "name" in values:
            values["name"] = require_text(values["name"], "name", max_length=200)
        if values.get("email") and not _EMAIL_RE.match(values["email"]):
            raise ValidationError("is not a valid email address", field="email")
        return values

    def list_clients(self, user_id: str, *, q: str | None = None) -> list[dict[str, Any]]:
        query = self._owner_query(require_user(user_id))
        if q:
            try:
                text = validate_search_input(q)
            except ValueError as exc:
                raise ValidationError(str(exc), field="q") from exc
            if text:
                query.search(("name", "company", "email"), text)
        return self.store.select(self.table, query.order("name"))

    def get_client(self, user_id: str, client_id: str) -> dict[str, Any]:
        return self._owned(client_id, require_user(user_id))

    def create_client(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        data = self._validate({k: v for k, v in values.items() if k in _EDITABLE})
        if "name" not in data:
            require_text(None, "name")
        data.setdefault("status", "active")
        data["user_id"] = user_id
        client = self.store.insert(self.table, data)
        logger.info("client_created", extra={"client_id": client["id"]})
        if self.notifications:
            self.notifications.notify_client(user_id, client["name"], "new_client", client_id=client["id"])
        return client

    def update_client(self, user_id: str, client_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        self._owned(client_id, require_user(user_id))
        return self._update_or_raise(client_id, self._validate({k: v for k, v in changes.items() if k in _EDITABLE}))

    def delete_client(self, user_id: str, client_id: str) -> None:
        self._owned(client_id, require_user(user_id))
        removed = self.store.delete_where("client_notes", Query().eq("client_id", client_id))
        self._delete_or_raise(client_id)
        logger.info("client_deleted", extra={"client_id": client_id, "notes_removed": removed})

    # -- notes --------------------------------------------------------------

    def _note(self, user_id: str, note_id: str) -> dict[str, Any]:
        note = self.store.get("client_notes", note_id)
        if note is None or note.get("user_id") != user_id:
            raise RecordNotFoundError("Client note", note_id)
        return note

    def list_notes(self, user_id: str, client_id: str) -> list[dict[str, Any]]:
        self.get_client(user_id, client_id)
        query = Query().eq("client_id", client_id).order("created_at", desc=True)
        return self.store.select("client_notes", query)

    def create_note(self, user_id: str, client_id: str, content: str) -> dict[str, Any]:
        self.get_client(user_id, client_id)
        return self.store.insert(
            "client_notes",
            {"client_id": client_id, "user_id": user_id, "content": require_text(content, "content", max_length=10000)},
        )

    def update_note(self, user_id: str, note_id: str, content: str) -> dict[str, Any]:
        self._note(require_user(user_id), note_id)
        return self.store.update(
            "client_notes", note_id, {"content": require_text(content, "content", max_length=10000)}
        )

    def delete_note(self, user_id: str, note_id: str) -> None:
        self._note(require_user(user_id), note_id)
        self.store.delete("client_notes", note_id)
