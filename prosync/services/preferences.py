"""Per-user settings (theme, language, notification switches, ...)."""

from __future__ import annotations

from typing import Any

from prosync.config import FONT_SIZES, INTERFACE_DENSITIES, THEMES
from prosync.repository import Query
from prosync.services.base import TableService, check_choice, require_text, require_user

DEFAULT_PREFERENCES: dict[str, Any] = {
    "theme": "system",
    "language": "en",
    "timezone": "UTC",
    "date_format": "YYYY-MM-DD",
    "email_notifications": True,
    "app_notifications": True,
    "auto_save": True,
    "interface_density": "comfortable",
    "font_size": "medium",
}

_CHOICES = {"theme": THEMES, "interface_density": INTERFACE_DENSITIES, "font_size": FONT_SIZES}
_FLAGS = ("email_notifications", "app_notifications", "auto_save")


class PreferencesService(TableService):
    table = "user_settings"
    resource_name = "Settings"

    def _validate(self, values: dict[str, Any]) -> dict[str, Any]:
        data = {k: v for k, v in values.items() if k in DEFAULT_PREFERENCES and v is not None}
        for field, choices in _CHOICES.items():
            if field in data:
                check_choice(data[field], choices, field)
        for field in ("language", "timezone", "date_format"):
            if field in data:
                data[field] = require_text(data[field], field, max_length=64)
        for field in _FLAGS:
            if field in data:
                data[field] = bool(data[field])
        return data

    def get_settings(self, user_id: str) -> dict[str, Any] | None:
        """Stored settings row, or None if the user never saved any."""
        return self.store.first(self.table, Query().eq("user_id", require_user(user_id)))

    def get_effective(self, user_id: str) -> dict[str, Any]:
        stored = self.get_settings(user_id) or {}
        effective = {**DEFAULT_PREFERENCES, **{k: v for k, v in stored.items() if k in DEFAULT_PREFERENCES}}
        return {"user_id": user_id, **effective, "is_default": not stored}

    def create_settings(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        return self.store.insert(
            self.table, {**DEFAULT_PREFERENCES, **self._validate(values), "user_id": require_user(user_id)}
        )

    def update_settings(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        """Upsert: concurrent writers simply overwrite each other."""
        existing = self.get_settings(user_id)
        if existing is None:
            return self.create_settings(user_id, values)
        return self._update_or_raise(existing["id"], self._validate(values))

    def delete_settings(self, user_id: str) -> bool:
        existing = self.get_settings(user_id)
        if existing is None:
            return False
        return self.store.delete(self.table, existing["id"])
