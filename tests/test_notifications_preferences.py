"""
Tests for prosync.services.notifications and prosync.services.preferences.
"""

from __future__ import annotations

import logging

import pytest

from prosync.exceptions import DatabaseError, RecordNotFoundError, ValidationError
from prosync.services.preferences import DEFAULT_PREFERENCES


class TestNotifications:
    def test_create_defaults_to_unread(self, services):
        note = services.notifications.create_notification("alice", "Hello", "World")
        assert note["read"] is False
        assert note["type"] == "info"
        assert services.notifications.unread_count("alice") == 1

    def test_invalid_type(self, services):
        with pytest.raises(ValidationError):
            services.notifications.create_notification("alice", "Hello", "World", "shouting")

    def test_template_failures_are_swallowed(self, services):
        assert services.notifications.notify("alice", "task", "exploded", name="x") is None
        assert services.notifications.notify("alice", "task", "assigned") is None
        assert services.notifications.notify(None, "task", "assigned", name="x") is None
        assert services.notifications.list_notifications("alice") == []

    def test_failures_are_logged_with_template_key(self, services, caplog):
        with caplog.at_level(logging.ERROR, logger="prosync.error"):
            assert services.notifications.notify("alice", "task", "exploded", name="x") is None
        record = next(r for r in caplog.records if r.getMessage() == "notification_failed")
        assert record.notification_module == "task"
        assert record.kind == "exploded"

    def test_store_failure_does_not_fail_the_caller(self, services, monkeypatch):
        def broken(*args, **kwargs):
            raise DatabaseError(operation="insert", table="notifications")

        monkeypatch.setattr(services.notifications, "create_notification", broken)
        task = services.tasks.create_task("alice", {"title": "Ship", "assignee_id": "bob"})
        assert task["assignee_id"] == "bob"
        assert services.tasks.get_task("alice", task["id"])["title"] == "Ship"

    def test_templates_render(self, services):
        note = services.notifications.notify_budget("alice", "Apollo", "threshold", percentage=85)
        assert note["title"] == "Budget Alert"
        assert note["type"] == "warning"
        assert note["related_to"] == "budget"
        assert note["message"] == 'Project "Apollo" has reached 85% of its budget'

    def test_read_state(self, services):
        first = services.notifications.create_notification("alice", "a", "a")
        services.notifications.create_notification("alice", "b", "b")
        services.notifications.create_notification("bob", "c", "c")

        services.notifications.mark_read("alice", first["id"])
        assert services.notifications.unread_count("alice") == 1
        unread = services.notifications.list_notifications("alice", unread_only=True)
        assert [n["title"] for n in unread] == ["b"]

        assert services.notifications.mark_all_read("alice") == 1
        assert services.notifications.mark_all_read("alice") == 0
        assert services.notifications.unread_count("bob") == 1

    def test_other_users_notifications_are_not_found(self, services):
        note = services.notifications.create_notification("alice", "a", "a")
        with pytest.raises(RecordNotFoundError):
            services.notifications.mark_read("bob", note["id"])
        with pytest.raises(RecordNotFoundError):
            services.notifications.delete_notification("bob", note["id"])
        services.notifications.delete_notification("alice", note["id"])
        assert services.notifications.list_notifications("alice") == []

    def test_subscribe_sees_only_own_events(self, services):
        with services.notifications.subscribe("alice") as sub:
            services.notifications.create_notification("bob", "not yours", "x")
            mine = services.notifications.create_notification("alice", "yours", "x")
            services.notifications.mark_read("alice", mine["id"])

            inserted = sub.get(timeout=0)
            updated = sub.get(timeout=0)
            assert inserted.event == "INSERT"
            assert inserted.record["title"] == "yours"
            assert updated.event == "UPDATE"
            assert updated.record["read"] is True
            assert sub.get(timeout=0) is None


class TestPreferences:
    def test_effective_defaults(self, services):
        assert services.preferences.get_settings("alice") is None
        effective = services.preferences.get_effective("alice")
        assert effective["is_default"] is True
        for key, value in DEFAULT_PREFERENCES.items():
            assert effective[key] == value

    def test_update_upserts(self, services):
        first = services.preferences.update_settings("alice", {"theme": "dark"})
        second = services.preferences.update_settings("alice", {"font_size": "large"})
        assert first["id"] == second["id"]
        effective = services.preferences.get_effective("alice")
        assert effective["theme"] == "dark"
        assert effective["font_size"] == "large"
        assert effective["is_default"] is False
        assert services.preferences.get_effective("bob")["theme"] == "system"

    def test_invalid_choice(self, services):
        with pytest.raises(ValidationError):
            services.preferences.update_settings("alice", {"theme": "neon"})

    def test_unknown_keys_ignored(self, services):
        saved = services.preferences.update_settings("alice", {"theme": "light", "is_admin": True})
        assert "is_admin" not in saved

    def test_delete(self, services):
        assert services.preferences.delete_settings("alice") is False
        services.preferences.update_settings("alice", {"theme": "dark"})
        assert services.preferences.delete_settings("alice") is True
        assert services.preferences.get_effective("alice")["theme"] == "system"
