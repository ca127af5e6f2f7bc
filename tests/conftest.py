"""
Pytest configuration and shared fixtures for ProSync tests.

Everything stays offline: the record store is a temporary SQLite file and
the Anthropic client is replaced by FakeAnthropic.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
from fastapi.testclient import TestClient

from prosync.api import create_app
from prosync.config import Settings
from prosync.repository import SQLiteRecordStore
from prosync.services import build_services


class FakeMessages:
    def __init__(self, owner: "FakeAnthropic") -> None:
        self.owner = owner

    def create(self, **kwargs: Any) -> Any:
        self.owner.calls.append(kwargs)
        if self.owner.error is not None:
            raise self.owner.error
        return SimpleNamespace(
            content=[SimpleNamespace(type="text", text=self.owner.reply)],
            usage=SimpleNamespace(input_tokens=12, output_tokens=5),
        )


class FakeAnthropic:
    """Stands in for anthropic.Anthropic; records every call and the key used."""

    def __init__(self, reply: str = "Here is a summary.", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict[str, Any]] = []
        self.api_keys: list[str] = []
        self.messages = FakeMessages(self)

    def __call__(self, *, api_key: str, **_: Any) -> "FakeAnthropic":
        self.api_keys.append(api_key)
        return self


@pytest.fixture
def settings(monkeypatch) -> Settings:
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("PROSYNC_DATABASE_URL", raising=False)
    monkeypatch.delenv("DISABLE_AI_ASSISTANT", raising=False)
    return Settings()


@pytest.fixture
def store(tmp_path) -> SQLiteRecordStore:
    return SQLiteRecordStore(tmp_path / "prosync.db")


@pytest.fixture
def fake_ai() -> FakeAnthropic:
    return FakeAnthropic()


@pytest.fixture
def services(store, settings, fake_ai):
    return build_services(store, settings, ai_client_factory=fake_ai)


@pytest.fixture
def client(store, settings, fake_ai):
    app = create_app(store=store, ai_client_factory=fake_ai)
    with TestClient(app) as test_client:
        yield test_client


def user_headers(user_id: str = "user-1") -> dict[str, str]:
    return {"X-User-ID": user_id}


@pytest.fixture
def alice() -> dict[str, str]:
    return user_headers("alice")


@pytest.fixture
def bob() -> dict[str, str]:
    return user_headers("bob")
