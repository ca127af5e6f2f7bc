"""
Tests for prosync.services.assistant.

The Anthropic client is always the FakeAnthropic from conftest, so nothing
here touches the network.
"""

from __future__ import annotations

import httpx
import anthropic
import pytest

from prosync.config import Settings
from prosync.exceptions import (
    APIConnectionError,
    APITimeoutError,
    FeatureDisabledError,
    MissingAPIKeyError,
    RecordNotFoundError,
    ValidationError,
    exception_to_http_status,
)
from prosync.services.assistant import SYSTEM_PROMPT, AssistantService, build_chat_prompt

from conftest import FakeAnthropic

KEY = "sk-ant-test-0123456789"
_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class TestBuildChatPrompt:
    def test_message_only(self):
        assert build_chat_prompt("Hi") == "user: Hi"

    def test_history_and_context(self):
        history = [
            {"role": "system", "content": "ignored"},
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "reply"},
        ]
        prompt = build_chat_prompt("next", history, {"tasks": [{"title": "Ship"}]})
        sections = prompt.split("\n\n")
        assert sections[0].startswith("Workspace context:\n")
        assert '"title": "Ship"' in sections[0]
        assert sections[1] == "Conversation so far:\nuser: first\nassistant: reply"
        assert sections[2] == "user: next"
        assert "ignored" not in prompt

    def test_history_limit_keeps_latest_turns(self):
        history = [{"role": "user", "content": f"m{i}"} for i in range(5)]
        prompt = build_chat_prompt("now", history, history_limit=2)
        assert "m3" in prompt and "m4" in prompt
        assert "m2" not in prompt
        assert build_chat_prompt("now", history, history_limit=0) == "user: now"


class TestApiKeys:
    def test_save_masks_the_key(self, services):
        saved = services.assistant.save_api_key("alice", "anthropic", KEY)
        assert saved["provider"] == "anthropic"
        assert saved["key_hint"] == "sk-a...6789"
        assert "api_key" not in saved
        assert services.assistant.list_api_keys("alice") == [saved]
        assert services.assistant.list_api_keys("bob") == []

    def test_save_replaces_existing(self, services):
        first = services.assistant.save_api_key("alice", "anthropic", KEY)
        second = services.assistant.save_api_key("alice", "anthropic", "sk-ant-other-99998888")
        assert first["id"] == second["id"]
        assert second["key_hint"] == "sk-a...8888"

    def test_rejects_unknown_provider_and_short_key(self, services):
        with pytest.raises(ValidationError):
            services.assistant.save_api_key("alice", "openai", KEY)
        with pytest.raises(ValidationError):
            services.assistant.save_api_key("alice", "anthropic", "short")

    def test_delete(self, services):
        services.assistant.save_api_key("alice", "anthropic", KEY)
        services.assistant.delete_api_key("alice", "anthropic")
        assert services.assistant.has_api_key("alice") is False
        with pytest.raises(RecordNotFoundError):
            services.assistant.delete_api_key("alice", "anthropic")

    def test_resolve_prefers_stored_key(self, services, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env-key-11112222")
        assert services.assistant.resolve_api_key("alice") == "sk-env-key-11112222"
        services.assistant.save_api_key("alice", "anthropic", KEY)
        assert services.assistant.resolve_api_key("alice") == KEY

    def test_missing_key(self, services):
        with pytest.raises(MissingAPIKeyError) as exc_info:
            services.assistant.resolve_api_key("alice")
        assert exception_to_http_status(exc_info.value) == 503


class TestChat:
    def test_chat_calls_model_and_logs(self, services, fake_ai, settings):
        services.assistant.save_api_key("alice", "anthropic", KEY)
        result = services.assistant.chat("alice", "What is overdue?")

        assert result["reply"] == "Here is a summary."
        assert result["model"] == settings.anthropic_model
        assert result["usage"] == {"input_tokens": 12, "output_tokens": 5}
        assert fake_ai.api_keys == [KEY]

        call = fake_ai.calls[0]
        assert call["model"] == settings.anthropic_model
        assert call["system"] == SYSTEM_PROMPT
        assert call["messages"] == [{"role": "user", "content": "user: What is overdue?"}]

        history = services.assistant.chat_history("alice")
        assert len(history) == 1
        assert history[0]["metadata"]["message"] == "What is overdue?"
        assert history[0]["metadata"]["context_included"] is False
        assert services.assistant.chat_history("bob") == []

    def test_include_context(self, services, fake_ai):
        services.assistant.save_api_key("alice", "anthropic", KEY)
        services.tasks.create_task("alice", {"title": "Write report", "priority": "high"})
        services.tasks.create_task("bob", {"title": "Private to bob"})

        services.assistant.chat("alice", "Summarize", include_context=True)
        prompt = fake_ai.calls[0]["messages"][0]["content"]
        assert prompt.startswith("Workspace context:")
        assert "Write report" in prompt
        assert "Private to bob" not in prompt

    def test_gather_context_shape(self, services):
        context = services.assistant.gather_context("alice")
        assert set(context) == {"tasks", "projects", "time_entries", "expenses", "clients", "tickets"}

    def test_reply_is_sanitized(self, services, store, settings):
        fake = FakeAnthropic(reply="<script>alert(1)</script>Tom & Jerry")
        assistant = AssistantService(store, settings, client_factory=fake)
        assistant.save_api_key("alice", "anthropic", KEY)
        assert assistant.chat("alice", "hi")["reply"] == "Tom &amp; Jerry"

    def test_disabled_feature(self, store, settings):
        disabled = Settings(enable_ai_assistant=False)
        assistant = AssistantService(store, disabled, client_factory=FakeAnthropic())
        with pytest.raises(FeatureDisabledError):
            assistant.chat("alice", "hi")

    def test_empty_message(self, services):
        services.assistant.save_api_key("alice", "anthropic", KEY)
        with pytest.raises(ValidationError):
            services.assistant.chat("alice", "   ")

    def test_missing_key_skips_the_call(self, services, fake_ai):
        with pytest.raises(MissingAPIKeyError):
            services.assistant.chat("alice", "hi")
        assert fake_ai.calls == []

    @pytest.mark.parametrize(
        "upstream, expected, status",
        [
            (anthropic.APITimeoutError(request=_REQUEST), APITimeoutError, 504),
            (anthropic.APIConnectionError(request=_REQUEST), APIConnectionError, 503),
        ],
    )
    def test_upstream_errors_are_mapped(self, store, settings, upstream, expected, status):
        assistant = AssistantService(store, settings, client_factory=FakeAnthropic(error=upstream))
        assistant.save_api_key("alice", "anthropic", KEY)
        with pytest.raises(expected) as exc_info:
            assistant.chat("alice", "hi")
        assert exception_to_http_status(exc_info.value) == status
        assert assistant.chat_history("alice") == []


class TestSearchUserData:
    def test_search(self, services):
        services.tasks.create_task("alice", {"title": "Quarterly report"})
        services.tasks.create_task("bob", {"title": "Quarterly plan"})
        services.clients.create_client("alice", {"name": "Quartz Ltd"})
        services.knowledge.create_page("bob", {"title": "Quarterly process", "content": "x"})

        found = services.assistant.search_user_data("alice", "quar")
        assert [t["title"] for t in found["tasks"]] == ["Quarterly report"]
        assert [c["name"] for c in found["clients"]] == ["Quartz Ltd"]
        assert [p["title"] for p in found["pages"]] == ["Quarterly process"]

    def test_blank_query(self, services):
        assert services.assistant.search_user_data("alice", "  ") == {"tasks": [], "clients": [], "pages": []}
