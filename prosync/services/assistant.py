"""
AI assistant: a pass-through to the Anthropic Messages API.

The assistant does no inference of its own. It builds one prompt from the
conversation history (and, optionally, a snapshot of the user's recent
records), sends it to the model and returns the text. The API key is the
one the user saved, falling back to the process-wide ANTHROPIC_API_KEY.

Usage:
    assistant = AssistantService(store)
    result = assistant.chat(user_id, "What is overdue?", history=[], include_context=True)
    result["reply"]
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

import anthropic

from prosync.config import AI_PROVIDERS, Settings, get_settings
from prosync.exceptions import (
    AnthropicAPIError,
    APIConnectionError,
    APITimeoutError,
    FeatureDisabledError,
    MissingAPIKeyError,
    RecordNotFoundError,
    ValidationError,
)
from prosync.logging_config import PerformanceTracker
from prosync.repository import Query, RecordStore
from prosync.security import mask_secret, sanitize_llm_output, validate_search_input
from prosync.services.base import check_choice, require_text, require_user

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are the ProSync Suite assistant. Answer questions about the user's tasks, projects, "
    "time, expenses, clients and tickets. Use the workspace context when it is provided."
)

# table -> (rows to include, fields to keep)
CONTEXT_SOURCES: dict[str, tuple[int, tuple[str, ...]]] = {
    "tasks": (5, ("title", "status", "priority", "due_date", "project_id")),
    "projects": (3, ("name", "status", "start_date", "end_date")),
    "time_entries": (3, ("description", "project", "time_spent", "billable", "date")),
    "expenses": (3, ("description", "amount", "currency", "status", "date")),
    "clients": (3, ("name", "company", "status")),
    "tickets": (3, ("ticket_number", "title", "priority", "status", "sla_due")),
}

HISTORY_ROLES = frozenset({"user", "assistant"})


def build_chat_prompt(
    message: str,
    history: list[dict[str, str]] | None = None,
    context: dict[str, Any] | None = None,
    *,
    history_limit: int = 20,
) -> str:
    """Concatenate context, trailing history and the new message into one prompt."""
    sections: list[str] = []
    if context:
        sections.append("Workspace context:\n" + json.dumps(context, indent=2, ensure_ascii=False, default=str))

    turns = [turn for turn in (history or []) if turn.get("role") in HISTORY_ROLES and turn.get("content")]
    if history_limit >= 0:
        turns = turns[-history_limit:] if history_limit else []
    if turns:
        sections.append("Conversation so far:\n" + "\n".join(f"{t['role']}: {t['content']}" for t in turns))

    sections.append(f"user: {message}")
    return "\n\n".join(sections)


class AssistantService:
    def __init__(
        self,
        store: RecordStore,
        settings: Settings | None = None,
        client_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.client_factory = client_factory or anthropic.Anthropic

    # -- API keys -----------------------------------------------------------

    def _stored_key(self, user_id: str, provider: str) -> dict[str, Any] | None:
        return self.store.first("api_keys", Query().eq("user_id", user_id).eq("provider", provider))

    @staticmethod
    def _public_key(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "provider": record["provider"],
            "key_hint": mask_secret(record["api_key"]),
            "updated_at": record.get("updated_at"),
        }

    def save_api_key(self, user_id: str, provider: str, api_key: str) -> dict[str, Any]:
        """Store the user's key for *provider*, replacing any previous one."""
        user_id = require_user(user_id)
        check_choice(provider, AI_PROVIDERS, "provider")
        api_key = require_text(api_key, "api_key", max_length=500)
        if len(api_key) < 8:
            raise ValidationError("is too short", field="api_key")

        existing = self._stored_key(user_id, provider)
        if existing:
            record = self.store.update("api_keys", existing["id"], {"api_key": api_key})
        else:
            record = self.store.insert("api_keys", {"user_id": user_id, "provider": provider, "api_key": api_key})
        logger.info("api_key_saved", extra={"provider": provider})
        return self._public_key(record)

    def list_api_keys(self, user_id: str) -> list[dict[str, Any]]:
        rows = self.store.select("api_keys", Query().eq("user_id", require_user(user_id)).order("provider"))
        return [self._public_key(row) for row in rows]

    def has_api_key(self, user_id: str, provider: str = "anthropic") -> bool:
        return self._stored_key(require_user(user_id), provider) is not None

    def delete_api_key(self, user_id: str, provider: str) -> None:
        existing = self._stored_key(require_user(user_id), provider)
        if existing is None:
            raise RecordNotFoundError("API key", provider)
        self.store.delete("api_keys", existing["id"])

    def resolve_api_key(self, user_id: str) -> str:
        stored = self._stored_key(user_id, "anthropic")
        if stored:
            return stored["api_key"]
        if self.settings.anthropic_api_key:
            return self.settings.anthropic_api_key
        raise MissingAPIKeyError("anthropic", env_var="ANTHROPIC_API_KEY")

    # -- context ------------------------------------------------------------

    def gather_context(self, user_id: str) -> dict[str, list[dict[str, Any]]]:
        """Most recent rows per module, trimmed to the fields the prompt needs."""
        user_id = require_user(user_id)
        context: dict[str, list[dict[str, Any]]] = {}
        for table, (count, fields) in CONTEXT_SOURCES.items():
            if table == "tasks":
                query = Query().any_eq(created_by=user_id, assignee_id=user_id)
            elif table == "tickets":
                query = Query().any_eq(submitted_by=user_id, assigned_to=user_id)
            else:
                query = Query().eq("user_id", user_id)
            limit = min(count, self.settings.ai_context_items)
            rows = self.store.select(table, query.order("created_at", desc=True).limit(limit))
            context[table] = [{f: row.get(f) for f in fields if row.get(f) is not None} for row in rows]
        return context

    # -- chat ---------------------------------------------------------------

    def _complete(self, api_key: str, prompt: str) -> tuple[str, dict[str, int]]:
        client = self.client_factory(api_key=api_key)
        try:
            response = client.messages.create(
                model=self.settings.anthropic_model,
                max_tokens=self.settings.max_llm_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
                timeout=self.settings.llm_timeout_seconds,
            )
        except anthropic.AuthenticationError as exc:
            raise AnthropicAPIError("Invalid API key", status_code=401, error_type="authentication_error") from exc
        except anthropic.RateLimitError as exc:
            raise AnthropicAPIError("Upstream rate limited", status_code=429, error_type="rate_limit_error") from exc
        except anthropic.APITimeoutError as exc:
            raise APITimeoutError("anthropic", timeout_seconds=self.settings.llm_timeout_seconds) from exc
        except anthropic.APIConnectionError as exc:
            raise APIConnectionError("anthropic", reason=str(exc)) from exc
        except anthropic.APIStatusError as exc:
            raise AnthropicAPIError(f"Upstream error {exc.status_code}", status_code=exc.status_code) from exc

        text = "".join(
            getattr(block, "text", "") for block in (response.content or []) if getattr(block, "type", "text") == "text"
        )
        usage: dict[str, int] = {}
        raw_usage = getattr(response, "usage", None)
        for field in ("input_tokens", "output_tokens"):
            value = getattr(raw_usage, field, None)
            if isinstance(value, int):
                usage[field] = value
        return text, usage

    def chat(
        self,
        user_id: str,
        message: str,
        history: list[dict[str, str]] | None = None,
        *,
        include_context: bool = False,
    ) -> dict[str, Any]:
        if not self.settings.enable_ai_assistant:
            raise FeatureDisabledError("AI assistant")
        user_id = require_user(user_id)
        message = require_text(message, "message", max_length=4000)
        api_key = self.resolve_api_key(user_id)

        context = self.gather_context(user_id) if include_context else None
        prompt = build_chat_prompt(message, history, context, history_limit=self.settings.ai_history_limit)
        with PerformanceTracker("ai_chat", model=self.settings.anthropic_model, prompt_chars=len(prompt)):
            raw_text, usage = self._complete(api_key, prompt)
        reply = sanitize_llm_output(raw_text)

        self.store.insert(
            "activity_logs",
            {
                "user_id": user_id,
                "action": "ai_chat",
                "metadata": {
                    "message": message,
                    "response": reply,
                    "context_included": include_context,
                    "model": self.settings.anthropic_model,
                    "usage": usage,
                },
            },
        )
        return {"reply": reply, "model": self.settings.anthropic_model, "usage": usage}

    def chat_history(self, user_id: str, limit: int = 20) -> list[dict[str, Any]]:
        query = Query().eq("user_id", require_user(user_id)).eq("action", "ai_chat")
        return self.store.select("activity_logs", query.order("created_at", desc=True).limit(limit))

    def search_user_data(self, user_id: str, q: str, *, limit: int = 10) -> dict[str, list[dict[str, Any]]]:
        user_id = require_user(user_id)
        try:
            text = validate_search_input(q or "")
        except ValueError as exc:
            raise ValidationError(str(exc), field="q") from exc
        if not text:
            return {"tasks": [], "clients": [], "pages": []}
        tasks = Query().any_eq(created_by=user_id, assignee_id=user_id).ilike("title", text)
        clients = Query().eq("user_id", user_id).search(("name", "company"), text)
        pages = Query().eq("is_published", True).eq("is_archived", False).ilike("title", text)
        return {
            "tasks": self.store.select("tasks", tasks.order("created_at", desc=True).limit(limit)),
            "clients": self.store.select("clients", clients.order("name").limit(limit)),
            "pages": self.store.select("knowledge_pages", pages.order("updated_at", desc=True).limit(limit)),
        }
