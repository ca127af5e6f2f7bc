"""
Dependency helpers for API routes.

These are kept as simple functions (not FastAPI Depends) because the app
keeps its stateful components on request.app.state.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request, Response

from prosync.api.state import AppState
from prosync.config import get_settings
from prosync.exceptions import AuthenticationRequiredError
from prosync.repository import open_store
from prosync.services import Services, build_services

USER_HEADER = "x-user-id"


def get_state(request: Request) -> AppState:
    state = getattr(request.app.state, "state", None)
    if state is None:
        store = open_store(get_settings())
        state = AppState(store=store, services=build_services(store))
        request.app.state.state = state
    return state


def get_services(request: Request) -> Services:
    return get_state(request).services


def get_user_id(request: Request) -> str:
    """Acting user from the X-User-ID header; 401 when it is absent."""
    user_id = (request.headers.get(USER_HEADER) or "").strip()
    if not user_id:
        raise AuthenticationRequiredError()
    return user_id


def no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


def listing(items: list[Any], **extra: Any) -> dict[str, Any]:
    return {"items": items, "total": len(items), **extra}
