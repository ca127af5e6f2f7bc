"""
AI assistant routes.

Provider failures surface as ExternalAPIError subclasses and are rendered by
the application's ProSyncError handler.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from prosync.api.dependencies import get_services, get_user_id, listing, no_store
from prosync.api.models import ApiKeyBody, ChatRequest
from prosync.logging_config import log_event

router = APIRouter(prefix="/v1/ai", tags=["ai"])


@router.post("/chat")
def chat(payload: ChatRequest, request: Request, response: Response) -> dict:
    no_store(response)
    user_id = get_user_id(request)
    result = get_services(request).assistant.chat(
        user_id,
        payload.message,
        [turn.model_dump() for turn in payload.history],
        include_context=payload.include_context,
    )
    log_event("ai_chat_completed", model=result["model"], context_included=payload.include_context)
    return result


@router.get("/history")
def chat_history(
    request: Request,
    response: Response,
    limit: int = Query(default=20, ge=1, le=100),
) -> dict:
    no_store(response)
    return listing(get_services(request).assistant.chat_history(get_user_id(request), limit))


@router.get("/search")
def search(
    request: Request,
    response: Response,
    q: str = Query(default="", max_length=200),
) -> dict:
    no_store(response)
    return get_services(request).assistant.search_user_data(get_user_id(request), q)


@router.get("/keys")
def list_keys(request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).assistant.list_api_keys(get_user_id(request)))


@router.put("/keys/{provider}")
def save_key(provider: str, payload: ApiKeyBody, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).assistant.save_api_key(get_user_id(request), provider, payload.api_key)


@router.delete("/keys/{provider}")
def delete_key(provider: str, request: Request) -> dict:
    get_services(request).assistant.delete_api_key(get_user_id(request), provider)
    return {"deleted": True, "provider": provider}
