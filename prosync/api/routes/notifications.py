"""
Notification routes, including the Server-Sent Events feed.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from prosync.api.dependencies import get_services, get_user_id, listing, no_store
from prosync.config import get_settings
from prosync.logging_config import get_logger
from prosync.repository.changes import Subscription

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/notifications", tags=["notifications"])


def _sse(data: Any, *, event: str = "message") -> bytes:
    line = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    return f"event: {event}\ndata: {line}\n\n".encode()


class SubscriptionStreamingResponse(StreamingResponse):
    """Streaming response that closes its change feed subscription however the send ends."""

    def __init__(self, content: Any, subscription: Subscription, **kwargs: Any) -> None:
        super().__init__(content, **kwargs)
        self.subscription = subscription

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.subscription.close()


@router.get("")
def list_notifications(
    request: Request,
    response: Response,
    unread_only: bool = False,
    limit: int | None = Query(default=None, ge=1, le=500),
) -> dict:
    no_store(response)
    user_id = get_user_id(request)
    service = get_services(request).notifications
    items = service.list_notifications(user_id, unread_only=unread_only, limit=limit)
    return listing(items, unread_count=service.unread_count(user_id))


@router.get(
    "/stream",
    responses={200: {"description": "Server-Sent Events stream", "content": {"text/event-stream": {}}}},
)
async def stream_notifications(
    request: Request,
    max_events: int | None = Query(default=None, ge=1, le=10_000),
) -> SubscriptionStreamingResponse:
    user_id = get_user_id(request)
    settings = get_settings()
    # Subscribe before the response starts so nothing committed after this call is missed.
    subscription = get_services(request).notifications.subscribe(user_id)

    async def generator():
        sent = 0
        last_beat = time.monotonic()
        try:
            yield _sse({"user_id": user_id}, event="ready")
            while max_events is None or sent < max_events:
                if await request.is_disconnected():
                    break
                event = subscription.get(timeout=0)
                if event is None:
                    if time.monotonic() - last_beat >= settings.stream_heartbeat_seconds:
                        last_beat = time.monotonic()
                        yield b": ping\n\n"
                    await asyncio.sleep(settings.stream_poll_seconds)
                    continue
                sent += 1
                yield _sse(event.to_dict(), event=event.event.lower())
        finally:
            subscription.close()
            logger.info("notification_stream_closed", extra={"events_sent": sent})

    return SubscriptionStreamingResponse(
        generator(),
        subscription,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-store", "X-Accel-Buffering": "no"},
    )


@router.post("/read-all")
def mark_all_read(request: Request) -> dict:
    return {"updated": get_services(request).notifications.mark_all_read(get_user_id(request))}


@router.post("/{notification_id}/read")
def mark_read(notification_id: str, request: Request) -> dict:
    return get_services(request).notifications.mark_read(get_user_id(request), notification_id)


@router.delete("/{notification_id}")
def delete_notification(notification_id: str, request: Request) -> dict:
    get_services(request).notifications.delete_notification(get_user_id(request), notification_id)
    return {"deleted": True, "id": notification_id}
