"""
Tests for the notification event stream (GET /v1/notifications/stream).

TestClient buffers the whole response, so every stream here is bounded
with ``max_events`` and fed by a background writer.
"""

from __future__ import annotations

import asyncio
import json
import threading

import pytest

from prosync.api.routes.notifications import SubscriptionStreamingResponse, _sse


@pytest.fixture
def writer(services):
    """Keep creating notifications for alice until the test is done."""
    stop = threading.Event()

    def run():
        for i in range(100):
            if stop.wait(0.1):
                return
            services.notifications.create_notification("alice", f"Ping {i}", "streamed")

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    yield
    stop.set()
    thread.join(timeout=5)


def _events(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines() if not line.startswith(":"))
        if "event" in lines:
            events.append((lines["event"], json.loads(lines["data"])))
    return events


def test_sse_frame_format():
    assert _sse({"a": 1}, event="insert") == b'event: insert\ndata: {"a":1}\n\n'


def test_stream_requires_user(client):
    assert client.get("/v1/notifications/stream", params={"max_events": 1}).status_code == 401


def test_stream_delivers_own_inserts(client, alice, writer):
    response = client.get("/v1/notifications/stream", params={"max_events": 1}, headers=alice)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["Cache-Control"] == "no-store"

    events = _events(response.text)
    assert events[0] == ("ready", {"user_id": "alice"})
    name, payload = events[1]
    assert name == "insert"
    assert payload["table"] == "notifications"
    assert payload["record"]["user_id"] == "alice"
    assert payload["old_record"] is None
    assert len(events) == 2


def test_stream_unsubscribes_when_done(client, alice, writer, store):
    client.get("/v1/notifications/stream", params={"max_events": 1}, headers=alice)
    assert store.changes.subscriber_count == 0


def test_failed_send_still_unsubscribes(services, store):
    subscription = services.notifications.subscribe("alice")
    started = []

    async def body():
        started.append(True)
        yield b"never sent"

    async def receive():
        await asyncio.Event().wait()

    async def send(message):
        raise OSError("client went away")

    response = SubscriptionStreamingResponse(body(), subscription, media_type="text/event-stream")
    scope = {"type": "http", "asgi": {"version": "3.0", "spec_version": "2.4"}}
    with pytest.raises(Exception):
        asyncio.run(response(scope, receive, send))

    assert started == []
    assert subscription.closed is True
    assert store.changes.subscriber_count == 0
