"""
In-process change feed.

Every committed insert, update and delete on the record store is published
here as a ``ChangeEvent``. Subscribers get their own queue and pull events
from it; a slow subscriber never blocks the writer.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event: str  # INSERT | UPDATE | DELETE
    record: dict[str, Any] | None
    old_record: dict[str, Any] | None
    committed_at: str

    @property
    def current(self) -> dict[str, Any]:
        """The row as it is after the change (the removed row for deletes)."""
        return self.record if self.record is not None else (self.old_record or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "event": self.event,
            "record": self.record,
            "old_record": self.old_record,
            "committed_at": self.committed_at,
        }


class Subscription:
    """A subscriber's view of the feed. Close it when done."""

    def __init__(
        self,
        feed: ChangeFeed,
        table: str,
        predicate: Callable[[ChangeEvent], bool] | None = None,
    ) -> None:
        self.table = table
        self.predicate = predicate
        self._feed = feed
        self._queue: queue.Queue[ChangeEvent] = queue.Queue()
        self.closed = False

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        return self.predicate is None or bool(self.predicate(event))

    def deliver(self, event: ChangeEvent) -> None:
        self._queue.put(event)

    def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Next event, waiting up to *timeout* seconds (``0`` polls)."""
        try:
            if timeout == 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._feed.unsubscribe(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class ChangeFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscription] = []

    def subscribe(
        self,
        table: str,
        predicate: Callable[[ChangeEvent], bool] | None = None,
    ) -> Subscription:
        subscription = Subscription(self, table, predicate)
        with self._lock:
            self._subscribers.append(subscription)
        logger.debug("change_feed_subscribed", extra={"table": table})
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: ChangeEvent) -> int:
        """Fan *event* out to matching subscribers; returns the delivery count."""
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for subscription in subscribers:
            try:
                if not subscription.matches(event):
                    continue
            except Exception:
                # The write is already committed; a broken filter only loses this delivery.
                logger.exception("change_feed_predicate_failed", extra={"table": event.table})
                continue
            subscription.deliver(event)
            delivered += 1
        return delivered
