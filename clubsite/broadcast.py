"""Fan-out of live notifications to open event-stream connections."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Set

logger = logging.getLogger("clubsite.broadcast")

KEEPALIVE_INTERVAL = 15.0
KEEPALIVE_FRAME = ": keep-alive\n\n"

DisconnectCheck = Callable[[], Awaitable[bool]]


def format_event(name: str, payload: Any) -> str:
    """Render one server-sent event frame."""

    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return f"event: {name}\ndata: {data}\n\n"


class Subscription:
    """One open client stream, backed by an unbounded queue of frames."""

    def __init__(self) -> None:
        self.id = secrets.token_hex(8)
        self._queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, frame: str) -> None:
        if self._closed:
            raise ConnectionError(f"Subscription {self.id} is closed")
        self._queue.put_nowait(frame)

    async def read(self) -> Optional[str]:
        """Return the next frame, or ``None`` once the subscription is closed."""

        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)


class BroadcastHub:
    """Registry of open subscriptions.

    Delivery is best effort: there is no replay for late subscribers and a
    subscription whose write fails is dropped without retry.
    """

    def __init__(self) -> None:
        self._subscriptions: Set[Subscription] = set()

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> Subscription:
        subscription = Subscription()
        self._subscriptions.add(subscription)
        logger.debug("Subscription %s opened (%d open)", subscription.id, len(self._subscriptions))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.discard(subscription)
            logger.debug("Subscription %s closed (%d open)", subscription.id, len(self._subscriptions))
        subscription.close()

    def publish(self, name: str, payload: Any) -> int:
        """Write an event to every open subscription and return how many received it."""

        frame = format_event(name, payload)
        delivered = 0
        for subscription in list(self._subscriptions):
            try:
                subscription.write(frame)
            except ConnectionError:
                logger.debug("Dropping subscription %s after failed write", subscription.id)
                self._subscriptions.discard(subscription)
                continue
            delivered += 1
        return delivered

    def close_all(self) -> None:
        for subscription in list(self._subscriptions):
            self.unsubscribe(subscription)

    async def stream(
        self,
        subscription: Subscription,
        *,
        is_disconnected: Optional[DisconnectCheck] = None,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
    ) -> AsyncIterator[str]:
        """Yield the ``ready`` frame followed by every published frame."""

        try:
            yield format_event("ready", {"ok": True})
            while True:
                try:
                    frame = await asyncio.wait_for(subscription.read(), timeout=keepalive_interval)
                except asyncio.TimeoutError:
                    if is_disconnected is not None and await is_disconnected():
                        break
                    yield KEEPALIVE_FRAME
                    continue
                if frame is None:
                    break
                yield frame
        finally:
            self.unsubscribe(subscription)


__all__ = ["BroadcastHub", "Subscription", "format_event"]
