"""Tests for the live notification hub."""

from __future__ import annotations

import asyncio
import json

from clubsite.broadcast import KEEPALIVE_FRAME, BroadcastHub, format_event


def _parse(frame: str) -> tuple[str, object]:
    lines = frame.rstrip("\n").split("\n")
    assert lines[0].startswith("event: ")
    assert lines[1].startswith("data: ")
    return lines[0][len("event: "):], json.loads(lines[1][len("data: "):])


def test_format_event_frames_name_and_json() -> None:
    frame = format_event("team:update", {"removedId": 42})

    assert frame == 'event: team:update\ndata: {"removedId":42}\n\n'


def test_publish_reaches_every_open_subscription() -> None:
    async def scenario() -> None:
        hub = BroadcastHub()
        first = hub.subscribe()
        second = hub.subscribe()

        delivered = hub.publish("event:new", {"title": "Robotics night"})

        assert delivered == 2
        for subscription in (first, second):
            name, payload = _parse(await subscription.read())
            assert name == "event:new"
            assert payload == {"title": "Robotics night"}

    asyncio.run(scenario())


def test_late_subscriber_gets_no_replay() -> None:
    async def scenario() -> None:
        hub = BroadcastHub()
        hub.publish("ach:new", {"title": "Best branch"})
        late = hub.subscribe()

        hub.publish("ach:new", {"title": "Second"})

        _, payload = _parse(await late.read())
        assert payload == {"title": "Second"}

    asyncio.run(scenario())


def test_failed_write_drops_subscription_without_retry() -> None:
    async def scenario() -> None:
        hub = BroadcastHub()
        healthy = hub.subscribe()
        broken = hub.subscribe()
        broken.close()

        assert hub.publish("event:new", {"id": 1}) == 1
        assert len(hub) == 1
        assert hub.publish("event:new", {"id": 2}) == 1

        first = await healthy.read()
        second = await healthy.read()
        assert _parse(first)[1] == {"id": 1}
        assert _parse(second)[1] == {"id": 2}

    asyncio.run(scenario())


def test_unsubscribe_is_idempotent() -> None:
    async def scenario() -> None:
        hub = BroadcastHub()
        subscription = hub.subscribe()

        hub.unsubscribe(subscription)
        hub.unsubscribe(subscription)

        assert len(hub) == 0
        assert subscription.closed
        assert hub.publish("event:new", {}) == 0
        assert await subscription.read() is None

    asyncio.run(scenario())


def test_stream_starts_with_ready_and_unsubscribes_on_close() -> None:
    async def scenario() -> None:
        hub = BroadcastHub()
        subscription = hub.subscribe()
        stream = hub.stream(subscription)

        ready = await stream.__anext__()
        assert _parse(ready) == ("ready", {"ok": True})

        hub.publish("team:update", {"id": 7})
        assert _parse(await stream.__anext__()) == ("team:update", {"id": 7})

        hub.close_all()
        frames = [frame async for frame in stream]
        assert frames == []
        assert len(hub) == 0

    asyncio.run(scenario())


def test_stream_stops_when_client_has_gone() -> None:
    async def scenario() -> None:
        hub = BroadcastHub()
        subscription = hub.subscribe()
        checks = []

        async def is_disconnected() -> bool:
            checks.append(True)
            return len(checks) > 1

        stream = hub.stream(subscription, is_disconnected=is_disconnected, keepalive_interval=0.01)
        frames = [frame async for frame in stream]

        assert frames[1] == KEEPALIVE_FRAME
        assert len(frames) == 2
        assert len(hub) == 0

    asyncio.run(scenario())
