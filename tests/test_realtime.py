from __future__ import annotations

import time

import pytest

from ffmclub.cache import TTLCache
from ffmclub.events import handle_realtime_event
from ffmclub.realtime import SubscriptionRegistry


@pytest.mark.asyncio
async def test_publish_reaches_subscribers_in_order() -> None:
    registry = SubscriptionRegistry()
    seen = []
    registry.subscribe("t", lambda payload: seen.append(("a", payload)))

    async def _async_cb(payload) -> None:
        seen.append(("b", payload))

    registry.subscribe("t", _async_cb)
    registry.subscribe("other", lambda payload: seen.append(("c", payload)))

    assert await registry.publish("t", 1) == 2
    assert seen == [("a", 1), ("b", 1)]


@pytest.mark.asyncio
async def test_cancel_is_idempotent_and_stops_delivery() -> None:
    registry = SubscriptionRegistry()
    seen = []
    subscription = registry.subscribe("t", seen.append)

    subscription.cancel()
    subscription.cancel()

    assert not registry.has_subscribers("t")
    assert await registry.publish("t", "x") == 0
    assert seen == []


@pytest.mark.asyncio
async def test_cancel_during_fan_out_skips_later_subscriber() -> None:
    registry = SubscriptionRegistry()
    seen = []
    handles = {}

    def _first(payload) -> None:
        seen.append("first")
        handles["second"].cancel()

    registry.subscribe("t", _first)
    handles["second"] = registry.subscribe("t", lambda payload: seen.append("second"))

    assert await registry.publish("t", None) == 1
    assert seen == ["first"]
    assert registry.subscriber_count("t") == 1


@pytest.mark.asyncio
async def test_failing_callback_does_not_block_others() -> None:
    registry = SubscriptionRegistry()
    seen = []

    def _boom(payload) -> None:
        raise RuntimeError("boom")

    registry.subscribe("t", _boom)
    registry.subscribe("t", seen.append)

    assert await registry.publish("t", 7) == 2
    assert seen == [7]


@pytest.mark.asyncio
async def test_ttl_cache_expiry(monkeypatch) -> None:
    cache = TTLCache()
    await cache.set("token", True, ttl_seconds=60)
    assert await cache.contains("token")
    assert await cache.get("missing") is None

    real_time = time.time
    monkeypatch.setattr(time, "time", lambda: real_time() + 120)
    assert not await cache.contains("token")


@pytest.mark.asyncio
async def test_remote_events_refresh_local_subscribers(db, make_profile) -> None:
    from ffmclub.realtime import registry
    from ffmclub.services.conversation_service import get_conversation_service

    await make_profile("u1")
    await make_profile("u2")
    service = get_conversation_service()
    cid = await service.get_or_create_conversation("u1", "u2")

    snapshots = []
    subscription = await service.subscribe_to_messages(cid, lambda messages: snapshots.append(len(messages)))
    try:
        # a write made by another process lands directly in the collection
        await service._repository.insert_message(
            {
                "messageId": "m-remote",
                "conversationId": cid,
                "senderId": "u2",
                "recipientId": "u1",
                "text": "from elsewhere",
                "timestamp": 1,
                "read": False,
            }
        )
        await handle_realtime_event({"kind": "conversation", "id": cid})
        await handle_realtime_event({"kind": "unknown", "id": cid})
    finally:
        subscription.cancel()

    assert snapshots == [0, 1]
    assert not registry.has_subscribers(f"conversation:{cid}")
