"""Redis pub/sub fan-out for live subscriptions across service processes.

Each process tags the events it publishes with ``INSTANCE_ID`` and ignores
its own events on the way back in, since local subscribers were already
notified directly.
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

from redis.asyncio import Redis
from redis.asyncio.client import PubSub

from .config import get_settings

LOGGER = logging.getLogger("uvicorn.error")

INSTANCE_ID = uuid.uuid4().hex
REALTIME_TOPIC = "realtime"

_client: Optional[Redis] = None
_listener_task: Optional[asyncio.Task] = None
_pubsub: Optional[PubSub] = None

EventHandler = Callable[[Dict[str, Any]], Awaitable[None]]


def _channel(topic: str) -> str:
    prefix = (get_settings().redis_pubsub_prefix or "").strip()
    return f"{prefix}.{topic}" if prefix else topic


def is_enabled() -> bool:
    settings = get_settings()
    return bool(settings.redis_pubsub_enabled and settings.redis_url)


async def _ensure_client() -> Optional[Redis]:
    global _client
    if _client is not None:
        return _client
    settings = get_settings()
    if not settings.redis_url:
        return None
    try:
        client = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=False)
        await client.ping()
        _client = client
    except Exception as exc:
        LOGGER.error("Redis connection failed: %s", exc)
        _client = None
    return _client


async def publish(event: Dict[str, Any]) -> None:
    """Broadcast a change event to the other processes. Best-effort."""

    if not is_enabled():
        return
    client = await _ensure_client()
    if not client:
        return
    try:
        payload = json.dumps({**event, "origin": INSTANCE_ID}, separators=(",", ":")).encode("utf-8")
        await client.publish(_channel(REALTIME_TOPIC), payload)
    except Exception as exc:
        LOGGER.error("Redis publish failed: %s", exc)


def _decode(raw: Any) -> Optional[Dict[str, Any]]:
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        payload = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


async def start_consumer(handler: EventHandler) -> None:
    global _listener_task
    if _listener_task is not None or not is_enabled():
        return
    client = await _ensure_client()
    if not client:
        return

    async def _run() -> None:
        global _pubsub
        pubsub = client.pubsub()
        try:
            await pubsub.subscribe(_channel(REALTIME_TOPIC))
            _pubsub = pubsub
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                payload = _decode(message.get("data"))
                if not payload or payload.get("origin") == INSTANCE_ID:
                    continue
                try:
                    await handler(payload)
                except Exception:
                    LOGGER.exception("Realtime event handler failed")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.error("Redis listener stopped: %s", exc)
        finally:
            try:
                await pubsub.aclose()
            except Exception:
                pass
            _pubsub = None

    _listener_task = asyncio.create_task(_run())


async def stop() -> None:
    global _listener_task, _client
    if _listener_task is not None:
        _listener_task.cancel()
        try:
            await _listener_task
        except asyncio.CancelledError:
            pass
        _listener_task = None
    if _client is not None:
        try:
            await _client.aclose()
        except Exception as exc:
            LOGGER.error("Redis close failed: %s", exc)
        _client = None


__all__ = ["INSTANCE_ID", "is_enabled", "publish", "start_consumer", "stop"]
