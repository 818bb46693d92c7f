"""In-process registry of live subscriptions.

Subscribers register a callback under a topic (a conversation id, a profile
id, the auth topic). Publishers hand the registry a payload for a topic and
every active subscription on it is invoked in registration order. Callbacks
may be plain functions or coroutine functions.

``Subscription.cancel()`` is synchronous and takes effect before it returns:
delivery re-checks ``active`` immediately before each callback, so a callback
never runs after its subscription has been cancelled, even when the
cancellation happens in the middle of a fan-out.
"""

from __future__ import annotations

import inspect
import itertools
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

LOGGER = logging.getLogger("uvicorn.error")

Callback = Callable[[Any], Any]


class Subscription:
    """Cancellation handle returned by every ``subscribe``/``watch`` call."""

    def __init__(self, registry: "SubscriptionRegistry", topic: str, callback: Callback, seq: int) -> None:
        self._registry = registry
        self.topic = topic
        self.callback = callback
        self.seq = seq
        self._active = True
        self._deliveries = 0

    @property
    def active(self) -> bool:
        return self._active

    @property
    def deliveries(self) -> int:
        """Number of payloads handed to the callback so far."""
        return self._deliveries

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._registry._remove(self)

    async def deliver(self, payload: Any) -> bool:
        """Invoke the callback unless cancelled. Returns whether it ran."""

        if not self._active:
            return False
        self._deliveries += 1
        try:
            result = self.callback(payload)
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOGGER.exception("Subscriber callback failed for topic=%s", self.topic)
        return True


class SubscriptionRegistry:
    def __init__(self) -> None:
        self._topics: Dict[str, List[Subscription]] = defaultdict(list)
        self._seq = itertools.count(1)

    def subscribe(self, topic: str, callback: Callback) -> Subscription:
        subscription = Subscription(self, topic, callback, next(self._seq))
        self._topics[topic].append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subs = self._topics.get(subscription.topic)
        if not subs:
            return
        try:
            subs.remove(subscription)
        except ValueError:
            pass
        if not subs:
            self._topics.pop(subscription.topic, None)

    def has_subscribers(self, topic: str) -> bool:
        return bool(self._topics.get(topic))

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    async def publish(self, topic: str, payload: Any) -> int:
        """Deliver ``payload`` to every active subscriber of ``topic``."""

        delivered = 0
        for subscription in list(self._topics.get(topic, ())):
            if await subscription.deliver(payload):
                delivered += 1
        return delivered


registry = SubscriptionRegistry()


__all__ = ["Subscription", "SubscriptionRegistry", "registry"]
