from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, List, Tuple

from ..db import get_db
from ..errors import InvalidOperationError, NotFoundError, backend_errors
from ..models.conversation import ConversationDocument, Message
from ..realtime import Subscription, SubscriptionRegistry, registry as default_registry
from ..redis_bus import publish as redis_publish
from ..repositories.conversation import ConversationRepository
from .profile_service import ProfileService, get_profile_service

LOGGER = logging.getLogger("uvicorn.error")


def canonical_pair(user_a: str, user_b: str) -> Tuple[str, str]:
    low, high = sorted([user_a, user_b])
    return low, high


def conversation_id_for(user_a: str, user_b: str) -> str:
    """Deterministic, order-independent id for the pair's conversation."""

    low, high = canonical_pair(user_a, user_b)
    return f"dm:{low}|{high}"


def conversation_topic(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


class ConversationService:
    """Two-party conversations, their ordered messages and read state."""

    def __init__(
        self,
        repository: ConversationRepository,
        profiles: ProfileService,
        *,
        registry: SubscriptionRegistry,
    ) -> None:
        self._repository = repository
        self._profiles = profiles
        self._registry = registry

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def get_or_create_conversation(self, user_a: str, user_b: str) -> str:
        """Upsert the pair's conversation and return its id.

        Creation is an idempotent ``$setOnInsert`` upsert keyed on the
        canonical id, so concurrent calls for the same pair converge on one
        document rather than racing a read against a write.
        """

        user_a = (user_a or "").strip()
        user_b = (user_b or "").strip()
        if not user_a or not user_b:
            raise InvalidOperationError("both participants are required")
        if user_a == user_b:
            raise InvalidOperationError("cannot start a conversation with yourself")
        await self._profiles.require_exists(user_a, user_b)

        conversation_id = conversation_id_for(user_a, user_b)
        with backend_errors("create conversation"):
            created = await self._repository.upsert_conversation(
                conversation_id,
                list(canonical_pair(user_a, user_b)),
                self._now_ms(),
            )
        if created:
            LOGGER.info("Conversation created: %s", conversation_id)
        return conversation_id

    async def get_conversation(self, conversation_id: str) -> ConversationDocument:
        with backend_errors("get conversation"):
            conversation = await self._repository.get_conversation(conversation_id)
        if not conversation:
            raise NotFoundError(f"conversation '{conversation_id}' not found")
        return conversation

    async def send_message(self, conversation_id: str, sender_id: str, recipient_id: str, text: str) -> Message:
        conversation = await self.get_conversation(conversation_id)
        if sender_id == recipient_id:
            raise InvalidOperationError("sender and recipient must differ")
        if sorted([sender_id, recipient_id]) != sorted(conversation.participants):
            raise InvalidOperationError("sender and recipient must be the conversation participants")
        body = (text or "").strip()
        if not body:
            raise InvalidOperationError("message text required")

        now = self._now_ms()
        doc = {
            "messageId": str(uuid.uuid4()),
            "conversationId": conversation_id,
            "senderId": sender_id,
            "recipientId": recipient_id,
            "text": body,
            "timestamp": now,
            "read": False,
        }
        with backend_errors("send message"):
            message = await self._repository.insert_message(doc)
            await self._repository.set_last_message(conversation_id, body, now)

        await self._notify(conversation_id)
        return message

    async def list_messages(self, conversation_id: str) -> List[Message]:
        await self.get_conversation(conversation_id)
        with backend_errors("list messages"):
            return await self._repository.list_messages(conversation_id)

    async def subscribe_to_messages(
        self,
        conversation_id: str,
        on_update: Callable[[List[Message]], Any],
    ) -> Subscription:
        """Register ``on_update`` for the conversation's message sequence.

        The callback receives the current ordered sequence right away and the
        full sequence again after every change, until the returned handle is
        cancelled.
        """

        await self.get_conversation(conversation_id)
        subscription = self._registry.subscribe(conversation_topic(conversation_id), on_update)
        try:
            with backend_errors("list messages"):
                messages = await self._repository.list_messages(conversation_id)
        except Exception:
            subscription.cancel()
            raise
        # A change published while the snapshot loaded already delivered a
        # sequence read after that change; this one may be older.
        if subscription.deliveries == 0:
            await subscription.deliver(messages)
        return subscription

    async def refresh_subscribers(self, conversation_id: str) -> int:
        topic = conversation_topic(conversation_id)
        if not self._registry.has_subscribers(topic):
            return 0
        try:
            messages = await self._repository.list_messages(conversation_id)
        except Exception as exc:
            LOGGER.error("Message refresh failed for %s: %s", conversation_id, exc)
            return 0
        return await self._registry.publish(topic, messages)

    async def _notify(self, conversation_id: str) -> None:
        await self.refresh_subscribers(conversation_id)
        await redis_publish({"kind": "conversation", "id": conversation_id})

    async def list_conversations_for_user(self, user_id: str) -> List[ConversationDocument]:
        """Most recently messaged first; never-messaged conversations last."""

        with backend_errors("list conversations"):
            conversations = await self._repository.list_for_participant(user_id)
        return sorted(
            conversations,
            key=lambda c: (
                c.last_message_time is None,
                -(c.last_message_time or 0),
                -c.created_at,
            ),
        )

    async def mark_messages_as_read(self, conversation_id: str, user_id: str) -> int:
        await self.get_conversation(conversation_id)
        with backend_errors("mark messages read"):
            updated = await self._repository.mark_read(conversation_id, user_id)
        if updated:
            await self._notify(conversation_id)
        return updated

    async def count_unread_for_user(self, user_id: str) -> int:
        conversations = await self.list_conversations_for_user(user_id)
        with backend_errors("count unread"):
            counts = await asyncio.gather(
                *(self._repository.count_unread(c.conversation_id, user_id) for c in conversations)
            )
        return sum(counts)


def get_conversation_service() -> ConversationService:
    return ConversationService(
        ConversationRepository(get_db()),
        get_profile_service(),
        registry=default_registry,
    )


__all__ = [
    "ConversationService",
    "canonical_pair",
    "conversation_id_for",
    "conversation_topic",
    "get_conversation_service",
]
