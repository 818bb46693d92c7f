"""Repository helpers for conversations and their messages."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from ..db.collections import CONVERSATION_MESSAGES_COLLECTION, CONVERSATIONS_COLLECTION
from ..models.conversation import ConversationDocument, Message
from .exceptions import NotFoundRepositoryError

LOGGER = logging.getLogger("uvicorn.error")

_MESSAGE_PROJECTION = {
    "_id": 0,
    "messageId": 1,
    "conversationId": 1,
    "senderId": 1,
    "recipientId": 1,
    "text": 1,
    "timestamp": 1,
    "read": 1,
}


class ConversationRepository:
    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._conversations: AsyncIOMotorCollection = database[CONVERSATIONS_COLLECTION]
        self._messages: AsyncIOMotorCollection = database[CONVERSATION_MESSAGES_COLLECTION]

    @property
    def conversations(self) -> AsyncIOMotorCollection:
        return self._conversations

    @property
    def messages(self) -> AsyncIOMotorCollection:
        return self._messages

    async def upsert_conversation(self, conversation_id: str, participants: List[str], created_at: int) -> bool:
        """Create the conversation unless it already exists.

        Returns True when this call inserted the document. Concurrent callers
        racing on the same id may see a duplicate key error from the upsert;
        the document exists either way, so that is reported as "not created".
        """

        try:
            result = await self._conversations.update_one(
                {"_id": conversation_id},
                {
                    "$setOnInsert": {
                        "participants": participants,
                        "createdAt": created_at,
                        "lastMessage": None,
                        "lastMessageTime": None,
                    }
                },
                upsert=True,
            )
        except DuplicateKeyError:
            LOGGER.debug("Concurrent conversation create for %s", conversation_id)
            return False
        return result.upserted_id is not None

    async def get_conversation(self, conversation_id: str) -> Optional[ConversationDocument]:
        doc = await self._conversations.find_one({"_id": conversation_id})
        return ConversationDocument(**doc) if doc else None

    async def set_last_message(self, conversation_id: str, text: str, timestamp: int) -> None:
        result = await self._conversations.update_one(
            {"_id": conversation_id},
            {"$set": {"lastMessage": text, "lastMessageTime": timestamp}},
        )
        if not result.matched_count:
            raise NotFoundRepositoryError(CONVERSATIONS_COLLECTION, conversation_id)

    async def list_for_participant(self, user_id: str) -> List[ConversationDocument]:
        out: List[ConversationDocument] = []
        async for doc in self._conversations.find({"participants": user_id}):
            out.append(ConversationDocument(**doc))
        return out

    async def insert_message(self, doc: Dict[str, Any]) -> Message:
        await self._messages.insert_one(dict(doc))
        return Message(**doc)

    async def list_messages(self, conversation_id: str) -> List[Message]:
        # _id breaks ties between messages stamped in the same millisecond
        cursor = self._messages.find({"conversationId": conversation_id}, _MESSAGE_PROJECTION).sort(
            [("timestamp", ASCENDING), ("_id", ASCENDING)]
        )
        out: List[Message] = []
        async for doc in cursor:
            out.append(Message(**doc))
        return out

    async def mark_read(self, conversation_id: str, recipient_id: str) -> int:
        result = await self._messages.update_many(
            {"conversationId": conversation_id, "recipientId": recipient_id, "read": False},
            {"$set": {"read": True}},
        )
        return int(result.modified_count)

    async def count_unread(self, conversation_id: str, recipient_id: str) -> int:
        return await self._messages.count_documents(
            {"conversationId": conversation_id, "recipientId": recipient_id, "read": False}
        )


__all__ = ["ConversationRepository"]
