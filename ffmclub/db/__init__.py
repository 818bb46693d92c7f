import logging
import os
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from ..config import get_settings
from .collections import (
    CONVERSATION_MESSAGES_COLLECTION,
    CONVERSATIONS_COLLECTION,
    CREDENTIALS_COLLECTION,
    USER_PROFILES_COLLECTION,
)

LOGGER = logging.getLogger("uvicorn.error")

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes the services query on. Safe to call repeatedly."""

    try:
        profiles = db[USER_PROFILES_COLLECTION]
        await profiles.create_index([("createdAt", DESCENDING)], name="profiles_created_idx")
        await profiles.create_index(
            [("accountType", ASCENDING), ("city", ASCENDING)],
            name="profiles_type_city_idx",
        )
        await db[CREDENTIALS_COLLECTION].create_index("emailLower", unique=True)
        await db[CONVERSATIONS_COLLECTION].create_index("participants")
        messages = db[CONVERSATION_MESSAGES_COLLECTION]
        await messages.create_index(
            [("conversationId", ASCENDING), ("timestamp", ASCENDING)],
            name="messages_conversation_ts_idx",
        )
        await messages.create_index(
            [("recipientId", ASCENDING), ("read", ASCENDING)],
            name="messages_recipient_read_idx",
        )
    except Exception as exc:  # pragma: no cover - best-effort logging
        LOGGER.error("Failed to ensure indexes: %s", exc)


async def connect_to_mongo() -> None:
    """Initialise the shared MongoDB client and database."""

    global _client, _db

    settings = get_settings()
    if not settings.mongo_uri and not settings.mongo_alt_uri:
        raise RuntimeError("Missing MONGO_URI env var for ffmclub")

    sel_timeout_ms = int(os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "3000"))
    conn_timeout_ms = int(os.getenv("MONGO_CONNECT_TIMEOUT_MS", "3000"))
    sock_timeout_ms = int(os.getenv("MONGO_SOCKET_TIMEOUT_MS", "5000"))

    async def _try_connect(uri: str) -> tuple[AsyncIOMotorClient, AsyncIOMotorDatabase]:
        client = AsyncIOMotorClient(
            uri,
            maxPoolSize=20,
            serverSelectionTimeoutMS=sel_timeout_ms,
            connectTimeoutMS=conn_timeout_ms,
            socketTimeoutMS=sock_timeout_ms,
            **({"directConnection": True} if settings.mongo_direct else {}),
        )
        db = client[settings.mongo_db]
        await client.admin.command("ping")
        await ensure_indexes(db)
        return client, db

    primary_error: Optional[Exception] = None

    if settings.mongo_uri:
        try:
            _client, _db = await _try_connect(settings.mongo_uri)
            LOGGER.info("MongoDB connected: db=%s", settings.mongo_db)
            return
        except Exception as exc:  # pragma: no cover - connection issues
            primary_error = exc
            LOGGER.error("Mongo primary URI failed: %s", exc)

    if settings.mongo_alt_uri:
        try:
            _client, _db = await _try_connect(settings.mongo_alt_uri)
            LOGGER.info("MongoDB connected via ALT URI: db=%s", settings.mongo_db)
            return
        except Exception as exc:  # pragma: no cover - same as above
            LOGGER.error("Mongo ALT URI failed: %s", exc)
            primary_error = primary_error or exc

    raise primary_error or RuntimeError("Mongo connection failed")


async def close_mongo_connection() -> None:
    """Close the MongoDB client if it is initialised."""

    global _client, _db
    if _client:
        try:
            _client.close()
        finally:
            LOGGER.info("MongoDB connection closed")
        _client = None
        _db = None


def is_connected() -> bool:
    return _client is not None and _db is not None


def get_db() -> AsyncIOMotorDatabase:
    if _db is None:
        raise RuntimeError("MongoDB database not connected. Did you call connect_to_mongo()?")
    return _db


__all__ = [
    "connect_to_mongo",
    "close_mongo_connection",
    "ensure_indexes",
    "get_db",
    "is_connected",
]
