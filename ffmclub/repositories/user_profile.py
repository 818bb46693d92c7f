"""Repository helpers for the user profile collection."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..db.collections import USER_PROFILES_COLLECTION
from ..models.user_profile import UserProfileDocument
from .exceptions import DuplicateKeyRepositoryError, NotFoundRepositoryError

LOGGER = logging.getLogger("uvicorn.error")

# Embedded arrays that behave as sets of user ids.
EDGE_FIELDS = ("likes", "favorites")


class UserProfileRepository:
    """Thin abstraction over the user profile MongoDB collection."""

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[USER_PROFILES_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def create_profile(
        self,
        *,
        user_id: str,
        attributes: Dict[str, Any],
        created_at: int,
    ) -> UserProfileDocument:
        """Insert a new profile with empty interaction sets and zeroed counters."""

        doc = {
            **attributes,
            "_id": user_id,
            "verified": False,
            "photoURL": "",
            "createdAt": created_at,
            "lastLogin": None,
            "profileViews": 0,
            "likes": [],
            "favorites": [],
        }
        try:
            await self._collection.insert_one(doc)
        except DuplicateKeyError as exc:
            LOGGER.debug("Duplicate user profile insertion for user_id=%s", user_id)
            raise DuplicateKeyRepositoryError(USER_PROFILES_COLLECTION, user_id) from exc
        return UserProfileDocument(**doc)

    async def get_by_user_id(self, user_id: str) -> Optional[UserProfileDocument]:
        doc = await self._collection.find_one({"_id": user_id})
        return UserProfileDocument(**doc) if doc else None

    async def exists(self, user_id: str) -> bool:
        doc = await self._collection.find_one({"_id": user_id}, projection={"_id": 1})
        return doc is not None

    async def get_edges(self, user_id: str, field: str) -> Optional[List[str]]:
        """Return the raw id set stored under ``field``, or None if no profile."""

        doc = await self._collection.find_one({"_id": user_id}, projection={field: 1})
        if not doc:
            return None
        return [str(v) for v in (doc.get(field) or [])]

    async def update_profile(self, *, user_id: str, updates: Dict[str, Any]) -> UserProfileDocument:
        result = await self._collection.find_one_and_update(
            {"_id": user_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        if not result:
            raise NotFoundRepositoryError(USER_PROFILES_COLLECTION, user_id)
        return UserProfileDocument(**result)

    async def add_edge(self, user_id: str, field: str, target_id: str) -> bool:
        """``$addToSet`` target into the owner's set. Returns whether the owner exists."""

        result = await self._collection.update_one(
            {"_id": user_id},
            {"$addToSet": {field: target_id}},
        )
        return bool(result.matched_count)

    async def remove_edge(self, user_id: str, field: str, target_id: str) -> bool:
        result = await self._collection.update_one(
            {"_id": user_id},
            {"$pull": {field: target_id}},
        )
        return bool(result.matched_count)

    async def increment_views(self, user_id: str) -> bool:
        result = await self._collection.update_one(
            {"_id": user_id},
            {"$inc": {"profileViews": 1}},
        )
        return bool(result.matched_count)

    async def find_profiles(self, query: Dict[str, Any], *, limit: Optional[int] = None) -> List[UserProfileDocument]:
        cursor = self._collection.find(query).sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
        if limit is not None:
            cursor = cursor.limit(limit)
        out: List[UserProfileDocument] = []
        async for doc in cursor:
            out.append(UserProfileDocument(**doc))
        return out


__all__ = ["EDGE_FIELDS", "UserProfileRepository"]
