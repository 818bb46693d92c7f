"""Repository helpers for the identity provider's credential store."""

from __future__ import annotations

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..db.collections import CREDENTIALS_COLLECTION
from ..models.auth import CredentialDocument
from .exceptions import DuplicateKeyRepositoryError, NotFoundRepositoryError

LOGGER = logging.getLogger("uvicorn.error")


class CredentialRepository:
    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[CREDENTIALS_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def create(self, *, user_id: str, email: str, password_hash: str, created_at: int) -> CredentialDocument:
        doc = {
            "_id": user_id,
            "email": email,
            "emailLower": email.lower(),
            "passwordHash": password_hash,
            "disabled": False,
            "createdAt": created_at,
            "updatedAt": created_at,
        }
        try:
            await self._collection.insert_one(doc)
        except DuplicateKeyError as exc:
            LOGGER.debug("Duplicate credential insertion for email=%s", email)
            raise DuplicateKeyRepositoryError(CREDENTIALS_COLLECTION, email.lower()) from exc
        return CredentialDocument(**doc)

    async def get_by_email(self, email: str) -> Optional[CredentialDocument]:
        doc = await self._collection.find_one({"emailLower": email.lower()})
        return CredentialDocument(**doc) if doc else None

    async def email_exists(self, email: str) -> bool:
        doc = await self._collection.find_one({"emailLower": email.lower()}, projection={"_id": 1})
        return doc is not None

    async def set_password_hash(self, user_id: str, password_hash: str, updated_at: int) -> CredentialDocument:
        doc = await self._collection.find_one_and_update(
            {"_id": user_id},
            {"$set": {"passwordHash": password_hash, "updatedAt": updated_at}},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            raise NotFoundRepositoryError(CREDENTIALS_COLLECTION, user_id)
        return CredentialDocument(**doc)

    async def delete(self, user_id: str) -> bool:
        result = await self._collection.delete_one({"_id": user_id})
        return bool(result.deleted_count)


__all__ = ["CredentialRepository"]
