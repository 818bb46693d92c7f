from __future__ import annotations

import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional

from ..config import get_settings
from ..db import get_db
from ..errors import (
    BackendUnavailableError,
    InvalidOperationError,
    NotFoundError,
    backend_errors,
)
from ..integrations.cloudinary import CloudinaryStorage
from ..models.user_profile import (
    ProfileAttributes,
    ProfileFilter,
    UserProfileDocument,
    UserProfilePatch,
)
from ..realtime import Subscription, SubscriptionRegistry, registry as default_registry
from ..redis_bus import publish as redis_publish
from ..repositories.user_profile import UserProfileRepository

LOGGER = logging.getLogger("uvicorn.error")

ALLOWED_PHOTO_MIMES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/avif",
}


_CLEARABLE_TEXT_FIELDS = ("about", "interests", "photoURL")


def profile_topic(user_id: str) -> str:
    return f"profile:{user_id}"


def _equality_value(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    if not text or text.lower() == "all":
        return None
    return text


class ProfileService:
    """Create/read/update flows for user profiles, plus live profile watchers."""

    def __init__(
        self,
        repository: UserProfileRepository,
        *,
        registry: SubscriptionRegistry,
        storage: Optional[CloudinaryStorage] = None,
        list_max: int = 200,
        max_photo_bytes: int = 5 * 1024 * 1024,
    ) -> None:
        self._repository = repository
        self._registry = registry
        self._storage = storage
        self._list_max = list_max
        self._max_photo_bytes = max_photo_bytes

    @property
    def repository(self) -> UserProfileRepository:
        return self._repository

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    @staticmethod
    def prepare_attributes(attributes: ProfileAttributes) -> Dict[str, Any]:
        """Normalise creation attributes, raising before anything is stored."""

        data = attributes.model_dump(by_alias=True)
        data["username"] = data["username"].strip()
        if not data["username"]:
            raise InvalidOperationError("username required")
        return data

    async def create_profile(self, user_id: str, attributes: ProfileAttributes) -> UserProfileDocument:
        user_id = (user_id or "").strip()
        if not user_id:
            raise InvalidOperationError("user id required")
        data = self.prepare_attributes(attributes)
        with backend_errors("create profile"):
            return await self._repository.create_profile(
                user_id=user_id,
                attributes=data,
                created_at=self._now_ms(),
            )

    async def get_profile(self, user_id: str) -> UserProfileDocument:
        with backend_errors("get profile"):
            profile = await self._repository.get_by_user_id(user_id)
        if not profile:
            raise NotFoundError(f"user '{user_id}' not found")
        return profile

    async def require_exists(self, *user_ids: str) -> None:
        for user_id in user_ids:
            with backend_errors("get profile"):
                found = await self._repository.exists(user_id)
            if not found:
                raise NotFoundError(f"user '{user_id}' not found")

    async def update_profile(self, user_id: str, patch: UserProfilePatch) -> UserProfileDocument:
        updates: Dict[str, Any] = patch.model_dump(by_alias=True, exclude_unset=True)
        if "username" in updates:
            username = (updates["username"] or "").strip()
            if not username:
                raise InvalidOperationError("username required")
            updates["username"] = username
        # Text fields are never null in the stored document; null clears them.
        for field in _CLEARABLE_TEXT_FIELDS:
            if field in updates and updates[field] is None:
                updates[field] = ""

        if not updates:
            return await self.get_profile(user_id)

        with backend_errors("update profile"):
            updated = await self._repository.update_profile(user_id=user_id, updates=updates)
        await self.notify_changed(user_id, updated)
        return updated

    async def record_login(self, user_id: str) -> UserProfileDocument:
        with backend_errors("record login"):
            updated = await self._repository.update_profile(
                user_id=user_id,
                updates={"lastLogin": self._now_ms()},
            )
        return updated

    async def list_profiles(self, filters: Optional[ProfileFilter] = None, limit: int = 50) -> List[UserProfileDocument]:
        """Newest-created first, at most ``limit`` profiles.

        The age bounds are inclusive; profiles without an age never match a
        bounded search.
        """

        filters = filters or ProfileFilter()
        limit = max(1, min(int(limit), self._list_max))

        query: Dict[str, Any] = {}
        account_type = _equality_value(filters.account_type)
        if account_type:
            query["accountType"] = account_type
        city = _equality_value(filters.city)
        if city:
            query["city"] = city
        if filters.verified_only:
            query["verified"] = True

        if filters.age_from is not None or filters.age_to is not None:
            age: Dict[str, Any] = {"$ne": None}
            if filters.age_from is not None:
                age["$gte"] = filters.age_from
            if filters.age_to is not None:
                age["$lte"] = filters.age_to
            query["age"] = age

        with backend_errors("list profiles"):
            return await self._repository.find_profiles(query, limit=limit)

    async def increment_profile_views(self, user_id: str) -> None:
        """Best-effort view counter bump; never raises."""

        try:
            found = await self._repository.increment_views(user_id)
        except Exception as exc:
            LOGGER.error("Increment views failed for %s: %s", user_id, exc)
            return
        if found:
            await self.notify_changed(user_id)

    async def upload_profile_photo(
        self,
        user_id: str,
        *,
        filename: str,
        data: bytes,
        content_type: str,
    ) -> UserProfileDocument:
        if self._storage is None:
            raise InvalidOperationError("photo storage is not configured")
        if content_type not in ALLOWED_PHOTO_MIMES:
            raise InvalidOperationError(f"unsupported image type: {content_type or 'unknown'}")
        if not data:
            raise InvalidOperationError("empty upload")
        if len(data) > self._max_photo_bytes:
            raise InvalidOperationError("photo too large")

        await self.require_exists(user_id)
        safe_name = os.path.basename(filename or "photo").replace(" ", "_") or "photo"
        path = f"profile-photos/{user_id}/{self._now_ms()}_{safe_name}"
        try:
            reference = await self._storage.upload(path, data)
            url = await self._storage.get_download_url(reference)
        except Exception as exc:
            LOGGER.error("Photo upload failed for %s: %s", user_id, exc)
            raise BackendUnavailableError("photo upload failed") from exc
        return await self.update_profile(user_id, UserProfilePatch(photo_url=url))

    def watch_profile(self, user_id: str, callback: Callable[[UserProfileDocument], Any]) -> Subscription:
        """Invoke ``callback`` with the fresh profile after every change."""

        return self._registry.subscribe(profile_topic(user_id), callback)

    async def refresh_watchers(self, user_id: str, profile: Optional[UserProfileDocument] = None) -> int:
        topic = profile_topic(user_id)
        if not self._registry.has_subscribers(topic):
            return 0
        if profile is None:
            try:
                profile = await self._repository.get_by_user_id(user_id)
            except Exception as exc:
                LOGGER.error("Profile refresh failed for %s: %s", user_id, exc)
                return 0
        if profile is None:
            return 0
        return await self._registry.publish(topic, profile)

    async def notify_changed(self, user_id: str, profile: Optional[UserProfileDocument] = None) -> None:
        await self.refresh_watchers(user_id, profile)
        await redis_publish({"kind": "profile", "id": user_id})


def get_profile_service() -> ProfileService:
    settings = get_settings()
    return ProfileService(
        UserProfileRepository(get_db()),
        registry=default_registry,
        storage=CloudinaryStorage(folder=settings.profile_photo_folder),
        list_max=settings.profile_list_max,
        max_photo_bytes=settings.max_photo_bytes,
    )


__all__ = ["ALLOWED_PHOTO_MIMES", "ProfileService", "get_profile_service", "profile_topic"]
