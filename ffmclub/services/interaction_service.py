"""Likes, favorites and mutual-like matches.

Edges live on the owner's profile as the ``likes`` and ``favorites`` id sets.
A match is never stored: A and B are matched iff each appears in the other's
``likes``. There is no reverse index, so ``list_matches`` costs one lookup per
liked id.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from ..errors import InvalidOperationError, NotFoundError, backend_errors
from ..models.user_profile import UserProfileDocument
from ..repositories.user_profile import UserProfileRepository
from .profile_service import ProfileService, get_profile_service

LOGGER = logging.getLogger("uvicorn.error")

LIKES = "likes"
FAVORITES = "favorites"


class InteractionService:
    def __init__(self, profiles: ProfileService) -> None:
        self._profiles = profiles
        self._repository: UserProfileRepository = profiles.repository

    async def _add(self, field: str, source_id: str, target_id: str) -> None:
        if source_id == target_id:
            raise InvalidOperationError(f"cannot add yourself to {field}")
        await self._profiles.require_exists(source_id, target_id)
        with backend_errors(f"add {field}"):
            await self._repository.add_edge(source_id, field, target_id)
        await self._profiles.notify_changed(source_id)

    async def _remove(self, field: str, source_id: str, target_id: str) -> None:
        with backend_errors(f"remove {field}"):
            found = await self._repository.remove_edge(source_id, field, target_id)
        if found:
            await self._profiles.notify_changed(source_id)

    async def like(self, source_id: str, target_id: str) -> bool:
        """Record the like and return whether the pair is now a mutual match."""

        await self._add(LIKES, source_id, target_id)
        with backend_errors("check match"):
            target_likes = await self._repository.get_edges(target_id, LIKES)
        return source_id in (target_likes or [])

    async def unlike(self, source_id: str, target_id: str) -> None:
        await self._remove(LIKES, source_id, target_id)

    async def favorite(self, source_id: str, target_id: str) -> None:
        await self._add(FAVORITES, source_id, target_id)

    async def unfavorite(self, source_id: str, target_id: str) -> None:
        await self._remove(FAVORITES, source_id, target_id)

    async def _owned_ids(self, user_id: str, field: str) -> List[str]:
        with backend_errors(f"list {field}"):
            ids = await self._repository.get_edges(user_id, field)
        if ids is None:
            raise NotFoundError(f"user '{user_id}' not found")
        return [i for i in dict.fromkeys(ids) if i != user_id]

    async def _hydrate_one(self, user_id: str) -> Optional[UserProfileDocument]:
        try:
            return await self._repository.get_by_user_id(user_id)
        except Exception as exc:
            LOGGER.error("Profile hydration failed for %s: %s", user_id, exc)
            return None

    async def _hydrate(self, ids: List[str]) -> List[UserProfileDocument]:
        """Best-effort: ids that fail to load are skipped."""

        found = await asyncio.gather(*(self._hydrate_one(i) for i in ids))
        return [profile for profile in found if profile is not None]

    async def list_liked_profiles(self, user_id: str) -> List[UserProfileDocument]:
        return await self._hydrate(await self._owned_ids(user_id, LIKES))

    async def list_favorite_profiles(self, user_id: str) -> List[UserProfileDocument]:
        return await self._hydrate(await self._owned_ids(user_id, FAVORITES))

    async def list_matches(self, user_id: str) -> List[UserProfileDocument]:
        candidates = await self._hydrate(await self._owned_ids(user_id, LIKES))
        return [profile for profile in candidates if user_id in profile.likes]

    async def is_match(self, user_a: str, user_b: str) -> bool:
        if user_a == user_b:
            return False
        with backend_errors("check match"):
            a_likes, b_likes = await asyncio.gather(
                self._repository.get_edges(user_a, LIKES),
                self._repository.get_edges(user_b, LIKES),
            )
        return user_b in (a_likes or []) and user_a in (b_likes or [])


def get_interaction_service() -> InteractionService:
    return InteractionService(get_profile_service())


__all__ = ["InteractionService", "get_interaction_service"]
