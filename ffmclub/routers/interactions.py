from fastapi import APIRouter, Depends

from ..models.interactions import (
    InteractionResponse,
    LikeResponse,
    MatchesResponse,
    ProfileListResponse,
    TargetRequest,
)
from ..models.user_profile import UserProfile
from ..services.interaction_service import InteractionService, get_interaction_service
from .deps import require_current_user

router = APIRouter(tags=["interactions"])


@router.post("/likes", response_model=LikeResponse)
async def create_like(
    payload: TargetRequest,
    user_id: str = Depends(require_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    is_match = await service.like(user_id, payload.target_user_id.strip())
    return LikeResponse(is_match=is_match)


@router.delete("/likes/{target_user_id}", response_model=InteractionResponse)
async def delete_like(
    target_user_id: str,
    user_id: str = Depends(require_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    await service.unlike(user_id, target_user_id.strip())
    return InteractionResponse()


@router.get("/likes", response_model=ProfileListResponse)
async def list_liked(
    user_id: str = Depends(require_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    docs = await service.list_liked_profiles(user_id)
    return ProfileListResponse(users=[UserProfile.from_document(d) for d in docs])


@router.get("/likes/matches", response_model=MatchesResponse)
async def list_matches(
    user_id: str = Depends(require_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    docs = await service.list_matches(user_id)
    return MatchesResponse(matches=[UserProfile.from_document(d) for d in docs])


@router.post("/favorites", response_model=InteractionResponse)
async def create_favorite(
    payload: TargetRequest,
    user_id: str = Depends(require_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    await service.favorite(user_id, payload.target_user_id.strip())
    return InteractionResponse()


@router.delete("/favorites/{target_user_id}", response_model=InteractionResponse)
async def delete_favorite(
    target_user_id: str,
    user_id: str = Depends(require_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    await service.unfavorite(user_id, target_user_id.strip())
    return InteractionResponse()


@router.get("/favorites", response_model=ProfileListResponse)
async def list_favorites(
    user_id: str = Depends(require_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    docs = await service.list_favorite_profiles(user_id)
    return ProfileListResponse(users=[UserProfile.from_document(d) for d in docs])


__all__ = ["router"]
