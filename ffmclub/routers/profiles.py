from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from pydantic import BaseModel

from ..models.interactions import ProfileListResponse
from ..models.user_profile import OwnProfile, ProfileFilter, UserProfile, UserProfilePatch
from ..services.profile_service import ProfileService, get_profile_service
from .deps import require_current_user

router = APIRouter(prefix="/profiles", tags=["profiles"])


class ProfileResponse(BaseModel):
    success: Literal[True] = True
    user: UserProfile


class OwnProfileResponse(BaseModel):
    success: Literal[True] = True
    user: OwnProfile


@router.get("", response_model=ProfileListResponse)
async def list_profiles(
    account_type: Optional[str] = Query(default=None, alias="accountType"),
    city: Optional[str] = None,
    verified: bool = False,
    age_from: Optional[int] = Query(default=None, ge=0, alias="ageFrom"),
    age_to: Optional[int] = Query(default=None, ge=0, alias="ageTo"),
    limit: int = Query(default=50, ge=1),
    service: ProfileService = Depends(get_profile_service),
):
    filters = ProfileFilter(
        account_type=account_type,
        city=city,
        verified_only=verified,
        age_from=age_from,
        age_to=age_to,
    )
    docs = await service.list_profiles(filters, limit)
    return ProfileListResponse(users=[UserProfile.from_document(d) for d in docs])


@router.get("/me", response_model=OwnProfileResponse)
async def me(
    user_id: str = Depends(require_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    doc = await service.get_profile(user_id)
    return OwnProfileResponse(user=OwnProfile.from_document(doc))


@router.patch("/me", response_model=OwnProfileResponse)
async def update_me(
    patch: UserProfilePatch,
    user_id: str = Depends(require_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    doc = await service.update_profile(user_id, patch)
    return OwnProfileResponse(user=OwnProfile.from_document(doc))


@router.post("/me/photo", response_model=OwnProfileResponse)
async def upload_photo(
    photo: UploadFile = File(...),
    user_id: str = Depends(require_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    data = await photo.read()
    doc = await service.upload_profile_photo(
        user_id,
        filename=photo.filename or "photo",
        data=data,
        content_type=photo.content_type or "",
    )
    return OwnProfileResponse(user=OwnProfile.from_document(doc))


@router.get("/{user_id}", response_model=ProfileResponse)
async def profile_by_id(
    user_id: str,
    viewer_id: str = Depends(require_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    doc = await service.get_profile(user_id.strip())
    if viewer_id != doc.user_id:
        await service.increment_profile_views(doc.user_id)
    return ProfileResponse(user=UserProfile.from_document(doc))


__all__ = ["router"]
