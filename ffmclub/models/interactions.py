from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

from .user_profile import UserProfile


class TargetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_user_id: str = Field(alias="targetUserId", min_length=1)


class LikeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: Literal[True] = True
    is_match: bool = Field(alias="isMatch")


class InteractionResponse(BaseModel):
    success: Literal[True] = True


class ProfileListResponse(BaseModel):
    success: Literal[True] = True
    users: List[UserProfile] = Field(default_factory=list)


class MatchesResponse(BaseModel):
    success: Literal[True] = True
    matches: List[UserProfile] = Field(default_factory=list)


__all__ = [
    "InteractionResponse",
    "LikeResponse",
    "MatchesResponse",
    "ProfileListResponse",
    "TargetRequest",
]
