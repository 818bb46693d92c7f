from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserProfileDocument(BaseModel):
    """Canonical user profile document stored in MongoDB."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(alias="_id")
    email: str
    username: str
    account_type: Optional[str] = Field(default=None, alias="accountType")
    age: Optional[int] = Field(default=None, ge=0)
    city: Optional[str] = None
    about: str = ""
    interests: str = ""
    photo_url: str = Field(default="", alias="photoURL")
    verified: bool = False
    created_at: int = Field(alias="createdAt")
    last_login: Optional[int] = Field(default=None, alias="lastLogin")
    profile_views: int = Field(default=0, alias="profileViews")
    likes: List[str] = Field(default_factory=list)
    favorites: List[str] = Field(default_factory=list)


class UserProfile(BaseModel):
    """Public representation of a profile; omits the email address."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    username: str
    account_type: Optional[str] = Field(default=None, alias="accountType")
    age: Optional[int] = None
    city: Optional[str] = None
    about: str = ""
    interests: str = ""
    photo_url: str = Field(default="", alias="photoURL")
    verified: bool = False
    created_at: int = Field(alias="createdAt")
    last_login: Optional[int] = Field(default=None, alias="lastLogin")
    profile_views: int = Field(default=0, alias="profileViews")

    @classmethod
    def from_document(cls, doc: UserProfileDocument) -> "UserProfile":
        return cls(
            user_id=doc.user_id,
            username=doc.username,
            account_type=doc.account_type,
            age=doc.age,
            city=doc.city,
            about=doc.about,
            interests=doc.interests,
            photo_url=doc.photo_url,
            verified=doc.verified,
            created_at=doc.created_at,
            last_login=doc.last_login,
            profile_views=doc.profile_views,
        )


class OwnProfile(UserProfile):
    """The signed-in user's own profile, including private fields."""

    email: str
    likes: List[str] = Field(default_factory=list)
    favorites: List[str] = Field(default_factory=list)

    @classmethod
    def from_document(cls, doc: UserProfileDocument) -> "OwnProfile":
        public = UserProfile.from_document(doc).model_dump()
        return cls(**public, email=doc.email, likes=doc.likes, favorites=doc.favorites)


class ProfileAttributes(BaseModel):
    """Attributes supplied when a profile is first created."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    username: str = Field(min_length=1, max_length=64)
    account_type: Optional[str] = Field(default=None, alias="accountType")
    age: Optional[int] = Field(default=None, ge=0)
    city: Optional[str] = None
    about: str = ""
    interests: str = ""


class UserProfilePatch(BaseModel):
    """Mutable fields for partial profile updates."""

    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = Field(default=None, min_length=1, max_length=64)
    account_type: Optional[str] = Field(default=None, alias="accountType")
    age: Optional[int] = Field(default=None, ge=0)
    city: Optional[str] = None
    about: Optional[str] = None
    interests: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoURL")


class ProfileFilter(BaseModel):
    """Search criteria for profile listings.

    ``"all"`` (or an empty value) disables the account type and city filters.
    The age bounds are inclusive.
    """

    model_config = ConfigDict(populate_by_name=True)

    account_type: Optional[str] = Field(default=None, alias="accountType")
    city: Optional[str] = None
    verified_only: bool = Field(default=False, alias="verified")
    age_from: Optional[int] = Field(default=None, ge=0, alias="ageFrom")
    age_to: Optional[int] = Field(default=None, ge=0, alias="ageTo")


__all__ = [
    "OwnProfile",
    "ProfileAttributes",
    "ProfileFilter",
    "UserProfile",
    "UserProfileDocument",
    "UserProfilePatch",
]
