from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .user_profile import OwnProfile


class RegisterRequest(BaseModel):
    """Payload for the public sign-up flow: credentials plus profile seed."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=1, max_length=128)
    username: str = Field(min_length=1, max_length=64)
    account_type: Optional[str] = Field(default=None, alias="accountType")
    age: Optional[int] = Field(default=None, ge=0)
    city: Optional[str] = None
    about: str = ""
    interests: str = ""


class LoginRequest(BaseModel):
    email: str
    password: str


class PasswordResetRequest(BaseModel):
    email: str


class PasswordResetConfirmRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    new_password: str = Field(alias="newPassword", max_length=128)


class CredentialDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(alias="_id")
    email: str
    email_lower: str = Field(alias="emailLower")
    password_hash: str = Field(alias="passwordHash")
    disabled: bool = False
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")


class AuthStateEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    signed_in: bool = Field(alias="signedIn")


class AuthTokenResponse(BaseModel):
    success: Literal[True] = True
    token: str
    profile: OwnProfile


class AuthActionResponse(BaseModel):
    success: Literal[True] = True


__all__ = [
    "AuthActionResponse",
    "AuthStateEvent",
    "AuthTokenResponse",
    "CredentialDocument",
    "LoginRequest",
    "PasswordResetConfirmRequest",
    "PasswordResetRequest",
    "RegisterRequest",
]
