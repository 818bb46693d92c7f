from fastapi import APIRouter, Depends, Request

from ..models.auth import (
    AuthActionResponse,
    AuthTokenResponse,
    LoginRequest,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    RegisterRequest,
)
from ..models.user_profile import OwnProfile, ProfileAttributes
from ..services.identity_service import LocalIdentityProvider, get_identity_provider
from ..services.profile_service import ProfileService, get_profile_service
from .deps import client_key, require_token

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthTokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    identity: LocalIdentityProvider = Depends(get_identity_provider),
    profiles: ProfileService = Depends(get_profile_service),
):
    attributes = ProfileAttributes(
        email=body.email.strip(),
        username=body.username,
        account_type=body.account_type,
        age=body.age,
        city=body.city,
        about=body.about,
        interests=body.interests,
    )
    # Reject bad profile data before a credential exists for the email
    profiles.prepare_attributes(attributes)
    user_id = await identity.register(body.email, body.password, rate_key=client_key(request, "register"))
    try:
        profile_doc = await profiles.create_profile(user_id, attributes)
    except Exception:
        await identity.discard_registration(user_id)
        raise
    token = await identity.issue_session(user_id)
    return AuthTokenResponse(token=token, profile=OwnProfile.from_document(profile_doc))


@router.post("/login", response_model=AuthTokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    identity: LocalIdentityProvider = Depends(get_identity_provider),
    profiles: ProfileService = Depends(get_profile_service),
):
    user_id, token = await identity.login(body.email, body.password, rate_key=client_key(request, "login"))
    profile_doc = await profiles.record_login(user_id)
    return AuthTokenResponse(token=token, profile=OwnProfile.from_document(profile_doc))


@router.post("/logout", response_model=AuthActionResponse)
async def logout(
    token: str = Depends(require_token),
    identity: LocalIdentityProvider = Depends(get_identity_provider),
):
    await identity.logout(token)
    return AuthActionResponse()


@router.post("/password-reset", response_model=AuthActionResponse)
async def password_reset(
    body: PasswordResetRequest,
    request: Request,
    identity: LocalIdentityProvider = Depends(get_identity_provider),
):
    await identity.send_password_reset(body.email, rate_key=client_key(request, "reset"))
    return AuthActionResponse()


@router.post("/password-reset/confirm", response_model=AuthActionResponse)
async def password_reset_confirm(
    body: PasswordResetConfirmRequest,
    identity: LocalIdentityProvider = Depends(get_identity_provider),
):
    await identity.confirm_password_reset(body.token, body.new_password)
    return AuthActionResponse()


__all__ = ["router"]
