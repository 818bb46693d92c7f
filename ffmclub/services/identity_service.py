"""Identity provider adapter.

Credentials live in their own collection, apart from profiles. Passwords are
bcrypt-hashed and sessions are HS256 JWTs. Failures are raised as
:class:`IdentityError` carrying a provider error code
(``auth/email-already-in-use`` and friends). :func:`error_message` turns a
code into a human-readable message, with a generic fallback for codes it does
not know.
"""

from __future__ import annotations

import logging
import os
import re
import time
import uuid
from typing import Any, Callable, Dict, Optional, Tuple

import bcrypt
import httpx
import jwt

from ..cache import TTLCache
from ..config import get_settings
from ..db import get_db
from ..errors import (
    AlreadyExistsError,
    AuthenticationError,
    BackendUnavailableError,
    InvalidOperationError,
    NotFoundError,
    ServiceError,
    backend_errors,
)
from ..models.auth import AuthStateEvent
from ..realtime import Subscription, SubscriptionRegistry, registry as default_registry
from ..repositories.credentials import CredentialRepository
from ..repositories.exceptions import DuplicateKeyRepositoryError

LOGGER = logging.getLogger("uvicorn.error")

AUTH_STATE_TOPIC = "auth:state"
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ERROR_MESSAGES: Dict[str, str] = {
    "auth/email-already-in-use": "This email is already registered.",
    "auth/invalid-email": "Invalid email address.",
    "auth/operation-not-allowed": "This operation is not allowed.",
    "auth/weak-password": "The password is too weak. Use at least 8 characters.",
    "auth/user-disabled": "This account has been disabled.",
    "auth/user-not-found": "No user found with this email.",
    "auth/wrong-password": "Wrong password.",
    "auth/invalid-credential": "Invalid sign-in details. Check your email and password.",
    "auth/too-many-requests": "Too many attempts. Try again later.",
    "auth/network-request-failed": "Network error. Check your connection.",
    "auth/invalid-token": "The session token is invalid or has expired.",
    "auth/invalid-action-code": "The password reset link is invalid or has expired.",
}

_ERROR_KINDS: Dict[str, type] = {
    "auth/email-already-in-use": AlreadyExistsError,
    "auth/invalid-email": InvalidOperationError,
    "auth/operation-not-allowed": InvalidOperationError,
    "auth/weak-password": InvalidOperationError,
    "auth/invalid-action-code": InvalidOperationError,
    "auth/user-not-found": NotFoundError,
    "auth/network-request-failed": BackendUnavailableError,
}


def error_message(code: str) -> str:
    return ERROR_MESSAGES.get(code) or f"An unexpected authentication error occurred ({code}). Please try again."


class IdentityError(ServiceError):
    """A provider failure identified by its error code."""

    def __init__(self, code: str) -> None:
        super().__init__(error_message(code))
        self.code = code
        kind_cls = _ERROR_KINDS.get(code, AuthenticationError)
        self.kind = kind_cls.kind
        self.status_code = kind_cls.status_code

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "code": self.code}


class RateLimiter:
    """Fixed-window attempt counter per client key for authentication flows.

    Expired windows are dropped on every call, so the table only holds keys
    seen within the last window.
    """

    def __init__(self, window_seconds: int, max_attempts: int) -> None:
        self._window = float(window_seconds)
        self._max_attempts = max_attempts
        # key -> (attempts, window_expires_at)
        self._windows: Dict[str, Tuple[int, float]] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def _purge_expired(self, now: float) -> None:
        for key in [k for k, (_, expires) in self._windows.items() if expires < now]:
            del self._windows[key]

    def increment(self, key: str) -> bool:
        now = time.time()
        self._purge_expired(now)
        attempts, expires = self._windows.get(key, (0, now + self._window))
        attempts += 1
        self._windows[key] = (attempts, expires)
        return attempts <= self._max_attempts


class LocalIdentityProvider:
    def __init__(
        self,
        repository: CredentialRepository,
        *,
        registry: SubscriptionRegistry,
        revoked: TTLCache,
        jwt_secret: str,
        token_ttl_seconds: int,
        reset_ttl_seconds: int,
        reset_webhook_url: str = "",
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self._repository = repository
        self._registry = registry
        self._revoked = revoked
        self._jwt_secret = jwt_secret
        self._token_ttl = token_ttl_seconds
        self._reset_ttl = reset_ttl_seconds
        self._reset_webhook_url = reset_webhook_url
        self._rate_limiter = rate_limiter

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    @staticmethod
    def _generate_user_id() -> str:
        return f"u_{int(time.time() * 1000)}_{os.urandom(4).hex()}"

    @staticmethod
    def hash_password(raw: str) -> str:
        return bcrypt.hashpw(raw.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    @staticmethod
    def verify_password(raw: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(raw.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    @staticmethod
    def password_is_strong(password: str) -> bool:
        return len(password) >= 8 and any(c.isalpha() for c in password) and any(c.isdigit() for c in password)

    def allow_rate(self, key: str) -> bool:
        if self._rate_limiter is None:
            return True
        return self._rate_limiter.increment(key)

    def _check_rate(self, key: Optional[str]) -> None:
        if key and not self.allow_rate(key):
            raise IdentityError("auth/too-many-requests")

    @staticmethod
    def _normalize_email(email: str) -> str:
        text = (email or "").strip()
        if not _EMAIL_RE.match(text):
            raise IdentityError("auth/invalid-email")
        return text

    def _issue(self, user_id: str, purpose: str, ttl: int) -> str:
        now = int(time.time())
        payload = {"sub": user_id, "purpose": purpose, "jti": uuid.uuid4().hex, "iat": now, "exp": now + ttl}
        return jwt.encode(payload, self._jwt_secret, algorithm="HS256")

    def _decode(self, token: str, purpose: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, self._jwt_secret, algorithms=["HS256"])
        except jwt.PyJWTError as exc:
            code = "auth/invalid-token" if purpose == "session" else "auth/invalid-action-code"
            raise IdentityError(code) from exc
        if payload.get("purpose") != purpose or not payload.get("sub"):
            raise IdentityError("auth/invalid-token" if purpose == "session" else "auth/invalid-action-code")
        return payload

    async def _emit(self, user_id: str, signed_in: bool) -> None:
        await self._registry.publish(AUTH_STATE_TOPIC, AuthStateEvent(user_id=user_id, signed_in=signed_in))

    async def register(self, email: str, password: str, *, rate_key: Optional[str] = None) -> str:
        self._check_rate(rate_key)
        email = self._normalize_email(email)
        if not self.password_is_strong(password or ""):
            raise IdentityError("auth/weak-password")
        with backend_errors("register"):
            if await self._repository.email_exists(email):
                raise IdentityError("auth/email-already-in-use")
            try:
                credential = await self._repository.create(
                    user_id=self._generate_user_id(),
                    email=email,
                    password_hash=self.hash_password(password),
                    created_at=self._now_ms(),
                )
            except DuplicateKeyRepositoryError as exc:
                raise IdentityError("auth/email-already-in-use") from exc
        return credential.user_id

    async def discard_registration(self, user_id: str) -> None:
        """Remove a credential whose profile could not be created."""

        with backend_errors("discard registration"):
            removed = await self._repository.delete(user_id)
        if removed:
            LOGGER.info("Discarded credential for %s after failed registration", user_id)

    async def issue_session(self, user_id: str) -> str:
        token = self._issue(user_id, "session", self._token_ttl)
        await self._emit(user_id, True)
        return token

    async def login(self, email: str, password: str, *, rate_key: Optional[str] = None) -> Tuple[str, str]:
        self._check_rate(rate_key)
        email = self._normalize_email(email)
        with backend_errors("login"):
            credential = await self._repository.get_by_email(email)
        if not credential:
            raise IdentityError("auth/user-not-found")
        if credential.disabled:
            raise IdentityError("auth/user-disabled")
        if not self.verify_password(password or "", credential.password_hash):
            raise IdentityError("auth/wrong-password")
        return credential.user_id, await self.issue_session(credential.user_id)

    async def verify_token(self, token: str) -> str:
        payload = self._decode(token, "session")
        if await self._revoked.contains(str(payload.get("jti"))):
            raise IdentityError("auth/invalid-token")
        return str(payload["sub"])

    async def logout(self, token: str) -> None:
        payload = self._decode(token, "session")
        jti = str(payload.get("jti"))
        remaining = max(1, int(payload.get("exp", 0)) - int(time.time()))
        await self._revoked.set(jti, True, ttl_seconds=remaining)
        await self._emit(str(payload["sub"]), False)

    async def send_password_reset(self, email: str, *, rate_key: Optional[str] = None) -> None:
        """Issue a reset token and deliver it. Unknown emails succeed silently."""

        self._check_rate(rate_key)
        email = self._normalize_email(email)
        with backend_errors("password reset"):
            credential = await self._repository.get_by_email(email)
        if not credential:
            LOGGER.info("Password reset requested for unknown email")
            return
        token = self._issue(credential.user_id, "reset", self._reset_ttl)
        await self._deliver_reset(credential.email, token)

    async def _deliver_reset(self, email: str, token: str) -> None:
        if not self._reset_webhook_url:
            LOGGER.info("Password reset token issued for %s (no delivery webhook configured)", email)
            return
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.post(self._reset_webhook_url, json={"email": email, "token": token})
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.error("Password reset delivery failed: %s", exc)
            raise IdentityError("auth/network-request-failed") from exc

    async def confirm_password_reset(self, token: str, new_password: str) -> str:
        payload = self._decode(token, "reset")
        jti = str(payload.get("jti"))
        if await self._revoked.contains(jti):
            raise IdentityError("auth/invalid-action-code")
        if not self.password_is_strong(new_password or ""):
            raise IdentityError("auth/weak-password")
        user_id = str(payload["sub"])
        with backend_errors("password reset"):
            await self._repository.set_password_hash(user_id, self.hash_password(new_password), self._now_ms())
        remaining = max(1, int(payload.get("exp", 0)) - int(time.time()))
        await self._revoked.set(jti, True, ttl_seconds=remaining)
        return user_id

    def on_auth_state_change(self, callback: Callable[[AuthStateEvent], Any]) -> Subscription:
        return self._registry.subscribe(AUTH_STATE_TOPIC, callback)


# Process-wide state shared by every per-request provider instance.
_revoked_tokens = TTLCache()
_rate_limiter: Optional[RateLimiter] = None


def get_identity_provider() -> LocalIdentityProvider:
    global _rate_limiter
    settings = get_settings()
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(settings.auth_rate_limit_window, settings.auth_rate_limit_max)
    return LocalIdentityProvider(
        CredentialRepository(get_db()),
        registry=default_registry,
        revoked=_revoked_tokens,
        jwt_secret=settings.jwt_secret,
        token_ttl_seconds=settings.auth_token_ttl,
        reset_ttl_seconds=settings.password_reset_ttl,
        reset_webhook_url=settings.password_reset_webhook_url,
        rate_limiter=_rate_limiter,
    )


__all__ = [
    "AUTH_STATE_TOPIC",
    "ERROR_MESSAGES",
    "IdentityError",
    "LocalIdentityProvider",
    "RateLimiter",
    "error_message",
    "get_identity_provider",
]
