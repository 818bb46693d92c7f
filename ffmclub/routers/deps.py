from fastapi import Depends, Header, Request

from ..errors import AuthenticationError
from ..services.identity_service import LocalIdentityProvider, get_identity_provider


def extract_bearer(authorization: str) -> str:
    if not authorization.lower().startswith("bearer "):
        raise AuthenticationError("missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("missing bearer token")
    return token


async def require_token(authorization: str = Header(default="")) -> str:
    return extract_bearer(authorization)


async def require_current_user(
    token: str = Depends(require_token),
    identity: LocalIdentityProvider = Depends(get_identity_provider),
) -> str:
    """Resolve the bearer token to the signed-in user's id."""
    return await identity.verify_token(token)


def client_key(request: Request, action: str) -> str:
    ip = request.client.host if request.client else "unknown"
    return f"{action}:{ip}"


__all__ = ["client_key", "extract_bearer", "require_current_user", "require_token"]
