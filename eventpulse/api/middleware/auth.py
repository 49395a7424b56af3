"""Bearer token authentication dependencies."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from eventpulse.api.middleware.error import AuthenticationError, ForbiddenError
from eventpulse.db.models import Role
from eventpulse.lib.logging import bind_context, get_logger
from eventpulse.lib.security import TokenClaims, TokenError, decode_access_token

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenClaims:
    """Verify the bearer token. Expired and invalid tokens get the same 401."""
    if credentials is None:
        logger.warning("missing_token", path=request.url.path, method=request.method)
        raise AuthenticationError("Token requerido")

    try:
        claims = decode_access_token(credentials.credentials)
    except TokenError as e:
        logger.warning("invalid_token", path=request.url.path, method=request.method)
        raise AuthenticationError() from e

    bind_context(user_id=str(claims.user_id), role=claims.role)
    return claims


async def require_admin(user: TokenClaims = Depends(get_current_user)) -> TokenClaims:
    if user.role != Role.ADMIN.value:
        raise ForbiddenError(
            "Solo el administrador puede realizar esta acción",
            context={"role": user.role},
        )
    return user


__all__ = ["bearer_scheme", "get_current_user", "require_admin"]
