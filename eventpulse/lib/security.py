"""Password hashing and access tokens.

Tokens are HS256 JWTs carrying the user id, bound event and role, so every
request is authorized from the signature alone without a database hit.
"""

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import bcrypt
import jwt  # PyJWT

from eventpulse.lib.config import get_settings
from eventpulse.lib.logging import get_logger

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"


class TokenError(Exception):
    """Token is missing, malformed, expired or signed with another key."""

    pass


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by an access token."""

    user_id: uuid.UUID
    role: str
    event_id: uuid.UUID | None


@lru_cache
def _signing_key() -> str:
    secret = get_settings().jwt_secret
    if secret:
        return secret
    logger.warning(
        "jwt_secret_not_configured",
        detail="using a random per-process key; tokens are invalidated on restart",
    )
    return secrets.token_urlsafe(64)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a bcrypt hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(
    user_id: uuid.UUID,
    role: str,
    event_id: uuid.UUID | None = None,
    expires_in: timedelta | None = None,
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: Authenticated user
        role: User role at issue time
        event_id: Event the user is bound to (None for the admin)
        expires_in: Lifetime override (defaults to JWT_EXPIRATION_HOURS)

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_in or timedelta(hours=get_settings().jwt_expiration_hours)

    payload = {
        "sub": str(user_id),
        "usuario_id": str(user_id),
        "rol": role,
        "evento_id": str(event_id) if event_id else None,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, _signing_key(), algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenClaims:
    """
    Verify a token and return its claims.

    Raises:
        TokenError: For any invalid token. Expiry is not distinguished from
            other failures.
    """
    if not token:
        raise TokenError("missing token")

    try:
        payload = jwt.decode(
            token,
            _signing_key(),
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
        user_id = uuid.UUID(payload["usuario_id"])
        event_claim = payload.get("evento_id")
        event_id = uuid.UUID(event_claim) if event_claim else None
        role = payload["rol"]
    except (jwt.PyJWTError, KeyError, ValueError, TypeError) as e:
        logger.debug("token_rejected", error_type=type(e).__name__)
        raise TokenError("invalid token") from e

    return TokenClaims(user_id=user_id, role=role, event_id=event_id)


__all__ = [
    "JWT_ALGORITHM",
    "TokenClaims",
    "TokenError",
    "create_access_token",
    "decode_access_token",
    "hash_password",
    "verify_password",
]
