"""Bearer token verification.

Sign-in happens at the external identity provider. This service only needs
to turn a bearer token into a user id; ``issue_user_token`` exists for local
development and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from contactsync.settings import settings

_DEFAULT_SECRET = "dev-secret-key-change-in-production"

if settings.environment == "production" and settings.jwt_secret_key == _DEFAULT_SECRET:
    raise RuntimeError("JWT_SECRET_KEY must be set in production")


def issue_user_token(user_id: int, expires_in: timedelta | None = None) -> str:
    """Sign a token whose ``sub`` claim is the user id."""
    lifetime = expires_in or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    claims = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any] | None:
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def user_id_from_token(token: str) -> int | None:
    """Return the user id a token was issued for.

    None for a bad signature, an expired token, or a ``sub`` claim that is
    missing or not an integer.
    """
    claims = decode_token(token)
    if not claims:
        return None
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        return None
