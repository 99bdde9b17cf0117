"""Bearer-token verification.

Tokens come from the hosted auth provider: HS256, the provider's user id in
``sub``. ``create_access_token`` mints the same shape for local tooling and
the test suite.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from exam_engine.config import settings


def create_access_token(subject_claims: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    claims = dict(subject_claims)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims["exp"] = datetime.now(timezone.utc) + lifetime
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Return the verified claims, or None for a bad, expired or foreign token."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
