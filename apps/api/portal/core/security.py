"""Security utilities for JWT session tokens."""

from datetime import datetime, timedelta, timezone

import jwt

from portal.core.config import settings


# =============================================================================
# Session Token (JWT in cookie)
# =============================================================================

def create_session_token(
    external_id: str,
    email: str,
    name: str | None = None,
) -> str:
    """
    Create signed session JWT for validated identity claims.

    Only sub (the identity provider subject), email and name are read back;
    role and organization always come from the database.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": external_id,
        "email": email,
        "name": name or "",
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore
