"""FastAPI dependencies for authentication, authorization, and database access."""

import hmac
from typing import Generator

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.security import decode_session_token
from portal.db.enums import Role
from portal.db.models import User
from portal.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "portal_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"
INTERNAL_SECRET_HEADER = "X-Internal-Secret"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Get authenticated user from session cookie.

    The first request with valid identity claims creates the local user.

    Raises:
        HTTPException 401: Authentication failed
    """
    from portal.services import user_service

    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    external_id = payload.get("sub")
    email = payload.get("email")
    if not external_id or not email:
        raise HTTPException(status_code=401, detail="Invalid session")

    user = user_service.sync_user_from_identity(
        db, external_id=external_id, email=email, name=payload.get("name") or None
    )
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")
    return user


def require_roles(allowed_roles: list[Role]):
    """
    Dependency factory for role-based authorization.

    Usage:
        @router.post("/admin", dependencies=[Depends(require_roles([Role.ADMIN]))])
    """
    def dependency(user: User = Depends(get_current_user)) -> User:
        if not Role.has_value(user.role) or Role(user.role) not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{user.role}' not authorized for this action",
            )
        return user
    return dependency


require_staff = require_roles([Role.STAFF, Role.ADMIN])
require_admin = require_roles([Role.ADMIN])


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )


def require_internal_secret(
    x_internal_secret: str | None = Header(default=None, alias=INTERNAL_SECRET_HEADER),
) -> None:
    """
    Guard for /internal/scheduled/* (external cron).

    Raises:
        HTTPException 403: Secret missing, wrong, or not configured
    """
    if not settings.INTERNAL_SECRET or not x_internal_secret:
        raise HTTPException(status_code=403, detail="Forbidden")
    if not hmac.compare_digest(x_internal_secret, settings.INTERNAL_SECRET):
        raise HTTPException(status_code=403, detail="Forbidden")
