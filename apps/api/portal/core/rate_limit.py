"""Rate limiting configuration for the portal API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from portal.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)

# In-memory storage: each API replica enforces its own window.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    default_limits=DEFAULT_LIMITS,
    enabled=not IS_TESTING,
)


def upload_limit() -> str:
    """Per-client limit for upload URL issuance and version uploads."""
    return f"{settings.RATE_LIMIT_UPLOAD}/minute"
