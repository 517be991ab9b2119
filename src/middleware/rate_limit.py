"""Rate limiting middleware using slowapi."""

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from ..config import settings


def general_rate_limit() -> str:
    """Limit applied to every route through SlowAPIMiddleware, read per request."""
    return f"{settings.rate_limit_per_minute}/minute"


def upload_rate_limit() -> str:
    """Limit applied to the upload endpoint, read per request."""
    return settings.upload_rate_limit


# Initialize rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[general_rate_limit],
    enabled=settings.rate_limit_enabled,
)

# Rate limit exceeded handler
rate_limit_exceeded_handler = _rate_limit_exceeded_handler
