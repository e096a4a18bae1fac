"""Rate limiting configuration for the BCN API.

Every HTTP route falls under ``rate_limit_default`` through
``SlowAPIMiddleware``. The public invitation responses and charges carry
tighter per-route limits, read from settings on each request.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from bcn.settings import settings

# Single shared limiter instance - disabled in non-production environments
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    storage_uri="memory://",
    enabled=settings.env == "production",
)


def invitation_limit() -> str:
    """Limit for the unauthenticated accept/reject links."""
    return settings.rate_limit_invitation


def charge_limit() -> str:
    return settings.rate_limit_charge
