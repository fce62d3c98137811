"""Rate limiting with SlowAPI, keyed by client address."""

from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

from hostpanel.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri="memory://",
)


def per_minute(count: Optional[int] = None) -> str:
    """Limit string for ``@limiter.limit``, defaulting to ``RATE_LIMIT_PER_MINUTE``."""
    return f"{count or settings.RATE_LIMIT_PER_MINUTE}/minute"
