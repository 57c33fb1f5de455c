"""Rate limiting for unauthenticated endpoints (login, signup)."""

from slowapi import Limiter

from promohub.api.deps import get_client_ip
from promohub.config import settings

# Shared limiter, keyed by client IP. Point RATE_LIMIT_STORAGE_URI at redis
# (e.g. ``redis://host:6379/0``) when running more than one instance.
limiter = Limiter(
    key_func=get_client_ip,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED,
)
