"""Per-client-IP fixed-window request counter stored in the shared cache."""

import time

from fastapi import Request

from config import settings
from errors import RateLimitExceededError
from services.cache import cache

WINDOW_SECONDS = 60
EXEMPT_PATHS = {"/ready", "/health"}

_clock = time.time


def client_ip(request: Request) -> str:
    """The direct peer, or the left-most X-Forwarded-For entry when the peer is a trusted proxy."""
    peer = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and peer in settings.trusted_proxies:
        return forwarded.split(",")[0].strip() or peer
    return peer


async def check_rate_limit(request: Request) -> None:
    """Count this request against its IP's current window; raise once over the limit."""
    limit = settings.rate_limit_per_minute
    if limit <= 0 or request.url.path in EXEMPT_PATHS:
        return

    now = _clock()
    window = int(now // WINDOW_SECONDS)
    count = await cache.incr(f"ratelimit:{client_ip(request)}:{window}", ttl_seconds=WINDOW_SECONDS)
    if count > limit:
        retry_after = WINDOW_SECONDS - int(now % WINDOW_SECONDS)
        raise RateLimitExceededError(retry_after=max(retry_after, 1))
