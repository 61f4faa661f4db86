"""
Rate limiting for the AI endpoints.
Implements Strategy Pattern for flexible limiter backends.
"""

from typing import Optional

from fastapi import Request

from stylist_app.config import settings
from stylist_app.errors import RateLimitError
from stylist_app.observability.logger import append_log
from .strategies import RateLimiterStrategy, RateLimitResult, InMemoryRateLimiter, RedisRateLimiter
from .factory import RateLimiterFactory, RateLimitBackend


async def enforce_rate_limit(limiter: RateLimiterStrategy, identifier: str) -> Optional[RateLimitResult]:
    """
    Count a request and raise RateLimitError when the window is exhausted.

    Returns None without counting when rate limiting is disabled.
    """
    if not settings.rate_limit_enabled:
        return None

    result = await limiter.hit(identifier)
    if not result.allowed:
        await append_log(
            "ratelimit.exceeded",
            identifier=identifier,
            limit=result.limit,
            resetAfter=result.reset_after,
        )
        raise RateLimitError(
            f"Rate limit exceeded. Try again in {result.reset_after} seconds.",
            retry_after=result.reset_after,
            limit=result.limit,
        )
    return result


def get_request_identifier(request: Request) -> str:
    """Best-effort client identity for requests without a session id"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


__all__ = [
    "RateLimiterStrategy",
    "RateLimitResult",
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "RateLimiterFactory",
    "RateLimitBackend",
    "enforce_rate_limit",
    "get_request_identifier",
]
