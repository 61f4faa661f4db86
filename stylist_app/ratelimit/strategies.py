"""
Rate limiter strategies using Strategy Pattern.

Both backends implement a fixed-window counter: each identifier may make
`limit` requests per `window_seconds`-long window, the counter resetting
when the window rolls over.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Tuple
import time

from stylist_app.observability.logger import append_log


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # seconds until the current window ends


class RateLimiterStrategy(ABC):
    """
    Abstract base class for rate limiter strategies.

    Args:
        limit: Requests allowed per window
        window_seconds: Window length in seconds
    """

    def __init__(self, limit: int, window_seconds: int = 60, clock=time.time):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock

    def _window(self) -> Tuple[int, int]:
        """Return (window index, seconds left in window)"""
        now = self._clock()
        index = int(now // self.window_seconds)
        reset_after = int((index + 1) * self.window_seconds - now) or 1
        return index, reset_after

    @abstractmethod
    async def hit(self, identifier: str) -> RateLimitResult:
        """
        Count one request for identifier.

        Returns:
            RateLimitResult; allowed is False once the window is exhausted
        """
        pass

    @abstractmethod
    async def reset(self, identifier: str) -> None:
        """Forget the counter of identifier"""
        pass


class InMemoryRateLimiter(RateLimiterStrategy):
    """
    Per-process fixed-window limiter.

    Not shared between workers; good for development and single-process runs.
    """

    def __init__(self, limit: int, window_seconds: int = 60, clock=time.time):
        super().__init__(limit, window_seconds, clock)
        self._counters: Dict[str, Tuple[int, int]] = {}  # identifier -> (window, count)

    async def hit(self, identifier: str) -> RateLimitResult:
        window, reset_after = self._window()
        current_window, count = self._counters.get(identifier, (window, 0))
        if current_window != window:
            count = 0

        count += 1
        self._counters[identifier] = (window, count)
        self._prune(window)

        return RateLimitResult(
            allowed=count <= self.limit,
            limit=self.limit,
            remaining=max(self.limit - count, 0),
            reset_after=reset_after,
        )

    def _prune(self, window: int) -> None:
        stale = [k for k, (w, _) in self._counters.items() if w != window]
        for key in stale:
            del self._counters[key]

    async def reset(self, identifier: str) -> None:
        self._counters.pop(identifier, None)


class RedisRateLimiter(RateLimiterStrategy):
    """
    Redis fixed-window limiter shared by every worker.

    Uses INCR on ratelimit:<identifier>:<window> and sets EXPIRE on the
    first hit. If Redis fails the request is allowed (fail open).
    """

    def __init__(self, redis_client, limit: int, window_seconds: int = 60, clock=time.time):
        super().__init__(limit, window_seconds, clock)
        self.redis = redis_client

    def _key(self, identifier: str, window: int) -> str:
        return f"ratelimit:{identifier}:{window}"

    async def hit(self, identifier: str) -> RateLimitResult:
        window, reset_after = self._window()
        key = self._key(identifier, window)
        try:
            count = int(self.redis.incr(key))
            if count == 1:
                self.redis.expire(key, self.window_seconds)
        except Exception as e:
            await append_log("ratelimit.redis_error", identifier=identifier, error=str(e))
            return RateLimitResult(True, self.limit, self.limit, reset_after)

        return RateLimitResult(
            allowed=count <= self.limit,
            limit=self.limit,
            remaining=max(self.limit - count, 0),
            reset_after=reset_after,
        )

    async def reset(self, identifier: str) -> None:
        window, _ = self._window()
        try:
            self.redis.delete(self._key(identifier, window))
        except Exception as e:
            await append_log("ratelimit.redis_error", identifier=identifier, error=str(e))
