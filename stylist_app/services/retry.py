"""
Retry helper for vendor API calls.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from stylist_app.errors import AITimeoutError, ServiceUnavailableError
from stylist_app.observability.logger import append_log

T = TypeVar("T")

RETRYABLE_MARKERS = (
    "rate limit",
    "quota",
    "too many requests",
    "429",
    "timeout",
    "temporarily unavailable",
    "service unavailable",
    "unavailable",
    "overloaded",
    "503",
)


def is_retryable(error: BaseException) -> bool:
    """True for errors worth retrying: 429/503, timeouts, overload"""
    if isinstance(error, (ServiceUnavailableError, AITimeoutError, httpx.TimeoutException)):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in (429, 503)
    message = str(error).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    operation: str = "ai_call",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Await func() and retry transient failures with exponential backoff.

    Args:
        func: Zero-argument coroutine factory
        max_retries: Retries after the first attempt
        initial_delay: Delay before the first retry (seconds)
        backoff_factor: Multiplier applied to the delay after every retry
        operation: Name used in log lines
        sleep: Awaitable sleep (injectable for tests)

    Raises:
        The last error once retries are exhausted, or immediately for
        non-retryable errors
    """
    sleep = sleep or asyncio.sleep
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return await func()
        except Exception as e:
            if not is_retryable(e) or attempt == max_retries:
                raise
            await append_log(
                "retry.scheduled",
                operation=operation,
                attempt=attempt + 1,
                maxRetries=max_retries,
                delaySeconds=delay,
                error=str(e),
            )
            await sleep(delay)
            delay *= backoff_factor

    raise RuntimeError("unreachable")
