"""
Application error taxonomy.

Every error raised on purpose by the services is an AppError carrying
an error code and the HTTP status the API layer should answer with.
Vendor SDK exceptions are translated into these at the service boundary.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response"""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}


class ValidationError(AppError):
    code = "INVALID_IMAGE"
    status_code = 400


class CreditError(AppError):
    code = "INSUFFICIENT_CREDITS"
    status_code = 402

    def __init__(self, message: str, required: int, available: int):
        super().__init__(message, details={"required": required, "available": available})
        self.required = required
        self.available = available


class ModerationError(AppError):
    code = "MODERATION_BLOCKED"
    status_code = 403

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message, details={"reason": reason})
        self.reason = reason


class RateLimitError(AppError):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429

    def __init__(self, message: str, retry_after: int, limit: int):
        super().__init__(message, details={"retryAfter": retry_after, "limit": limit})
        self.retry_after = retry_after
        self.limit = limit


class UpstreamError(AppError):
    code = "UPSTREAM_ERROR"
    status_code = 502


class ServiceUnavailableError(AppError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 503


class AITimeoutError(AppError):
    code = "AI_TIMEOUT"
    status_code = 504


def extract_error_info(error: BaseException) -> Dict[str, Any]:
    """
    Normalize any exception into the fields the API reports.

    Returns:
        Dict with message, code, status_code and details
    """
    if isinstance(error, AppError):
        return {
            "message": error.message,
            "code": error.code,
            "status_code": error.status_code,
            "details": dict(error.details),
        }

    return {
        "message": str(error) or error.__class__.__name__,
        "code": "INTERNAL_ERROR",
        "status_code": 500,
        "details": {},
    }
