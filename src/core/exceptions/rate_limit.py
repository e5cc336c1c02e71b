"""
Rate Limiting Exceptions

All exceptions related to rate limiting operations

Author: System Architect
Date: 2025-12-08
"""

from typing import Any

from src.core.exceptions.base import PlatformBaseError


class RateLimitError(PlatformBaseError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised when rate limit is exceeded.

    This is the only error of the service that reaches HTTP callers; the
    application maps it to a 429 response carrying:
    - X-RateLimit-Limit: Maximum requests allowed
    - X-RateLimit-Remaining: Requests remaining (0)
    - X-RateLimit-Reset: ISO-8601 time when the oldest hit leaves the window
    - X-RateLimit-Window: Window length in milliseconds
    - Retry-After: Seconds until a retry can succeed
    """

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message, request_id=request_id, details=details)
        self.headers = dict(headers or {})
