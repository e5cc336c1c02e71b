"""
Base Exception Class

Root of the service exception tree. Themed modules (cache, rate_limit,
resource) subclass it; nothing here knows about a particular tier.

Author: System Architect
Date: 2025-12-08
"""

from typing import Any


class PlatformBaseError(Exception):
    """
    Base exception for all service errors.

    Carries a human message, the request id of the HTTP call that hit it
    (when there was one) and a free-form details dict that ends up in the
    structured log line and in the 500 body built by the application.

    Attributes:
        message: Error message
        request_id: Request ID for correlation (if available)
        details: Additional error details (dict)

    Example:
        raise CacheKeyError(
            "Redis GET failed",
            details={"key": "user:42:profile", "operation": "get"}
        )
    """

    def __init__(
        self, message: str, request_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.request_id = request_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        JSON-safe view used by the application exception handler.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_id": self.request_id,
            "details": self.details,
        }

    def with_context(self, **context) -> "PlatformBaseError":
        """
        Merge ``context`` into ``details`` and return self, so a layer can
        annotate an error on its way up: ``raise err.with_context(tier="remote")``.
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        request_id_str = f", request_id='{self.request_id}'" if self.request_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{request_id_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        request_id: str | None = None,
        **details
    ) -> "PlatformBaseError":
        """
        Wrap a driver exception (redis, pymongo) keeping its class name and
        text in ``details``.

        Example:
            >>> try:
            ...     await redis.ping()
            ... except redis.ConnectionError as e:
            ...     raise CacheConnectionError.from_exception(e, host="localhost", port=6379)
        """
        error_message = message or str(exc)
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, request_id=request_id, details=error_details)


class ConfigurationError(PlatformBaseError):
    """Raised when configuration is invalid or missing."""
    pass
