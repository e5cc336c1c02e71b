"""
Middleware Package
==================

Middleware components for the FastAPI application.

AVAILABLE MIDDLEWARE:
---------------------
1. error_handler: Catch-all for unhandled exceptions (500 JSON body)
2. request_logging: Request id correlation and request/response logging

Rate limiting is not middleware: it is the ``RateLimit`` route dependency in
``src.rate_limiting.middleware`` so each router picks its own quota.

MIDDLEWARE ORDERING:
--------------------
Starlette runs the LAST added middleware FIRST. ``setup_middleware`` adds
error handling last so it wraps everything, including request logging.

USAGE EXAMPLE:
--------------
    from fastapi import FastAPI
    from src.application.api.middleware import setup_middleware

    app = FastAPI()
    setup_middleware(app, settings)
"""

from fastapi import FastAPI

from src.core.config.settings import Settings
from src.core.logging.logger import get_logger

from .error_handler import ErrorHandlingMiddleware, add_error_handling_middleware
from .request_logging import RequestLoggingMiddleware, add_request_logging_middleware

logger = get_logger(__name__)


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """
    Register all middleware components in the correct order.

    Args:
        app: FastAPI application instance
        settings: Application settings
    """
    logger.info("Registering middleware components...")

    add_request_logging_middleware(app, log_level=settings.logging.LOG_LEVEL)

    # Added last so it runs first and catches errors from everything else
    add_error_handling_middleware(
        app, include_traceback=(settings.app.ENVIRONMENT == "development")
    )

    logger.info("All middleware components registered successfully")


__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "add_error_handling_middleware",
    "add_request_logging_middleware",
    "setup_middleware",
]
