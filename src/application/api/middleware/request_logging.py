"""
Request Logging Middleware - Educational Documentation
=======================================================

ONE ID PER REQUEST
------------------
A request to this service can touch three subsystems: a rate limit check,
several cache tiers and the resource registry. Each of them logs on its own.
To read those lines as one story they need a shared key:

    X-Request-ID: 3f0c...            (from the caller, or generated here)
         |
         v
    set_request_id()  ->  contextvar  ->  add_request_id processor
                                          (every structlog line gets it)
         |
         v
    response header X-Request-ID: 3f0c...

The context variable is cleared when the response leaves, so ids never leak
between requests served by the same worker.

WHAT IS LOGGED
--------------
- DEBUG on arrival: method, path, query string, client address and headers
  with credentials masked
- INFO on completion: status code and wall time
- ERROR when the downstream app raised (then re-raised for the error handler)

Bodies are never logged; they may carry learner data.
"""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.core.config.constants import HEADER_REQUEST_ID
from src.core.logging.logger import clear_request_id, get_logger, set_request_id

logger = get_logger(__name__)


# Header values replaced before logging
MASKED_HEADERS = frozenset({"authorization", "cookie", "x-api-key", "x-auth-token"})


def mask_headers(headers: dict[str, str]) -> dict[str, str]:
    return {
        name: "***REDACTED***" if name.lower() in MASKED_HEADERS else value
        for name, value in headers.items()
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of a request and log its outcome."""

    def __init__(self, app, log_level: str = "INFO"):
        super().__init__(app)
        self.log_level = log_level.upper()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)
        started = time.perf_counter()

        logger.debug(
            "Request received",
            method=request.method,
            path=request.url.path,
            query=str(request.query_params) or None,
            client=request.client.host if request.client else None,
            headers=mask_headers(dict(request.headers)),
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "Request raised",
                method=request.method,
                path=request.url.path,
                error=str(exc),
                error_type=type(exc).__name__,
                duration_seconds=round(time.perf_counter() - started, 4),
            )
            raise
        else:
            response.headers[HEADER_REQUEST_ID] = request_id
            logger.info(
                "Request served",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_seconds=round(time.perf_counter() - started, 4),
            )
            return response
        finally:
            clear_request_id()


def add_request_logging_middleware(app, log_level: str = "INFO"):
    """Register ``RequestLoggingMiddleware``."""
    app.add_middleware(RequestLoggingMiddleware, log_level=log_level)
    logger.info("Request logging middleware registered", log_level=log_level)
