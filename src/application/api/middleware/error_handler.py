"""
Error Handling Middleware - Educational Documentation
======================================================

WHERE DO ERRORS END UP?
-----------------------
Each layer of this service owns its failures:

    Layer                   Failure                  Outcome
    ---------------------   ----------------------   -------------------------
    HybridStorage           Redis / MongoDB down     stale entry or None
    SlidingWindowRateLimiter Redis down              request admitted
    RateLimit dependency    quota exhausted          429 via exception handler
    ResourceManager         release callback raises  counted, entry retained
    anything else           programming error        THIS MIDDLEWARE -> 500

So this middleware only ever sees bugs. It logs them with the request id
(bound by the request logging middleware) and answers with a JSON body the
frontend can show, instead of letting the connection drop.

RESPONSE BODY
-------------
    {
        "success": false,
        "error": "internal_server_error",
        "message": "...",
        "error_type": "KeyError",
        "request_id": "3f0c..."
    }

In development the traceback and the raw exception text are added.
"""

import traceback
from collections.abc import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from src.core.logging.logger import get_logger, get_request_id

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Something went wrong on our side. Please try again."


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Turn exceptions that escaped every layer into a 500 JSON response.

    Args:
        app: The ASGI application
        include_traceback: Attach the formatted traceback to the body
            (development only)
    """

    def __init__(self, app, include_traceback: bool = False):
        super().__init__(app)
        self.include_traceback = include_traceback

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return self._internal_error(request, exc)

    def _internal_error(self, request: Request, exc: Exception) -> JSONResponse:
        error_type = type(exc).__name__
        request_id = get_request_id()

        logger.error(
            "Unhandled exception escaped the service layers",
            method=request.method,
            path=request.url.path,
            error_type=error_type,
            error_message=str(exc),
            exc_info=True,
        )

        body = {
            "success": False,
            "error": "internal_server_error",
            "message": INTERNAL_ERROR_MESSAGE,
            "error_type": error_type,
            "request_id": request_id,
        }
        if self.include_traceback:
            body["detail"] = str(exc)
            body["traceback"] = traceback.format_exc()

        return JSONResponse(status_code=500, content=body)


def add_error_handling_middleware(app, include_traceback: bool = False):
    """
    Register ``ErrorHandlingMiddleware``.

    Call it after every other ``add_middleware`` so it ends up outermost.
    """
    app.add_middleware(ErrorHandlingMiddleware, include_traceback=include_traceback)
    logger.info("Error handling middleware registered", include_traceback=include_traceback)
