"""
Rate Limit Dependency - FastAPI Integration
============================================

HOW ROUTES ARE RATE LIMITED
---------------------------
``RateLimit`` is a callable class used as a FastAPI dependency. FastAPI calls
it before the route handler with the current ``Request`` and the outgoing
``Response``, so it can both reject the request and decorate the response:

    @router.get("/search", dependencies=[Depends(RateLimit("search"))])
    async def search(...): ...

    # or on a whole router
    router = APIRouter(dependencies=[Depends(RateLimit("general"))])

HEADERS
-------
Every limited response carries:
- X-RateLimit-Limit: quota enforced for this request (after adaptive scaling)
- X-RateLimit-Remaining: requests left in the window, never below 0
- X-RateLimit-Reset: ISO-8601 UTC time when the oldest hit leaves the window
- X-RateLimit-Window: window length in milliseconds

A rejected request raises ``RateLimitExceededError``; the exception handler
below turns it into HTTP 429 with the same headers plus ``Retry-After``.

FAILURE POLICY
--------------
Only the 429 reaches the client. Redis trouble is absorbed by the limiter
(fail-open) and any other unexpected error inside the dependency is logged
and the request proceeds unlimited.
"""

import math
from datetime import UTC, datetime

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from src.core.clock import epoch_ms
from src.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_RATE_WINDOW,
    HEADER_RETRY_AFTER,
    Stage,
)
from src.core.exceptions import RateLimitExceededError
from src.core.logging.logger import get_logger, get_request_id, log_stage
from src.rate_limiting.rate_limiter import RateLimitConfig, RateLimitInfo, resolve_config

logger = get_logger(__name__)


def build_rate_limit_headers(
    config: RateLimitConfig, info: RateLimitInfo, now_ms: float | None = None
) -> dict[str, str]:
    now_ms = epoch_ms() if now_ms is None else now_ms
    reset_at = datetime.fromtimestamp((now_ms + info.ms_before_next) / 1000, tz=UTC)
    return {
        HEADER_RATE_LIMIT: str(config.max_requests),
        HEADER_RATE_REMAINING: str(max(0, info.remaining_points)),
        HEADER_RATE_RESET: reset_at.isoformat(),
        HEADER_RATE_WINDOW: str(config.window_ms),
    }


class RateLimit:
    """
    FastAPI dependency enforcing one rate limit config.

    Args:
        config: Preset name from DEFAULT_CONFIGS or a RateLimitConfig
        adaptive: Scale the quota through the container's load policy
        **overrides: Field overrides applied on top of the preset
    """

    def __init__(self, config: str | RateLimitConfig, adaptive: bool = False, **overrides):
        self.config = resolve_config(config, **overrides)
        self.adaptive = adaptive

    async def _effective_config(self, request: Request, container) -> RateLimitConfig:
        policy = getattr(container, "load_policy", None)
        if not self.adaptive or policy is None:
            return self.config
        try:
            return await policy.adjust(self.config)
        except Exception as e:
            log_stage(
                logger,
                Stage.RL_ADAPTIVE,
                "Adaptive rate limit failed, using base limits",
                level="error",
                config=self.config.name,
                error=str(e),
            )
            return self.config

    async def __call__(self, request: Request, response: Response) -> RateLimitInfo | None:
        try:
            container = request.app.state.container
            if not container.settings.rate_limit.RATE_LIMIT_ENABLED:
                return None

            config = await self._effective_config(request, container)
            limiter = container.rate_limiter
            key = limiter.generate_key(request, config)
            info = await limiter.check(key, config)
        except Exception as e:
            log_stage(
                logger,
                Stage.RL_CHECK,
                "Rate limiting middleware error",
                level="error",
                path=request.url.path,
                error=str(e),
            )
            return None

        headers = build_rate_limit_headers(config, info)
        response.headers.update(headers)

        if info.allowed:
            return info

        if config.on_limit_reached is not None:
            try:
                config.on_limit_reached(request)
            except Exception as e:
                logger.warning("on_limit_reached callback failed", key=key, error=str(e))

        headers[HEADER_RETRY_AFTER] = str(math.ceil(info.ms_before_next / 1000))
        raise RateLimitExceededError(
            config.message,
            request_id=get_request_id(),
            details={
                "config": config.name,
                "key": key,
                "limit": config.max_requests,
                "window_ms": config.window_ms,
            },
            headers=headers,
        )


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """
    Convert a rejected request into HTTP 429.

    Registered in create_app():
        app.add_exception_handler(RateLimitExceededError, rate_limit_exceeded_handler)
    """
    return JSONResponse(
        status_code=429,
        content={"success": False, "message": exc.message},
        headers=exc.headers,
    )
