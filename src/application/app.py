#!/usr/bin/env python3
"""
FastAPI Application Entry Point

This is the main entry point for the Platform Cache Service.
It configures the FastAPI application, middleware, and routes.

Author: Senior Solution Architect
Date: 2025-12-05
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.application.api.middleware import setup_middleware
from src.application.api.routes.health import router as health_router
from src.application.api.routes.monitoring import router as monitoring_router
from src.application.container import Container, build_container
from src.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_RATE_WINDOW,
    HEADER_REQUEST_ID,
    HEADER_RETRY_AFTER,
)
from src.core.config.settings import Settings, get_settings
from src.core.exceptions import PlatformBaseError, RateLimitExceededError
from src.core.logging.logger import get_logger, setup_logging
from src.rate_limiting.middleware import rate_limit_exceeded_handler

logger = get_logger(__name__)


async def platform_exception_handler(request: Request, exc: PlatformBaseError):
    """Handle service exceptions that escaped their layer."""
    logger.error(
        f"Service exception: {exc.message}",
        error_type=type(exc).__name__,
        details=exc.details,
    )
    return JSONResponse(
        status_code=500,
        content={"success": False, **exc.to_dict()},
        headers={HEADER_REQUEST_ID: exc.request_id or ""},
    )


# ============================================================================
# Application Factory
# ============================================================================


def create_app(settings: Settings | None = None, container: Container | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration (defaults to the process settings)
        container: Pre-assembled services; built from settings at startup
            when omitted

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)
        logger.info(
            "Starting Platform Cache Service",
            environment=settings.app.ENVIRONMENT,
            version=settings.app.APP_VERSION,
        )

        services = container or build_container(settings)
        await services.start()
        app.state.container = services
        logger.info("Application startup complete")

        try:
            yield
        finally:
            logger.info("Shutting down application")
            await services.shutdown()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Tiered caching, sliding-window rate limiting and resource lifecycle management",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # ========================================================================
    # MIDDLEWARE REGISTRATION
    # ========================================================================
    # Starlette runs the last added middleware first: CORS is added first so
    # it sits innermost and its headers land on every response, including the
    # 429s produced by the rate limit exception handler.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            HEADER_REQUEST_ID,
            HEADER_RATE_LIMIT,
            HEADER_RATE_REMAINING,
            HEADER_RATE_RESET,
            HEADER_RATE_WINDOW,
            HEADER_RETRY_AFTER,
        ],
    )
    setup_middleware(app, settings)

    # ========================================================================
    # EXCEPTION HANDLERS
    # ========================================================================
    app.add_exception_handler(RateLimitExceededError, rate_limit_exceeded_handler)
    app.add_exception_handler(PlatformBaseError, platform_exception_handler)

    # ========================================================================
    # ROUTER REGISTRATION
    # ========================================================================
    # All API endpoints are prefixed with API_BASE_PATH (default: /api/v1)
    base_path = settings.API_BASE_PATH
    app.include_router(health_router, prefix=base_path)
    app.include_router(monitoring_router, prefix=base_path)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": f"{base_path}/health",
        }

    return app


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.application.app:create_app",
        factory=True,
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
