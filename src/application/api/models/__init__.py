"""
API Models Package
==================

Pydantic models for API request/response validation.

ORGANIZATION:
-------------
- monitoring.py: Resource registry, cache and rate limit monitoring models
"""

from src.application.api.models.monitoring import (
    CacheDeleteResponse,
    CacheStatsResponse,
    CleanupRequest,
    CleanupResponse,
    RateLimitResetRequest,
    RateLimitResetResponse,
    RateLimitStatusResponse,
    ResourceStatsResponse,
)

__all__ = [
    "CacheDeleteResponse",
    "CacheStatsResponse",
    "CleanupRequest",
    "CleanupResponse",
    "RateLimitResetRequest",
    "RateLimitResetResponse",
    "RateLimitStatusResponse",
    "ResourceStatsResponse",
]
