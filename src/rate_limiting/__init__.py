"""
Rate Limiting Module

Provides distributed sliding-window rate limiting with a Redis backend,
optional load-adaptive quotas and the FastAPI dependency that enforces them.
"""

from .load_policy import LoadPolicy, LoadSample, LoadThresholds, StaticLoadPolicy, SystemLoadPolicy
from .middleware import RateLimit, build_rate_limit_headers, rate_limit_exceeded_handler
from .rate_limiter import (
    DEFAULT_CONFIGS,
    RateLimitConfig,
    RateLimitInfo,
    SlidingWindowRateLimiter,
    resolve_config,
)

__all__ = [
    "DEFAULT_CONFIGS",
    "LoadPolicy",
    "LoadSample",
    "LoadThresholds",
    "RateLimit",
    "RateLimitConfig",
    "RateLimitInfo",
    "SlidingWindowRateLimiter",
    "StaticLoadPolicy",
    "SystemLoadPolicy",
    "build_rate_limit_headers",
    "rate_limit_exceeded_handler",
    "resolve_config",
]
