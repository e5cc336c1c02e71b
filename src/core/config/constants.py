"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the caching, rate limiting and resource lifecycle service.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for tiers, priorities and resource types
- Easy to update and track changes

Author: System Architect
Date: 2025-12-05
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages used as the ``stage`` field of log entries.

    Format: {PREFIX}.{SEQUENCE}_{DESCRIPTIVE_NAME}

    Examples:
        log_stage(logger, Stage.CACHE_GET, "Memory tier hit", key=key)
        log_stage(logger, Stage.RL_CHECK, "Rate limit exceeded", key=key)
    """

    # Application lifecycle
    INITIALIZATION = "0.0_INITIALIZATION"
    SHUTDOWN = "6.0_SHUTDOWN"

    # Tiered cache
    CACHE_GET = "2.1_CACHE_GET"
    CACHE_SET = "2.2_CACHE_SET"
    CACHE_DELETE = "2.3_CACHE_DELETE"
    CACHE_EXISTS = "2.4_CACHE_EXISTS"
    CACHE_PRUNE = "2.5_CACHE_PRUNE"
    CACHE_DURABLE = "2.6_CACHE_DURABLE_FALLBACK"

    # Rate limiting
    RL_CHECK = "3.1_RATE_LIMIT_CHECK"
    RL_ADAPTIVE = "3.2_RATE_LIMIT_ADAPTIVE"
    RL_RESET = "3.3_RATE_LIMIT_RESET"

    # Resource registry
    RES_REGISTER = "R.1_RESOURCE_REGISTER"
    RES_RELEASE = "R.2_RESOURCE_RELEASE"
    RES_SWEEP = "R.3_RESOURCE_SWEEP"
    RES_MEMORY = "R.4_RESOURCE_MEMORY_CHECK"

    # Cross-cutting
    REDIS = "C_REDIS_OPERATIONS"
    EVENTS = "E_EVENT_DISPATCH"


# ============================================================================
# Cache Tiers and Priorities
# ============================================================================


class CacheTier(str, Enum):
    """
    Tiers of the cache facade, fastest first.

    MEMORY: In-process insertion-ordered map (< 1ms)
    REMOTE: Redis (1-5ms)
    DURABLE: MongoDB record store (read-only fallback)
    """

    MEMORY = "memory"
    REMOTE = "remote"
    DURABLE = "durable"


class CachePriority(str, Enum):
    """
    Declared importance of a cached value.

    Drives tier selection (only CRITICAL writes reach Redis, CRITICAL and
    HIGH reads probe Redis first) and the priority-based TTL fallback.
    """

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ============================================================================
# Resource Registry
# ============================================================================


class ResourceType(str, Enum):
    """Kinds of long-lived handles tracked by the resource registry."""

    CONNECTION = "connection"
    SUBSCRIPTION = "subscription"
    TIMER = "timer"
    LISTENER = "listener"
    DURABLE_HANDLE = "durable_handle"
    CACHE_ENTRY = "cache_entry"


class ResourcePriority(str, Enum):
    """
    Release priority of a managed resource.

    Lower ranks are released first by sweeps and pressure-relief cleanups.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    ResourcePriority.LOW: 0,
    ResourcePriority.MEDIUM: 1,
    ResourcePriority.HIGH: 2,
    ResourcePriority.CRITICAL: 3,
}


# ============================================================================
# Cache Limits
# ============================================================================

MEMORY_TIER_MAX_ENTRIES = 500  # Entries held before FIFO eviction
MEMORY_TIER_EVICT_BATCH = 50  # Oldest entries dropped on overflow
MEMORY_TIER_MAX_VALUE_BYTES = 1024  # Larger values never enter memory
CACHE_MAX_VALUE_BYTES = 3 * 1024  # Hard cap, larger values are not cached
COMPRESSION_THRESHOLD_BYTES = 2 * 1024  # Remote writes above this are compressed
DURABLE_PROMOTION_TTL = 900  # TTL for durable hits promoted into memory
DEFAULT_TTL = 600  # Used when neither key pattern nor priority matches

# Priority-based TTL fallback (seconds)
PRIORITY_TTL = {
    CachePriority.CRITICAL: 3600,
    CachePriority.HIGH: 1800,
    CachePriority.MEDIUM: 900,
    CachePriority.LOW: 300,
}

# Compressed value envelope marker
COMPRESSED_MARKER = "__compressed"

# ============================================================================
# Resource Registry Defaults
# ============================================================================

RESOURCE_MAX_RESOURCES = 10000
RESOURCE_MAX_AGE_SECONDS = 24 * 60 * 60
RESOURCE_INACTIVE_AFTER_SECONDS = 60 * 60
RESOURCE_CLEANUP_INTERVAL_SECONDS = 5 * 60
RESOURCE_MEMORY_THRESHOLD_BYTES = 500 * 1024 * 1024
RESOURCE_MEMORY_CHECK_INTERVAL_SECONDS = 60

# Estimated footprint per resource type (bytes)
RESOURCE_MEMORY_ESTIMATES = {
    ResourceType.CONNECTION: 1024,
    ResourceType.SUBSCRIPTION: 512,
    ResourceType.TIMER: 256,
    ResourceType.LISTENER: 128,
    ResourceType.DURABLE_HANDLE: 4096,
}
RESOURCE_DEFAULT_MEMORY_ESTIMATE = 512

# ============================================================================
# Redis Key Prefixes
# ============================================================================

REDIS_KEY_RATE_LIMIT = "ratelimit"

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"
HEADER_RATE_WINDOW = "X-RateLimit-Window"
HEADER_RETRY_AFTER = "Retry-After"
