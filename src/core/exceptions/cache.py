"""
Cache-Related Exceptions

All exceptions related to the cache tiers (memory, Redis) and the durable
record store behind them.

Author: System Architect
Date: 2025-12-08
"""

from src.core.exceptions.base import PlatformBaseError


class CacheError(PlatformBaseError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the remote tier (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a cache key operation fails.

    Common causes:
    - Operation timeout
    - Wrong value type stored at key
    - Memory limit exceeded on the server
    """
    pass


class OversizedValueError(CacheError):
    """
    Raised when a value exceeds a tier's size cap.

    The facade catches this and skips the write; it never reaches callers.
    """
    pass


class StorageError(PlatformBaseError):
    """Base exception for durable store errors."""
    pass


class DurableStoreUnavailableError(StorageError):
    """Raised when the durable record store cannot be reached."""
    pass
