"""
Cache Module

Provides tiered caching: an in-process memory tier, a Redis remote tier and a
read-only MongoDB fallback, composed behind ``HybridStorage``.
"""

from .hybrid_storage import HybridStorage, HybridStorageConfig, StorageOptions
from .keys import CacheKeys, KeyNamespace, classify_key, smart_ttl
from .memory_tier import CacheEntry, MemoryTier
from .redis_client import RedisClient
from .remote_tier import RemoteTier

__all__ = [
    "CacheEntry",
    "CacheKeys",
    "HybridStorage",
    "HybridStorageConfig",
    "KeyNamespace",
    "MemoryTier",
    "RedisClient",
    "RemoteTier",
    "StorageOptions",
    "classify_key",
    "smart_ttl",
]
