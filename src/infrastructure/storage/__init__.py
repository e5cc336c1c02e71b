"""
Storage Module

Durable record store used as the read-only fallback tier of the cache.
"""

from .durable_store import MongoDurableStore

__all__ = ["MongoDurableStore"]
