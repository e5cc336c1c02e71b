#!/usr/bin/env python3
"""
Memory Tier

In-process, insertion-ordered store for small cache values.

STAGE-2.1: Memory tier

Bounds:
    - At most ``max_entries`` entries. A write that finds the tier full first
      evicts the ``evict_batch`` oldest entries in insertion order (FIFO, not
      LRU: reads never reorder entries).
    - Values serializing to more than ``max_value_bytes`` never enter the tier.

Expiry is lazy. ``get`` ignores expired entries but leaves them in place so the
facade can still serve them via ``get_stale`` when another tier fails;
``prune_expired`` removes them and runs on a timer owned by the facade.

All methods are synchronous: there is no I/O, and the service runs on a
single event loop, so no lock is taken.

Author: System Architect
Date: 2025-12-13
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from src.core.clock import Clock, epoch_ms
from src.core.config.constants import (
    MEMORY_TIER_EVICT_BATCH,
    MEMORY_TIER_MAX_ENTRIES,
    MEMORY_TIER_MAX_VALUE_BYTES,
    CacheTier,
)
from src.core.exceptions import OversizedValueError


@dataclass
class CacheEntry:
    """
    One cached value in one tier.

    Entries are replaced wholesale; promotion from a slower tier creates a
    new entry here rather than sharing the slower tier's object.
    """

    key: str
    value: Any
    source: CacheTier
    written_at_ms: float
    ttl_seconds: int

    def __post_init__(self) -> None:
        if self.ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {self.ttl_seconds}")

    @property
    def expires_at_ms(self) -> float:
        return self.written_at_ms + self.ttl_seconds * 1000

    def is_expired(self, now_ms: float) -> bool:
        return now_ms > self.expires_at_ms


class MemoryTier:
    """
    Bounded FIFO map of ``CacheEntry`` objects.

    Usage:
        tier = MemoryTier()
        tier.set("user:42:profile", {"name": "A"}, ttl_seconds=1800, size_bytes=12)
        entry = tier.get("user:42:profile")
    """

    def __init__(
        self,
        max_entries: int = MEMORY_TIER_MAX_ENTRIES,
        evict_batch: int = MEMORY_TIER_EVICT_BATCH,
        max_value_bytes: int = MEMORY_TIER_MAX_VALUE_BYTES,
        clock: Clock = epoch_ms,
    ):
        self._max_entries = max_entries
        self._evict_batch = evict_batch
        self._max_value_bytes = max_value_bytes
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def max_value_bytes(self) -> int:
        return self._max_value_bytes

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def accepts(self, size_bytes: int) -> bool:
        return size_bytes <= self._max_value_bytes

    def is_full(self) -> bool:
        return len(self._entries) >= self._max_entries

    def get(self, key: str) -> CacheEntry | None:
        """Return the entry if present and not expired."""
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry

    def get_stale(self, key: str) -> CacheEntry | None:
        """Return the entry even when it has expired."""
        return self._entries.get(key)

    def evict_oldest(self, count: int | None = None) -> list[str]:
        """
        Drop the ``count`` (default ``evict_batch``) oldest entries.

        Returns:
            The evicted keys, oldest first.
        """
        count = self._evict_batch if count is None else count
        evicted = []
        while self._entries and len(evicted) < count:
            key, _ = self._entries.popitem(last=False)
            evicted.append(key)
        return evicted

    def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: int,
        size_bytes: int,
        source: CacheTier = CacheTier.MEMORY,
    ) -> list[str]:
        """
        Store ``value`` under ``key``.

        An overwrite keeps the key's original insertion position; a new key
        arriving at a full tier first evicts a batch of the oldest entries.

        Returns:
            Keys evicted to make room (empty when none).

        Raises:
            OversizedValueError: If ``size_bytes`` exceeds ``max_value_bytes``
            ValueError: If ``ttl_seconds`` is not positive
        """
        if not self.accepts(size_bytes):
            raise OversizedValueError(
                f"Value of {size_bytes}B exceeds memory tier limit",
                details={"key": key, "size": size_bytes, "limit": self._max_value_bytes},
            )

        entry = CacheEntry(
            key=key,
            value=value,
            source=source,
            written_at_ms=self._clock(),
            ttl_seconds=ttl_seconds,
        )

        evicted: list[str] = []
        if key not in self._entries and self.is_full():
            evicted = self.evict_oldest()

        self._entries[key] = entry
        return evicted

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def prune_expired(self) -> int:
        """Remove every expired entry; returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def keys(self) -> list[str]:
        """Keys in insertion order (oldest first)."""
        return list(self._entries.keys())
