#!/usr/bin/env python3
"""
Hybrid Storage - Tiered Cache Facade

Architecture:
    HybridStorage (Public API: get / set / delete / exists)
        ├── MemoryTier   (in-process, FIFO bounded, values <= 1 KB)
        ├── RemoteTier   (Redis, critical writes only, compressed > 2 KB)
        ├── DurableStore (MongoDB user records, read-only fallback)
        └── StorageObserver (hit/miss counters, metrics, logging)

Read path (get):
    1. critical/high priority → remote tier first
    2. memory tier (non-expired entries)
    3. other priorities → remote tier, promoting a hit into memory
    4. fallback_to_mongo + user key → durable store, promoting a hit into
       memory with ``ttl or 900`` seconds
    Any tier error → the memory entry for the key even if expired, else None.

Write path (set):
    - serialized size > 3 KB      → skipped and logged
    - telemetry key (metrics/monitoring/alert) → skipped and logged
    - priority critical           → remote write (compressed when > 2 KB)
    - serialized size <= 1 KB     → memory write (FIFO eviction when full)
    - fallback_to_mongo + user key → durable write-back is a logged no-op
    A remote failure still leaves the memory copy in place.

No method raises: tier failures degrade to a memory-only or empty result.

Author: System Architect
Date: 2025-12-13
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import orjson

from src.core.config.constants import (
    CACHE_MAX_VALUE_BYTES,
    COMPRESSION_THRESHOLD_BYTES,
    DURABLE_PROMOTION_TTL,
    CachePriority,
    CacheTier,
    Stage,
)
from src.core.config.settings import Settings
from src.core.interfaces import DurableStore
from src.core.logging.logger import get_logger, log_stage
from src.infrastructure.cache.keys import KeyNamespace, classify_key, extract_user_id, smart_ttl
from src.infrastructure.cache.memory_tier import MemoryTier
from src.infrastructure.cache.remote_tier import RemoteTier
from src.infrastructure.monitoring.metrics_collector import MetricsCollector

logger = get_logger(__name__)

PROFILE_FIELDS = ("_id", "firstName", "lastName", "email", "role", "isVerified")


@dataclass(frozen=True)
class StorageOptions:
    """
    Per-call options for the cache facade.

    Attributes:
        ttl: Explicit TTL in seconds (smart TTL when omitted)
        priority: Declared importance; drives tier selection and TTL
        fallback_to_mongo: Allow the durable store to answer user-key reads
    """

    ttl: int | None = None
    priority: CachePriority | None = None
    fallback_to_mongo: bool = False

    @property
    def prefers_remote(self) -> bool:
        return self.priority in (CachePriority.CRITICAL, CachePriority.HIGH)


@dataclass
class HybridStorageConfig:
    max_value_bytes: int = CACHE_MAX_VALUE_BYTES
    compression_threshold_bytes: int = COMPRESSION_THRESHOLD_BYTES
    durable_promotion_ttl: int = DURABLE_PROMOTION_TTL
    prune_interval_seconds: float = 60.0
    user_collection: str = "users"
    remote_enabled: bool = True
    mongo_fallback_enabled: bool = True
    memory_fallback_enabled: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "HybridStorageConfig":
        cache = settings.cache
        mongo = settings.mongo
        return cls(
            max_value_bytes=cache.CACHE_MAX_VALUE_BYTES,
            compression_threshold_bytes=cache.CACHE_COMPRESSION_THRESHOLD_BYTES,
            durable_promotion_ttl=cache.CACHE_DURABLE_PROMOTION_TTL,
            prune_interval_seconds=cache.CACHE_PRUNE_INTERVAL,
            user_collection=mongo.MONGO_USER_COLLECTION,
            remote_enabled=cache.CACHE_REMOTE_ENABLED,
            mongo_fallback_enabled=mongo.MONGO_FALLBACK_ENABLED,
        )


# =============================================================================
# OBSERVABILITY
# =============================================================================


class StorageObserver:
    """
    Hit/miss bookkeeping for the facade.

    Keeps local counters for ``get_storage_stats`` and mirrors every event to
    Prometheus through ``MetricsCollector``.
    """

    def __init__(self, metrics: MetricsCollector | None = None):
        self._metrics = metrics
        self._hits = {tier: 0 for tier in CacheTier}
        self._misses = 0
        self._skipped = 0
        self._errors = 0

    def hit(self, tier: CacheTier, key: str) -> None:
        self._hits[tier] += 1
        if self._metrics:
            self._metrics.record_cache_hit(tier.value)
        log_stage(logger, Stage.CACHE_GET, "Cache hit", level="debug", tier=tier.value, key=key)

    def miss(self, key: str) -> None:
        self._misses += 1
        if self._metrics:
            self._metrics.record_cache_miss()
        log_stage(logger, Stage.CACHE_GET, "Cache miss", level="debug", key=key)

    def skipped(self, reason: str, key: str, **fields: Any) -> None:
        self._skipped += 1
        if self._metrics:
            self._metrics.record_cache_skip(reason)
        log_stage(logger, Stage.CACHE_SET, "Skipping cache write", reason=reason, key=key, **fields)

    def tier_error(self, tier: str, operation: str, key: str, error: BaseException) -> None:
        self._errors += 1
        if self._metrics:
            self._metrics.record_tier_error(tier, operation)
        log_stage(
            logger,
            Stage.CACHE_GET if operation == "get" else Stage.CACHE_SET,
            "Cache tier operation failed",
            level="warning",
            tier=tier,
            operation=operation,
            key=key,
            error=str(error),
            error_type=type(error).__name__,
        )

    def memory_size(self, count: int) -> None:
        if self._metrics:
            self._metrics.set_memory_entries(count)

    def get_stats(self) -> dict[str, Any]:
        hits = sum(self._hits.values())
        total = hits + self._misses
        return {
            "hits": {tier.value: count for tier, count in self._hits.items()},
            "misses": self._misses,
            "total_requests": total,
            "hit_rate": round(hits / total, 3) if total else 0.0,
            "skipped_writes": self._skipped,
            "tier_errors": self._errors,
        }


# =============================================================================
# PUBLIC API
# =============================================================================


class HybridStorage:
    """
    Single get/set/delete/exists interface over memory, remote and durable tiers.

    Usage:
        storage = HybridStorage(MemoryTier(), RemoteTier(redis), durable_store)
        await storage.set("user:42:profile", {"name": "A"},
                          StorageOptions(priority=CachePriority.CRITICAL))
        profile = await storage.get("user:42:profile")
    """

    def __init__(
        self,
        memory: MemoryTier,
        remote: RemoteTier | None = None,
        durable: DurableStore | None = None,
        config: HybridStorageConfig | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._memory = memory
        self._remote = remote
        self._durable = durable
        self._config = config or HybridStorageConfig()
        self._observer = StorageObserver(metrics)
        self._remote_enabled = self._config.remote_enabled
        self._mongo_fallback_enabled = self._config.mongo_fallback_enabled
        self._memory_fallback_enabled = self._config.memory_fallback_enabled
        self._prune_task: asyncio.Task | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the memory tier prune timer on the running loop."""
        if self._prune_task is None or self._prune_task.done():
            self._prune_task = asyncio.create_task(self._prune_loop(), name="cache-prune")

    async def shutdown(self) -> None:
        """Cancel the prune timer."""
        if self._prune_task is not None:
            self._prune_task.cancel()
            try:
                await self._prune_task
            except asyncio.CancelledError:
                pass
            self._prune_task = None
        log_stage(logger, Stage.SHUTDOWN, "Hybrid storage stopped")

    async def _prune_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.prune_interval_seconds)
            self.prune()

    def prune(self) -> int:
        removed = self._memory.prune_expired()
        self._observer.memory_size(len(self._memory))
        if removed:
            log_stage(logger, Stage.CACHE_PRUNE, "Pruned expired memory entries", removed=removed)
        return removed

    @property
    def _remote_active(self) -> bool:
        return self._remote is not None and self._remote_enabled

    @property
    def _durable_active(self) -> bool:
        return self._durable is not None and self._mongo_fallback_enabled

    # -------------------------------------------------------------------------
    # get
    # -------------------------------------------------------------------------

    async def get(self, key: str, options: StorageOptions | None = None) -> Any | None:
        """
        Read ``key`` through the tier chain.

        Returns:
            The cached value, or None when every tier misses.
        """
        opts = options or StorageOptions()
        namespace = classify_key(key)

        try:
            if opts.prefers_remote and self._remote_active:
                value = await self._remote.get(key)
                if value is not None:
                    self._observer.hit(CacheTier.REMOTE, key)
                    return value

            entry = self._memory.get(key)
            if entry is not None:
                self._observer.hit(CacheTier.MEMORY, key)
                return entry.value

            if not opts.prefers_remote and self._remote_active:
                value = await self._remote.get(key)
                if value is not None:
                    self._observer.hit(CacheTier.REMOTE, key)
                    self._promote(key, value, opts.ttl or smart_ttl(key, opts.priority))
                    return value

            if opts.fallback_to_mongo and namespace.is_user and self._durable_active:
                value = await self._get_from_durable(key, namespace)
                if value is not None:
                    self._observer.hit(CacheTier.DURABLE, key)
                    self._promote(key, value, opts.ttl or self._config.durable_promotion_ttl)
                    return value

            self._observer.miss(key)
            return None

        except Exception as e:
            self._observer.tier_error("chain", "get", key, e)
            if self._memory_fallback_enabled:
                stale = self._memory.get_stale(key)
                if stale is not None:
                    log_stage(logger, Stage.CACHE_GET, "Serving stale memory entry", key=key)
                    return stale.value
            return None

    async def _get_from_durable(self, key: str, namespace: KeyNamespace) -> Any | None:
        user_id = extract_user_id(key)
        if not user_id:
            return None

        record = await self._durable.find_by_id(self._config.user_collection, user_id)
        if record is None:
            return None

        if namespace is KeyNamespace.USER_PROFILE:
            return {field: record.get(field) for field in PROFILE_FIELDS}
        return record

    def _promote(self, key: str, value: Any, ttl: int) -> None:
        """Copy a slower tier's hit into memory when it fits."""
        try:
            size = len(orjson.dumps(value))
        except TypeError:
            return
        if self._memory.accepts(size):
            self._memory.set(key, value, ttl_seconds=ttl, size_bytes=size)
            self._observer.memory_size(len(self._memory))

    # -------------------------------------------------------------------------
    # set
    # -------------------------------------------------------------------------

    async def set(self, key: str, value: Any, options: StorageOptions | None = None) -> None:
        """
        Write ``value`` to the tiers selected by size, namespace and priority.

        Never raises; values that cannot be cached are skipped with a log line.
        """
        opts = options or StorageOptions()
        namespace = classify_key(key)

        try:
            serialized = orjson.dumps(value)
        except TypeError as e:
            self._observer.skipped("unserializable", key, error=str(e))
            return

        size = len(serialized)
        if size > self._config.max_value_bytes:
            self._memory.delete(key)
            self._observer.skipped(
                "oversized", key, size=size, limit=self._config.max_value_bytes
            )
            return

        if namespace.is_telemetry:
            self._observer.skipped("telemetry", key)
            return

        # A non-positive TTL would expire on write; treat it as unset
        ttl = opts.ttl if opts.ttl and opts.ttl > 0 else smart_ttl(key, opts.priority)
        # Memory keeps its own copy, decoupled from the caller's object
        stored_value = orjson.loads(serialized)

        if opts.priority == CachePriority.CRITICAL and self._remote_active:
            compress = size > self._config.compression_threshold_bytes
            try:
                await self._remote.set(key, stored_value, ttl_seconds=ttl, compress=compress)
            except Exception as e:
                # Remote failure degrades to a memory-only write below
                self._observer.tier_error("remote", "set", key, e)
            else:
                log_stage(
                    logger, Stage.CACHE_SET, "Stored in remote tier",
                    key=key, ttl=ttl, compressed=compress,
                )

        self._store_in_memory(key, stored_value, ttl, size)

        if opts.fallback_to_mongo and namespace.is_user and self._mongo_fallback_enabled:
            log_stage(
                logger, Stage.CACHE_DURABLE, "Durable write-back not performed",
                level="debug", key=key,
            )

    def _store_in_memory(self, key: str, value: Any, ttl: int, size: int) -> None:
        if not self._memory.accepts(size):
            # An older small value must not outlive this write
            self._memory.delete(key)
            return
        evicted = self._memory.set(key, value, ttl_seconds=ttl, size_bytes=size)
        if evicted:
            log_stage(
                logger, Stage.CACHE_SET, "Evicted oldest memory entries", evicted=len(evicted)
            )
        self._observer.memory_size(len(self._memory))

    # -------------------------------------------------------------------------
    # delete / exists
    # -------------------------------------------------------------------------

    async def delete(self, key: str) -> None:
        """
        Remove ``key`` from every tier concurrently.

        Best effort: each tier's failure is logged and the others still run.
        """
        tiers: list[str] = [CacheTier.MEMORY.value]
        operations = [self._delete_from_memory(key)]
        if self._remote is not None:
            tiers.append(CacheTier.REMOTE.value)
            operations.append(self._remote.delete(key))

        results = await asyncio.gather(*operations, return_exceptions=True)
        for tier, result in zip(tiers, results):
            if isinstance(result, Exception):
                self._observer.tier_error(tier, "delete", key, result)

        log_stage(logger, Stage.CACHE_DELETE, "Deleted from hybrid storage", key=key)

    async def _delete_from_memory(self, key: str) -> bool:
        deleted = self._memory.delete(key)
        self._observer.memory_size(len(self._memory))
        return deleted

    async def exists(self, key: str) -> bool:
        """Memory, then remote, then durable (user keys only); False on error."""
        try:
            if self._memory.get(key) is not None:
                return True

            if self._remote_active and await self._remote.exists(key):
                return True

            if classify_key(key).is_user and self._durable_active:
                user_id = extract_user_id(key)
                if user_id:
                    return await self._durable.exists_by_id(self._config.user_collection, user_id)

            return False
        except Exception as e:
            self._observer.tier_error("chain", "exists", key, e)
            return False

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    async def clear_all(self) -> None:
        """Clear memory and the remote tier's keys."""
        operations = [self._clear_memory_async()]
        if self._remote is not None:
            operations.append(self._remote.clear())
        results = await asyncio.gather(*operations, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                self._observer.tier_error("remote", "clear", "*", result)
        log_stage(logger, Stage.CACHE_DELETE, "All hybrid storage cleared")

    async def _clear_memory_async(self) -> int:
        return self.clear_memory()

    def clear_memory(self) -> int:
        cleared = self._memory.clear()
        self._observer.memory_size(0)
        log_stage(logger, Stage.CACHE_DELETE, "Memory tier cleared", cleared=cleared)
        return cleared

    def set_mongo_fallback_enabled(self, enabled: bool) -> None:
        self._mongo_fallback_enabled = enabled
        logger.info("MongoDB fallback toggled", enabled=enabled)

    def set_memory_fallback_enabled(self, enabled: bool) -> None:
        self._memory_fallback_enabled = enabled
        logger.info("Stale memory fallback toggled", enabled=enabled)

    def set_remote_enabled(self, enabled: bool) -> None:
        """
        Toggle the remote tier. Disabling it also clears memory so nothing
        cached under the old configuration keeps being served.
        """
        self._remote_enabled = enabled
        if not enabled:
            self.clear_memory()
        logger.info("Remote caching toggled", enabled=enabled)

    async def warm_critical_data(
        self, entries: Mapping[str, Any], ttl: int | None = None
    ) -> int:
        """
        Store ``entries`` with critical priority.

        Returns:
            Number of entries that ended up in at least one tier.
        """
        warmed = 0
        for key, value in entries.items():
            await self.set(key, value, StorageOptions(ttl=ttl, priority=CachePriority.CRITICAL))
            if self._memory.get(key) is not None or (
                self._remote_active and await self._safe_remote_exists(key)
            ):
                warmed += 1
        log_stage(logger, Stage.CACHE_SET, "Critical data warmed", requested=len(entries), warmed=warmed)
        return warmed

    async def _safe_remote_exists(self, key: str) -> bool:
        try:
            return await self._remote.exists(key)
        except Exception as e:
            self._observer.tier_error("remote", "exists", key, e)
            return False

    def get_storage_stats(self) -> dict[str, Any]:
        return {
            "memory": {
                "item_count": len(self._memory),
                "max_entries": self._memory.max_entries,
                "max_value_bytes": self._memory.max_value_bytes,
            },
            "performance": self._observer.get_stats(),
            "features": {
                "remote_caching_enabled": self._remote_active,
                "mongo_fallback_enabled": self._mongo_fallback_enabled,
                "memory_fallback_enabled": self._memory_fallback_enabled,
            },
        }

    async def health_check(self) -> dict[str, Any]:
        health: dict[str, Any] = {
            "status": "healthy",
            "memory_entries": len(self._memory),
            "remote": None,
        }
        if self._remote_active:
            remote = await self._remote.health_check()
            health["remote"] = remote
            if remote.get("status") != "healthy":
                health["status"] = "degraded"
        return health
