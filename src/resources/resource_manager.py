#!/usr/bin/env python3
"""
Resource Lifecycle Registry

Tracks long-lived handles (push connections, subscriptions, timers, listeners,
durable-store handles, cache entries) together with the callback that releases
each of them, and releases them when they get old, go idle, exceed capacity or
the process shuts down.

STAGE-R: Resource lifecycle

Lifecycle of one resource:
    registered -> (touched)* -> [deactivated] -> released

Release rules:
    - A release callback runs to success at most once. A second unregister
      (or a sweep racing an explicit unregister) is a no-op returning False.
    - A failing callback leaves the entry registered so a later sweep can
      retry it; the failure is counted and published, never raised.
    - Batch releases (sweep, criteria, memory pressure) go low -> critical.

Author: System Architect
Date: 2025-12-14
"""

import asyncio
import inspect
import secrets
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import orjson

from src.core.clock import Clock, epoch_ms
from src.core.config.constants import (
    RESOURCE_CLEANUP_INTERVAL_SECONDS,
    RESOURCE_DEFAULT_MEMORY_ESTIMATE,
    RESOURCE_INACTIVE_AFTER_SECONDS,
    RESOURCE_MAX_AGE_SECONDS,
    RESOURCE_MAX_RESOURCES,
    RESOURCE_MEMORY_CHECK_INTERVAL_SECONDS,
    RESOURCE_MEMORY_ESTIMATES,
    RESOURCE_MEMORY_THRESHOLD_BYTES,
    ResourcePriority,
    ResourceType,
    Stage,
)
from src.core.config.settings import Settings
from src.core.events import (
    CleanupCompleted,
    EventBus,
    MemoryThresholdExceeded,
    ResourceCleanupFailed,
    ResourceDeactivated,
    ResourceRegistered,
    ResourceUnregistered,
    ShutdownCompleted,
)
from src.core.exceptions import InvalidResourceError
from src.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

ReleaseCallback = Callable[[], Awaitable[None] | None]


# =============================================================================
# DATA MODEL
# =============================================================================


@dataclass
class ManagedResource:
    id: str
    type: ResourceType
    priority: ResourcePriority
    created_at: datetime
    last_accessed_at: datetime
    release: ReleaseCallback = field(repr=False)
    metadata: dict[str, Any] = field(default_factory=dict)
    memory_usage: int | None = None
    is_active: bool = True
    released: bool = False


@dataclass
class ResourceManagerConfig:
    max_resources: int = RESOURCE_MAX_RESOURCES
    max_age_seconds: int = RESOURCE_MAX_AGE_SECONDS
    inactive_after_seconds: int = RESOURCE_INACTIVE_AFTER_SECONDS
    cleanup_interval_seconds: int = RESOURCE_CLEANUP_INTERVAL_SECONDS
    memory_threshold_bytes: int = RESOURCE_MEMORY_THRESHOLD_BYTES
    memory_check_interval_seconds: int = RESOURCE_MEMORY_CHECK_INTERVAL_SECONDS
    enable_auto_cleanup: bool = True
    enable_memory_monitoring: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResourceManagerConfig":
        res = settings.resources
        return cls(
            max_resources=res.RESOURCE_MAX_RESOURCES,
            max_age_seconds=res.RESOURCE_MAX_AGE,
            inactive_after_seconds=res.RESOURCE_INACTIVE_AFTER,
            cleanup_interval_seconds=res.RESOURCE_CLEANUP_INTERVAL,
            memory_threshold_bytes=res.RESOURCE_MEMORY_THRESHOLD_MB * 1024 * 1024,
            memory_check_interval_seconds=res.RESOURCE_MEMORY_CHECK_INTERVAL,
            enable_auto_cleanup=res.RESOURCE_AUTO_CLEANUP,
            enable_memory_monitoring=res.RESOURCE_MEMORY_MONITORING,
        )


@dataclass(frozen=True)
class CleanupCriteria:
    """Filter for ``cleanup_by_criteria``; unset fields match everything."""

    type: ResourceType | None = None
    older_than: datetime | None = None
    inactive: bool | None = None
    priority: ResourcePriority | None = None

    def __post_init__(self):
        # Registry timestamps are UTC; a naive cutoff is read as UTC too
        if self.older_than is not None and self.older_than.tzinfo is None:
            object.__setattr__(self, "older_than", self.older_than.replace(tzinfo=timezone.utc))

    def matches(self, resource: ManagedResource) -> bool:
        if self.type is not None and resource.type != self.type:
            return False
        if self.older_than is not None and resource.created_at > self.older_than:
            return False
        if self.inactive is not None and resource.is_active == self.inactive:
            return False
        if self.priority is not None and resource.priority != self.priority:
            return False
        return True


@dataclass(frozen=True)
class ResourceStats:
    total_resources: int
    resources_by_type: dict[str, int]
    memory_usage: int
    oldest_resource: datetime | None
    resources_cleaned_up: int
    average_lifetime: float
    cleanup_errors: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_resources": self.total_resources,
            "resources_by_type": self.resources_by_type,
            "memory_usage": self.memory_usage,
            "oldest_resource": self.oldest_resource.isoformat() if self.oldest_resource else None,
            "resources_cleaned_up": self.resources_cleaned_up,
            "average_lifetime": self.average_lifetime,
            "cleanup_errors": self.cleanup_errors,
        }


def _by_priority(resources: list[ManagedResource]) -> list[ManagedResource]:
    return sorted(resources, key=lambda r: r.priority.rank)


# =============================================================================
# REGISTRY
# =============================================================================


class ResourceManager:
    """
    Registry of releasable resources.

    Usage:
        manager = ResourceManager(ResourceManagerConfig(), event_bus)
        manager.start()

        rid = manager.register(ResourceType.TIMER, handle.cancel,
                               priority=ResourcePriority.LOW)
        manager.touch(rid)
        await manager.unregister(rid)

        await manager.shutdown()
    """

    def __init__(
        self,
        config: ResourceManagerConfig | None = None,
        event_bus: EventBus | None = None,
        metrics=None,
        clock: Clock = epoch_ms,
    ):
        self.config = config or ResourceManagerConfig()
        self.events = event_bus or EventBus()
        self._metrics = metrics
        self._clock = clock

        self._resources: dict[str, ManagedResource] = {}
        self._releasing: set[str] = set()
        self._pending: set[asyncio.Task] = set()
        self._cleaned_up = 0
        self._cleanup_errors = 0

        self._sweep_task: asyncio.Task | None = None
        self._memory_task: asyncio.Task | None = None
        self._capacity_sweep: asyncio.Task | None = None

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock() / 1000, tz=timezone.utc)

    def _new_id(self) -> str:
        return f"res_{int(self._clock())}_{secrets.token_hex(4)}"

    def _update_gauge(self) -> None:
        if self._metrics:
            self._metrics.set_resources_active(len(self._resources))

    async def _publish(self, event) -> None:
        await self.events.publish(event)

    def _publish_soon(self, event) -> None:
        """Publish from synchronous code when a loop is running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._publish(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(
        self,
        resource_type: ResourceType | str,
        release: ReleaseCallback,
        priority: ResourcePriority | str = ResourcePriority.MEDIUM,
        metadata: dict[str, Any] | None = None,
        memory_usage: int | None = None,
    ) -> str:
        """
        Track a resource and the callback that releases it.

        Returns:
            The opaque resource id.

        Raises:
            InvalidResourceError: Empty/unknown type or non-callable release
        """
        if not resource_type:
            raise InvalidResourceError("Resource type is required")
        if not callable(release):
            raise InvalidResourceError(
                "Release callback must be callable", details={"type": str(resource_type)}
            )
        try:
            resource_type = ResourceType(resource_type)
            priority = ResourcePriority(priority)
        except ValueError as e:
            raise InvalidResourceError(str(e)) from e

        now = self._now()
        resource = ManagedResource(
            id=self._new_id(),
            type=resource_type,
            priority=priority,
            created_at=now,
            last_accessed_at=now,
            release=release,
            metadata=dict(metadata or {}),
            memory_usage=memory_usage,
        )
        self._resources[resource.id] = resource
        self._update_gauge()

        logger.debug(
            "Resource registered",
            stage=Stage.RES_REGISTER.value,
            resource_id=resource.id,
            resource_type=resource_type.value,
            priority=priority.value,
        )
        self._publish_soon(ResourceRegistered(resource.id, resource_type.value, priority.value))

        if len(self._resources) > self.config.max_resources:
            self._schedule_capacity_sweep()

        return resource.id

    def _schedule_capacity_sweep(self) -> None:
        if self._capacity_sweep is not None and not self._capacity_sweep.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log_stage(
                logger, Stage.RES_SWEEP, "Registry over capacity outside an event loop",
                level="warning", total=len(self._resources),
            )
            return
        log_stage(
            logger, Stage.RES_SWEEP, "Registry over capacity, sweeping",
            level="warning", total=len(self._resources), max_resources=self.config.max_resources,
        )
        self._capacity_sweep = loop.create_task(self.sweep(trigger="capacity"))

    def touch(self, resource_id: str) -> bool:
        resource = self._resources.get(resource_id)
        if resource is None:
            return False
        resource.last_accessed_at = self._now()
        return True

    def deactivate(self, resource_id: str) -> bool:
        resource = self._resources.get(resource_id)
        if resource is None:
            return False
        resource.is_active = False
        logger.debug("Resource deactivated", stage=Stage.RES_RELEASE.value, resource_id=resource_id)
        self._publish_soon(ResourceDeactivated(resource_id))
        return True

    def get_resource(self, resource_id: str) -> ManagedResource | None:
        return self._resources.get(resource_id)

    def get_resources_by_type(self, resource_type: ResourceType | str) -> list[ManagedResource]:
        resource_type = ResourceType(resource_type)
        return [r for r in self._resources.values() if r.type == resource_type]

    def __len__(self) -> int:
        return len(self._resources)

    # -------------------------------------------------------------------------
    # Release
    # -------------------------------------------------------------------------

    async def unregister(self, resource_id: str) -> bool:
        """
        Run the release callback and forget the resource.

        Returns:
            True when this call released the resource. False for unknown,
            already released or in-flight ids, and when the callback raised.
        """
        resource = self._resources.get(resource_id)
        if resource is None or resource.released or resource_id in self._releasing:
            return False

        self._releasing.add(resource_id)
        try:
            result = resource.release()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._cleanup_errors += 1
            if self._metrics:
                self._metrics.record_release_failure()
            log_stage(
                logger,
                Stage.RES_RELEASE,
                "Failed to release resource",
                level="error",
                resource_id=resource_id,
                resource_type=resource.type.value,
                error=str(e),
            )
            await self._publish(ResourceCleanupFailed(resource_id, str(e)))
            return False
        finally:
            self._releasing.discard(resource_id)

        resource.released = True
        self._resources.pop(resource_id, None)
        self._cleaned_up += 1
        self._update_gauge()

        logger.debug(
            "Resource unregistered",
            stage=Stage.RES_RELEASE.value,
            resource_id=resource_id,
            resource_type=resource.type.value,
        )
        await self._publish(ResourceUnregistered(resource_id, resource.type.value))
        return True

    async def _release_batch(self, resources: list[ManagedResource], trigger: str) -> int:
        cleaned = 0
        for resource in _by_priority(resources):
            if await self.unregister(resource.id):
                cleaned += 1
        if self._metrics:
            self._metrics.record_resource_released(trigger, cleaned)
        return cleaned

    async def cleanup_by_criteria(self, criteria: CleanupCriteria) -> int:
        candidates = [r for r in self._resources.values() if criteria.matches(r)]
        cleaned = await self._release_batch(candidates, "criteria")

        log_stage(
            logger, Stage.RES_SWEEP, "Criteria cleanup completed",
            cleaned=cleaned, candidates=len(candidates),
        )
        await self._publish(CleanupCompleted(cleaned, "criteria"))
        return cleaned

    async def cleanup_all(self, trigger: str = "force") -> int:
        cleaned = await self._release_batch(list(self._resources.values()), trigger)
        log_stage(logger, Stage.RES_SWEEP, "Force cleanup completed", cleaned=cleaned)
        await self._publish(CleanupCompleted(cleaned, trigger))
        return cleaned

    async def sweep(self, trigger: str = "sweep") -> int:
        """
        Release resources past max age, and inactive ones idle too long.

        Never raises; failing releases are counted in the stats.
        """
        now = self._now()
        age_cutoff = now - timedelta(seconds=self.config.max_age_seconds)
        idle_cutoff = now - timedelta(seconds=self.config.inactive_after_seconds)

        candidates = [
            r
            for r in self._resources.values()
            if r.created_at < age_cutoff or (not r.is_active and r.last_accessed_at < idle_cutoff)
        ]
        if not candidates:
            return 0

        try:
            cleaned = await self._release_batch(candidates, trigger)
        except Exception as e:
            log_stage(logger, Stage.RES_SWEEP, "Sweep failed", level="error", error=str(e))
            return 0

        if cleaned:
            log_stage(
                logger, Stage.RES_SWEEP, "Automatic cleanup completed",
                cleaned=cleaned, trigger=trigger,
            )
            await self._publish(CleanupCompleted(cleaned, trigger))
        return cleaned

    # -------------------------------------------------------------------------
    # Memory
    # -------------------------------------------------------------------------

    @staticmethod
    def _estimate(resource: ManagedResource) -> int:
        if resource.memory_usage:
            return resource.memory_usage
        if resource.type == ResourceType.CACHE_ENTRY:
            return len(orjson.dumps(resource.metadata, default=str)) * 2
        return RESOURCE_MEMORY_ESTIMATES.get(resource.type, RESOURCE_DEFAULT_MEMORY_ESTIMATE)

    def get_memory_usage(self) -> int:
        """Declared or estimated bytes held by all tracked resources."""
        return sum(self._estimate(r) for r in self._resources.values())

    async def check_memory(self) -> None:
        usage = self.get_memory_usage()
        threshold = self.config.memory_threshold_bytes
        if usage <= threshold:
            return

        log_stage(
            logger, Stage.RES_MEMORY, "Memory usage threshold exceeded",
            level="warning", memory_usage=usage, threshold=threshold,
        )
        await self._publish(MemoryThresholdExceeded(usage, threshold))

        low = [r for r in self._resources.values() if r.priority == ResourcePriority.LOW]
        cleaned = await self._release_batch(low, "memory")
        await self._publish(CleanupCompleted(cleaned, "memory"))

    # -------------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------------

    def get_stats(self) -> ResourceStats:
        resources = list(self._resources.values())
        now = self._now()
        by_type = Counter(r.type.value for r in resources)
        average = (
            sum((now - r.created_at).total_seconds() for r in resources) / len(resources)
            if resources
            else 0.0
        )
        return ResourceStats(
            total_resources=len(resources),
            resources_by_type=dict(by_type),
            memory_usage=self.get_memory_usage(),
            oldest_resource=min((r.created_at for r in resources), default=None),
            resources_cleaned_up=self._cleaned_up,
            average_lifetime=average,
            cleanup_errors=self._cleanup_errors,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the sweep and memory monitor loops on the running loop."""
        if self.config.enable_auto_cleanup and self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop(), name="resource-sweep")
        if self.config.enable_memory_monitoring and self._memory_task is None:
            self._memory_task = asyncio.create_task(self._memory_loop(), name="resource-memory")
        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Resource manager started",
            auto_cleanup=self.config.enable_auto_cleanup,
            memory_monitoring=self.config.enable_memory_monitoring,
        )

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            await self.sweep()

    async def _memory_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.memory_check_interval_seconds)
            try:
                await self.check_memory()
            except Exception as e:
                log_stage(logger, Stage.RES_MEMORY, "Memory check failed", level="error", error=str(e))

    async def shutdown(self) -> int:
        """Stop the loops and release everything still registered."""
        log_stage(logger, Stage.SHUTDOWN, "Resource manager shutting down", total=len(self._resources))

        for task in (self._sweep_task, self._memory_task, self._capacity_sweep):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._sweep_task = self._memory_task = self._capacity_sweep = None

        # Deliver events still queued by synchronous register/deactivate calls
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

        released = await self.cleanup_all(trigger="shutdown")
        await self._publish(ShutdownCompleted(released))
        log_stage(logger, Stage.SHUTDOWN, "Resource manager shutdown complete", released=released)
        return released
