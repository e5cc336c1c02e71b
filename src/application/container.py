#!/usr/bin/env python3
"""
Application Container

Explicit assembly of every long-lived service. The container is built once in
the FastAPI lifespan, stored on ``app.state.container`` and handed to routes
through ``src.application.api.dependencies``; nothing else holds module-level
instances.

Startup order:
    1. Redis connection (a failure leaves the service running degraded)
    2. Cache prune timer
    3. Resource registry sweep and memory monitor timers

Shutdown runs the reverse order and closes the connections it opened.

Author: System Architect
Date: 2025-12-14
"""

from dataclasses import dataclass, field

from src.core.config.settings import Settings, get_settings
from src.core.config.constants import Stage
from src.core.events import EventBus
from src.core.exceptions import CacheConnectionError
from src.core.interfaces import DurableStore
from src.core.logging.logger import get_logger, log_stage
from src.infrastructure.cache.hybrid_storage import HybridStorage, HybridStorageConfig
from src.infrastructure.cache.memory_tier import MemoryTier
from src.infrastructure.cache.redis_client import RedisClient
from src.infrastructure.cache.remote_tier import RemoteTier
from src.infrastructure.monitoring.health_checker import HealthChecker
from src.infrastructure.monitoring.metrics_collector import MetricsCollector
from src.infrastructure.storage.durable_store import MongoDurableStore
from src.rate_limiting.load_policy import LoadPolicy, StaticLoadPolicy, SystemLoadPolicy
from src.rate_limiting.rate_limiter import SlidingWindowRateLimiter
from src.resources.resource_manager import ResourceManager, ResourceManagerConfig

logger = get_logger(__name__)


@dataclass
class Container:
    settings: Settings
    redis: RedisClient
    durable: DurableStore | None
    storage: HybridStorage
    rate_limiter: SlidingWindowRateLimiter
    load_policy: LoadPolicy
    resources: ResourceManager
    events: EventBus
    metrics: MetricsCollector
    health: HealthChecker
    started: bool = field(default=False)

    async def start(self) -> None:
        log_stage(logger, Stage.INITIALIZATION, "Starting application container")

        try:
            await self.redis.connect()
        except CacheConnectionError as e:
            log_stage(
                logger,
                Stage.INITIALIZATION,
                "Redis unavailable, continuing with memory cache and fail-open rate limits",
                level="warning",
                error=e.message,
            )

        self.storage.start()
        self.resources.start()
        self.started = True
        log_stage(logger, Stage.INITIALIZATION, "Application container ready")

    async def shutdown(self) -> None:
        log_stage(logger, Stage.SHUTDOWN, "Stopping application container")

        await self.resources.shutdown()
        await self.storage.shutdown()
        if self.durable is not None:
            await self.durable.close()
        await self.redis.disconnect()

        self.started = False
        log_stage(logger, Stage.SHUTDOWN, "Application container stopped")


def build_container(
    settings: Settings | None = None,
    redis_client: RedisClient | None = None,
    durable: DurableStore | None = None,
    metrics: MetricsCollector | None = None,
) -> Container:
    """
    Wire the service graph.

    Args:
        settings: Configuration (defaults to the process settings)
        redis_client: Pre-built Redis client, e.g. over an in-memory fake
        durable: Durable store; a MongoDB store is built when the fallback
            is enabled and none is given
        metrics: Metrics collector

    Returns:
        Container: Services ready for ``start()``
    """
    settings = settings or get_settings()
    metrics = metrics or MetricsCollector(settings)
    redis_client = redis_client or RedisClient(settings)

    if durable is None and settings.mongo.MONGO_FALLBACK_ENABLED:
        durable = MongoDurableStore(settings)

    cache = settings.cache
    storage = HybridStorage(
        memory=MemoryTier(
            max_entries=cache.CACHE_MEMORY_MAX_ENTRIES,
            evict_batch=cache.CACHE_MEMORY_EVICT_BATCH,
            max_value_bytes=cache.CACHE_MEMORY_MAX_VALUE_BYTES,
        ),
        remote=RemoteTier(redis_client),
        durable=durable,
        config=HybridStorageConfig.from_settings(settings),
        metrics=metrics,
    )

    if settings.rate_limit.RATE_LIMIT_ADAPTIVE:
        load_policy: LoadPolicy = SystemLoadPolicy.from_settings(settings, redis_client, metrics)
    else:
        load_policy = StaticLoadPolicy()

    events = EventBus()
    resources = ResourceManager(
        ResourceManagerConfig.from_settings(settings), event_bus=events, metrics=metrics
    )

    return Container(
        settings=settings,
        redis=redis_client,
        durable=durable,
        storage=storage,
        rate_limiter=SlidingWindowRateLimiter(redis_client, metrics=metrics),
        load_policy=load_policy,
        resources=resources,
        events=events,
        metrics=metrics,
        health=HealthChecker(settings, redis_client, storage, resources, durable),
    )
