"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tests.test_fixtures.clock import ManualClock  # noqa: E402
from tests.test_fixtures.durable_factory import InMemoryDurableStore  # noqa: E402
from tests.test_fixtures.redis_factory import FakeRedis  # noqa: E402

# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings():
    """
    Real settings with background loops disabled and no .env file.

    Tests drive sweeps and prunes explicitly instead of waiting on timers.
    """
    from src.core.config.settings import Settings

    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        LOG_LEVEL="DEBUG",
        LOG_FORMAT="console",
        RESOURCE_AUTO_CLEANUP=False,
        RESOURCE_MEMORY_MONITORING=False,
        CACHE_PRUNE_INTERVAL=3600,
    )


@pytest.fixture
def clock():
    """Manually advanced epoch-milliseconds clock."""
    return ManualClock()


# ============================================================================
# Infrastructure Fixtures
# ============================================================================


@pytest.fixture
def fake_redis(clock):
    """In-memory Redis double sharing the manual clock for key expiry."""
    return FakeRedis(clock=clock.seconds)


@pytest.fixture
async def redis_client(settings, fake_redis):
    """Connected RedisClient over the in-memory double."""
    from src.infrastructure.cache.redis_client import RedisClient

    client = RedisClient(settings, client=fake_redis)
    await client.connect()
    yield client
    await client.disconnect()


@pytest.fixture
def durable_store():
    """Durable store seeded with one user record."""
    store = InMemoryDurableStore()
    store.add(
        "users",
        "u1",
        {
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "role": "student",
            "isVerified": True,
            "passwordHash": "not-for-the-cache",
        },
    )
    return store


@pytest.fixture
def metrics(settings):
    from src.infrastructure.monitoring.metrics_collector import MetricsCollector

    return MetricsCollector(settings)


@pytest.fixture
def memory_tier(clock):
    from src.infrastructure.cache.memory_tier import MemoryTier

    return MemoryTier(clock=clock)


@pytest.fixture
def hybrid_storage(memory_tier, redis_client, durable_store, metrics):
    """HybridStorage wired over the memory tier, fake Redis and seeded durable store."""
    from src.infrastructure.cache.hybrid_storage import HybridStorage
    from src.infrastructure.cache.remote_tier import RemoteTier

    return HybridStorage(
        memory=memory_tier,
        remote=RemoteTier(redis_client),
        durable=durable_store,
        metrics=metrics,
    )


@pytest.fixture
def rate_limiter(redis_client, clock):
    from src.rate_limiting.rate_limiter import SlidingWindowRateLimiter

    return SlidingWindowRateLimiter(redis_client, clock=clock)


@pytest.fixture
def event_bus():
    from src.core.events import EventBus

    return EventBus()


@pytest.fixture
def resource_manager(event_bus, clock):
    from src.resources.resource_manager import ResourceManager, ResourceManagerConfig

    return ResourceManager(
        ResourceManagerConfig(enable_auto_cleanup=False, enable_memory_monitoring=False),
        event_bus=event_bus,
        clock=clock,
    )


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def container(settings, fake_redis, durable_store, metrics, clock):
    """Application container over in-memory Redis and durable store."""
    from src.application.container import build_container
    from src.infrastructure.cache.redis_client import RedisClient

    services = build_container(
        settings,
        redis_client=RedisClient(settings, client=fake_redis),
        durable=durable_store,
        metrics=metrics,
    )
    services.rate_limiter._clock = clock
    return services


@pytest.fixture
def app(settings, container):
    from src.application.app import create_app

    return create_app(settings, container=container)


@pytest.fixture
def client(app):
    """TestClient running the application lifespan."""
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client
