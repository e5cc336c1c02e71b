"""
Unit Tests for ResourceManager

Time is driven through the manual clock; background loops are disabled unless
a test starts them explicitly.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from prometheus_client import REGISTRY

from src.core.config.constants import ResourcePriority, ResourceType
from src.core.config.settings import Settings
from src.core.events import (
    CleanupCompleted,
    Event,
    MemoryThresholdExceeded,
    ResourceCleanupFailed,
    ResourceDeactivated,
    ResourceRegistered,
    ResourceUnregistered,
    ShutdownCompleted,
)
from src.core.exceptions import InvalidResourceError
from src.resources.resource_manager import (
    CleanupCriteria,
    ResourceManager,
    ResourceManagerConfig,
)


@pytest.fixture
def events(event_bus):
    received = []
    event_bus.subscribe(Event, received.append)
    return received


def of_type(events, event_type):
    return [e for e in events if isinstance(e, event_type)]


def make_manager(event_bus, clock, **overrides) -> ResourceManager:
    config = ResourceManagerConfig(
        enable_auto_cleanup=False, enable_memory_monitoring=False, **overrides
    )
    return ResourceManager(config, event_bus=event_bus, clock=clock)


@pytest.mark.unit
class TestRegistration:
    @pytest.mark.asyncio
    async def test_register_returns_unique_ids(self, resource_manager):
        first = resource_manager.register(ResourceType.TIMER, lambda: None)
        second = resource_manager.register(ResourceType.TIMER, lambda: None)

        assert first != second
        assert first.startswith("res_")
        assert len(resource_manager) == 2

    @pytest.mark.asyncio
    async def test_register_records_fields(self, resource_manager, clock):
        rid = resource_manager.register(
            ResourceType.CONNECTION,
            lambda: None,
            priority=ResourcePriority.HIGH,
            metadata={"user": "u1"},
        )

        resource = resource_manager.get_resource(rid)
        expected_time = datetime.fromtimestamp(clock() / 1000, tz=timezone.utc)

        assert resource.type == ResourceType.CONNECTION
        assert resource.priority == ResourcePriority.HIGH
        assert resource.metadata == {"user": "u1"}
        assert resource.created_at == resource.last_accessed_at == expected_time
        assert resource.is_active is True

    @pytest.mark.asyncio
    async def test_string_type_and_priority(self, resource_manager):
        rid = resource_manager.register("subscription", lambda: None, priority="low")

        resource = resource_manager.get_resource(rid)
        assert resource.type == ResourceType.SUBSCRIPTION
        assert resource.priority == ResourcePriority.LOW

    @pytest.mark.parametrize(
        "resource_type, release, priority",
        [
            ("", lambda: None, "medium"),
            (None, lambda: None, "medium"),
            ("socket", lambda: None, "medium"),
            ("timer", "not callable", "medium"),
            ("timer", lambda: None, "urgent"),
        ],
    )
    def test_invalid_registration(self, resource_manager, resource_type, release, priority):
        with pytest.raises(InvalidResourceError):
            resource_manager.register(resource_type, release, priority=priority)
        assert len(resource_manager) == 0

    @pytest.mark.asyncio
    async def test_registration_publishes_event(self, resource_manager, events):
        rid = resource_manager.register(ResourceType.LISTENER, lambda: None, priority="high")
        await asyncio.sleep(0)

        registered = of_type(events, ResourceRegistered)
        assert len(registered) == 1
        assert registered[0].resource_id == rid
        assert registered[0].resource_type == "listener"
        assert registered[0].priority == "high"

    def test_register_outside_event_loop(self, resource_manager):
        rid = resource_manager.register(ResourceType.TIMER, lambda: None)
        assert resource_manager.get_resource(rid) is not None

    @pytest.mark.asyncio
    async def test_get_resources_by_type(self, resource_manager):
        resource_manager.register(ResourceType.TIMER, lambda: None)
        resource_manager.register(ResourceType.TIMER, lambda: None)
        resource_manager.register(ResourceType.LISTENER, lambda: None)

        assert len(resource_manager.get_resources_by_type("timer")) == 2
        assert len(resource_manager.get_resources_by_type(ResourceType.CONNECTION)) == 0

    @pytest.mark.asyncio
    async def test_gauge_tracks_registry_size(self, event_bus, clock, metrics):
        manager = ResourceManager(
            ResourceManagerConfig(enable_auto_cleanup=False, enable_memory_monitoring=False),
            event_bus=event_bus,
            metrics=metrics,
            clock=clock,
        )
        rid = manager.register(ResourceType.TIMER, lambda: None)
        manager.register(ResourceType.TIMER, lambda: None)
        assert REGISTRY.get_sample_value("platform_resources_registered") == 2

        await manager.unregister(rid)
        assert REGISTRY.get_sample_value("platform_resources_registered") == 1


@pytest.mark.unit
class TestTouchAndDeactivate:
    @pytest.mark.asyncio
    async def test_touch_updates_last_access(self, resource_manager, clock):
        rid = resource_manager.register(ResourceType.TIMER, lambda: None)
        clock.advance_seconds(30)

        assert resource_manager.touch(rid) is True

        resource = resource_manager.get_resource(rid)
        assert resource.last_accessed_at - resource.created_at == timedelta(seconds=30)

    def test_unknown_ids(self, resource_manager):
        assert resource_manager.touch("res_missing") is False
        assert resource_manager.deactivate("res_missing") is False
        assert resource_manager.get_resource("res_missing") is None

    @pytest.mark.asyncio
    async def test_deactivate(self, resource_manager, events):
        rid = resource_manager.register(ResourceType.SUBSCRIPTION, lambda: None)

        assert resource_manager.deactivate(rid) is True
        await asyncio.sleep(0)

        assert resource_manager.get_resource(rid).is_active is False
        assert [e.resource_id for e in of_type(events, ResourceDeactivated)] == [rid]


@pytest.mark.unit
class TestUnregister:
    @pytest.mark.asyncio
    async def test_release_runs_once(self, resource_manager, events):
        release = MagicMock()
        rid = resource_manager.register(ResourceType.TIMER, release)

        assert await resource_manager.unregister(rid) is True
        assert await resource_manager.unregister(rid) is False

        release.assert_called_once()
        assert resource_manager.get_resource(rid) is None
        assert [e.resource_id for e in of_type(events, ResourceUnregistered)] == [rid]

    @pytest.mark.asyncio
    async def test_async_release_is_awaited(self, resource_manager):
        release = AsyncMock()
        rid = resource_manager.register(ResourceType.CONNECTION, release)

        assert await resource_manager.unregister(rid) is True
        release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_unregister_releases_once(self, resource_manager):
        calls = []

        async def release():
            await asyncio.sleep(0)
            calls.append(1)

        rid = resource_manager.register(ResourceType.CONNECTION, release)
        results = await asyncio.gather(
            resource_manager.unregister(rid), resource_manager.unregister(rid)
        )

        assert sorted(results) == [False, True]
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_unknown_id(self, resource_manager):
        assert await resource_manager.unregister("res_missing") is False

    @pytest.mark.asyncio
    async def test_failed_release_keeps_resource(self, resource_manager, events):
        release = MagicMock(side_effect=[RuntimeError("socket busy"), None])
        rid = resource_manager.register(ResourceType.CONNECTION, release)

        assert await resource_manager.unregister(rid) is False

        assert resource_manager.get_resource(rid) is not None
        stats = resource_manager.get_stats()
        assert stats.cleanup_errors == 1
        assert stats.resources_cleaned_up == 0
        failed = of_type(events, ResourceCleanupFailed)
        assert failed[0].resource_id == rid
        assert failed[0].error == "socket busy"

        # a later attempt can still succeed
        assert await resource_manager.unregister(rid) is True
        assert release.call_count == 2


@pytest.mark.unit
class TestBatchCleanup:
    @pytest.mark.asyncio
    async def test_releases_in_priority_order(self, resource_manager):
        order = []
        for priority in ("critical", "low", "high", "medium"):
            resource_manager.register(
                ResourceType.TIMER, lambda p=priority: order.append(p), priority=priority
            )

        assert await resource_manager.cleanup_all() == 4
        assert order == ["low", "medium", "high", "critical"]

    @pytest.mark.asyncio
    async def test_cleanup_by_type(self, resource_manager, events):
        timer = MagicMock()
        listener = MagicMock()
        resource_manager.register(ResourceType.TIMER, timer)
        listener_id = resource_manager.register(ResourceType.LISTENER, listener)

        cleaned = await resource_manager.cleanup_by_criteria(CleanupCriteria(type=ResourceType.TIMER))

        assert cleaned == 1
        timer.assert_called_once()
        listener.assert_not_called()
        assert resource_manager.get_resource(listener_id) is not None
        completed = of_type(events, CleanupCompleted)
        assert (completed[-1].cleaned, completed[-1].trigger) == (1, "criteria")

    @pytest.mark.asyncio
    async def test_cleanup_by_age_and_activity(self, resource_manager, clock):
        old = resource_manager.register(ResourceType.TIMER, lambda: None)
        clock.advance_seconds(120)
        fresh_inactive = resource_manager.register(ResourceType.TIMER, lambda: None)
        resource_manager.deactivate(old)
        resource_manager.deactivate(fresh_inactive)

        cutoff = datetime.fromtimestamp(clock() / 1000, tz=timezone.utc) - timedelta(seconds=60)
        cleaned = await resource_manager.cleanup_by_criteria(
            CleanupCriteria(older_than=cutoff, inactive=True)
        )

        assert cleaned == 1
        assert resource_manager.get_resource(old) is None
        assert resource_manager.get_resource(fresh_inactive) is not None

    @pytest.mark.asyncio
    async def test_naive_cutoff_read_as_utc(self, resource_manager, clock):
        old = resource_manager.register(ResourceType.TIMER, lambda: None)
        clock.advance_seconds(120)
        fresh = resource_manager.register(ResourceType.TIMER, lambda: None)

        cutoff = datetime.fromtimestamp(clock() / 1000, tz=timezone.utc) - timedelta(seconds=60)
        criteria = CleanupCriteria(older_than=cutoff.replace(tzinfo=None))

        assert criteria.older_than.tzinfo is timezone.utc
        assert await resource_manager.cleanup_by_criteria(criteria) == 1
        assert resource_manager.get_resource(old) is None
        assert resource_manager.get_resource(fresh) is not None

    @pytest.mark.asyncio
    async def test_cleanup_by_priority(self, resource_manager):
        resource_manager.register(ResourceType.TIMER, lambda: None, priority="low")
        keep = resource_manager.register(ResourceType.TIMER, lambda: None, priority="critical")

        assert await resource_manager.cleanup_by_criteria(CleanupCriteria(priority="low")) == 1
        assert len(resource_manager) == 1
        assert resource_manager.get_resource(keep) is not None

    @pytest.mark.asyncio
    async def test_empty_criteria_matches_everything(self, resource_manager):
        resource_manager.register(ResourceType.TIMER, lambda: None)
        resource_manager.register(ResourceType.LISTENER, lambda: None)

        assert await resource_manager.cleanup_by_criteria(CleanupCriteria()) == 2


@pytest.mark.unit
class TestSweep:
    @pytest.mark.asyncio
    async def test_expired_resource_released_exactly_once(self, resource_manager, clock, events):
        release = MagicMock()
        rid = resource_manager.register(ResourceType.TIMER, release, priority=ResourcePriority.LOW)
        clock.advance_seconds(resource_manager.config.max_age_seconds + 1)

        assert await resource_manager.sweep() == 1
        assert await resource_manager.sweep() == 0

        release.assert_called_once()
        assert resource_manager.get_resource(rid) is None
        assert resource_manager.get_stats().resources_cleaned_up == 1
        completed = of_type(events, CleanupCompleted)
        assert [(e.cleaned, e.trigger) for e in completed] == [(1, "sweep")]

    @pytest.mark.asyncio
    async def test_young_resources_survive(self, resource_manager, clock):
        resource_manager.register(ResourceType.TIMER, lambda: None)
        clock.advance_seconds(resource_manager.config.max_age_seconds - 1)

        assert await resource_manager.sweep() == 0
        assert len(resource_manager) == 1

    @pytest.mark.asyncio
    async def test_idle_inactive_resources_released(self, resource_manager, clock):
        inactive = resource_manager.register(ResourceType.SUBSCRIPTION, lambda: None)
        active = resource_manager.register(ResourceType.SUBSCRIPTION, lambda: None)
        resource_manager.deactivate(inactive)
        clock.advance_seconds(resource_manager.config.inactive_after_seconds + 1)

        assert await resource_manager.sweep() == 1
        assert resource_manager.get_resource(inactive) is None
        assert resource_manager.get_resource(active) is not None

    @pytest.mark.asyncio
    async def test_touch_keeps_inactive_resource(self, resource_manager, clock):
        rid = resource_manager.register(ResourceType.SUBSCRIPTION, lambda: None)
        resource_manager.deactivate(rid)
        clock.advance_seconds(resource_manager.config.inactive_after_seconds - 10)
        resource_manager.touch(rid)
        clock.advance_seconds(20)

        assert await resource_manager.sweep() == 0

    @pytest.mark.asyncio
    async def test_failing_release_retried_next_sweep(self, resource_manager, clock):
        release = MagicMock(side_effect=[RuntimeError("busy"), None])
        rid = resource_manager.register(ResourceType.CONNECTION, release)
        clock.advance_seconds(resource_manager.config.max_age_seconds + 1)

        assert await resource_manager.sweep() == 0
        assert resource_manager.get_resource(rid) is not None
        assert await resource_manager.sweep() == 1

    @pytest.mark.asyncio
    async def test_over_capacity_triggers_sweep(self, event_bus, clock):
        manager = make_manager(event_bus, clock, max_resources=2)
        stale = manager.register(ResourceType.TIMER, lambda: None)
        manager.deactivate(stale)
        clock.advance_seconds(manager.config.inactive_after_seconds + 1)

        manager.register(ResourceType.TIMER, lambda: None)
        assert manager._capacity_sweep is None
        manager.register(ResourceType.TIMER, lambda: None)

        assert manager._capacity_sweep is not None
        assert await manager._capacity_sweep == 1
        assert manager.get_resource(stale) is None
        assert len(manager) == 2


@pytest.mark.unit
class TestMemory:
    @pytest.mark.asyncio
    async def test_estimates(self, resource_manager):
        resource_manager.register(ResourceType.CONNECTION, lambda: None)
        resource_manager.register(ResourceType.TIMER, lambda: None, memory_usage=10_000)
        resource_manager.register(ResourceType.CACHE_ENTRY, lambda: None, metadata={"key": "a"})

        # cache entries are sized from their serialized metadata, doubled
        assert resource_manager.get_memory_usage() == 1024 + 10_000 + len('{"key":"a"}') * 2

    @pytest.mark.asyncio
    async def test_below_threshold_does_nothing(self, event_bus, clock, events):
        manager = make_manager(event_bus, clock, memory_threshold_bytes=1_000_000)
        manager.register(ResourceType.TIMER, lambda: None, priority="low")

        await manager.check_memory()

        assert len(manager) == 1
        assert of_type(events, MemoryThresholdExceeded) == []

    @pytest.mark.asyncio
    async def test_pressure_releases_low_priority(self, event_bus, clock, events):
        manager = make_manager(event_bus, clock, memory_threshold_bytes=1000)
        low = manager.register(ResourceType.TIMER, lambda: None, priority="low", memory_usage=2000)
        high = manager.register(ResourceType.TIMER, lambda: None, priority="high")

        await manager.check_memory()

        assert manager.get_resource(low) is None
        assert manager.get_resource(high) is not None
        exceeded = of_type(events, MemoryThresholdExceeded)
        assert (exceeded[0].memory_usage, exceeded[0].threshold) == (2256, 1000)
        assert (of_type(events, CleanupCompleted)[-1].trigger) == "memory"


@pytest.mark.unit
class TestStats:
    def test_empty_registry(self, resource_manager):
        stats = resource_manager.get_stats()

        assert stats.total_resources == 0
        assert stats.oldest_resource is None
        assert stats.average_lifetime == 0.0
        assert stats.to_dict()["oldest_resource"] is None

    @pytest.mark.asyncio
    async def test_counts_and_lifetimes(self, resource_manager, clock):
        first = resource_manager.register(ResourceType.TIMER, lambda: None)
        resource_manager.register(ResourceType.TIMER, lambda: None)
        clock.advance_seconds(30)
        resource_manager.register(ResourceType.LISTENER, lambda: None)

        stats = resource_manager.get_stats()

        assert stats.total_resources == 3
        assert stats.resources_by_type == {"timer": 2, "listener": 1}
        assert stats.oldest_resource == resource_manager.get_resource(first).created_at
        assert stats.average_lifetime == pytest.approx(20.0)
        assert stats.memory_usage == 256 * 2 + 128

        payload = stats.to_dict()
        assert payload["oldest_resource"] == stats.oldest_resource.isoformat()
        assert payload["resources_cleaned_up"] == 0


@pytest.mark.unit
class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, event_bus, clock, events):
        manager = ResourceManager(
            ResourceManagerConfig(cleanup_interval_seconds=3600, memory_check_interval_seconds=3600),
            event_bus=event_bus,
            clock=clock,
        )
        release = AsyncMock()
        manager.register(ResourceType.CONNECTION, release, priority="critical")
        manager.register(ResourceType.TIMER, lambda: None)

        manager.start()
        sweep_task, memory_task = manager._sweep_task, manager._memory_task
        assert sweep_task is not None and memory_task is not None

        released = await manager.shutdown()

        assert released == 2
        assert sweep_task.cancelled() and memory_task.cancelled()
        release.assert_awaited_once()
        assert len(manager) == 0
        assert of_type(events, ShutdownCompleted)[0].released == 2

    @pytest.mark.asyncio
    async def test_shutdown_flushes_queued_events(self, resource_manager, events):
        resource_id = resource_manager.register(ResourceType.TIMER, lambda: None)
        resource_manager.deactivate(resource_id)

        await resource_manager.shutdown()

        assert resource_manager._pending == set()
        kinds = [type(e) for e in events]
        assert kinds.index(ResourceRegistered) < kinds.index(ShutdownCompleted)
        assert kinds.index(ResourceDeactivated) < kinds.index(ShutdownCompleted)

    @pytest.mark.asyncio
    async def test_start_respects_disabled_loops(self, resource_manager):
        resource_manager.start()

        assert resource_manager._sweep_task is None
        assert resource_manager._memory_task is None
        assert await resource_manager.shutdown() == 0

    @pytest.mark.asyncio
    async def test_sweep_loop_runs_on_interval(self, event_bus, clock):
        manager = make_manager(event_bus, clock, cleanup_interval_seconds=1)
        manager.sweep = AsyncMock(return_value=0)
        manager.config.enable_auto_cleanup = True

        manager.start()
        await asyncio.sleep(1.05)
        await manager.shutdown()

        assert manager.sweep.await_count >= 1

    def test_config_from_settings(self):
        settings = Settings(
            _env_file=None,
            RESOURCE_MAX_RESOURCES=50,
            RESOURCE_MAX_AGE=600,
            RESOURCE_INACTIVE_AFTER=120,
            RESOURCE_MEMORY_THRESHOLD_MB=2,
            RESOURCE_AUTO_CLEANUP=False,
        )

        config = ResourceManagerConfig.from_settings(settings)

        assert config.max_resources == 50
        assert config.max_age_seconds == 600
        assert config.inactive_after_seconds == 120
        assert config.memory_threshold_bytes == 2 * 1024 * 1024
        assert config.enable_auto_cleanup is False
        assert config.enable_memory_monitoring is True
