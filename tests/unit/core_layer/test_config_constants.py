"""
Unit Tests for Configuration Constants

Tests enums, limits and TTL tables.
"""

import pytest

from src.core.config.constants import (
    CACHE_MAX_VALUE_BYTES,
    COMPRESSION_THRESHOLD_BYTES,
    DEFAULT_TTL,
    MEMORY_TIER_EVICT_BATCH,
    MEMORY_TIER_MAX_ENTRIES,
    MEMORY_TIER_MAX_VALUE_BYTES,
    PRIORITY_TTL,
    RESOURCE_MEMORY_ESTIMATES,
    CachePriority,
    CacheTier,
    ResourcePriority,
    ResourceType,
    Stage,
)


@pytest.mark.unit
class TestStageEnum:
    def test_stage_values_are_unique(self):
        values = [stage.value for stage in Stage]
        assert len(values) == len(set(values))

    def test_stage_is_string_enum(self):
        assert Stage.CACHE_GET == "2.1_CACHE_GET"
        assert isinstance(Stage.RL_CHECK.value, str)


@pytest.mark.unit
class TestCacheConstants:
    """Test cache limits relative to each other."""

    def test_size_limits(self):
        assert MEMORY_TIER_MAX_VALUE_BYTES == 1024
        assert COMPRESSION_THRESHOLD_BYTES == 2 * 1024
        assert CACHE_MAX_VALUE_BYTES == 3 * 1024
        assert MEMORY_TIER_MAX_VALUE_BYTES < COMPRESSION_THRESHOLD_BYTES < CACHE_MAX_VALUE_BYTES

    def test_memory_tier_bounds(self):
        assert MEMORY_TIER_MAX_ENTRIES == 500
        assert 0 < MEMORY_TIER_EVICT_BATCH < MEMORY_TIER_MAX_ENTRIES

    def test_priority_ttl_covers_every_priority(self):
        assert set(PRIORITY_TTL) == set(CachePriority)
        assert PRIORITY_TTL[CachePriority.CRITICAL] == 3600
        assert PRIORITY_TTL[CachePriority.HIGH] == 1800
        assert PRIORITY_TTL[CachePriority.MEDIUM] == 900
        assert PRIORITY_TTL[CachePriority.LOW] == 300
        assert DEFAULT_TTL == 600

    def test_cache_tiers(self):
        assert [tier.value for tier in CacheTier] == ["memory", "remote", "durable"]


@pytest.mark.unit
class TestResourceConstants:
    def test_priority_rank_is_ascending(self):
        ranks = [p.rank for p in (
            ResourcePriority.LOW,
            ResourcePriority.MEDIUM,
            ResourcePriority.HIGH,
            ResourcePriority.CRITICAL,
        )]
        assert ranks == [0, 1, 2, 3]

    def test_priority_parses_from_string(self):
        assert ResourcePriority("low") is ResourcePriority.LOW

    def test_memory_estimates(self):
        assert RESOURCE_MEMORY_ESTIMATES[ResourceType.CONNECTION] == 1024
        assert RESOURCE_MEMORY_ESTIMATES[ResourceType.SUBSCRIPTION] == 512
        assert RESOURCE_MEMORY_ESTIMATES[ResourceType.TIMER] == 256
        assert RESOURCE_MEMORY_ESTIMATES[ResourceType.LISTENER] == 128
        assert RESOURCE_MEMORY_ESTIMATES[ResourceType.DURABLE_HANDLE] == 4096
        # cache entries are sized from their metadata
        assert ResourceType.CACHE_ENTRY not in RESOURCE_MEMORY_ESTIMATES
