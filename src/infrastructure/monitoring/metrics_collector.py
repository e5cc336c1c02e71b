#!/usr/bin/env python3
"""
Metrics Collector with Prometheus Integration

This module provides metrics collection with:
- Cache hit/miss counts per tier
- Skipped cache writes by reason (oversized, telemetry key)
- Rate limit decisions (allowed, rejected, fail-open) and adaptive throttling
- Resource registry size, releases and release failures

Architectural Decision: prometheus-client for industry-standard metrics
- Compatible with Grafana dashboards
- Module-level metric objects registered once per process

Author: Senior Solution Architect
Date: 2025-12-05
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from src.core.config.settings import Settings, get_settings
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

# Cache metrics
CACHE_HITS = Counter(
    'platform_cache_hits_total',
    'Total cache hits',
    ['tier']  # memory, remote, durable
)

CACHE_MISSES = Counter(
    'platform_cache_misses_total',
    'Total cache lookups that missed every tier'
)

CACHE_WRITES_SKIPPED = Counter(
    'platform_cache_writes_skipped_total',
    'Cache writes that were not stored',
    ['reason']  # oversized, telemetry
)

CACHE_TIER_ERRORS = Counter(
    'platform_cache_tier_errors_total',
    'Tier failures absorbed by the cache facade',
    ['tier', 'operation']
)

CACHE_MEMORY_ENTRIES = Gauge(
    'platform_cache_memory_entries',
    'Entries held in the memory tier'
)

# Rate limiting metrics
RATE_LIMIT_DECISIONS = Counter(
    'platform_rate_limit_decisions_total',
    'Rate limit admission decisions',
    ['config', 'decision']  # allowed, rejected, fail_open
)

RATE_LIMIT_CHECK_DURATION = Histogram(
    'platform_rate_limit_check_seconds',
    'Sliding window check duration',
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1)
)

RATE_LIMIT_ADAPTIVE_THROTTLES = Counter(
    'platform_rate_limit_adaptive_throttles_total',
    'Checks whose quota was reduced because of system load'
)

# Resource registry metrics
RESOURCES_ACTIVE = Gauge(
    'platform_resources_registered',
    'Resources currently tracked by the registry'
)

RESOURCES_RELEASED = Counter(
    'platform_resources_released_total',
    'Resources released',
    ['trigger']  # unregister, sweep, criteria, shutdown, memory
)

RESOURCE_RELEASE_FAILURES = Counter(
    'platform_resource_release_failures_total',
    'Release callbacks that raised'
)

# App info
APP_INFO = Info(
    'platform_app',
    'Application information'
)


class MetricsCollector:
    """
    Centralized metrics collector.

    STAGE-M: Metrics collection

    Usage:
        metrics = MetricsCollector(settings)

        metrics.record_cache_hit("memory")
        metrics.record_rate_limit_decision("search", "rejected")

        output = metrics.get_prometheus_metrics()
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

        APP_INFO.info({
            'version': self.settings.app.APP_VERSION,
            'environment': self.settings.app.ENVIRONMENT,
            'app_name': self.settings.app.APP_NAME
        })

        logger.info("Metrics collector initialized", stage="M.0")

    # =========================================================================
    # Cache Metrics
    # =========================================================================

    def record_cache_hit(self, tier: str) -> None:
        CACHE_HITS.labels(tier=tier).inc()

    def record_cache_miss(self) -> None:
        CACHE_MISSES.inc()

    def record_cache_skip(self, reason: str) -> None:
        CACHE_WRITES_SKIPPED.labels(reason=reason).inc()

    def record_tier_error(self, tier: str, operation: str) -> None:
        CACHE_TIER_ERRORS.labels(tier=tier, operation=operation).inc()

    def set_memory_entries(self, count: int) -> None:
        CACHE_MEMORY_ENTRIES.set(count)

    # =========================================================================
    # Rate Limiting Metrics
    # =========================================================================

    def record_rate_limit_decision(self, config: str, decision: str) -> None:
        RATE_LIMIT_DECISIONS.labels(config=config, decision=decision).inc()

    def record_rate_limit_duration(self, duration_seconds: float) -> None:
        RATE_LIMIT_CHECK_DURATION.observe(duration_seconds)

    def record_adaptive_throttle(self) -> None:
        RATE_LIMIT_ADAPTIVE_THROTTLES.inc()

    # =========================================================================
    # Resource Registry Metrics
    # =========================================================================

    def set_resources_active(self, count: int) -> None:
        RESOURCES_ACTIVE.set(count)

    def record_resource_released(self, trigger: str, count: int = 1) -> None:
        if count:
            RESOURCES_RELEASED.labels(trigger=trigger).inc(count)

    def record_release_failure(self) -> None:
        RESOURCE_RELEASE_FAILURES.inc()

    # =========================================================================
    # Export
    # =========================================================================

    def get_prometheus_metrics(self) -> bytes:
        """
        Get Prometheus metrics output.

        Returns:
            bytes: Prometheus text format metrics
        """
        return generate_latest(REGISTRY)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST
