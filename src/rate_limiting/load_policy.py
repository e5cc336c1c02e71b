#!/usr/bin/env python3
"""
Adaptive Load Policies

A load policy turns a configured quota into the quota actually enforced for
one check. The limiter only depends on the ``LoadPolicy`` protocol, so the
heuristic can be replaced without touching the sliding window.

STAGE-3.2: Adaptive throttling

The default ``SystemLoadPolicy`` is deliberately coarse: it samples process
memory share, CPU and Redis ping latency, and if any exceeds its threshold the
quota for every caller is multiplied by ``factor`` (0.5 by default).

Author: System Architect
Date: 2025-12-14
"""

import dataclasses
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import psutil

from src.core.config.constants import Stage
from src.core.config.settings import Settings
from src.core.logging.logger import get_logger, log_stage
from src.infrastructure.cache.redis_client import RedisClient

if TYPE_CHECKING:
    from src.rate_limiting.rate_limiter import RateLimitConfig

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoadSample:
    cpu: float = 0.0
    memory: float = 0.0
    redis_latency_ms: float = 0.0


@dataclass(frozen=True)
class LoadThresholds:
    cpu: float = 80.0
    memory: float = 85.0
    redis_latency_ms: float = 100.0

    def exceeded_by(self, sample: LoadSample) -> bool:
        return (
            sample.cpu > self.cpu
            or sample.memory > self.memory
            or sample.redis_latency_ms > self.redis_latency_ms
        )


@runtime_checkable
class LoadPolicy(Protocol):
    """Maps a base quota to the quota enforced for one check."""

    async def adjust(self, config: "RateLimitConfig") -> "RateLimitConfig":
        ...


class StaticLoadPolicy:
    """Always enforces the configured quota."""

    async def adjust(self, config: "RateLimitConfig") -> "RateLimitConfig":
        return config


class SystemLoadPolicy:
    """
    Halve quotas when the process or Redis looks overloaded.

    Usage:
        policy = SystemLoadPolicy(redis_client, LoadThresholds(memory=75))
        effective = await policy.adjust(DEFAULT_CONFIGS["search"])
    """

    def __init__(
        self,
        redis_client: RedisClient | None = None,
        thresholds: LoadThresholds | None = None,
        factor: float = 0.5,
        metrics=None,
    ):
        self._redis = redis_client
        self._thresholds = thresholds or LoadThresholds()
        self._factor = factor
        self._metrics = metrics
        self._process = psutil.Process()

    @classmethod
    def from_settings(cls, settings: Settings, redis_client: RedisClient | None = None, metrics=None):
        rl = settings.rate_limit
        return cls(
            redis_client,
            LoadThresholds(
                cpu=rl.RATE_LIMIT_CPU_THRESHOLD,
                memory=rl.RATE_LIMIT_MEMORY_THRESHOLD,
                redis_latency_ms=rl.RATE_LIMIT_LATENCY_THRESHOLD_MS,
            ),
            factor=rl.RATE_LIMIT_LOAD_FACTOR,
            metrics=metrics,
        )

    async def sample(self) -> LoadSample:
        """
        Take one load sample.

        Returns an all-zero sample when sampling fails, which never throttles.
        """
        try:
            latency = await self._redis.measure_latency() if self._redis is not None else 0.0
            return LoadSample(
                cpu=psutil.cpu_percent(interval=None),
                memory=self._process.memory_percent(),
                redis_latency_ms=latency,
            )
        except Exception as e:
            log_stage(
                logger, Stage.RL_ADAPTIVE, "Load sampling failed", level="warning", error=str(e)
            )
            return LoadSample()

    async def adjust(self, config: "RateLimitConfig") -> "RateLimitConfig":
        sample = await self.sample()
        if not self._thresholds.exceeded_by(sample):
            return config

        adjusted = dataclasses.replace(
            config, max_requests=math.floor(config.max_requests * self._factor)
        )
        if self._metrics:
            self._metrics.record_adaptive_throttle()
        log_stage(
            logger,
            Stage.RL_ADAPTIVE,
            "High system load detected, reducing rate limits",
            level="warning",
            cpu=round(sample.cpu, 1),
            memory=round(sample.memory, 1),
            redis_latency_ms=round(sample.redis_latency_ms, 2),
            original_limit=config.max_requests,
            adjusted_limit=adjusted.max_requests,
        )
        return adjusted
