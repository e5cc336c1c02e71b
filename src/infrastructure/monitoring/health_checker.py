#!/usr/bin/env python3
"""
Health Checker Module

This module provides health checks for the service's dependencies:
- Redis connectivity (remote cache tier and rate limiter backend)
- Cache facade status
- Durable store reachability
- Resource registry size

Author: Senior Solution Architect
Date: 2025-12-05
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from src.core.config.settings import Settings
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthChecker:
    """
    Health checker for all system components.

    STAGE-H: Health check orchestration

    Usage:
        checker = HealthChecker(settings, redis_client, storage, resources)

        # Liveness / readiness probes
        await checker.liveness_check()
        ready = await checker.readiness_check()

        # Detailed health report
        report = await checker.detailed_health_report()
    """

    def __init__(self, settings: Settings, redis_client=None, storage=None, resources=None, durable=None):
        self.settings = settings
        self._redis = redis_client
        self._storage = storage
        self._resources = resources
        self._durable = durable

    async def _check_redis(self) -> bool:
        """Check Redis connectivity."""
        if not self._redis:
            return False
        try:
            return await asyncio.wait_for(self._redis.ping(), timeout=2.0)
        except (asyncio.TimeoutError, OSError):
            return False

    def _resource_summary(self) -> dict[str, Any]:
        if self._resources is None:
            return {"status": "not_configured"}
        total = len(self._resources)
        warning = self.settings.resources.RESOURCE_WARNING_COUNT
        return {
            "status": HealthStatus.DEGRADED.value if total > warning else HealthStatus.HEALTHY.value,
            "total_resources": total,
            "warning_threshold": warning,
        }

    async def liveness_check(self) -> dict[str, Any]:
        """
        Liveness probe.

        Returns basic status; never touches dependencies.
        """
        return {
            "status": "alive",
            "timestamp": _timestamp(),
            "version": self.settings.app.APP_VERSION,
        }

    async def readiness_check(self) -> dict[str, Any]:
        """
        Readiness probe.

        STAGE-H.1: Readiness based on Redis; cache and registry are reported
        alongside.
        """
        redis_ok = await self._check_redis()
        result: dict[str, Any] = {
            "status": "ready" if redis_ok else "not_ready",
            "timestamp": _timestamp(),
            "version": self.settings.app.APP_VERSION,
            "components": {
                "redis": HealthStatus.HEALTHY.value if redis_ok else HealthStatus.UNHEALTHY.value,
                "resources": self._resource_summary(),
            },
        }
        if self._storage is not None:
            result["components"]["cache"] = await self._storage.health_check()
        if not redis_ok:
            result["reason"] = "Redis not available"
        return result

    async def detailed_health_report(self) -> dict[str, Any]:
        """
        Detailed health report for all components.

        STAGE-H.2: Detailed health report
        """
        report: dict[str, Any] = {
            "status": HealthStatus.HEALTHY.value,
            "timestamp": _timestamp(),
            "version": self.settings.app.APP_VERSION,
            "environment": self.settings.app.ENVIRONMENT,
            "components": {},
        }
        issues = []

        try:
            redis_health = (
                await self._redis.health_check() if self._redis else {"status": "not_configured"}
            )
        except Exception as e:
            redis_health = {"status": "error", "error": str(e)}
        report["components"]["redis"] = redis_health
        if redis_health.get("status") != "healthy":
            issues.append("redis")

        if self._storage is not None:
            cache_health = await self._storage.health_check()
            report["components"]["cache"] = cache_health
            if cache_health.get("status") != "healthy":
                issues.append("cache")

        if self._durable is not None:
            durable_ok = await self._durable.ping()
            report["components"]["durable_store"] = {
                "status": HealthStatus.HEALTHY.value if durable_ok else HealthStatus.UNHEALTHY.value
            }
            if not durable_ok:
                issues.append("durable_store")

        resources = self._resource_summary()
        report["components"]["resources"] = resources
        if resources.get("status") == HealthStatus.DEGRADED.value:
            issues.append("resources")

        if not issues:
            report["status"] = HealthStatus.HEALTHY.value
        elif len(issues) < 2:
            report["status"] = HealthStatus.DEGRADED.value
            report["degraded_components"] = issues
        else:
            report["status"] = HealthStatus.UNHEALTHY.value
            report["failed_components"] = issues

        if issues:
            logger.warning("Health check found issues", stage="H.2", issues=issues)
        return report
