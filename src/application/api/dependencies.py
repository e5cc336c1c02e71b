"""
FastAPI Dependency Injection Module
===================================

HOW SERVICES REACH ROUTES
-------------------------
All long-lived services are assembled once in the application lifespan by
``build_container`` and stored on ``app.state.container``. The functions in
this module pull individual services out of that container, and the
``Annotated`` aliases at the bottom let routes declare what they need:

    @router.get("/monitoring/cache")
    async def cache_stats(storage: StorageDep):
        return storage.get_storage_stats()

Tests swap services by building the container themselves (for example over an
in-memory Redis) before the app starts, or by overriding a dependency with
``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Request

from src.application.container import Container
from src.core.config.settings import Settings
from src.infrastructure.cache.hybrid_storage import HybridStorage
from src.infrastructure.monitoring.health_checker import HealthChecker
from src.infrastructure.monitoring.metrics_collector import MetricsCollector
from src.rate_limiting.rate_limiter import SlidingWindowRateLimiter
from src.resources.resource_manager import ResourceManager

# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_container(request: Request) -> Container:
    """
    Retrieve the application container from application state.

    Raises:
        RuntimeError: If the lifespan did not run (container missing)
    """
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError(
            "Application container not initialized in app.state. "
            "This indicates the application lifespan startup didn't complete properly."
        )
    return container


def get_app_settings(container: Annotated[Container, Depends(get_container)]) -> Settings:
    return container.settings


def get_storage(container: Annotated[Container, Depends(get_container)]) -> HybridStorage:
    return container.storage


def get_rate_limiter(
    container: Annotated[Container, Depends(get_container)],
) -> SlidingWindowRateLimiter:
    return container.rate_limiter


def get_resource_manager(container: Annotated[Container, Depends(get_container)]) -> ResourceManager:
    return container.resources


def get_health_checker(container: Annotated[Container, Depends(get_container)]) -> HealthChecker:
    return container.health


def get_metrics(container: Annotated[Container, Depends(get_container)]) -> MetricsCollector:
    return container.metrics


# ============================================================================
# TYPE ALIASES FOR CLEANER ROUTE SIGNATURES
# ============================================================================
# Annotated[Type, Depends(provider)] keeps the real type visible to type
# checkers while telling FastAPI how to resolve the parameter.

ContainerDep = Annotated[Container, Depends(get_container)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
StorageDep = Annotated[HybridStorage, Depends(get_storage)]
RateLimiterDep = Annotated[SlidingWindowRateLimiter, Depends(get_rate_limiter)]
ResourceManagerDep = Annotated[ResourceManager, Depends(get_resource_manager)]
HealthCheckerDep = Annotated[HealthChecker, Depends(get_health_checker)]
MetricsDep = Annotated[MetricsCollector, Depends(get_metrics)]
