"""
Monitoring Routes - Educational Documentation
==============================================

WHAT ARE MONITORING ENDPOINTS?
------------------------------
Operational endpoints for inspecting and nudging the service at runtime:

1. Resource registry: statistics and manual cleanup
2. Cache: facade statistics and per-key invalidation
3. Rate limiting: window status for the caller and key reset
4. Metrics: Prometheus exposition

SECURITY CONSIDERATIONS:
------------------------
The whole router is guarded by the ``general`` rate limit (100 requests per
minute per caller). In production these endpoints should also sit behind
authentication or on an internal port.

PROMETHEUS METRICS FORMAT:
--------------------------
    # HELP platform_cache_hits_total Total cache hits
    # TYPE platform_cache_hits_total counter
    platform_cache_hits_total{tier="memory"} 42.0
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from src.application.api.dependencies import (
    MetricsDep,
    RateLimiterDep,
    ResourceManagerDep,
    StorageDep,
)
from src.application.api.models.monitoring import (
    CacheDeleteResponse,
    CacheStatsResponse,
    CleanupRequest,
    CleanupResponse,
    RateLimitResetRequest,
    RateLimitResetResponse,
    RateLimitStatusResponse,
    ResourceStatsResponse,
)
from src.core.logging.logger import get_logger
from src.rate_limiting.middleware import RateLimit
from src.rate_limiting.rate_limiter import DEFAULT_CONFIGS
from src.resources.resource_manager import CleanupCriteria

logger = get_logger(__name__)

router = APIRouter(
    prefix="/monitoring",
    tags=["Monitoring"],
    dependencies=[Depends(RateLimit("general"))],
)


# ============================================================================
# RESOURCE REGISTRY
# ============================================================================


@router.get("/resources", response_model=ResourceStatsResponse)
async def resource_stats(resources: ResourceManagerDep):
    """Registry statistics: counts by type, tracked memory, cleanup totals."""
    return resources.get_stats().to_dict()


@router.post("/resources/cleanup", response_model=CleanupResponse)
async def cleanup_resources(body: CleanupRequest, resources: ResourceManagerDep):
    """
    Release every resource matching the criteria, lowest priority first.

    An empty body matches everything.
    """
    criteria = CleanupCriteria(
        type=body.type,
        older_than=body.older_than,
        inactive=body.inactive,
        priority=body.priority,
    )
    cleaned = await resources.cleanup_by_criteria(criteria)
    logger.info("Manual resource cleanup", criteria=body.model_dump(exclude_none=True), cleaned=cleaned)
    return CleanupResponse(cleaned=cleaned)


# ============================================================================
# CACHE
# ============================================================================


@router.get("/cache", response_model=CacheStatsResponse)
async def cache_stats(storage: StorageDep):
    return storage.get_storage_stats()


@router.delete("/cache/{key:path}", response_model=CacheDeleteResponse)
async def delete_cache_key(key: str, storage: StorageDep):
    """Invalidate ``key`` in the memory and remote tiers."""
    await storage.delete(key)
    return CacheDeleteResponse(key=key)


# ============================================================================
# RATE LIMITING
# ============================================================================


@router.get("/rate-limit/{config_name}", response_model=RateLimitStatusResponse)
async def rate_limit_status(
    config_name: str,
    request: Request,
    limiter: RateLimiterDep,
    endpoint: str | None = None,
):
    """
    Window status for the calling user on ``endpoint`` without recording a hit.

    ``endpoint`` is the route path the limit is applied to (e.g. ``/search``);
    it defaults to this route's own path.
    """
    config = DEFAULT_CONFIGS.get(config_name)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown rate limit config: {config_name}",
        )

    key = (
        limiter.key_for(limiter.identify(request), endpoint)
        if endpoint
        else limiter.generate_key(request, config)
    )
    info = await limiter.status(key, config)
    if info is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limit store unavailable",
        )

    return RateLimitStatusResponse(
        config=config_name,
        key=key,
        limit=config.max_requests,
        window_ms=config.window_ms,
        total_hits_in_window=info.total_hits_in_window,
        remaining_points=info.remaining_points,
        ms_before_next=info.ms_before_next,
        is_first_in_window=info.is_first_in_window,
    )


@router.delete("/rate-limit", response_model=RateLimitResetResponse)
async def reset_rate_limit(body: RateLimitResetRequest, limiter: RateLimiterDep):
    """Forget every hit recorded under ``key``."""
    reset = await limiter.reset(body.key)
    return RateLimitResetResponse(success=reset, key=body.key)


# ============================================================================
# METRICS
# ============================================================================


@router.get("/metrics")
async def prometheus_metrics(response: Response, metrics: MetricsDep):
    """
    Prometheus text exposition of every registered metric.

    A returned ``Response`` replaces the one the rate limit dependency wrote
    its headers to, so they are copied across.
    """
    return Response(
        content=metrics.get_prometheus_metrics(),
        media_type=metrics.get_content_type(),
        headers=dict(response.headers),
    )
