"""
Monitoring API Models
=====================

Request and response models for the monitoring endpoints. Responses are
validated on the way out, so a change in a service's stats shape shows up as
a failing test instead of a silently different payload.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.core.config.constants import ResourcePriority, ResourceType

# ============================================================================
# RESOURCE REGISTRY
# ============================================================================


class ResourceStatsResponse(BaseModel):
    """Snapshot of the resource registry."""

    total_resources: int = Field(..., ge=0)
    resources_by_type: dict[str, int] = Field(default_factory=dict)
    memory_usage: int = Field(..., ge=0, description="Declared or estimated bytes")
    oldest_resource: datetime | None = None
    resources_cleaned_up: int = Field(..., ge=0)
    average_lifetime: float = Field(..., ge=0, description="Mean age of live resources (seconds)")
    cleanup_errors: int = Field(..., ge=0)


class CleanupRequest(BaseModel):
    """
    Criteria for a manual cleanup. Unset fields match every resource; an
    empty body releases everything.
    """

    type: ResourceType | None = None
    older_than: datetime | None = None
    inactive: bool | None = None
    priority: ResourcePriority | None = None


class CleanupResponse(BaseModel):
    success: bool = True
    cleaned: int = Field(..., ge=0)


# ============================================================================
# CACHE
# ============================================================================


class CacheStatsResponse(BaseModel):
    memory: dict[str, Any]
    performance: dict[str, Any]
    features: dict[str, bool]


class CacheDeleteResponse(BaseModel):
    success: bool = True
    key: str


# ============================================================================
# RATE LIMITING
# ============================================================================


class RateLimitStatusResponse(BaseModel):
    config: str
    key: str
    limit: int
    window_ms: int
    total_hits_in_window: int
    remaining_points: int
    ms_before_next: float
    is_first_in_window: bool


class RateLimitResetRequest(BaseModel):
    key: str = Field(..., min_length=1, description="Full rate limit key, e.g. ratelimit:u1:/search")


class RateLimitResetResponse(BaseModel):
    success: bool
    key: str
