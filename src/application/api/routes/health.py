"""
Health Check Routes - Educational Documentation
================================================

WHAT ARE HEALTH CHECKS?
-----------------------
Health checks are endpoints that report the status of your application and
its dependencies (Redis, MongoDB, the cache facade, the resource registry).

KUBERNETES HEALTH PROBES:
--------------------------
1. LIVENESS PROBE (GET /health):
   - Question: "Is the application running?"
   - If fails: the container is restarted
   - Never checks dependencies: a Redis outage must not restart the service

2. READINESS PROBE (GET /health/ready):
   - Question: "Is the application ready to serve traffic?"
   - If fails: the instance is removed from the load balancer
   - Checks Redis and reports the cache and registry alongside

BEST PRACTICES:
---------------
- Return appropriate HTTP status codes (200 = healthy, 503 = not ready)
- Include timestamps for debugging
- Provide detailed info in a separate endpoint (GET /health/detailed)
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from src.application.api.dependencies import HealthCheckerDep

router = APIRouter(prefix="/health", tags=["Health"])


class LivenessResponse(BaseModel):
    status: str
    timestamp: str
    version: str


@router.get("", response_model=LivenessResponse)
async def liveness_probe(health: HealthCheckerDep):
    """
    Liveness probe endpoint.

    Always 200 while the event loop is responsive.
    """
    return await health.liveness_check()


@router.get("/ready")
async def readiness_probe(health: HealthCheckerDep):
    """
    Readiness probe endpoint.

    HTTP Status Codes:
        200: Redis reachable
        503: Redis unavailable (the full report is in ``detail``)
    """
    result = await health.readiness_check()
    if result["status"] != "ready":
        raise HTTPException(status_code=503, detail=result)
    return result


@router.get("/detailed")
async def detailed_health(health: HealthCheckerDep):
    """
    Detailed health report for debugging and dashboards.

    Always 200; the aggregated status is in the body.
    """
    return await health.detailed_health_report()
