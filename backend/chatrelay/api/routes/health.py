"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 while the model breaker rejects calls
    - Probes never mutate breaker, cache or metrics state

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from
      load balancer while the upstream model is known to be down
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from chatrelay.infrastructure.runtime import Runtime, get_runtime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "chatrelay-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check(runtime: Runtime = Depends(get_runtime)):
    """Readiness probe — upstream model breaker must admit calls."""
    breaker = runtime.model_breaker.snapshot()
    if runtime.resilience.is_degraded:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "model_degraded",
                "checks": {"model": breaker["state"]},
            },
        )
    return {"status": "ready", "checks": {"model": breaker["state"]}}
