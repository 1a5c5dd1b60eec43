"""Performance — operator view of upstream metrics, cache and breakers.

Invariants:
    - GET is read-only: no counter, cache or breaker changes
    - POST /reset zeroes the metrics only (cache and breakers untouched)
"""

import logging

from fastapi import APIRouter, Depends

from chatrelay.core import performance_grade
from chatrelay.infrastructure.runtime import Runtime, get_runtime
from chatrelay.schemas.performance import PerformanceReport

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/performance", tags=["performance"])


@router.get("", response_model=PerformanceReport)
async def get_performance(runtime: Runtime = Depends(get_runtime)):
    metrics = runtime.monitor.snapshot()
    insights = performance_grade.insights(metrics)
    return {
        "status": insights["status"],
        "grade": insights["performance_grade"],
        "metrics": metrics,
        "cache": runtime.cache.stats(),
        "breakers": runtime.breakers.snapshot(),
        "recommendations": insights["recommendations"],
    }


@router.post("/reset")
async def reset_performance(runtime: Runtime = Depends(get_runtime)):
    runtime.monitor.reset()
    logger.info("Performance metrics reset by operator")
    return {"status": "reset", "last_reset": runtime.monitor.snapshot()["last_reset"]}
