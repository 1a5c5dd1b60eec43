"""Performance Schemas — response shape of the operator metrics endpoint."""

from pydantic import BaseModel


class PerformanceMetrics(BaseModel):
    request_count: int
    total_latency_ms: float
    error_count: int
    tokens_generated: int
    cache_hits: int
    cache_misses: int
    last_reset: str
    average_latency_ms: float
    requests_per_minute: float
    error_rate: float
    cache_hit_rate: float


class CacheStats(BaseModel):
    size: int
    hits: int
    misses: int
    hit_rate: float
    ttl_seconds: float


class PerformanceReport(BaseModel):
    status: str
    grade: str
    metrics: PerformanceMetrics
    cache: CacheStats
    breakers: dict[str, dict]
    recommendations: list[str]
