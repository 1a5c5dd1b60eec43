"""Performance Monitor — process-wide counters for upstream model calls.

Invariants:
    - Counters only grow until reset() (operator action)
    - Every mutation and every snapshot happens under one lock
    - A failed call is recorded as a request (latency, 0 tokens) plus an error,
      so error_rate = errors / requests

Design Decisions:
    - Derived figures (average latency, rate per minute, hit rate) computed on
      read, never stored
"""

import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone


class PerformanceMonitor:
    """Aggregates latency, error, token and cache metrics."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._zero()

    def _zero(self) -> None:
        self.request_count = 0
        self.total_latency_ms = 0.0
        self.error_count = 0
        self.tokens_generated = 0
        self.cache_hits = 0
        self.cache_misses = 0
        self._reset_at = self._clock()
        self.last_reset = datetime.now(timezone.utc)

    def record_request(self, latency_ms: float, tokens: int = 0) -> None:
        with self._lock:
            self.request_count += 1
            self.total_latency_ms += latency_ms
            self.tokens_generated += tokens

    def record_error(self) -> None:
        with self._lock:
            self.error_count += 1

    def record_cache_hit(self) -> None:
        with self._lock:
            self.cache_hits += 1

    def record_cache_miss(self) -> None:
        with self._lock:
            self.cache_misses += 1

    def reset(self) -> None:
        with self._lock:
            self._zero()

    def snapshot(self) -> dict:
        with self._lock:
            minutes = (self._clock() - self._reset_at) / 60
            lookups = self.cache_hits + self.cache_misses
            requests = self.request_count
            return {
                "request_count": requests,
                "total_latency_ms": self.total_latency_ms,
                "error_count": self.error_count,
                "tokens_generated": self.tokens_generated,
                "cache_hits": self.cache_hits,
                "cache_misses": self.cache_misses,
                "last_reset": self.last_reset.isoformat(),
                "average_latency_ms": self.total_latency_ms / requests if requests else 0.0,
                "requests_per_minute": requests / minutes if minutes > 0 else 0.0,
                "error_rate": self.error_count / requests if requests else 0.0,
                "cache_hit_rate": self.cache_hits / lookups if lookups else 0.0,
            }
