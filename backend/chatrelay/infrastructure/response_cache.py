"""Response Cache — process-wide TTL cache for completed model turns.

Invariants:
    - No entry is ever returned after its TTL: expiry checked lazily on read
    - sweep() removes every expired entry; run_sweeper() calls it periodically
    - At most max_entries live entries; the oldest insertion is evicted first
    - All access goes through one lock (sessions share this instance)

Design Decisions:
    - Explicit component constructed once per process and injected into the
      resilience layer: tests build an isolated instance with a fake clock
    - Hit/miss counters kept here for cache-level stats; the resilience layer
      separately records them in the PerformanceMonitor
"""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    key: str
    value: Any
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


class ResponseCache:
    """TTL cache keyed by request fingerprint."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Any | None:
        """Return the live value for key, or None (expired entries are dropped)."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(
                key, value, self._clock(), ttl if ttl is not None else self.ttl_seconds,
            )
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def sweep(self) -> int:
        """Remove expired entries. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Cache sweep removed %d entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict:
        lookups = self.hits + self.misses
        return {
            "size": len(self),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / lookups if lookups else 0.0,
            "ttl_seconds": self.ttl_seconds,
        }

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Sweep forever at a fixed interval. Cancel the task to stop."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep()
