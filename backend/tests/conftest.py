"""Root conftest — shared test configuration and resilience fixtures.

Invariants:
    - Fake API key and auth token map set before any settings are loaded
    - Every test gets isolated cache, breaker and monitor instances
    - Retry sleeps are recorded, never awaited for real
"""

import os

import pytest

# Ensure tests don't accidentally use real API keys
os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-test-fake-key")
os.environ.setdefault("AUTH_TOKENS", '{"test-token": "user-1"}')
os.environ.setdefault("LOG_FORMAT", "text")

from chatrelay.infrastructure.circuit_breaker import CircuitBreaker  # noqa: E402
from chatrelay.infrastructure.performance_monitor import PerformanceMonitor  # noqa: E402
from chatrelay.infrastructure.resilience import ResilienceLayer  # noqa: E402
from chatrelay.infrastructure.response_cache import ResponseCache  # noqa: E402
from chatrelay.infrastructure.retry_policy import RetryPolicy  # noqa: E402


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)
    return _sleep


@pytest.fixture
def make_resilience(clock, fake_sleep):
    """Build a ResilienceLayer around a client with test-friendly policies."""

    def _make(client, **overrides):
        return ResilienceLayer(
            client,
            cache=overrides.pop("cache", ResponseCache(300, clock=clock)),
            breaker=overrides.pop("breaker", CircuitBreaker(
                "model", failure_threshold=3, reset_timeout=60, clock=clock,
            )),
            retry=overrides.pop("retry", RetryPolicy(
                max_retries=3, base_delay_ms=1000, jitter=0, sleep=fake_sleep,
            )),
            monitor=overrides.pop("monitor", PerformanceMonitor(clock=clock)),
            **overrides,
        )

    return _make
