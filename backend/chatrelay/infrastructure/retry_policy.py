"""Retry Policy — exponential backoff for retryable upstream failures.

Invariants:
    - Only UpstreamError with a retryable kind is retried; everything else
      propagates on first occurrence
    - At most max_retries retries (max_retries + 1 attempts in total)
    - delay = min(max_delay, base * 2^attempt), then ±jitter
    - Rate limits honour Retry-After when the upstream supplies it
    - can_retry() is consulted before each retry: a caller that has already
      streamed output to the client vetoes a replay

Design Decisions:
    - Sleep function injected: tests run the full policy without waiting
    - Policy is stateless between calls: one process-wide instance
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from chatrelay.core.errors import UpstreamError, UpstreamErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Retries an async attempt function on retryable upstream failures."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 30_000,
        jitter: float = 0.25,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.jitter = jitter
        self._sleep = sleep

    def backoff_ms(self, attempt: int) -> int:
        """Exponential backoff with ±jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        if not self.jitter:
            return int(delay)
        return int(delay * random.uniform(1 - self.jitter, 1 + self.jitter))  # nosec B311

    def delay_for(self, error: UpstreamError, attempt: int) -> int:
        if (error.kind == UpstreamErrorKind.RATE_LIMITED
                and error.context.retry_after_ms):
            return min(self.max_delay_ms, error.context.retry_after_ms)
        return self.backoff_ms(attempt)

    async def run(
        self,
        attempt_fn: Callable[[int], Awaitable[T]],
        can_retry: Callable[[], bool] = lambda: True,
    ) -> T:
        """Call attempt_fn(attempt) until it succeeds or retries run out."""
        attempt = 0
        while True:
            try:
                return await attempt_fn(attempt)
            except UpstreamError as e:
                if not e.retryable or attempt >= self.max_retries or not can_retry():
                    raise
                delay = self.delay_for(e, attempt)
                logger.warning(
                    "Retryable upstream failure (%s), retry after %dms (attempt %d)",
                    e.code, delay, attempt + 1,
                    extra={"error_code": e.code, "attempt": attempt + 1},
                )
                await self._sleep(delay / 1000)
                attempt += 1
