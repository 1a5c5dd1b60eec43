"""Resilience Layer — circuit breaker, cache and retry around every model call.

Invariants:
    - Composition: Breaker → Cache → Retry → upstream (per-call deadline)
    - Open breaker: ServiceDegradedError before the cache is even consulted
    - Cache hit: no upstream call, cached text replayed once through on_text
    - A retry only happens while nothing of the failed attempt reached the
      client (no text delta, no tool-call start); replaying a half-streamed
      answer would duplicate output
    - Only retryable upstream failures count against the breaker; a
      non-retryable failure or a cancellation releases it with no verdict
    - Outcomes are reported with the ticket acquire() returned, so a call
      admitted while closed cannot settle or free a later half-open trial
    - Only complete, tool-free turns are cached; a cancelled or failed call
      never writes to the cache
    - Each upstream attempt is recorded in the PerformanceMonitor

Design Decisions:
    - Cache, breaker, retry and monitor are injected components, constructed
      once per process (runtime.py); tests build isolated instances
    - Per-call deadline via asyncio.timeout: exceeding it becomes a retryable
      upstream_timeout, independent of the overall request
    - Tool-bearing requests bypass the cache unless cache_tool_requests is set
      (deployment choice)
"""

import asyncio
import logging
import time
from dataclasses import replace

from chatrelay.core.errors import ErrorContext, UpstreamError, UpstreamErrorKind
from chatrelay.core.model_types import ModelRequest, ModelTurn, fingerprint
from chatrelay.infrastructure.circuit_breaker import CircuitBreaker
from chatrelay.infrastructure.performance_monitor import PerformanceMonitor
from chatrelay.infrastructure.response_cache import ResponseCache
from chatrelay.infrastructure.retry_policy import RetryPolicy
from chatrelay.infrastructure.turn_stream import (
    TextCallback, ToolCallCallback, stream_turn,
)

logger = logging.getLogger(__name__)


class ResilienceLayer:
    """Single entry point for upstream model calls."""

    def __init__(
        self,
        client,
        cache: ResponseCache,
        breaker: CircuitBreaker,
        retry: RetryPolicy,
        monitor: PerformanceMonitor,
        call_timeout_s: float = 30,
        cache_tool_requests: bool = False,
    ):
        self.client = client
        self.cache = cache
        self.breaker = breaker
        self.retry = retry
        self.monitor = monitor
        self.call_timeout_s = call_timeout_s
        self.cache_tool_requests = cache_tool_requests

    @property
    def is_degraded(self) -> bool:
        return not self.breaker.allows_request()

    def is_cacheable(self, request: ModelRequest) -> bool:
        if not request.cacheable:
            return False
        return self.cache_tool_requests or not request.tools

    async def complete(
        self, request: ModelRequest, context: ErrorContext | None = None,
    ) -> ModelTurn:
        """Non-streaming convenience: the full turn, nothing forwarded."""
        return await self.stream_turn(request, context=context)

    async def stream_turn(
        self,
        request: ModelRequest,
        on_text: TextCallback | None = None,
        on_tool_call: ToolCallCallback | None = None,
        context: ErrorContext | None = None,
    ) -> ModelTurn:
        """Run one model turn under breaker, cache and retry policies."""
        ticket = self.breaker.acquire(context)
        try:
            turn = await self._cached_or_upstream(
                request, on_text, on_tool_call, context,
            )
        except UpstreamError as e:
            if e.retryable:
                self.breaker.record_failure(ticket)
            else:
                self.breaker.release(ticket)
            raise
        except BaseException:
            self.breaker.release(ticket)
            raise
        if turn.from_cache:
            self.breaker.release(ticket)
        else:
            self.breaker.record_success(ticket)
        return turn

    # ─── Cache ──────────────────────────────────────────────────

    async def _cached_or_upstream(self, request, on_text, on_tool_call, context):
        key = fingerprint(request) if self.is_cacheable(request) else None
        if key is None:
            return await self._with_retry(request, on_text, on_tool_call, context)

        cached = self.cache.get(key)
        if cached is not None:
            self.monitor.record_cache_hit()
            logger.info("Cache hit for model %s", request.model,
                extra={"model": request.model})
            if on_text and cached.text:
                on_text(cached.text)
            return replace(cached, from_cache=True)

        self.monitor.record_cache_miss()
        turn = await self._with_retry(request, on_text, on_tool_call, context)
        if not turn.has_tool_calls:
            self.cache.set(key, turn)
        return turn

    # ─── Retry + deadline ───────────────────────────────────────

    async def _with_retry(self, request, on_text, on_tool_call, context):
        emitted = False

        def forward_text(text: str) -> None:
            nonlocal emitted
            emitted = True
            if on_text:
                on_text(text)

        def forward_tool_call(tool_id: str, name: str) -> None:
            nonlocal emitted
            emitted = True
            if on_tool_call:
                on_tool_call(tool_id, name)

        async def attempt(n: int) -> ModelTurn:
            started = time.perf_counter()
            try:
                async with asyncio.timeout(self.call_timeout_s):
                    turn = await stream_turn(
                        self.client, request,
                        forward_text, forward_tool_call, context,
                    )
            except TimeoutError as e:
                self._record_failure(started)
                raise UpstreamError(
                    f"No response within {self.call_timeout_s}s",
                    UpstreamErrorKind.TIMEOUT, context=context,
                ) from e
            except UpstreamError:
                self._record_failure(started)
                raise
            latency_ms = (time.perf_counter() - started) * 1000
            self.monitor.record_request(latency_ms, turn.output_tokens)
            logger.info(
                "Model call completed: %d in / %d out tokens",
                turn.input_tokens, turn.output_tokens,
                extra={
                    "model": request.model, "attempt": n,
                    "latency_ms": round(latency_ms, 1),
                    "input_tokens": turn.input_tokens,
                    "output_tokens": turn.output_tokens,
                },
            )
            return turn

        return await self.retry.run(attempt, can_retry=lambda: not emitted)

    def _record_failure(self, started: float) -> None:
        self.monitor.record_request((time.perf_counter() - started) * 1000, 0)
        self.monitor.record_error()
