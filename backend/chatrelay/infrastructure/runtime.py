"""Runtime — process-wide components shared by every chat session.

Invariants:
    - Exactly one cache, breaker registry, monitor and resilience layer per
      process; every session receives the same instances
    - Multiplexers are NOT here: each session owns its own
    - The cache sweeper task runs between start() and stop()

Design Decisions:
    - Singleton initialized on startup by the FastAPI lifespan, exposed through
      the get_runtime() dependency (no global import side effects)
    - Model client injectable: tests pass a mock, production builds
      AnthropicModelClient from settings
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field

import httpx

from chatrelay.config import Settings
from chatrelay.core.model_routing import RoutingConfig
from chatrelay.core.repository_protocols import ConversationStore, DocumentStore
from chatrelay.infrastructure.anthropic_client import AnthropicModelClient
from chatrelay.infrastructure.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from chatrelay.infrastructure.document_store import (
    InMemoryConversationStore, InMemoryDocumentStore,
)
from chatrelay.infrastructure.performance_monitor import PerformanceMonitor
from chatrelay.infrastructure.resilience import ResilienceLayer
from chatrelay.infrastructure.response_cache import ResponseCache
from chatrelay.infrastructure.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

MODEL_BREAKER = "model"
WEATHER_BREAKER = "weather"


@dataclass
class Runtime:
    settings: Settings
    cache: ResponseCache
    breakers: CircuitBreakerRegistry
    monitor: PerformanceMonitor
    resilience: ResilienceLayer
    documents: DocumentStore
    conversations: ConversationStore
    http: httpx.AsyncClient
    routing: RoutingConfig
    _sweeper: asyncio.Task | None = field(default=None, repr=False)

    @property
    def model_breaker(self) -> CircuitBreaker:
        return self.breakers.get(MODEL_BREAKER)

    @property
    def weather_breaker(self) -> CircuitBreaker:
        return self.breakers.get(WEATHER_BREAKER)

    async def start(self) -> None:
        if self._sweeper is None:
            self._sweeper = asyncio.create_task(
                self.cache.run_sweeper(self.settings.cache_sweep_interval_seconds),
            )

    async def stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        await self.http.aclose()


def build_runtime(settings: Settings, client=None) -> Runtime:
    """Wire every shared component from settings."""
    if client is None:
        client = AnthropicModelClient(
            settings.anthropic_api_key, settings.anthropic_timeout_seconds,
        )
    cache = ResponseCache(settings.cache_ttl_seconds, settings.cache_max_entries)
    breakers = CircuitBreakerRegistry(
        settings.breaker_failure_threshold, settings.breaker_reset_timeout_seconds,
    )
    monitor = PerformanceMonitor()
    retry = RetryPolicy(
        settings.retry_max_retries, settings.retry_base_delay_ms,
        settings.retry_max_delay_ms, settings.retry_jitter,
    )
    resilience = ResilienceLayer(
        client, cache, breakers.get(MODEL_BREAKER), retry, monitor,
        call_timeout_s=settings.anthropic_timeout_seconds,
        cache_tool_requests=settings.cache_tool_requests,
    )
    return Runtime(
        settings=settings,
        cache=cache,
        breakers=breakers,
        monitor=monitor,
        resilience=resilience,
        documents=InMemoryDocumentStore(),
        conversations=InMemoryConversationStore(),
        http=httpx.AsyncClient(timeout=settings.weather_timeout_seconds),
        routing=RoutingConfig(
            lite_enabled=settings.routing_lite_enabled,
            lite_percentage=settings.routing_lite_percentage,
        ),
    )


# Singleton (initialized on startup)
runtime: Runtime | None = None


def init_runtime(settings: Settings, client=None) -> Runtime:
    global runtime
    runtime = build_runtime(settings, client)
    logger.info("Runtime initialized")
    return runtime


def get_runtime() -> Runtime:
    """FastAPI dependency for the shared runtime."""
    if not runtime:
        raise RuntimeError("Runtime not initialized")
    return runtime
