"""Tool Context — everything a tool body may touch during one chat session.

Invariants:
    - writer is the session's StreamMultiplexer (the same instance the model
      loop writes through)
    - Model calls made by tools go through the shared ResilienceLayer
"""

from dataclasses import dataclass

import httpx

from chatrelay.core.domain_types import Principal, Visibility
from chatrelay.core.errors import ErrorContext
from chatrelay.core.repository_protocols import DocumentStore
from chatrelay.infrastructure.circuit_breaker import CircuitBreaker
from chatrelay.infrastructure.resilience import ResilienceLayer
from chatrelay.services.stream_multiplexer import StreamMultiplexer


@dataclass
class ToolContext:
    writer: StreamMultiplexer
    resilience: ResilienceLayer
    documents: DocumentStore
    principal: Principal
    artifact_model: str
    http: httpx.AsyncClient | None = None
    weather_breaker: CircuitBreaker | None = None
    weather_api_url: str = "https://api.open-meteo.com/v1/forecast"
    max_tokens: int = 4096
    visibility: Visibility = Visibility.PRIVATE
    session_id: str | None = None

    def error_context(self, tool_name: str) -> ErrorContext:
        return ErrorContext(session_id=self.session_id, tool_name=tool_name)
