"""Anthropic Client — wraps AsyncAnthropic streaming with error mapping.

Invariants:
    - Every SDK failure is mapped to UpstreamError with a kind
      (core/errors.py); retryability derives from the kind
    - Timeouts are mapped before connection errors (APITimeoutError is an
      APIConnectionError subclass)
    - No retry here — the resilience layer owns retry, cache and circuit policy
    - CancelledError (BaseException) passes through uncaught

Design Decisions:
    - Wrapper over raw client: isolates SDK exception classes from the rest
      of the codebase
    - ValueError raised mid-stream (SDK could not parse the model's tool JSON)
      is treated as a transient server-side fault: a fresh attempt usually
      produces valid output
"""

import logging
from contextlib import asynccontextmanager

import anthropic
from anthropic import (
    APIError,
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError as SDKAuthenticationError,
    PermissionDeniedError,
    RateLimitError,
)

from chatrelay.core.errors import ErrorContext, UpstreamError, UpstreamErrorKind

logger = logging.getLogger(__name__)


class AnthropicModelClient:
    """Streams messages from the Anthropic API, mapping failures to UpstreamError."""

    def __init__(self, api_key: str, timeout_seconds: float = 30):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout_seconds,
            max_retries=0,
        )

    @asynccontextmanager
    async def stream_message(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        tools: list,
        messages: list,
        temperature: float | None = None,
        context: ErrorContext | None = None,
    ):
        """Open a message stream. Errors from setup AND mid-stream are mapped.

        Errors raised inside the caller's `async for` propagate through the
        yield of the asynccontextmanager, so they are mapped here too.
        """
        kwargs = {
            "model": model, "max_tokens": max_tokens, "messages": messages,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = tools
        if temperature is not None:
            kwargs["temperature"] = temperature
        try:
            async with self.client.messages.stream(**kwargs) as stream:
                yield stream
        except UpstreamError:
            raise
        except APIError as e:
            raise map_api_error(e, context) from e
        except ValueError as e:
            raise UpstreamError(
                f"Malformed model output: {e}",
                UpstreamErrorKind.SERVER_ERROR,
                context=context,
            ) from e


def map_api_error(e: APIError, context: ErrorContext | None = None) -> UpstreamError:
    """Map an SDK exception to an UpstreamError kind."""
    if isinstance(e, APITimeoutError):
        return UpstreamError("API timeout", UpstreamErrorKind.TIMEOUT, context=context)
    if isinstance(e, RateLimitError):
        return UpstreamError(
            "Rate limit exceeded", UpstreamErrorKind.RATE_LIMITED,
            retry_after_ms=_extract_retry_after(e), context=context,
        )
    if isinstance(e, (SDKAuthenticationError, PermissionDeniedError)):
        return UpstreamError(str(e), UpstreamErrorKind.AUTH, context=context)
    if isinstance(e, APIConnectionError):
        return UpstreamError(
            f"Connection error: {e}", UpstreamErrorKind.CONNECTION, context=context,
        )
    if isinstance(e, APIStatusError) and e.status_code >= 500:
        return UpstreamError(
            f"Server error {e.status_code}", UpstreamErrorKind.SERVER_ERROR,
            context=context,
        )
    return UpstreamError(str(e), UpstreamErrorKind.CLIENT_ERROR, context=context)


def _extract_retry_after(error: RateLimitError) -> int | None:
    """Extract Retry-After header (returns milliseconds)."""
    response = getattr(error, "response", None)
    if response is None:
        return None
    val = response.headers.get("retry-after")
    if not val:
        return None
    try:
        return int(float(val) * 1000)
    except ValueError:
        logger.debug("Unparseable retry-after header: %r", val)
        return None
