"""Error Hierarchy — typed, categorized exceptions for every relay failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Contained errors (decode, tool) never end a stream; surfaced errors
      (upstream, auth, degraded) end it with a terminal error frame
    - to_response() produces REST envelope; to_frame_payload() produces the
      payload of the terminal `error` frame
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with RelayError base: FastAPI global handler catches all
    - UpstreamError carries its kind; retryability derives from the kind so the
      retry policy never inspects SDK exception classes
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    PROTOCOL = "protocol"
    VALIDATION = "validation"
    TOOL = "tool"
    EXTERNAL_API = "external_api"
    AUTHENTICATION = "authentication"
    DEGRADED = "degraded"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str | None = None
    tool_name: str | None = None
    tool_call_id: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class RelayError(Exception):
    """Base exception for all relay errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "session_id": self.context.session_id,
                    "tool_name": self.context.tool_name,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }

    def to_frame_payload(self) -> dict:
        """Convert to the payload of a terminal `error` frame."""
        return {
            "code": self.code,
            "message": self.context.user_message or self.message,
            "severity": self.severity.value,
            "recoverable": self.severity in (
                ErrorSeverity.INFO, ErrorSeverity.WARNING,
            ),
        }


# ─── Protocol Errors (contained) ────────────────────────────────

class FrameDecodeError(RelayError):
    """Wire line could not be turned into a frame. The frame is dropped."""
    def __init__(self, message: str, raw: str | None = None, context: ErrorContext | None = None):
        super().__init__(
            message, "decode_error", ErrorCategory.PROTOCOL,
            ErrorSeverity.WARNING, context, 400,
        )
        self.raw = raw


class FrameEncodeError(RelayError):
    """Producer tried to emit an invalid frame (e.g. a pre-encoded JSON string)."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "encode_error", ErrorCategory.PROTOCOL,
            ErrorSeverity.ERROR, context, 500,
        )


# ─── Tool Errors (contained, surfaced as tool-error frames) ─────

class UnknownToolError(RelayError):
    """Model requested a tool that is not registered."""
    def __init__(self, tool_name: str, context: ErrorContext | None = None):
        super().__init__(
            f"Tool '{tool_name}' does not exist.",
            "unknown_tool", ErrorCategory.TOOL,
            ErrorSeverity.ERROR, context, 400,
        )


class InvalidToolArgumentsError(RelayError):
    """Tool arguments failed schema validation. The tool body never runs."""
    def __init__(
        self, message: str, details: list[dict] | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "invalid_arguments", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.details = details or []


class ToolExecutionError(RelayError):
    """Tool body raised or timed out."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "tool_execution_error", ErrorCategory.TOOL,
            ErrorSeverity.ERROR, context, 500,
        )


# ─── Upstream Errors (surfaced) ─────────────────────────────────

class UpstreamErrorKind(str, Enum):
    """Failure classes of an upstream model call."""
    TIMEOUT = "upstream_timeout"
    SERVER_ERROR = "upstream_5xx"
    CONNECTION = "connection_error"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "upstream_4xx"
    AUTH = "auth_error"


_RETRYABLE_KINDS = frozenset({
    UpstreamErrorKind.TIMEOUT,
    UpstreamErrorKind.SERVER_ERROR,
    UpstreamErrorKind.CONNECTION,
    UpstreamErrorKind.RATE_LIMITED,
})

_UPSTREAM_HTTP_STATUS = {
    UpstreamErrorKind.TIMEOUT: 504,
    UpstreamErrorKind.SERVER_ERROR: 502,
    UpstreamErrorKind.CONNECTION: 502,
    UpstreamErrorKind.RATE_LIMITED: 503,
    UpstreamErrorKind.CLIENT_ERROR: 502,
    UpstreamErrorKind.AUTH: 502,
}


class UpstreamError(RelayError):
    """Upstream model call failed."""
    def __init__(
        self,
        message: str,
        kind: UpstreamErrorKind,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Upstream model error ({kind.value}): {message}",
            kind.value, ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, _UPSTREAM_HTTP_STATUS[kind],
        )
        self.kind = kind

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE_KINDS


class ServiceDegradedError(RelayError):
    """Circuit open for a dependency — call rejected without touching the network."""
    def __init__(self, dependency: str, context: ErrorContext | None = None):
        super().__init__(
            f"Dependency '{dependency}' is temporarily unavailable",
            "service_degraded", ErrorCategory.DEGRADED,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.dependency = dependency


class AuthenticationError(RelayError):
    """Caller is not authenticated. Never retried."""
    def __init__(self, message: str = "Authentication required", context: ErrorContext | None = None):
        super().__init__(
            message, "auth_error", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.ERROR, context, 401,
        )


class UnknownModelError(RelayError):
    """Requested model id is not a configured alias."""
    def __init__(self, model_id: str, context: ErrorContext | None = None):
        super().__init__(
            f"Unknown model '{model_id}'",
            "unknown_model", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.model_id = model_id


def unexpected_error_payload() -> dict:
    """Terminal error payload for non-RelayError failures (no internals leaked)."""
    return {
        "code": "internal_error",
        "message": "An unexpected error occurred",
        "severity": ErrorSeverity.CRITICAL.value,
        "recoverable": False,
    }
