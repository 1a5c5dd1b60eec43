"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - Every frame type, artifact kind and state is an Enum — no raw string matching
    - TEXT_FRAME_TYPES and STRUCTURED_FRAME_TYPES partition FrameType exactly
    - CONTENT_FRAME_TYPES are the only frames that grow an artifact's content

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (frames are JSON)
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

ConversationId = NewType("ConversationId", str)
DocumentId = NewType("DocumentId", str)
ToolCallId = NewType("ToolCallId", str)
UserId = NewType("UserId", str)


# ─── Frames ──────────────────────────────────────────────────────

class FrameType(str, Enum):
    """Every frame type the wire protocol knows."""
    TEXT_DELTA = "text-delta"
    CODE_DELTA = "code-delta"
    SHEET_DELTA = "sheet-delta"
    IMAGE_DELTA = "image-delta"
    TOOL_START = "tool-start"
    TOOL_CALL = "tool-call"
    TOOL_RESULT = "tool-result"
    TOOL_COMPLETE = "tool-complete"
    TOOL_ERROR = "tool-error"
    CLEAR = "clear"
    FINISH = "finish"
    TITLE = "title"
    ID = "id"
    KIND = "kind"
    MODEL_ROUTING = "model-routing"
    SUGGESTION = "suggestion"
    ERROR = "error"


CONTENT_FRAME_TYPES = frozenset({
    FrameType.TEXT_DELTA,
    FrameType.CODE_DELTA,
    FrameType.SHEET_DELTA,
    FrameType.IMAGE_DELTA,
})

TEXT_FRAME_TYPES = CONTENT_FRAME_TYPES | frozenset({
    FrameType.CLEAR,
    FrameType.FINISH,
    FrameType.TITLE,
    FrameType.ID,
    FrameType.KIND,
})

STRUCTURED_FRAME_TYPES = frozenset(FrameType) - TEXT_FRAME_TYPES

TOOL_FRAME_TYPES = frozenset({
    FrameType.TOOL_START,
    FrameType.TOOL_CALL,
    FrameType.TOOL_RESULT,
    FrameType.TOOL_COMPLETE,
    FrameType.TOOL_ERROR,
})

LIFECYCLE_FRAME_TYPES = frozenset({
    FrameType.ID,
    FrameType.TITLE,
    FrameType.KIND,
    FrameType.CLEAR,
    FrameType.FINISH,
    FrameType.MODEL_ROUTING,
    FrameType.SUGGESTION,
})


# ─── Artifacts ───────────────────────────────────────────────────

class ArtifactKind(str, Enum):
    """Document kinds a tool can create."""
    TEXT = "text"
    CODE = "code"
    SHEET = "sheet"
    IMAGE = "image"


class ArtifactStatus(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"


class Visibility(str, Enum):
    """Chat visibility — part of the cache fingerprint."""
    PRIVATE = "private"
    PUBLIC = "public"


# ─── Resilience / Tools ──────────────────────────────────────────

class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class ToolInvocationState(str, Enum):
    """Per-invocation lifecycle: requested → executing → completed | failed."""
    REQUESTED = "requested"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class ToolExecutionState(str, Enum):
    """Multiplexer-level view of whether a tool is writing right now."""
    IDLE = "idle"
    EXECUTING = "executing"
    STREAMING = "streaming"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, resolved by the auth collaborator."""
    user_id: UserId
    is_guest: bool = False
