"""Stream Multiplexer — the one writer every frame of a chat session goes through.

Invariants:
    - One instance per session, passed by reference to the model loop AND to
      every tool; there is no second writer for tool sub-streams
    - Frames leave frames() in exactly the order they were written
    - Each frame is encoded once, at write time (encode errors surface to the
      writer, not the consumer)
    - close() emits the [DONE] sentinel once; writes after close are dropped
      with a warning

Design Decisions:
    - asyncio.Queue between writers and the HTTP body: writes never block the
      producer, the response generator drains at transport speed
    - Explicit write methods per frame family instead of probing the sink for
      optional capabilities
    - Tool execution state + event log kept for debugging and tests
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from chatrelay.core.domain_types import (
    CONTENT_FRAME_TYPES, LIFECYCLE_FRAME_TYPES, TOOL_FRAME_TYPES,
    FrameType, ToolExecutionState,
)
from chatrelay.core.errors import FrameEncodeError, RelayError, unexpected_error_payload
from chatrelay.core.frame_codec import Frame, encode, encode_sentinel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoggedEvent:
    frame: Frame
    timestamp: float = field(default_factory=time.time)


@dataclass
class StreamStats:
    started_at: float = field(default_factory=time.perf_counter)
    first_frame_at: float | None = None
    frame_count: int = 0
    content_chunks: int = 0
    content_chars: int = 0

    @property
    def time_to_first_frame_ms(self) -> float | None:
        if self.first_frame_at is None:
            return None
        return (self.first_frame_at - self.started_at) * 1000


class StreamMultiplexer:
    """Ordered, shared frame sink for one chat session."""

    def __init__(self, session_id: str | None = None):
        self.session_id = session_id
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self.events: list[LoggedEvent] = []
        self.stats = StreamStats()
        self.tool_state = ToolExecutionState.IDLE
        self.current_tool_id: str | None = None
        self.closed = False

    # ─── Writers ────────────────────────────────────────────────

    def write_text_delta(self, content: str) -> None:
        self.write_content_delta(FrameType.TEXT_DELTA, content)

    def write_content_delta(self, frame_type: FrameType, content: str) -> None:
        """Text or kind-specific delta (code-delta, sheet-delta, image-delta)."""
        if frame_type not in CONTENT_FRAME_TYPES:
            raise FrameEncodeError(f"'{frame_type.value}' is not a content frame")
        if not content:
            return
        if self.tool_state == ToolExecutionState.EXECUTING:
            self.tool_state = ToolExecutionState.STREAMING
        if self._emit(Frame(frame_type, content)):
            self.stats.content_chunks += 1
            self.stats.content_chars += len(content)

    def write_tool_event(self, frame_type: FrameType, data: dict) -> None:
        """tool-start / tool-call / tool-result / tool-complete / tool-error."""
        if frame_type not in TOOL_FRAME_TYPES:
            raise FrameEncodeError(f"'{frame_type.value}' is not a tool frame")
        if frame_type == FrameType.TOOL_START:
            self.tool_state = ToolExecutionState.EXECUTING
            self.current_tool_id = data.get("id")
        elif frame_type in (FrameType.TOOL_COMPLETE, FrameType.TOOL_ERROR):
            self.tool_state = ToolExecutionState.IDLE
            self.current_tool_id = None
        self._emit(Frame(frame_type, data))

    def write_lifecycle(self, frame_type: FrameType, data: Any = "") -> None:
        """id / title / kind / clear / finish / model-routing / suggestion."""
        if frame_type not in LIFECYCLE_FRAME_TYPES:
            raise FrameEncodeError(f"'{frame_type.value}' is not a lifecycle frame")
        self._emit(Frame(frame_type, data))

    def write_error(self, error: RelayError | None = None) -> None:
        """Terminal error frame. None means an unexpected (non-relay) failure."""
        payload = error.to_frame_payload() if error else unexpected_error_payload()
        self._emit(Frame(FrameType.ERROR, payload))

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(encode_sentinel())
        self._queue.put_nowait(None)
        logger.info(
            "Stream closed: %d frames, %d content chunks, %d chars",
            self.stats.frame_count, self.stats.content_chunks,
            self.stats.content_chars,
            extra={
                "session_id": self.session_id,
                "latency_ms": self.stats.time_to_first_frame_ms,
            },
        )

    # ─── Reader ─────────────────────────────────────────────────

    async def frames(self) -> AsyncIterator[bytes]:
        """Encoded lines in write order, ending after the sentinel."""
        while True:
            line = await self._queue.get()
            if line is None:
                return
            yield line

    # ─── Internal ───────────────────────────────────────────────

    def _emit(self, frame: Frame) -> bool:
        if self.closed:
            logger.warning("Dropped '%s' frame written after close",
                frame.type.value,
                extra={"session_id": self.session_id, "frame_type": frame.type.value})
            return False
        line = encode(frame)
        if self.stats.first_frame_at is None:
            self.stats.first_frame_at = time.perf_counter()
        self.stats.frame_count += 1
        self.events.append(LoggedEvent(frame))
        self._queue.put_nowait(line)
        return True

    def frames_of_type(self, frame_type: FrameType) -> list[Frame]:
        return [e.frame for e in self.events if e.frame.type == frame_type]
