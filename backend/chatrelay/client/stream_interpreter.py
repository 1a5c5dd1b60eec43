"""Stream Interpreter — single-consumer state machine over the frame log.

Invariants:
    - A cursor over an append-only log: consume() never reprocesses a frame,
      calling it twice in a row is a no-op the second time
    - Frames are processed strictly in log order
    - Structured payloads arriving as JSON strings are parsed once; a payload
      that fails to parse drops that frame only (counted, logged)
    - Every frame goes through the artifact transition table
    - Every content delta grows the artifact buffer: content == p1 + ... + pn
      since the last clear
    - Content deltas outside a document window (between tool-start / id /
      title / kind and finish / tool-complete / tool-error) are also tracked
      as assistant message text
    - discard() throws away partial state (cancelled request)

Design Decisions:
    - The log accepts decoded Frames, wire dicts or raw lines: producers that
      reach the client through different paths are normalized here, nowhere else
    - Artifact transitions are pure (core/artifact_state.py); this class only
      owns the single reference and the cursor
"""

import logging
from typing import Any

from chatrelay.core.artifact_state import Artifact, accumulate, transition
from chatrelay.core.domain_types import FrameType
from chatrelay.core.errors import FrameDecodeError
from chatrelay.core.frame_codec import Frame, decode, decode_object, is_sentinel, normalize

logger = logging.getLogger(__name__)

_OPENS_ARTIFACT = frozenset({
    FrameType.TOOL_START, FrameType.ID, FrameType.TITLE, FrameType.KIND,
})
_CLOSES_ARTIFACT = frozenset({
    FrameType.FINISH, FrameType.TOOL_COMPLETE, FrameType.TOOL_ERROR,
})


class StreamInterpreter:
    """Rebuilds artifact, message text and side data from an appended frame log."""

    def __init__(self):
        self.log: list[Any] = []
        self.cursor = 0
        self._reset_state()

    def _reset_state(self) -> None:
        self.artifact = Artifact()
        self.message_text = ""
        self.suggestions: list[dict] = []
        self.tool_events: list[Frame] = []
        self.routing: dict | None = None
        self.error: dict | None = None
        self.done = False
        self.dropped = 0
        self._artifact_open = False

    # ─── Log ────────────────────────────────────────────────────

    def append(self, *items: Any) -> None:
        self.log.extend(items)

    def feed(self, *items: Any) -> int:
        self.append(*items)
        return self.consume()

    def consume(self) -> int:
        """Process every log entry past the cursor. Returns how many were read."""
        start = self.cursor
        while self.cursor < len(self.log):
            item = self.log[self.cursor]
            self.cursor += 1
            frame = self._to_frame(item)
            if frame is None:
                continue
            if isinstance(frame, FrameDecodeError):
                self.dropped += 1
                logger.warning("Dropped undecodable frame: %s", frame.message,
                    extra={"error_code": frame.code})
                continue
            self._dispatch(frame)
        return self.cursor - start

    def finish(self) -> None:
        """Transport closed: termination with or without the sentinel."""
        self.done = True

    def discard(self) -> None:
        """Drop partial state and everything not yet consumed."""
        self._reset_state()
        self.cursor = len(self.log)

    # ─── Dispatch ───────────────────────────────────────────────

    def _to_frame(self, item: Any) -> Frame | FrameDecodeError | None:
        if isinstance(item, Frame):
            return normalize(item.type, item.payload)
        if isinstance(item, dict):
            return decode_object(item)
        if isinstance(item, (bytes, str)):
            if is_sentinel(item):
                self.done = True
                return None
            if not item.strip():
                return None
            return decode(item)
        return FrameDecodeError(f"Unsupported log entry: {type(item).__name__}")

    def _dispatch(self, frame: Frame) -> None:
        ft = frame.type
        if ft == FrameType.MODEL_ROUTING:
            self.routing = frame.payload
            return
        if ft == FrameType.ERROR:
            self.error = frame.payload
            return
        if ft == FrameType.SUGGESTION:
            self.suggestions.append(frame.payload)
            return
        if ft == FrameType.TOOL_CALL:
            self.tool_events.append(frame)
            return
        if ft == FrameType.TOOL_RESULT:
            self.tool_events.append(frame)
            return

        if frame.is_content and not self._artifact_open:
            self.message_text += frame.payload

        if ft in _OPENS_ARTIFACT:
            self._artifact_open = True
        elif ft in _CLOSES_ARTIFACT:
            self._artifact_open = False
        if ft in (FrameType.TOOL_START, FrameType.TOOL_COMPLETE, FrameType.TOOL_ERROR):
            self.tool_events.append(frame)
        self.artifact = accumulate(transition(self.artifact, frame), frame)
