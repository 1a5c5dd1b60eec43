"""Frame Codec — newline-delimited wire frames shared by producer and consumer.

Invariants:
    - encode() serializes a payload as JSON exactly once; a structured frame
      whose payload is already a string is rejected (FrameEncodeError)
    - decode() never raises: malformed input comes back as a FrameDecodeError
      value the caller drops (the stream continues)
    - Structured payloads are normalized on decode: pre-parsed objects pass
      through, JSON strings are parsed once
    - decode(encode(f)) == f for every frame encode() accepts

Design Decisions:
    - Decoder is the single place where double-encoded payloads are absorbed:
      producers on different code paths (main stream vs tool sub-stream) do not
      share one serialization point
    - Legacy prefixed lines accepted for old producers: `1:<text>` text delta,
      `0:<json>` structured frame, `9:<json>` error
    - Text types carry `content`, structured types carry `data` on the wire
"""

import json
from dataclasses import dataclass
from typing import Any

from chatrelay.core.domain_types import (
    CONTENT_FRAME_TYPES, STRUCTURED_FRAME_TYPES, FrameType,
)
from chatrelay.core.errors import FrameDecodeError, FrameEncodeError

SENTINEL = "[DONE]"

_LEGACY_TEXT = "1:"
_LEGACY_DATA = "0:"
_LEGACY_ERROR = "9:"


@dataclass(frozen=True)
class Frame:
    """Atomic unit of the wire protocol."""
    type: FrameType
    payload: Any = ""

    @property
    def is_structured(self) -> bool:
        return self.type in STRUCTURED_FRAME_TYPES

    @property
    def is_content(self) -> bool:
        return self.type in CONTENT_FRAME_TYPES


# -- Encoding ------------------------------------------------------------------

def encode(frame: Frame) -> bytes:
    """Encode one frame as a JSON line. Payload is serialized exactly once."""
    if frame.is_structured:
        if not isinstance(frame.payload, (dict, list)):
            raise FrameEncodeError(
                f"'{frame.type.value}' payload must be an object or array, "
                f"got {type(frame.payload).__name__}",
            )
        wire = {"type": frame.type.value, "data": frame.payload}
    else:
        if not isinstance(frame.payload, str):
            raise FrameEncodeError(
                f"'{frame.type.value}' payload must be a string, "
                f"got {type(frame.payload).__name__}",
            )
        wire = {"type": frame.type.value, "content": frame.payload}
    return _line(json.dumps(wire, ensure_ascii=False, separators=(",", ":")))


def encode_sentinel() -> bytes:
    return _line(SENTINEL)


def _line(text: str) -> bytes:
    return f"{text}\n".encode("utf-8")


# -- Decoding ------------------------------------------------------------------

def is_sentinel(line: bytes | str) -> bool:
    text = line.decode("utf-8", "replace") if isinstance(line, bytes) else line
    return text.strip() == SENTINEL


def decode(line: bytes | str) -> Frame | FrameDecodeError:
    """Decode one wire line. Returns the frame, or the error to drop."""
    try:
        text = line.decode("utf-8") if isinstance(line, bytes) else line
    except UnicodeDecodeError as e:
        return FrameDecodeError(f"Invalid UTF-8 in frame: {e}")
    text = text.rstrip("\r\n")

    if text.startswith(_LEGACY_TEXT):
        return Frame(FrameType.TEXT_DELTA, text[len(_LEGACY_TEXT):])
    if text.startswith(_LEGACY_ERROR):
        return _decode_legacy_error(text[len(_LEGACY_ERROR):])
    if text.startswith(_LEGACY_DATA):
        text = text[len(_LEGACY_DATA):]

    try:
        wire = json.loads(text)
    except ValueError:
        return FrameDecodeError("Frame is not valid JSON", raw=text)
    return decode_object(wire)


def decode_object(wire: Any) -> Frame | FrameDecodeError:
    """Decode an already-parsed wire object ({type, content?, data?})."""
    if not isinstance(wire, dict):
        return FrameDecodeError("Frame must be a JSON object", raw=str(wire))
    try:
        frame_type = FrameType(wire.get("type"))
    except ValueError:
        return FrameDecodeError(
            f"Unknown frame type: {wire.get('type')!r}", raw=str(wire),
        )
    payload = wire.get("data")
    if payload is None:
        payload = wire.get("content")
    return normalize(frame_type, payload)


def normalize(frame_type: FrameType, payload: Any) -> Frame | FrameDecodeError:
    """Bring a payload to its canonical form for the frame type.

    Structured types accept an object/array or a JSON string holding one;
    text types accept a string (None becomes "").
    """
    if frame_type in STRUCTURED_FRAME_TYPES:
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except ValueError:
                return FrameDecodeError(
                    f"'{frame_type.value}' payload is not valid JSON",
                    raw=payload,
                )
        if not isinstance(payload, (dict, list)):
            return FrameDecodeError(
                f"'{frame_type.value}' payload must be an object or array",
                raw=str(payload),
            )
        return Frame(frame_type, payload)

    if payload is None:
        payload = ""
    if not isinstance(payload, str):
        return FrameDecodeError(
            f"'{frame_type.value}' payload must be a string", raw=str(payload),
        )
    return Frame(frame_type, payload)


def _decode_legacy_error(text: str) -> Frame | FrameDecodeError:
    try:
        body = json.loads(text)
    except ValueError:
        return Frame(FrameType.ERROR, {"code": "internal_error", "message": text})
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or "Unknown error"
        return Frame(FrameType.ERROR, {
            "code": body.get("code", "internal_error"), "message": message,
        })
    return Frame(FrameType.ERROR, {"code": "internal_error", "message": str(body)})


# -- Chunked transport ---------------------------------------------------------

class FrameReader:
    """Reassembles newline-delimited frames from arbitrary transport chunks.

    Partial lines are buffered until their newline arrives; flush() decodes
    whatever is left when the transport closes.
    """

    def __init__(self):
        self._buffer = b""
        self.sentinel_seen = False

    def feed(self, chunk: bytes | str) -> list[Frame | FrameDecodeError]:
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b"\n")
        return self._decode_lines(lines)

    def flush(self) -> list[Frame | FrameDecodeError]:
        rest, self._buffer = self._buffer, b""
        return self._decode_lines([rest])

    def _decode_lines(self, lines: list[bytes]) -> list[Frame | FrameDecodeError]:
        out = []
        for line in lines:
            if not line.strip():
                continue
            if is_sentinel(line):
                self.sentinel_seen = True
                continue
            out.append(decode(line))
        return out
