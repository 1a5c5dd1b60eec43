"""Frame Codec tests — exactly-once encoding, tolerant decoding, chunked reads.

Tests cover:
    - decode(encode(f)) == f for text and structured frames
    - Structured payloads accepted pre-parsed or as a JSON string
    - Malformed structured payloads come back as FrameDecodeError (never raise)
    - Encoding a pre-encoded string under a structured type is rejected
    - Legacy `1:` / `0:` / `9:` lines and the [DONE] sentinel
    - FrameReader reassembles lines split across transport chunks
"""

import json

import pytest

from chatrelay.core.domain_types import FrameType
from chatrelay.core.errors import FrameDecodeError, FrameEncodeError
from chatrelay.core.frame_codec import (
    SENTINEL, Frame, FrameReader, decode, decode_object, encode,
    encode_sentinel, is_sentinel,
)


@pytest.mark.parametrize("frame", [
    Frame(FrameType.TEXT_DELTA, "Hello "),
    Frame(FrameType.CODE_DELTA, "print('hi')\n"),
    Frame(FrameType.ID, "doc-1"),
    Frame(FrameType.CLEAR, ""),
    Frame(FrameType.TOOL_START, {"id": "t1", "name": "getWeather", "args": {}}),
    Frame(FrameType.TOOL_ERROR, {"id": "t1", "error": {"kind": "invalid_arguments"}}),
    Frame(FrameType.MODEL_ROUTING, {"originalModel": "a", "routedModel": "b"}),
    Frame(FrameType.SUGGESTION, {"id": "s1", "description": "ünïcode"}),
])
def test_round_trip(frame):
    assert decode(encode(frame)) == frame


def test_encode_is_one_json_line():
    line = encode(Frame(FrameType.TOOL_RESULT, {"id": "t1", "result": {"ok": True}}))
    assert line.endswith(b"\n")
    assert line.count(b"\n") == 1
    wire = json.loads(line)
    assert wire == {"type": "tool-result", "data": {"id": "t1", "result": {"ok": True}}}


def test_text_frames_use_content_field():
    wire = json.loads(encode(Frame(FrameType.TEXT_DELTA, "hi")))
    assert wire == {"type": "text-delta", "content": "hi"}


def test_encode_rejects_double_encoded_payload():
    """A structured payload already serialized to a string is the protocol bug."""
    with pytest.raises(FrameEncodeError):
        encode(Frame(FrameType.TOOL_RESULT, json.dumps({"id": "t1"})))


def test_encode_rejects_non_string_text_payload():
    with pytest.raises(FrameEncodeError):
        encode(Frame(FrameType.TEXT_DELTA, {"text": "x"}))


def test_decode_accepts_string_encoded_structured_payload():
    inner = json.dumps({"id": "t1", "name": "getWeather"})
    line = json.dumps({"type": "tool-start", "data": inner})
    assert decode(line) == Frame(FrameType.TOOL_START, {"id": "t1", "name": "getWeather"})


def test_decode_accepts_structured_payload_in_content_field():
    line = json.dumps({"type": "tool-complete", "content": {"id": "t1"}})
    assert decode(line) == Frame(FrameType.TOOL_COMPLETE, {"id": "t1"})


def test_decode_malformed_structured_payload_returns_error():
    line = json.dumps({"type": "tool-result", "data": "{not json"})
    result = decode(line)
    assert isinstance(result, FrameDecodeError)
    assert result.code == "decode_error"


@pytest.mark.parametrize("line", [
    "{broken",
    '"just a string"',
    '{"type": "no-such-frame", "content": "x"}',
    '{"type": "tool-start", "data": 42}',
    '{"type": "title", "content": {"nested": true}}',
    b"\xff\xfe",
])
def test_decode_never_raises(line):
    assert isinstance(decode(line), FrameDecodeError)


def test_decode_missing_text_payload_is_empty_string():
    assert decode('{"type": "finish"}') == Frame(FrameType.FINISH, "")


def test_legacy_text_prefix():
    """Everything after the first colon is the text, colons included."""
    assert decode("1:Hello: world") == Frame(FrameType.TEXT_DELTA, "Hello: world")


def test_legacy_data_prefix():
    line = "0:" + json.dumps({"type": "kind", "content": "code"})
    assert decode(line) == Frame(FrameType.KIND, "code")


def test_legacy_error_prefix():
    frame = decode('9:{"code": "upstream_5xx", "message": "boom"}')
    assert frame == Frame(FrameType.ERROR, {"code": "upstream_5xx", "message": "boom"})


def test_legacy_error_prefix_plain_text():
    frame = decode("9:something broke")
    assert frame.type == FrameType.ERROR
    assert frame.payload["message"] == "something broke"


def test_decode_object_rejects_non_dict():
    assert isinstance(decode_object(["text-delta", "x"]), FrameDecodeError)


def test_sentinel():
    assert encode_sentinel() == f"{SENTINEL}\n".encode()
    assert is_sentinel(b"[DONE]\n")
    assert is_sentinel("  [DONE] ")
    assert not is_sentinel("1:[DONE]")


# -- FrameReader ---------------------------------------------------------------

def test_reader_reassembles_split_lines():
    data = encode(Frame(FrameType.TEXT_DELTA, "Hello ")) + encode(
        Frame(FrameType.TOOL_START, {"id": "t1"}),
    )
    reader = FrameReader()
    frames = []
    for i in range(0, len(data), 5):
        frames.extend(reader.feed(data[i:i + 5]))
    frames.extend(reader.flush())
    assert frames == [
        Frame(FrameType.TEXT_DELTA, "Hello "),
        Frame(FrameType.TOOL_START, {"id": "t1"}),
    ]


def test_reader_splits_multibyte_characters_safely():
    data = encode(Frame(FrameType.TEXT_DELTA, "héllo"))
    reader = FrameReader()
    frames = reader.feed(data[:3]) + reader.feed(data[3:])
    assert frames == [Frame(FrameType.TEXT_DELTA, "héllo")]


def test_reader_flush_decodes_unterminated_last_line():
    reader = FrameReader()
    assert reader.feed(b'{"type":"finish","content":""}') == []
    assert reader.flush() == [Frame(FrameType.FINISH, "")]


def test_reader_skips_blank_lines_and_records_sentinel():
    reader = FrameReader()
    frames = reader.feed(b"\n1:a\n\n[DONE]\n")
    assert frames == [Frame(FrameType.TEXT_DELTA, "a")]
    assert reader.sentinel_seen


def test_reader_keeps_going_after_bad_line():
    reader = FrameReader()
    frames = reader.feed(b"{oops\n1:after\n")
    assert isinstance(frames[0], FrameDecodeError)
    assert frames[1] == Frame(FrameType.TEXT_DELTA, "after")
