"""Integration Tests: ChatRunner — model/tool loop over one shared multiplexer.

Invariants:
    - Text-only turn: text-delta frames then [DONE]
    - Tool turn: tool-call, tool lifecycle frames, tool output, continuation text
    - Tool failures are contained; the model sees an is_error tool_result
    - At most 1 + max_steps model calls
    - Upstream / degraded errors end the stream with one error frame
    - Document tools stream their content through the runner's own writer

Design Decisions:
    - MockAnthropicClient behind a real ResilienceLayer: cache, retry and
      breaker are exercised on every step
"""

from pydantic import BaseModel

from chatrelay.client.stream_interpreter import StreamInterpreter
from chatrelay.core.domain_types import ArtifactStatus, FrameType
from chatrelay.core.errors import ToolExecutionError, UpstreamError, UpstreamErrorKind
from chatrelay.core.frame_codec import decode, is_sentinel
from chatrelay.infrastructure.circuit_breaker import CircuitBreaker
from chatrelay.services.chat_runner import ChatRunner
from chatrelay.services.tool_definition import ToolDefinition
from chatrelay.services.tool_registry import RegisteredTool, ToolRegistry

from tests.services.mock_anthropic import (
    MockAnthropicClient, mixed_response, text_response, tool_response,
)


# -- Helpers -------------------------------------------------------------------

class EchoArgs(BaseModel):
    text: str


ECHO = ToolDefinition(name="echo", description="Echo", args_model=EchoArgs)


def _echo_registry(writer, fail=False):
    async def handler(args):
        if fail:
            raise ToolExecutionError("echo is broken")
        writer.write_text_delta(f"[{args.text}]")
        return {"echoed": args.text}

    return ToolRegistry({"echo": RegisteredTool(ECHO, handler)})


def _types(writer):
    return [e.frame.type for e in writer.events]


async def _lines(writer):
    return [line async for line in writer.frames()]


# ==============================================================================
# Happy paths
# ==============================================================================


async def test_text_only_run(make_resilience, writer):
    client = MockAnthropicClient([text_response("Hello World", chunks=["Hello ", "World"])])
    runner = ChatRunner(make_resilience(client), writer, _echo_registry(writer))

    messages = await runner.run([{"role": "user", "content": "hi"}], "upstream-model")

    lines = await _lines(writer)
    assert is_sentinel(lines[-1])
    assert [decode(line).payload for line in lines[:-1]] == ["Hello ", "World"]
    assert messages == [
        {"role": "assistant", "content": [{"type": "text", "text": "Hello World"}]},
    ]
    assert writer.closed
    assert client.calls[0]["tools"][0]["name"] == "echo"


async def test_tool_turn_then_continuation(make_resilience, writer):
    client = MockAnthropicClient([
        tool_response("echo", {"text": "hi"}, tool_id="t1"),
        text_response("Done."),
    ])
    runner = ChatRunner(make_resilience(client), writer, _echo_registry(writer))

    messages = await runner.run([{"role": "user", "content": "echo hi"}], "m")

    assert _types(writer) == [
        FrameType.TOOL_CALL, FrameType.TOOL_START, FrameType.TEXT_DELTA,
        FrameType.TOOL_RESULT, FrameType.TOOL_COMPLETE, FrameType.TEXT_DELTA,
    ]
    assert len(client.calls) == 2
    tool_results = client.calls[1]["messages"][-1]
    assert tool_results["role"] == "user"
    assert tool_results["content"][0]["tool_use_id"] == "t1"
    assert [m["role"] for m in messages] == ["assistant", "user", "assistant"]


async def test_multiple_tools_in_one_turn_run_in_order(make_resilience, writer):
    client = MockAnthropicClient([
        mixed_response("Echoing twice.", [
            {"name": "echo", "input": {"text": "a"}, "id": "t1"},
            {"name": "echo", "input": {"text": "b"}, "id": "t2"},
        ]),
        text_response("Both done."),
    ])
    runner = ChatRunner(make_resilience(client), writer, _echo_registry(writer))

    await runner.run([{"role": "user", "content": "go"}], "m")

    deltas = [f.payload for f in writer.frames_of_type(FrameType.TEXT_DELTA)]
    assert deltas == ["Echoing twice.", "[a]", "[b]", "Both done."]
    blocks = client.calls[1]["messages"][-1]["content"]
    assert [b["tool_use_id"] for b in blocks] == ["t1", "t2"]


async def test_use_tools_false_sends_no_tools(make_resilience, writer):
    client = MockAnthropicClient([text_response("thinking hard")])
    runner = ChatRunner(make_resilience(client), writer, _echo_registry(writer))
    await runner.run([{"role": "user", "content": "why"}], "m", use_tools=False)
    assert client.calls[0]["tools"] == []


# ==============================================================================
# Containment and limits
# ==============================================================================


async def test_failing_tool_does_not_abort_run(make_resilience, writer):
    client = MockAnthropicClient([
        tool_response("echo", {"text": "hi"}, tool_id="t1"),
        text_response("Sorry, the tool failed."),
    ])
    runner = ChatRunner(make_resilience(client), writer, _echo_registry(writer, fail=True))

    messages = await runner.run([{"role": "user", "content": "echo"}], "m")

    assert messages is not None
    assert FrameType.TOOL_ERROR in _types(writer)
    assert FrameType.ERROR not in _types(writer)
    block = client.calls[1]["messages"][-1]["content"][0]
    assert block["is_error"] is True


async def test_step_limit_caps_model_calls(make_resilience, writer):
    client = MockAnthropicClient([
        tool_response("echo", {"text": str(i)}, tool_id=f"t{i}") for i in range(3)
    ])
    runner = ChatRunner(make_resilience(client), writer, _echo_registry(writer), max_steps=2)

    messages = await runner.run([{"role": "user", "content": "loop"}], "m")

    assert len(client.calls) == 3
    assert len(writer.frames_of_type(FrameType.TOOL_COMPLETE)) == 3
    assert FrameType.ERROR not in _types(writer)
    assert messages[-1]["role"] == "user"
    assert writer.closed


# ==============================================================================
# Fatal errors
# ==============================================================================


async def test_upstream_auth_error_ends_stream(make_resilience, writer, sleeps):
    client = MockAnthropicClient([UpstreamError("bad key", UpstreamErrorKind.AUTH)])
    runner = ChatRunner(make_resilience(client), writer, _echo_registry(writer))

    result = await runner.run([{"role": "user", "content": "hi"}], "m")

    assert result is None
    assert sleeps == []
    errors = writer.frames_of_type(FrameType.ERROR)
    assert len(errors) == 1
    assert errors[0].payload["code"] == "auth_error"
    lines = await _lines(writer)
    assert is_sentinel(lines[-1])


async def test_degraded_model_ends_stream(make_resilience, writer, clock):
    breaker = CircuitBreaker("model", failure_threshold=1, clock=clock)
    breaker.record_failure()
    client = MockAnthropicClient([])
    runner = ChatRunner(make_resilience(client, breaker=breaker), writer, _echo_registry(writer))

    assert await runner.run([{"role": "user", "content": "hi"}], "m") is None

    assert client.calls == []
    assert writer.frames_of_type(FrameType.ERROR)[0].payload["code"] == "service_degraded"


async def test_unexpected_error_ends_stream_without_internals(make_resilience, writer):
    client = MockAnthropicClient([])
    runner = ChatRunner(make_resilience(client), writer, _echo_registry(writer))

    assert await runner.run([{"role": "user", "content": "hi"}], "m") is None

    payload = writer.frames_of_type(FrameType.ERROR)[0].payload
    assert payload["code"] == "internal_error"
    assert "MockAnthropicClient" not in payload["message"]


# ==============================================================================
# Shared writer end to end
# ==============================================================================


async def test_document_tool_streams_through_runner_writer(
    make_resilience, make_context, writer, documents,
):
    client = MockAnthropicClient([
        tool_response("createDocument", {"title": "Report", "kind": "text"}, tool_id="t1"),
        text_response("Hello World", chunks=["Hello ", "World"]),
        text_response("I wrote the report."),
    ])
    resilience = make_resilience(client)
    registry = ToolRegistry.for_session(make_context(resilience))
    runner = ChatRunner(resilience, writer, registry)

    await runner.run([{"role": "user", "content": "write a report"}], "m")

    lines = await _lines(writer)
    complete_at = next(
        i for i, line in enumerate(lines)
        if not is_sentinel(line) and decode(line).type == FrameType.TOOL_COMPLETE
    )
    interpreter = StreamInterpreter()
    interpreter.feed(*lines[:complete_at + 1])

    artifact = interpreter.artifact
    assert artifact.title == "Report"
    assert artifact.content == "Hello World"
    assert artifact.status == ArtifactStatus.IDLE
    stored = await documents.get_document(artifact.document_id)
    assert stored.content == "Hello World"

    interpreter.feed(*lines[complete_at + 1:])
    assert interpreter.message_text == "I wrote the report."
    assert interpreter.done
