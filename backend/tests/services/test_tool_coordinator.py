"""Tool Coordinator tests — per-invocation lifecycle written through the shared writer.

Tests cover:
    - Invalid arguments: tool-error(invalid_arguments), body never runs, no tool-start
    - Unknown tool: tool-error(unknown_tool)
    - Success: tool-start, body frames, tool-result, tool-complete
    - Failure (domain, unexpected, timeout): tool-error, run continues
    - Multiple calls run sequentially, frames never interleaved across tools
    - Cancellation propagates and is not reported as a tool failure
"""

import asyncio
import json

import pytest
from pydantic import BaseModel, Field

from chatrelay.core.domain_types import FrameType, ToolInvocationState
from chatrelay.core.errors import ToolExecutionError
from chatrelay.core.model_types import ToolCall
from chatrelay.services.tool_coordinator import ToolCoordinator
from chatrelay.services.tool_definition import ToolDefinition
from chatrelay.services.tool_registry import RegisteredTool, ToolRegistry


class EchoArgs(BaseModel):
    text: str = Field(min_length=1)


ECHO = ToolDefinition(name="echo", description="Echo text back", args_model=EchoArgs)


def _types(writer):
    return [e.frame.type for e in writer.events]


def _coordinator(writer, handler, timeout=5):
    registry = ToolRegistry({"echo": RegisteredTool(ECHO, handler)})
    return ToolCoordinator(registry, writer, timeout_seconds=timeout, session_id="conv-1")


async def test_invalid_arguments_never_run_the_body(writer):
    ran = []

    async def handler(args):
        ran.append(args)
        return {}

    invocation = await _coordinator(writer, handler).execute(ToolCall("t1", "echo", {"text": ""}))

    assert ran == []
    assert _types(writer) == [FrameType.TOOL_ERROR]
    error = writer.events[0].frame.payload["error"]
    assert error["kind"] == "invalid_arguments"
    assert error["details"][0]["field"] == "text"
    assert invocation.state == ToolInvocationState.FAILED
    assert invocation.history == [ToolInvocationState.REQUESTED]


async def test_unknown_tool(writer):
    async def handler(args):
        return {}

    invocation = await _coordinator(writer, handler).execute(ToolCall("t1", "nope", {}))
    assert _types(writer) == [FrameType.TOOL_ERROR]
    assert invocation.error["kind"] == "unknown_tool"


async def test_success_lifecycle_through_shared_writer(writer):
    async def handler(args):
        writer.write_text_delta(args.text.upper())
        return {"echoed": args.text}

    invocation = await _coordinator(writer, handler).execute(
        ToolCall("t1", "echo", {"text": "hi"}),
    )

    assert _types(writer) == [
        FrameType.TOOL_START, FrameType.TEXT_DELTA,
        FrameType.TOOL_RESULT, FrameType.TOOL_COMPLETE,
    ]
    start = writer.events[0].frame.payload
    assert start == {"id": "t1", "name": "echo", "args": {"text": "hi"}}
    assert writer.events[2].frame.payload["result"] == {"echoed": "hi"}
    assert invocation.state == ToolInvocationState.COMPLETED
    assert invocation.history == [ToolInvocationState.REQUESTED, ToolInvocationState.EXECUTING]


async def test_domain_failure_reported(writer):
    async def handler(args):
        raise ToolExecutionError("Document not found")

    invocation = await _coordinator(writer, handler).execute(
        ToolCall("t1", "echo", {"text": "hi"}),
    )
    assert _types(writer) == [FrameType.TOOL_START, FrameType.TOOL_ERROR]
    assert invocation.error == {"kind": "tool_execution_error", "message": "Document not found"}


async def test_unexpected_failure_hides_internals(writer):
    async def handler(args):
        raise KeyError("secret internals")

    invocation = await _coordinator(writer, handler).execute(
        ToolCall("t1", "echo", {"text": "hi"}),
    )
    assert invocation.error["kind"] == "tool_execution_error"
    assert "secret" not in invocation.error["message"]


async def test_timeout_becomes_tool_error(writer):
    async def handler(args):
        await asyncio.sleep(10)

    invocation = await _coordinator(writer, handler, timeout=0.01).execute(
        ToolCall("t1", "echo", {"text": "hi"}),
    )
    assert invocation.state == ToolInvocationState.FAILED
    assert "timed out" in invocation.error["message"]


async def test_calls_run_sequentially_in_order(writer):
    async def handler(args):
        writer.write_text_delta(f"{args.text}-1")
        await asyncio.sleep(0.01 if args.text == "first" else 0)
        writer.write_text_delta(f"{args.text}-2")
        return {"done": args.text}

    invocations = await _coordinator(writer, handler).execute_all([
        ToolCall("t1", "echo", {"text": "first"}),
        ToolCall("t2", "echo", {"text": ""}),
        ToolCall("t3", "echo", {"text": "third"}),
    ])

    assert [i.state for i in invocations] == [
        ToolInvocationState.COMPLETED, ToolInvocationState.FAILED,
        ToolInvocationState.COMPLETED,
    ]
    deltas = [f.payload for f in writer.frames_of_type(FrameType.TEXT_DELTA)]
    assert deltas == ["first-1", "first-2", "third-1", "third-2"]
    ids = [e.frame.payload["id"] for e in writer.events if e.frame.type != FrameType.TEXT_DELTA]
    assert ids == ["t1", "t1", "t1", "t2", "t3", "t3", "t3"]


async def test_cancellation_propagates(writer):
    started = asyncio.Event()

    async def handler(args):
        started.set()
        await asyncio.Event().wait()

    task = asyncio.create_task(
        _coordinator(writer, handler).execute(ToolCall("t1", "echo", {"text": "hi"})),
    )
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert _types(writer) == [FrameType.TOOL_START]


async def test_tool_result_blocks(writer):
    async def handler(args):
        return {"echoed": args.text}

    coordinator = _coordinator(writer, handler)
    ok = await coordinator.execute(ToolCall("t1", "echo", {"text": "hi"}))
    bad = await coordinator.execute(ToolCall("t2", "echo", {}))

    ok_block = ok.to_tool_result_block()
    assert ok_block["tool_use_id"] == "t1"
    assert json.loads(ok_block["content"]) == {"echoed": "hi"}
    assert "is_error" not in ok_block

    bad_block = bad.to_tool_result_block()
    assert bad_block["is_error"] is True
    assert json.loads(bad_block["content"])["error"]["kind"] == "invalid_arguments"
