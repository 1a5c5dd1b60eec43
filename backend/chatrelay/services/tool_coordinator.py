"""Tool Coordinator — runs model-requested tools and reports their lifecycle.

Invariants:
    - Per invocation: requested → executing → completed | failed
    - Unknown tool or invalid arguments: tool-error only, the body never runs
      and no tool-start is written
    - Valid call: tool-start, body, then tool-result + tool-complete on
      success or tool-error on failure
    - Calls from one model turn run sequentially in the order received; a
      tool's frames are never interleaved with another tool's
    - A failing tool never aborts the response: every call yields exactly one
      tool_result block for the model (is_error on failure)
    - Cancellation (CancelledError) is not a tool failure: it propagates and
      the in-flight tool body is aborted

Design Decisions:
    - Same multiplexer as the model loop: tool bodies stream through it
    - Error boundary per tool (RelayError → warning, anything else → error
      with traceback) so the loop keeps running
    - asyncio.timeout per tool body: a hung tool becomes tool_execution_error
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from chatrelay.core.domain_types import FrameType, ToolInvocationState
from chatrelay.core.errors import (
    ErrorContext, RelayError, ToolExecutionError, UnknownToolError,
)
from chatrelay.core.model_types import ToolCall
from chatrelay.services.stream_multiplexer import StreamMultiplexer
from chatrelay.services.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class ToolInvocation:
    call: ToolCall
    state: ToolInvocationState = ToolInvocationState.REQUESTED
    result: Any = None
    error: dict | None = None
    history: list[ToolInvocationState] = field(default_factory=list)

    def advance(self, state: ToolInvocationState) -> None:
        self.history.append(self.state)
        self.state = state

    def to_tool_result_block(self) -> dict:
        """Anthropic tool_result block fed back into the conversation."""
        if self.state == ToolInvocationState.COMPLETED:
            return {
                "type": "tool_result",
                "tool_use_id": self.call.id,
                "content": json.dumps(self.result, ensure_ascii=False, default=str),
            }
        return {
            "type": "tool_result",
            "tool_use_id": self.call.id,
            "content": json.dumps({"error": self.error}, ensure_ascii=False),
            "is_error": True,
        }


class ToolCoordinator:
    """Executes tool calls through one registry and one shared writer."""

    def __init__(
        self,
        registry: ToolRegistry,
        writer: StreamMultiplexer,
        timeout_seconds: float = 60,
        session_id: str | None = None,
    ):
        self.registry = registry
        self.writer = writer
        self.timeout_seconds = timeout_seconds
        self.session_id = session_id

    async def execute_all(self, calls: list[ToolCall]) -> list[ToolInvocation]:
        """Run every call sequentially, in the order the model requested them."""
        invocations = []
        for call in calls:
            invocations.append(await self.execute(call))
        return invocations

    async def execute(self, call: ToolCall) -> ToolInvocation:
        invocation = ToolInvocation(call)
        ctx = ErrorContext(
            session_id=self.session_id, tool_name=call.name, tool_call_id=call.id,
        )
        tool = self.registry.get(call.name)
        if tool is None:
            return self._fail(invocation, UnknownToolError(call.name, ctx))
        try:
            args = tool.definition.validate(call.arguments)
        except RelayError as e:
            return self._fail(invocation, e)

        invocation.advance(ToolInvocationState.EXECUTING)
        self.writer.write_tool_event(FrameType.TOOL_START, {
            "id": call.id, "name": call.name, "args": args.model_dump(mode="json"),
        })
        try:
            async with asyncio.timeout(self.timeout_seconds):
                result = await tool.handler(args)
        except TimeoutError:
            return self._fail(invocation, ToolExecutionError(
                f"Tool '{call.name}' timed out after {self.timeout_seconds}s", ctx,
            ))
        except RelayError as e:
            return self._fail(invocation, e)
        except Exception as e:
            logger.error("Unexpected error in tool '%s': %s", call.name, e,
                extra={"session_id": self.session_id, "tool_name": call.name},
                exc_info=True)
            return self._fail(invocation, ToolExecutionError(
                f"Internal error executing {call.name}", ctx,
            ), log=False)

        invocation.result = result
        invocation.advance(ToolInvocationState.COMPLETED)
        self.writer.write_tool_event(FrameType.TOOL_RESULT, {
            "id": call.id, "name": call.name, "result": result,
        })
        self.writer.write_tool_event(FrameType.TOOL_COMPLETE, {
            "id": call.id, "name": call.name,
        })
        logger.info("Tool '%s' completed", call.name,
            extra={"session_id": self.session_id, "tool_name": call.name,
                   "tool_call_id": call.id})
        return invocation

    def _fail(
        self, invocation: ToolInvocation, error: RelayError, log: bool = True,
    ) -> ToolInvocation:
        call = invocation.call
        if log:
            logger.warning("Tool '%s' failed: %s", call.name, error.message,
                extra={"session_id": self.session_id, "tool_name": call.name,
                       "error_code": error.code})
        invocation.error = {"kind": error.code, "message": error.message}
        details = getattr(error, "details", None)
        if details:
            invocation.error["details"] = details
        invocation.advance(ToolInvocationState.FAILED)
        self.writer.write_tool_event(FrameType.TOOL_ERROR, {
            "id": call.id, "name": call.name, "error": invocation.error,
        })
        return invocation
