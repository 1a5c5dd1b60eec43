"""Chat Runner — model/tool loop writing one session's frames to its multiplexer.

Invariants:
    - Model text goes straight to the multiplexer as text-delta frames
    - Tool calls go to the ToolCoordinator, which writes through the SAME
      multiplexer
    - At most 1 + max_steps model calls per run (max_steps continuations after
      tool results)
    - Tool failures never end the run; upstream/auth/degraded errors end it
      with one terminal error frame
    - The multiplexer is closed when run() returns, whatever the outcome

Design Decisions:
    - Streaming through ResilienceLayer.stream_turn: cache, retry and breaker
      apply to every step, not just the first
    - Returns the new history messages instead of saving them: persistence is
      the caller's collaborator
    - Pure builders extracted to chat_runner_helpers.py
"""

import asyncio
import logging

from chatrelay.core.domain_types import FrameType, Visibility
from chatrelay.core.errors import ErrorContext, RelayError
from chatrelay.core.model_types import ModelRequest
from chatrelay.infrastructure.resilience import ResilienceLayer
from chatrelay.services.chat_runner_helpers import (
    CHAT_SYSTEM_PROMPT, assistant_message, tool_call_payload, tool_results_message,
)
from chatrelay.services.stream_multiplexer import StreamMultiplexer
from chatrelay.services.tool_coordinator import ToolCoordinator
from chatrelay.services.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


class ChatRunner:
    """Async chat loop: model turns interleaved with sequential tool execution."""

    def __init__(
        self,
        resilience: ResilienceLayer,
        writer: StreamMultiplexer,
        registry: ToolRegistry,
        max_steps: int = 5,
        tool_timeout_seconds: float = 60,
        max_tokens: int = 4096,
        session_id: str | None = None,
    ):
        self.resilience = resilience
        self.writer = writer
        self.registry = registry
        self.max_steps = max_steps
        self.max_tokens = max_tokens
        self.session_id = session_id
        self.coordinator = ToolCoordinator(
            registry, writer, tool_timeout_seconds, session_id,
        )

    async def run(
        self,
        messages: list[dict],
        model: str,
        visibility: Visibility = Visibility.PRIVATE,
        use_tools: bool = True,
    ) -> list[dict] | None:
        """Run the loop. Returns the messages to append, None on fatal error."""
        ctx = ErrorContext(session_id=self.session_id)
        try:
            return await self._step_loop(list(messages), model, visibility, use_tools, ctx)
        except asyncio.CancelledError:
            logger.info("Stream cancelled (client disconnect)",
                extra={"session_id": self.session_id})
            raise
        except RelayError as e:
            logger.error("Chat run failed: %s", e.message,
                extra={"session_id": self.session_id, "error_code": e.code})
            self.writer.write_error(e)
            return None
        except Exception as e:
            logger.error("Unexpected error in chat runner: %s", e,
                extra={"session_id": self.session_id}, exc_info=True)
            self.writer.write_error()
            return None
        finally:
            self.writer.close()

    async def _step_loop(self, messages, model, visibility, use_tools, ctx):
        start = len(messages)
        tools = self.registry.definitions() if use_tools else []

        for step in range(self.max_steps + 1):
            turn = await self.resilience.stream_turn(
                ModelRequest(
                    model=model,
                    messages=list(messages),
                    system=CHAT_SYSTEM_PROMPT,
                    tools=tools,
                    max_tokens=self.max_tokens,
                    visibility=visibility,
                ),
                on_text=self.writer.write_text_delta,
                on_tool_call=self._announce_tool_call,
                context=ctx,
            )
            reply = assistant_message(turn)
            if reply:
                messages.append(reply)
            if not turn.has_tool_calls:
                return messages[start:]

            invocations = await self.coordinator.execute_all(turn.tool_calls)
            messages.append(tool_results_message(
                [inv.to_tool_result_block() for inv in invocations],
            ))
            logger.info("Step %d: executed %d tool calls", step + 1, len(invocations),
                extra={"session_id": self.session_id, "step": step + 1})

        logger.warning("Tool step limit (%d) reached, ending run", self.max_steps,
            extra={"session_id": self.session_id})
        return messages[start:]

    def _announce_tool_call(self, tool_id: str, name: str) -> None:
        self.writer.write_tool_event(FrameType.TOOL_CALL, tool_call_payload(tool_id, name))
