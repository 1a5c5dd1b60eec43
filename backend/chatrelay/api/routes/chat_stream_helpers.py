"""Chat Stream Helpers — per-request wiring of routing, tools, runner and history.

Invariants:
    - The model-routing frame is the first frame of every stream
    - The ToolContext gets the request's multiplexer: tools and model loop
      share one writer
    - The multiplexer is always closed, even when setup fails before the
      runner starts (the client never waits on a stream nobody writes)
    - History is appended only after a successful run

Design Decisions:
    - Extracted from chat_stream.py so the route holds only HTTP concerns
"""

import logging

from chatrelay.core.domain_types import ConversationId, FrameType, Principal
from chatrelay.core.errors import RelayError
from chatrelay.core.model_routing import ARTIFACT_MODEL, CHAT_MODEL_REASONING, select_model
from chatrelay.infrastructure.runtime import Runtime
from chatrelay.schemas.chat import ChatRequest
from chatrelay.services.chat_runner import ChatRunner
from chatrelay.services.chat_runner_helpers import routing_payload, user_message
from chatrelay.services.stream_multiplexer import StreamMultiplexer
from chatrelay.services.tool_context import ToolContext
from chatrelay.services.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


def build_runner(
    runtime: Runtime, principal: Principal, body: ChatRequest, writer: StreamMultiplexer,
) -> ChatRunner:
    settings = runtime.settings
    ctx = ToolContext(
        writer=writer,
        resilience=runtime.resilience,
        documents=runtime.documents,
        principal=principal,
        artifact_model=settings.resolve_model(ARTIFACT_MODEL),
        http=runtime.http,
        weather_breaker=runtime.weather_breaker,
        weather_api_url=settings.weather_api_url,
        max_tokens=settings.max_tokens,
        visibility=body.visibility,
        session_id=body.conversation_id,
    )
    return ChatRunner(
        runtime.resilience, writer, ToolRegistry.for_session(ctx),
        max_steps=settings.tool_max_steps,
        tool_timeout_seconds=settings.tool_timeout_seconds,
        max_tokens=settings.max_tokens,
        session_id=body.conversation_id,
    )


async def run_chat_session(
    runtime: Runtime, principal: Principal, body: ChatRequest, writer: StreamMultiplexer,
) -> None:
    """Producer task body for one chat request."""
    conversation_id = ConversationId(body.conversation_id)
    try:
        routed = select_model(body.model_id, principal.user_id, runtime.routing)
        writer.write_lifecycle(FrameType.MODEL_ROUTING, routing_payload(body.model_id, routed))
        if routed != body.model_id:
            logger.info("Routed %s → %s", body.model_id, routed,
                extra={"session_id": conversation_id, "model": routed})

        history = await runtime.conversations.get_messages(conversation_id)
        prompt = user_message(body.message)
        runner = build_runner(runtime, principal, body, writer)
        new_messages = await runner.run(
            [*history, prompt],
            runtime.settings.resolve_model(routed),
            body.visibility,
            use_tools=routed != CHAT_MODEL_REASONING,
        )
        if new_messages is not None:
            await runtime.conversations.append_messages(
                conversation_id, [prompt, *new_messages],
            )
    except RelayError as e:
        logger.error("Chat session failed: %s", e.message,
            extra={"session_id": conversation_id, "error_code": e.code})
        writer.write_error(e)
    except Exception as e:
        logger.error("Unexpected error in chat session: %s", e,
            extra={"session_id": conversation_id}, exc_info=True)
        writer.write_error()
    finally:
        writer.close()
