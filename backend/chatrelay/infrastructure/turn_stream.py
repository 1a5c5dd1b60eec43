"""Turn Stream — drives one upstream message stream into a ModelTurn.

Invariants:
    - Text deltas reach on_text in arrival order, before the turn is returned
    - on_tool_call fires once per tool_use block start (id + name), arguments
      come from the final message
    - The returned ModelTurn mirrors the final message: text, tool calls,
      serialized content blocks, usage

Design Decisions:
    - get_final_message() for post-processing (avoids manual block reconstruction
      from input_json_delta fragments)
    - Pure event helpers return a value or None; the caller decides what to emit
"""

from collections.abc import Callable
from typing import Any

from chatrelay.core.errors import ErrorContext
from chatrelay.core.model_types import ModelRequest, ModelTurn, ToolCall

TextCallback = Callable[[str], None]
ToolCallCallback = Callable[[str, str], None]


async def stream_turn(
    client: Any,
    request: ModelRequest,
    on_text: TextCallback | None = None,
    on_tool_call: ToolCallCallback | None = None,
    context: ErrorContext | None = None,
) -> ModelTurn:
    """Run one streamed model call, forwarding text and tool-call starts."""
    async with client.stream_message(
        model=request.model,
        max_tokens=request.max_tokens,
        system=request.system,
        tools=request.tools,
        messages=request.messages,
        temperature=request.temperature,
        context=context,
    ) as stream:
        async for event in stream:
            text = text_delta(event)
            if text and on_text:
                on_text(text)
                continue
            started = tool_use_start(event)
            if started and on_tool_call:
                on_tool_call(*started)
        final = await stream.get_final_message()
    return turn_from_message(final)


# -- Event helpers -------------------------------------------------------------

def text_delta(event: Any) -> str | None:
    if getattr(event, "type", None) != "content_block_delta":
        return None
    delta = event.delta
    if getattr(delta, "type", None) == "text_delta" and delta.text:
        return delta.text
    return None


def tool_use_start(event: Any) -> tuple[str, str] | None:
    if getattr(event, "type", None) != "content_block_start":
        return None
    block = event.content_block
    if getattr(block, "type", None) == "tool_use":
        return block.id, block.name
    return None


def turn_from_message(message: Any) -> ModelTurn:
    text_parts = []
    tool_calls = []
    for block in message.content:
        btype = getattr(block, "type", None)
        if btype == "text":
            text_parts.append(block.text)
        elif btype == "tool_use":
            tool_calls.append(ToolCall(block.id, block.name, block.input))
    usage = message.usage
    return ModelTurn(
        text="".join(text_parts),
        tool_calls=tool_calls,
        content=[b.model_dump(exclude_none=True) for b in message.content],
        stop_reason=message.stop_reason,
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
    )
