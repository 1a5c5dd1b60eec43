"""Chat Runner Helpers — pure payload and message builders for the chat loop.

Invariants:
    - All functions are pure (stateless, deterministic given their inputs)
    - Messages stay in Anthropic wire shape (role + content blocks)

Design Decisions:
    - Extracted from chat_runner.py: the loop reads as control flow only
"""

from datetime import datetime, timezone

from chatrelay.core.model_types import ModelTurn

CHAT_SYSTEM_PROMPT = (
    "You are a friendly assistant. Keep your responses concise and helpful. "
    "Use createDocument for substantial content the user will want to keep "
    "or edit (essays, code, spreadsheets, images), updateDocument to change "
    "an existing document, requestSuggestions to propose edits to a "
    "document, and getWeather for weather questions. Never repeat the "
    "content of a document in the chat after creating or updating it."
)


# -- Frame payload builders ----------------------------------------------------

def routing_payload(original_model: str, routed_model: str) -> dict:
    return {
        "originalModel": original_model,
        "routedModel": routed_model,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def tool_call_payload(tool_id: str, name: str) -> dict:
    return {"id": tool_id, "name": name}


# -- Conversation builders -----------------------------------------------------

def user_message(text: str) -> dict:
    return {"role": "user", "content": text}


def assistant_message(turn: ModelTurn) -> dict | None:
    """Assistant turn for the history, None when the model said nothing."""
    if turn.content:
        return {"role": "assistant", "content": turn.content}
    if turn.text:
        return {"role": "assistant", "content": [{"type": "text", "text": turn.text}]}
    return None


def tool_results_message(blocks: list[dict]) -> dict:
    return {"role": "user", "content": blocks}
