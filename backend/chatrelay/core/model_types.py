"""Model Types — upstream request/turn value objects and the cache fingerprint.

Invariants:
    - fingerprint() depends only on model, system prompt, normalized message
      content and visibility — never on session or conversation ids
    - Whitespace-only differences in message text do not change the fingerprint
    - A ModelTurn is cacheable only when it requested no tools

Design Decisions:
    - Identical prompts across conversations share a fingerprint on purpose:
      identical completions may be reused
    - Messages kept in Anthropic wire shape (role + content blocks): no second
      conversation representation to keep in sync
"""

import hashlib
import json
import re
from dataclasses import dataclass, field
from typing import Any

from chatrelay.core.domain_types import Visibility

_WS = re.compile(r"\s+")


@dataclass
class ModelRequest:
    """One upstream model call."""
    model: str
    messages: list[dict]
    system: str = ""
    tools: list[dict] = field(default_factory=list)
    max_tokens: int = 4096
    temperature: float | None = None
    visibility: Visibility = Visibility.PRIVATE
    cacheable: bool = True


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""
    id: str
    name: str
    arguments: Any


@dataclass
class ModelTurn:
    """Result of one upstream call: streamed text plus requested tools."""
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    content: list[dict] = field(default_factory=list)
    stop_reason: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    from_cache: bool = False

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def normalize_text(text: str) -> str:
    return _WS.sub(" ", text).strip()


def _normalize_block(block: Any) -> Any:
    if isinstance(block, str):
        return normalize_text(block)
    if not isinstance(block, dict):
        return str(block)
    btype = block.get("type")
    if btype == "text":
        return normalize_text(block.get("text", ""))
    if btype == "tool_use":
        return {"tool_use": block.get("name"), "input": block.get("input")}
    if btype == "tool_result":
        return {"tool_result": _normalize_content(block.get("content", ""))}
    return {k: v for k, v in block.items() if k != "cache_control"}


def _normalize_content(content: Any) -> Any:
    if isinstance(content, list):
        return [_normalize_block(b) for b in content]
    return _normalize_block(content)


def fingerprint(request: ModelRequest) -> str:
    """Cache key for a request: model + normalized content + visibility."""
    body = {
        "model": request.model,
        "system": normalize_text(request.system),
        "messages": [
            [m.get("role"), _normalize_content(m.get("content", ""))]
            for m in request.messages
        ],
        "visibility": Visibility(request.visibility).value,
    }
    raw = json.dumps(body, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
