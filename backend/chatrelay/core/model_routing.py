"""Model Routing — deterministic percentage rollout of the lite chat model.

Invariants:
    - Same user always routes the same way for a given percentage (stable hash)
    - Explicit `chat-model-lite` requests are honoured only while routing is enabled
    - Models other than `chat-model` / `chat-model-lite` pass through untouched

Design Decisions:
    - sha256 bucket over Python hash(): hash() is salted per process, a user
      would flip between models on every restart
"""

import hashlib
from dataclasses import dataclass

CHAT_MODEL = "chat-model"
CHAT_MODEL_LITE = "chat-model-lite"
CHAT_MODEL_REASONING = "chat-model-reasoning"
ARTIFACT_MODEL = "artifact-model"


@dataclass(frozen=True)
class RoutingConfig:
    lite_enabled: bool = True
    lite_percentage: int = 5    # 0–100
    force_model: str | None = None


def routing_bucket(identifier: str) -> int:
    """Map an identifier to a stable bucket in [0, 100)."""
    digest = hashlib.sha256(identifier.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big") % 100


def should_use_lite(user_id: str, config: RoutingConfig) -> bool:
    if not config.lite_enabled:
        return False
    if config.force_model:
        return config.force_model == CHAT_MODEL_LITE
    return routing_bucket(user_id) < config.lite_percentage


def select_model(requested: str, user_id: str, config: RoutingConfig) -> str:
    """Route a requested public model id to the model actually used."""
    if requested == CHAT_MODEL_LITE:
        return CHAT_MODEL_LITE if config.lite_enabled else CHAT_MODEL
    if requested == CHAT_MODEL:
        return CHAT_MODEL_LITE if should_use_lite(user_id, config) else CHAT_MODEL
    return requested
