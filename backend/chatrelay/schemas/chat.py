"""Chat Schemas — Pydantic models with field-level validation for the chat endpoint.

Invariants:
    - message: 1-32000 chars, stripped, non-empty
    - visibility is private or public (part of the cache fingerprint)
    - Wire names are camelCase (conversationId, modelId); Python names snake_case

Design Decisions:
    - Field aliases over a camelCase model: handlers read snake_case attributes
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chatrelay.core.domain_types import Visibility
from chatrelay.core.model_routing import CHAT_MODEL


class ChatRequest(BaseModel):
    """POST /api/v1/chat body."""
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(alias="conversationId", min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=32_000)
    model_id: str = Field(CHAT_MODEL, alias="modelId", min_length=1)
    visibility: Visibility = Visibility.PRIVATE

    @field_validator("message")
    @classmethod
    def strip_message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message cannot be empty or whitespace")
        return v
