"""Boundary Protocols — contracts between the streaming core and persistence.

Invariants:
    - Persistence of documents, suggestions and chat history is an external
      collaborator: core and services only see these Protocols
    - Implementations provided by the shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: implementations do IO even when the shipped one
      (infrastructure/document_store.py) is in-memory
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from chatrelay.core.domain_types import ArtifactKind, ConversationId, DocumentId, UserId


@dataclass
class Document:
    id: DocumentId
    title: str
    kind: ArtifactKind
    content: str
    user_id: UserId
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Suggestion:
    id: str
    document_id: DocumentId
    original_text: str
    suggested_text: str
    description: str
    is_resolved: bool = False

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "documentId": self.document_id,
            "originalText": self.original_text,
            "suggestedText": self.suggested_text,
            "description": self.description,
            "isResolved": self.is_resolved,
        }


class DocumentStore(Protocol):
    """Contract for document + suggestion persistence."""
    async def save_document(self, document: Document) -> None: ...
    async def get_document(self, document_id: DocumentId) -> Document | None: ...
    async def save_suggestions(self, suggestions: list[Suggestion]) -> None: ...


class ConversationStore(Protocol):
    """Contract for chat history persistence."""
    async def get_messages(self, conversation_id: ConversationId) -> list[dict]: ...
    async def append_messages(
        self, conversation_id: ConversationId, messages: list[dict],
    ) -> None: ...
