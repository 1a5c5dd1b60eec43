"""In-Memory Stores — single-process DocumentStore / ConversationStore.

Invariants:
    - Satisfy the Protocols in core/repository_protocols.py structurally
    - Reads return copies: callers cannot mutate stored history in place

Design Decisions:
    - Real persistence is an external collaborator; these back local runs and tests
    - Documents keep every saved version, get_document returns the latest
"""

from collections import defaultdict

from chatrelay.core.domain_types import ConversationId, DocumentId
from chatrelay.core.repository_protocols import Document, Suggestion


class InMemoryDocumentStore:
    def __init__(self):
        self.versions: dict[DocumentId, list[Document]] = defaultdict(list)
        self.suggestions: dict[DocumentId, list[Suggestion]] = defaultdict(list)

    async def save_document(self, document: Document) -> None:
        self.versions[document.id].append(document)

    async def get_document(self, document_id: DocumentId) -> Document | None:
        versions = self.versions.get(document_id)
        return versions[-1] if versions else None

    async def save_suggestions(self, suggestions: list[Suggestion]) -> None:
        for s in suggestions:
            self.suggestions[s.document_id].append(s)


class InMemoryConversationStore:
    def __init__(self):
        self._messages: dict[ConversationId, list[dict]] = defaultdict(list)

    async def get_messages(self, conversation_id: ConversationId) -> list[dict]:
        return list(self._messages.get(conversation_id, []))

    async def append_messages(
        self, conversation_id: ConversationId, messages: list[dict],
    ) -> None:
        self._messages[conversation_id].extend(messages)
