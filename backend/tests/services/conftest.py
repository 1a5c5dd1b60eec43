"""Service test fixtures — shared multiplexer, document store, tool context.

Invariants:
    - make_context() hands tools the multiplexer fixture: the same writer the
      test reads frames from
"""

import pytest

from chatrelay.core.domain_types import Principal, UserId
from chatrelay.infrastructure.document_store import InMemoryDocumentStore
from chatrelay.services.stream_multiplexer import StreamMultiplexer
from chatrelay.services.tool_context import ToolContext


@pytest.fixture
def writer():
    return StreamMultiplexer(session_id="conv-1")


@pytest.fixture
def documents():
    return InMemoryDocumentStore()


@pytest.fixture
def make_context(writer, documents):
    def _make(resilience, **overrides):
        return ToolContext(
            writer=overrides.pop("writer", writer),
            resilience=resilience,
            documents=documents,
            principal=Principal(user_id=UserId("user-1")),
            artifact_model="artifact-upstream",
            session_id="conv-1",
            **overrides,
        )

    return _make
