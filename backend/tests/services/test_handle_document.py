"""Document Handlers tests — createDocument / updateDocument frame contracts."""

import pytest

from chatrelay.core.domain_types import ArtifactKind, DocumentId, FrameType, UserId
from chatrelay.core.errors import ToolExecutionError
from chatrelay.core.repository_protocols import Document
from chatrelay.services.define_document_tools import CreateDocumentArgs, UpdateDocumentArgs
from chatrelay.services.handle_document import DocumentHandlers

from tests.services.mock_anthropic import MockAnthropicClient, text_response


def _types(writer):
    return [e.frame.type for e in writer.events]


async def test_create_writes_header_content_then_finish(make_resilience, make_context, writer):
    client = MockAnthropicClient([text_response("x = 1\n", chunks=["x = ", "1\n"])])
    handlers = DocumentHandlers(make_context(make_resilience(client)))

    result = await handlers.create_document(CreateDocumentArgs(title="Snippet", kind="code"))

    assert _types(writer) == [
        FrameType.KIND, FrameType.ID, FrameType.TITLE, FrameType.CLEAR,
        FrameType.CODE_DELTA, FrameType.CODE_DELTA, FrameType.FINISH,
    ]
    assert writer.events[0].frame.payload == "code"
    assert writer.events[1].frame.payload == result["id"]
    assert "x = 1" not in str(result)
    assert client.calls[0]["model"] == "artifact-upstream"
    assert client.calls[0]["tools"] == []


async def test_create_stores_document(make_resilience, make_context, documents):
    client = MockAnthropicClient([text_response("# Title\nBody")])
    handlers = DocumentHandlers(make_context(make_resilience(client)))

    result = await handlers.create_document(CreateDocumentArgs(title="Essay", kind="text"))

    stored = await documents.get_document(result["id"])
    assert stored.content == "# Title\nBody"
    assert stored.kind == ArtifactKind.TEXT
    assert stored.user_id == "user-1"


async def test_update_clears_and_restreams(make_resilience, make_context, writer, documents):
    await documents.save_document(Document(
        id=DocumentId("doc-1"), title="Essay", kind=ArtifactKind.TEXT,
        content="Old body", user_id=UserId("user-1"),
    ))
    client = MockAnthropicClient([text_response("New body")])
    handlers = DocumentHandlers(make_context(make_resilience(client)))

    result = await handlers.update_document(
        UpdateDocumentArgs(id="doc-1", description="Make it better"),
    )

    assert _types(writer) == [FrameType.CLEAR, FrameType.TEXT_DELTA, FrameType.FINISH]
    assert result["id"] == "doc-1"
    assert "Old body" in client.calls[0]["system"]
    assert client.calls[0]["messages"][0]["content"] == "Make it better"
    assert (await documents.get_document("doc-1")).content == "New body"
    assert len(documents.versions["doc-1"]) == 2


async def test_update_missing_document_fails(make_resilience, make_context, writer):
    handlers = DocumentHandlers(make_context(make_resilience(MockAnthropicClient([]))))
    with pytest.raises(ToolExecutionError):
        await handlers.update_document(UpdateDocumentArgs(id="nope", description="x"))
    assert writer.events == []
