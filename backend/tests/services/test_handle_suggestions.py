"""Suggestion Handlers tests — parsing, per-suggestion frames, persistence."""

import json

import pytest

from chatrelay.core.domain_types import ArtifactKind, DocumentId, FrameType, UserId
from chatrelay.core.errors import ToolExecutionError
from chatrelay.core.repository_protocols import Document
from chatrelay.services.define_suggestion_tools import RequestSuggestionsArgs
from chatrelay.services.handle_suggestions import SuggestionHandlers, parse_suggestions

from tests.services.mock_anthropic import MockAnthropicClient, text_response

_ENTRY = {
    "originalSentence": "The cat sat.",
    "suggestedSentence": "The cat sat on the mat.",
    "description": "Add detail",
}


@pytest.fixture
async def doc(documents):
    document = Document(
        id=DocumentId("doc-1"), title="Essay", kind=ArtifactKind.TEXT,
        content="The cat sat.", user_id=UserId("user-1"),
    )
    await documents.save_document(document)
    return document


def test_parse_plain_array():
    assert parse_suggestions(json.dumps([_ENTRY])) == [_ENTRY]


def test_parse_fenced_wrapper_object():
    text = "```json\n" + json.dumps({"suggestions": [_ENTRY]}) + "\n```"
    assert parse_suggestions(text) == [_ENTRY]


@pytest.mark.parametrize("text", ["not json", '"a string"'])
def test_parse_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_suggestions(text)


async def test_one_frame_per_valid_suggestion(make_resilience, make_context, writer, documents, doc):
    body = json.dumps([_ENTRY, {"originalSentence": "missing fields"}, _ENTRY])
    client = MockAnthropicClient([text_response(body)])
    handlers = SuggestionHandlers(make_context(make_resilience(client)))

    result = await handlers.request_suggestions(RequestSuggestionsArgs(documentId="doc-1"))

    frames = writer.frames_of_type(FrameType.SUGGESTION)
    assert len(frames) == 2
    assert frames[0].payload["documentId"] == "doc-1"
    assert frames[0].payload["suggestedText"] == "The cat sat on the mat."
    assert result["suggestionsCount"] == 2
    assert len(documents.suggestions["doc-1"]) == 2
    assert writer.frames_of_type(FrameType.TEXT_DELTA) == []


async def test_unparseable_output_fails_tool(make_resilience, make_context, doc):
    client = MockAnthropicClient([text_response("I cannot help with that")])
    handlers = SuggestionHandlers(make_context(make_resilience(client)))
    with pytest.raises(ToolExecutionError):
        await handlers.request_suggestions(RequestSuggestionsArgs(documentId="doc-1"))


async def test_missing_document_fails_tool(make_resilience, make_context):
    handlers = SuggestionHandlers(make_context(make_resilience(MockAnthropicClient([]))))
    with pytest.raises(ToolExecutionError):
        await handlers.request_suggestions(RequestSuggestionsArgs(documentId="nope"))
