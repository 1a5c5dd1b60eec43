"""Suggestion Handlers — requestSuggestions (1 method).

Invariants:
    - One `suggestion` frame per valid suggestion, written as it is accepted
    - Entries missing any field are skipped with a warning, never fatal
    - Unparseable model output fails the tool (tool-error), not the stream

Design Decisions:
    - JSON array requested in the system prompt; a {"suggestions": [...]}
      wrapper and markdown fences are tolerated
"""

import json
import logging
import re
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from chatrelay.core.domain_types import DocumentId, FrameType
from chatrelay.core.errors import ToolExecutionError
from chatrelay.core.model_types import ModelRequest
from chatrelay.core.repository_protocols import Suggestion
from chatrelay.services.define_suggestion_tools import RequestSuggestionsArgs
from chatrelay.services.tool_context import ToolContext

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5

SUGGESTIONS_PROMPT = (
    "You are a helpful writing assistant. Given a piece of writing, offer "
    "suggestions to improve it and describe each change. Edits must contain "
    f"full sentences, not single words. Max {MAX_SUGGESTIONS} suggestions. "
    "Respond only with a JSON array of objects with the fields "
    "originalSentence, suggestedSentence and description."
)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class SuggestionDraft(BaseModel):
    originalSentence: str
    suggestedSentence: str
    description: str


def parse_suggestions(text: str) -> list:
    """Model output → list of raw suggestion entries."""
    body = _FENCE.sub("", text.strip())
    parsed = json.loads(body)
    if isinstance(parsed, dict):
        parsed = parsed.get("suggestions", [])
    if not isinstance(parsed, list):
        raise ValueError("Suggestions must be a JSON array")
    return parsed


class SuggestionHandlers:
    """Suggestion tool — asks the artifact model, streams each suggestion."""

    def __init__(self, ctx: ToolContext):
        self.ctx = ctx

    async def request_suggestions(self, args: RequestSuggestionsArgs) -> dict:
        error_ctx = self.ctx.error_context("requestSuggestions")
        document = await self.ctx.documents.get_document(DocumentId(args.documentId))
        if document is None or not document.content:
            raise ToolExecutionError("Document not found or has no content", error_ctx)

        turn = await self.ctx.resilience.complete(
            ModelRequest(
                model=self.ctx.artifact_model,
                messages=[{"role": "user", "content": document.content}],
                system=SUGGESTIONS_PROMPT,
                max_tokens=self.ctx.max_tokens,
                visibility=self.ctx.visibility,
            ),
            context=error_ctx,
        )
        try:
            entries = parse_suggestions(turn.text)
        except ValueError as e:
            raise ToolExecutionError(
                f"Failed to parse suggestions from model response: {e}", error_ctx,
            ) from e

        suggestions = []
        for entry in entries[:MAX_SUGGESTIONS]:
            try:
                draft = SuggestionDraft.model_validate(entry)
            except ValidationError:
                logger.warning("Skipping invalid suggestion: %r", entry,
                    extra={"tool_name": "requestSuggestions"})
                continue
            suggestion = Suggestion(
                id=str(uuid4()),
                document_id=document.id,
                original_text=draft.originalSentence,
                suggested_text=draft.suggestedSentence,
                description=draft.description,
            )
            self.ctx.writer.write_lifecycle(FrameType.SUGGESTION, suggestion.to_payload())
            suggestions.append(suggestion)

        await self.ctx.documents.save_suggestions(suggestions)
        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind.value,
            "message": "Suggestions have been added to the document",
            "suggestionsCount": len(suggestions),
        }
