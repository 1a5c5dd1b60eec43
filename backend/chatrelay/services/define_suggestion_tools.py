"""Suggestion Tool Schema — requestSuggestions argument model."""

from pydantic import BaseModel, Field

from chatrelay.services.tool_definition import ToolDefinition


class RequestSuggestionsArgs(BaseModel):
    documentId: str = Field(
        min_length=1, description="ID of the document to request suggestions for",
    )


REQUEST_SUGGESTIONS = ToolDefinition(
    name="requestSuggestions",
    description=(
        "Request writing suggestions for an existing document. Suggestions "
        "are attached to the document and shown to the user."
    ),
    args_model=RequestSuggestionsArgs,
)
