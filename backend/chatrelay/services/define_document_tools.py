"""Document Tool Schemas — createDocument / updateDocument argument models.

Invariants:
    - kind is restricted to the ArtifactKind values
    - title and description are non-empty after stripping

Design Decisions:
    - One file per tool family, argument models next to their definitions
"""

from pydantic import BaseModel, Field

from chatrelay.core.domain_types import ArtifactKind
from chatrelay.services.tool_definition import ToolDefinition


class CreateDocumentArgs(BaseModel):
    title: str = Field(
        min_length=1, max_length=200,
        description="Title of the document to create",
    )
    kind: ArtifactKind = Field(
        description="Kind of artifact: text, code, sheet or image",
    )


class UpdateDocumentArgs(BaseModel):
    id: str = Field(min_length=1, description="ID of the document to update")
    description: str = Field(
        min_length=1, description="The changes that need to be made",
    )


CREATE_DOCUMENT = ToolDefinition(
    name="createDocument",
    description=(
        "Create a document for writing or content creation activities. "
        "The document content is generated from the title and streamed "
        "to the user as it is written."
    ),
    args_model=CreateDocumentArgs,
)

UPDATE_DOCUMENT = ToolDefinition(
    name="updateDocument",
    description=(
        "Update an existing document with the given description of changes. "
        "The full rewritten content is streamed to the user."
    ),
    args_model=UpdateDocumentArgs,
)

TOOLS_DOCUMENT = [CREATE_DOCUMENT, UPDATE_DOCUMENT]
