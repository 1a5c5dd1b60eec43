"""Document Handlers — createDocument / updateDocument (2 methods).

Invariants:
    - Generated content streams through ctx.writer, the session's shared
      multiplexer, as kind-specific deltas while it is produced
    - createDocument writes kind, id, title, clear before any content and
      finish after the document is stored
    - updateDocument writes clear before the regenerated content
    - The result returned to the model never contains the document body

Design Decisions:
    - Generation uses the artifact model through the shared ResilienceLayer:
      a degraded model dependency fails the tool, not the process
    - Every update stores a new version (store keeps history)
"""

import logging
from uuid import uuid4

from chatrelay.core.domain_types import ArtifactKind, DocumentId, FrameType
from chatrelay.core.errors import ToolExecutionError
from chatrelay.core.model_types import ModelRequest
from chatrelay.core.repository_protocols import Document
from chatrelay.services.define_document_tools import CreateDocumentArgs, UpdateDocumentArgs
from chatrelay.services.tool_context import ToolContext

logger = logging.getLogger(__name__)

_DELTA_TYPES = {
    ArtifactKind.TEXT: FrameType.TEXT_DELTA,
    ArtifactKind.CODE: FrameType.CODE_DELTA,
    ArtifactKind.SHEET: FrameType.SHEET_DELTA,
    ArtifactKind.IMAGE: FrameType.IMAGE_DELTA,
}

_CREATE_PROMPTS = {
    ArtifactKind.TEXT: (
        "Write about the given topic. Markdown is supported. "
        "Use headings wherever appropriate."
    ),
    ArtifactKind.CODE: (
        "You are a code generator. Write a single self-contained, runnable "
        "snippet for the request. Output only the code, no explanations "
        "and no markdown fences."
    ),
    ArtifactKind.SHEET: (
        "You are a spreadsheet assistant. Produce a spreadsheet in CSV "
        "format for the request, with meaningful column headers. Output "
        "only the CSV."
    ),
    ArtifactKind.IMAGE: (
        "You are an illustrator. Produce a single SVG image for the "
        "request. Output only the SVG markup."
    ),
}


def update_prompt(current_content: str, kind: ArtifactKind) -> str:
    what = {
        ArtifactKind.TEXT: "document",
        ArtifactKind.CODE: "code snippet",
        ArtifactKind.SHEET: "spreadsheet",
        ArtifactKind.IMAGE: "SVG image",
    }[kind]
    return (
        f"Improve the following {what} based on the given prompt. "
        f"Return the complete updated {what} and nothing else.\n\n"
        f"{current_content}"
    )


class DocumentHandlers:
    """Document tools — create and update, both streamed."""

    def __init__(self, ctx: ToolContext):
        self.ctx = ctx

    async def create_document(self, args: CreateDocumentArgs) -> dict:
        writer = self.ctx.writer
        doc_id = DocumentId(str(uuid4()))
        writer.write_lifecycle(FrameType.KIND, args.kind.value)
        writer.write_lifecycle(FrameType.ID, doc_id)
        writer.write_lifecycle(FrameType.TITLE, args.title)
        writer.write_lifecycle(FrameType.CLEAR, "")

        content = await self._generate(
            args.kind, _CREATE_PROMPTS[args.kind], args.title, "createDocument",
        )
        await self.ctx.documents.save_document(Document(
            id=doc_id, title=args.title, kind=args.kind,
            content=content, user_id=self.ctx.principal.user_id,
        ))
        writer.write_lifecycle(FrameType.FINISH, "")
        logger.info("Document created: %s (%s)", doc_id, args.kind.value,
            extra={"session_id": self.ctx.session_id, "tool_name": "createDocument"})
        return {
            "id": doc_id,
            "title": args.title,
            "kind": args.kind.value,
            "content": "A document was created and is now visible to the user.",
        }

    async def update_document(self, args: UpdateDocumentArgs) -> dict:
        document = await self.ctx.documents.get_document(DocumentId(args.id))
        if document is None:
            raise ToolExecutionError(
                f"Document '{args.id}' not found",
                self.ctx.error_context("updateDocument"),
            )
        writer = self.ctx.writer
        writer.write_lifecycle(FrameType.CLEAR, "")

        content = await self._generate(
            document.kind, update_prompt(document.content, document.kind),
            args.description, "updateDocument",
        )
        await self.ctx.documents.save_document(Document(
            id=document.id, title=document.title, kind=document.kind,
            content=content, user_id=self.ctx.principal.user_id,
        ))
        writer.write_lifecycle(FrameType.FINISH, "")
        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind.value,
            "content": "The document has been updated successfully.",
        }

    async def _generate(
        self, kind: ArtifactKind, system: str, prompt: str, tool_name: str,
    ) -> str:
        delta_type = _DELTA_TYPES[kind]
        request = ModelRequest(
            model=self.ctx.artifact_model,
            messages=[{"role": "user", "content": prompt}],
            system=system,
            max_tokens=self.ctx.max_tokens,
            temperature=0.3,
            visibility=self.ctx.visibility,
        )
        turn = await self.ctx.resilience.stream_turn(
            request,
            on_text=lambda text: self.ctx.writer.write_content_delta(delta_type, text),
            context=self.ctx.error_context(tool_name),
        )
        return turn.text
