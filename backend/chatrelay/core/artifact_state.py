"""Artifact State — pure transition table for client-reconstructed documents.

Invariants:
    - New artifacts start idle, empty, invisible
    - tool-start, id, title, kind and any content delta → streaming
    - clear empties content and leaves status untouched
    - finish, tool-complete, tool-error → idle
    - content == concatenation of every content-delta payload since the last clear

Design Decisions:
    - Frozen dataclass + functions returning new instances: the interpreter
      owns the only reference, nothing else can mutate it
    - Lifecycle transition and content accumulation are separate steps so each
      can be tested against the frame table on its own
"""

from dataclasses import dataclass, replace

from chatrelay.core.domain_types import (
    CONTENT_FRAME_TYPES, ArtifactKind, ArtifactStatus, FrameType,
)
from chatrelay.core.frame_codec import Frame


@dataclass(frozen=True)
class Artifact:
    """Client-side view of a document being generated."""
    document_id: str | None = None
    kind: ArtifactKind = ArtifactKind.TEXT
    title: str = ""
    content: str = ""
    status: ArtifactStatus = ArtifactStatus.IDLE
    visible: bool = False
    error: dict | None = None


_TO_STREAMING = frozenset({
    FrameType.TOOL_START, FrameType.ID, FrameType.TITLE, FrameType.KIND,
}) | CONTENT_FRAME_TYPES

_TO_IDLE = frozenset({
    FrameType.FINISH, FrameType.TOOL_COMPLETE, FrameType.TOOL_ERROR,
})


def transition(artifact: Artifact, frame: Frame) -> Artifact:
    """Apply the lifecycle part of a frame (status, identity, error flag)."""
    ft = frame.type

    if ft == FrameType.ID:
        return replace(
            artifact, document_id=frame.payload,
            status=ArtifactStatus.STREAMING, visible=True,
        )
    if ft == FrameType.TITLE:
        return replace(artifact, title=frame.payload, status=ArtifactStatus.STREAMING)
    if ft == FrameType.KIND:
        return replace(
            artifact, kind=_parse_kind(frame.payload, artifact.kind),
            status=ArtifactStatus.STREAMING,
        )
    if ft == FrameType.CLEAR:
        return replace(artifact, content="")
    if ft == FrameType.TOOL_START:
        return replace(artifact, status=ArtifactStatus.STREAMING, error=None)
    if ft == FrameType.TOOL_ERROR:
        return replace(artifact, status=ArtifactStatus.IDLE, error=frame.payload)
    if ft in _TO_IDLE:
        return replace(artifact, status=ArtifactStatus.IDLE)
    if ft in _TO_STREAMING:
        return replace(artifact, status=ArtifactStatus.STREAMING)
    return artifact


def accumulate(artifact: Artifact, frame: Frame) -> Artifact:
    """Append a content-delta payload to the artifact's buffer."""
    if frame.type not in CONTENT_FRAME_TYPES:
        return artifact
    return replace(artifact, content=artifact.content + frame.payload)


def apply_frame(artifact: Artifact, frame: Frame) -> Artifact:
    return accumulate(transition(artifact, frame), frame)


def _parse_kind(value: str, fallback: ArtifactKind) -> ArtifactKind:
    try:
        return ArtifactKind(value)
    except ValueError:
        return fallback
