"""Chat Stream — POST /api/v1/chat, newline-delimited frame streaming.

Invariants:
    - 401 before anything else when the caller is not authenticated
    - 400 unknown_model envelope when modelId is not a configured alias
    - 503 service_degraded before streaming when the model breaker is open
    - One multiplexer per request, drained in write order into the body
    - Client disconnect cancels the producer task: the upstream call and any
      in-flight tool are aborted, nothing is cached or counted for it

Design Decisions:
    - Producer runs as its own task writing into the multiplexer; the response
      generator only drains. A slow client never stalls the model loop
    - Streaming headers prevent proxy/browser buffering of small frames
"""

import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from chatrelay.api.dependencies import get_principal
from chatrelay.api.routes.chat_stream_helpers import run_chat_session
from chatrelay.core.domain_types import Principal
from chatrelay.core.errors import ErrorContext, ServiceDegradedError, UnknownModelError
from chatrelay.infrastructure.runtime import MODEL_BREAKER, Runtime, get_runtime
from chatrelay.schemas.chat import ChatRequest
from chatrelay.services.stream_multiplexer import StreamMultiplexer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["chat"])

STREAM_MEDIA_TYPE = "application/x-ndjson"

# Without these, nginx (X-Accel-Buffering) and browsers (Cache-Control)
# may batch small frames before delivering them to the client.
_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


@router.post("/chat")
async def chat(
    body: ChatRequest,
    principal: Principal = Depends(get_principal),
    runtime: Runtime = Depends(get_runtime),
):
    """Stream one assistant response as frames."""
    if body.model_id not in runtime.settings.model_aliases:
        raise UnknownModelError(
            body.model_id, ErrorContext(session_id=body.conversation_id),
        )
    if runtime.resilience.is_degraded:
        raise ServiceDegradedError(
            MODEL_BREAKER, ErrorContext(session_id=body.conversation_id),
        )

    writer = StreamMultiplexer(session_id=body.conversation_id)
    producer = asyncio.create_task(run_chat_session(runtime, principal, body, writer))

    async def frame_generator():
        try:
            async for line in writer.frames():
                yield line
        except asyncio.CancelledError:
            logger.info("Client disconnected from chat stream",
                extra={"session_id": body.conversation_id})
            return
        finally:
            if not producer.done():
                producer.cancel()

    return StreamingResponse(
        frame_generator(),
        media_type=STREAM_MEDIA_TYPE,
        headers=_STREAM_HEADERS,
    )
