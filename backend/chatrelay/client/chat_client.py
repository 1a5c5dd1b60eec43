"""Chat Stream Client — posts a chat request and interprets the frame stream.

Invariants:
    - Frames are consumed in transport order, one chunk at a time
    - Each chunk read races the cancel event: a stalled server cannot hold
      a cancelled send() open
    - Stream close is a valid end with or without the [DONE] sentinel
    - Setting the cancel event ends the loop without raising, closes the
      response (aborting the server-side producer) and discards partial state
    - Non-200 responses raise the matching RelayError before any frame is read

Design Decisions:
    - httpx.AsyncClient injectable: tests drive the FastAPI app in-process
      through ASGITransport
"""

import asyncio
import logging
from contextlib import suppress

import httpx

from chatrelay.core.domain_types import Visibility
from chatrelay.core.errors import (
    AuthenticationError, RelayError, ServiceDegradedError,
    UpstreamError, UpstreamErrorKind,
)
from chatrelay.core.frame_codec import FrameReader
from chatrelay.client.stream_interpreter import StreamInterpreter

logger = logging.getLogger(__name__)


class ChatStreamClient:
    """Consumes POST /api/v1/chat into a StreamInterpreter."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        token: str | None = None,
        path: str = "/api/v1/chat",
    ):
        self.http = http
        self.token = token
        self.path = path

    async def send(
        self,
        conversation_id: str,
        message: str,
        model_id: str = "chat-model",
        visibility: Visibility = Visibility.PRIVATE,
        cancel: asyncio.Event | None = None,
        interpreter: StreamInterpreter | None = None,
    ) -> StreamInterpreter:
        interpreter = interpreter or StreamInterpreter()
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        body = {
            "conversationId": conversation_id,
            "message": message,
            "modelId": model_id,
            "visibility": Visibility(visibility).value,
        }
        async with self.http.stream("POST", self.path, json=body, headers=headers) as response:
            if response.status_code != 200:
                await response.aread()
                raise _error_from_response(response)
            await self._consume(response, interpreter, cancel)
        return interpreter

    async def _consume(
        self,
        response: httpx.Response,
        interpreter: StreamInterpreter,
        cancel: asyncio.Event | None,
    ) -> None:
        reader = FrameReader()
        chunks = response.aiter_bytes()
        cancelled = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        read: asyncio.Future | None = None
        try:
            while True:
                read = asyncio.ensure_future(anext(chunks))
                if cancelled is not None:
                    await asyncio.wait({read, cancelled}, return_when=asyncio.FIRST_COMPLETED)
                    if cancel.is_set():
                        read.cancel()
                        with suppress(asyncio.CancelledError, StopAsyncIteration):
                            await read
                        logger.info("Chat stream cancelled by caller")
                        interpreter.discard()
                        return
                try:
                    chunk = await read
                except StopAsyncIteration:
                    break
                interpreter.feed(*reader.feed(chunk))
            interpreter.feed(*reader.flush())
            interpreter.finish()
        finally:
            for pending in (read, cancelled):
                if pending is not None and not pending.done():
                    pending.cancel()
            with suppress(RuntimeError):
                await chunks.aclose()


def _error_from_response(response: httpx.Response) -> RelayError:
    try:
        body = response.json()
    except ValueError:
        body = None
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        error = {}
    message = error.get("message") or f"HTTP {response.status_code}"
    code = error.get("code")
    if response.status_code == 401:
        return AuthenticationError(message)
    if response.status_code == 503 and code == "service_degraded":
        return ServiceDegradedError("model")
    if response.status_code >= 500:
        return UpstreamError(message, UpstreamErrorKind.SERVER_ERROR)
    return UpstreamError(message, UpstreamErrorKind.CLIENT_ERROR)
