"""Streaming response with explicit open/committed state and a single close hook."""
import logging
from typing import AsyncIterator, Callable, Mapping, Optional
from urllib.parse import quote

from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from app.config import CACHE_CONTROL
from app.errors import AppError, ErrorKind, error_response

logger = logging.getLogger("converter.api.channel")


def attachment_headers(filename: str) -> dict[str, str]:
    """Content-Disposition for a download, plus the no-cache policy for user content."""
    quoted = quote(filename)
    if quoted != filename:
        disposition = f"attachment; filename*=utf-8''{quoted}"
    else:
        disposition = f'attachment; filename="{filename}"'
    return {"Content-Disposition": disposition, "Cache-Control": CACHE_CONTROL}


class ResponseChannel(StreamingResponse):
    """
    The single outbound response of a request.

    Headers are held back until the body iterator produces its first chunk, so a failure
    before that point still becomes a structured JSON error ("open"). Once headers are
    sent ("committed") a failure can only end the stream. `on_close` runs exactly once,
    on whichever terminal event comes first: normal finish, client disconnect, or error.
    """

    def __init__(
        self,
        content: AsyncIterator[bytes],
        *,
        on_close: Callable[[], None],
        media_type: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        status_code: int = 200,
    ):
        super().__init__(content, status_code=status_code, headers=headers, media_type=media_type)
        self.on_close = on_close
        self.committed = False
        self.failed = False
        self._closed = False

    async def _send_error(self, send: Send, exc: AppError) -> None:
        self.failed = True
        response = error_response(exc)
        await send({"type": "http.response.start", "status": response.status_code, "headers": response.raw_headers})
        await send({"type": "http.response.body", "body": response.body})

    async def _next_chunk(self) -> Optional[bytes]:
        try:
            chunk = await self.body_iterator.__anext__()
        except StopAsyncIteration:
            return None
        if isinstance(chunk, str):
            chunk = chunk.encode(self.charset)
        return chunk

    async def stream_response(self, send: Send) -> None:
        try:
            first = await self._next_chunk()
        except AppError as e:
            logger.warning("Request failed before streaming: %s (%s)", e.message, e.kind.code)
            await self._send_error(send, e)
            return
        except Exception as e:
            logger.exception("Unexpected error before streaming: %s", e)
            await self._send_error(send, AppError(ErrorKind.INTERNAL))
            return

        await send({"type": "http.response.start", "status": self.status_code, "headers": self.raw_headers})
        self.committed = True
        chunk = first
        while chunk is not None:
            await send({"type": "http.response.body", "body": chunk, "more_body": True})
            try:
                chunk = await self._next_chunk()
            except Exception as e:
                # Headers are out: the status and body can no longer change
                self.failed = True
                logger.error("Stream failed after headers were sent, ending response: %s", e, exc_info=True)
                break
        await send({"type": "http.response.body", "body": b"", "more_body": False})

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            aclose = getattr(self.body_iterator, "aclose", None)
            if aclose is not None:
                await aclose()
        finally:
            self.on_close()
