"""
Stream relay: re-emits a resolved MediaSource as an HTTP response.

The source is released whatever happens to the response: normal end, upstream
error, or the viewer navigating away mid-transfer. Releasing closes the
upstream HTTP response or terminates the extractor subprocess.
"""

import logging
from typing import Callable, Optional

import anyio
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from .media import MediaSource

logger = logging.getLogger(__name__)


def relay_headers(source: MediaSource) -> dict:
    headers = {
        "Accept-Ranges": "bytes",
        "Cache-Control": "no-cache",
    }
    if source.content_length is not None:
        headers["Content-Length"] = str(source.content_length)
    headers.update(source.headers)
    return headers


class MediaStreamResponse(StreamingResponse):
    def __init__(
        self,
        source: MediaSource,
        on_finish: Optional[Callable[[], None]] = None,
    ) -> None:
        super().__init__(
            source.iter_bytes(),
            status_code=source.status_code,
            headers=relay_headers(source),
            media_type=source.content_type,
        )
        self.source = source
        self.on_finish = on_finish

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            if not self.source.closed:
                logger.info(f"🛑 Client went away — releasing {self.source.origin or 'upstream'}")
            with anyio.CancelScope(shield=True):
                await self.source.aclose()
            if self.on_finish is not None:
                self.on_finish()
