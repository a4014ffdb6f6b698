"""
Byte sources handed from the resolver to the stream relay.

A MediaSource wraps an async iterator of chunks together with an explicit
close hook. It is consumed exactly once; closing it tears down whatever
produces the bytes (an upstream HTTP response or an extractor subprocess).
"""

import asyncio
import logging
from collections import deque
from typing import AsyncIterator, Awaitable, Callable, Deque, Dict, List, Optional

import anyio
import httpx

from .errors import StrategyFailed

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
TERMINATE_GRACE_SECONDS = 5.0
STDERR_TAIL_CHUNKS = 4

# Upstream response headers passed through to the client
PASSTHROUGH_HEADERS = ("content-range",)


class MediaSource:
    """A playable byte stream with start/cancel lifecycle."""

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        content_type: str,
        content_length: Optional[int] = None,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
        origin: str = "",
    ) -> None:
        self._chunks = chunks
        self._on_close = on_close
        self.content_type = content_type
        self.content_length = content_length
        self.status_code = status_code
        self.headers = dict(headers or {})
        self.origin = origin
        self._consumed = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise RuntimeError("media source already consumed")
        self._consumed = True
        try:
            async for chunk in self._chunks:
                if chunk:
                    yield chunk
        finally:
            with anyio.CancelScope(shield=True):
                await self.aclose()

    async def aclose(self) -> None:
        """Release the upstream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            try:
                await self._on_close()
            except Exception as e:
                logger.warning(f"⚠️ Error while releasing {self.origin or 'media source'}: {e}")


async def open_http_source(
    url: str,
    content_type: str,
    headers: Optional[Dict[str, str]] = None,
    content_length: Optional[int] = None,
    range_header: Optional[str] = None,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    origin: str = "",
) -> MediaSource:
    """
    Start a streamed GET and wrap the body as a MediaSource.
    Raises StrategyFailed when the upstream does not answer 200/206.
    """
    request_headers = httpx.Headers(headers or {})
    if range_header:
        request_headers["Range"] = range_header
    request_headers.setdefault("Accept-Encoding", "identity")

    # No read timeout: a paused player can leave the body idle for a long time
    client = httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, read=None),
        follow_redirects=True,
        transport=transport,
    )
    try:
        response = await client.send(
            client.build_request("GET", url, headers=request_headers),
            stream=True,
        )
    except httpx.HTTPError as e:
        await client.aclose()
        raise StrategyFailed(f"stream request failed: {e}")
    except BaseException:
        await client.aclose()
        raise

    if response.status_code not in (200, 206):
        await response.aclose()
        await client.aclose()
        raise StrategyFailed(f"stream HTTP {response.status_code}")

    async def _close() -> None:
        try:
            await response.aclose()
        finally:
            await client.aclose()

    # The body is relayed decoded, so an encoded upstream length does not apply
    length = response.headers.get("content-length")
    encoded = response.headers.get("content-encoding", "identity").lower() != "identity"
    if encoded:
        content_length = None
    elif length and length.isdigit():
        content_length = int(length)
    elif response.status_code == 206:
        content_length = None

    passthrough = {
        name.title(): response.headers[name]
        for name in PASSTHROUGH_HEADERS
        if name in response.headers
    }

    return MediaSource(
        response.aiter_bytes(CHUNK_SIZE),
        content_type=content_type,
        content_length=content_length,
        on_close=_close,
        status_code=response.status_code,
        headers=passthrough,
        origin=origin,
    )


async def terminate_process(proc: asyncio.subprocess.Process, grace: float = TERMINATE_GRACE_SECONDS) -> None:
    """Terminate, then kill if the process ignores SIGTERM for ``grace`` seconds."""
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=grace)
    except asyncio.TimeoutError:
        logger.warning(f"⚠️ Extractor pid {proc.pid} ignored SIGTERM — killing")
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()


async def _drain_stderr(stream: asyncio.StreamReader, tail: Deque[bytes], origin: str) -> None:
    while True:
        data = await stream.read(CHUNK_SIZE)
        if not data:
            return
        tail.append(data)
        logger.debug(f"{origin} stderr: {data[-200:].decode('utf-8', errors='replace').rstrip()}")


async def open_subprocess_source(
    argv: List[str],
    content_type: str,
    first_chunk_timeout: float = 60.0,
    origin: str = "",
) -> MediaSource:
    """
    Spawn an extractor that writes media to stdout and wrap stdout as a MediaSource.

    The first chunk is read before returning so that an extractor failing up
    front counts as a failed strategy rather than an empty 200 response.
    Range requests are not supported on this path.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise StrategyFailed(f"cannot start {argv[0]}: {e}")

    # stderr is drained for the whole life of the process; a full pipe would
    # block the extractor mid-stream
    stderr_tail: Deque[bytes] = deque(maxlen=STDERR_TAIL_CHUNKS)
    drain = asyncio.ensure_future(_drain_stderr(proc.stderr, stderr_tail, origin or argv[0]))

    async def _stop() -> None:
        try:
            await terminate_process(proc)
        finally:
            drain.cancel()

    try:
        first = await asyncio.wait_for(proc.stdout.read(CHUNK_SIZE), timeout=first_chunk_timeout)
    except asyncio.TimeoutError:
        await _stop()
        raise StrategyFailed(f"{argv[0]} produced no output within {first_chunk_timeout:.0f}s")
    except BaseException:
        with anyio.CancelScope(shield=True):
            await _stop()
        raise

    if not first:
        try:
            await asyncio.wait_for(drain, timeout=TERMINATE_GRACE_SECONDS)
        except asyncio.TimeoutError:
            pass
        await _stop()
        message = b"".join(stderr_tail).decode("utf-8", errors="replace").strip()[-300:]
        raise StrategyFailed(f"{argv[0]} exited without output: {message or 'no error output'}")

    async def _chunks() -> AsyncIterator[bytes]:
        yield first
        while True:
            chunk = await proc.stdout.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk

    return MediaSource(
        _chunks(),
        content_type=content_type,
        on_close=_stop,
        origin=origin,
    )
