"""
Shared fixtures and helpers for the tubegate test-suite.

Unit tests never touch the network: outbound HTTP goes through
httpx.MockTransport and strategy chains are exercised with fake strategies.
The live strategy tests (test_strategy_ytdlp/invidious/piped) only run with
TUBEGATE_NETWORK_TESTS=1 and skip whenever the upstream refuses.
"""

import os
import pathlib
import sys
from typing import Any, Callable, List, Optional

import httpx
import pytest

_ROOT = pathlib.Path(__file__).parent.parent
sys.path.insert(0, str(_ROOT))

from tubegate.config import Settings  # noqa: E402
from tubegate.errors import StrategyFailed  # noqa: E402
from tubegate.media import MediaSource  # noqa: E402
from tubegate.strategies import Strategy  # noqa: E402

# ─── Constants ───────────────────────────────────────────────────────────────

TEST_VIDEO_ID = "dQw4w9WgXcQ"
MIN_STREAM_BYTES = 256 * 1024

NETWORK_TESTS = os.getenv("TUBEGATE_NETWORK_TESTS") == "1"

requires_network = pytest.mark.skipif(
    not NETWORK_TESTS, reason="live upstream tests disabled (set TUBEGATE_NETWORK_TESTS=1)"
)


# ─── Fakes ───────────────────────────────────────────────────────────────────

class FakeStrategy(Strategy):
    """Returns ``result`` or raises ``error``; records every call."""

    def __init__(self, name: str, result: Any = None, error: Optional[BaseException] = None) -> None:
        self.name = name
        self.result = result
        self.error = error
        self.calls: List[tuple] = []

    async def attempt(self, *args, **kwargs):
        self.calls.append(args)
        if self.error is not None:
            raise self.error
        return self.result


def failing(name: str, message: str = "boom") -> FakeStrategy:
    return FakeStrategy(name, error=StrategyFailed(message))


class ClosableChunks:
    """Async chunk iterator with a close hook that records being called."""

    def __init__(self, chunks: List[bytes], endless: bool = False) -> None:
        self.chunks = list(chunks)
        self.endless = endless
        self.closed = False

    async def iterate(self):
        for chunk in self.chunks:
            yield chunk
        while self.endless:
            yield b"x" * 1024

    async def close(self) -> None:
        self.closed = True


def make_source(chunks: List[bytes], endless: bool = False, **kwargs) -> tuple:
    upstream = ClosableChunks(chunks, endless=endless)
    source = MediaSource(
        upstream.iterate(),
        content_type=kwargs.pop("content_type", "video/mp4"),
        on_close=upstream.close,
        **kwargs,
    )
    return source, upstream


def mock_transport(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


# ─── Fixtures ────────────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path):
    """Settings pointing at an empty temp directory, subprocess tier off."""
    return Settings(
        cookies_file=tmp_path / "cookies.txt",
        cookies_json_file=tmp_path / "cookies.json",
        tokens_file=tmp_path / "tokens.json",
        cookie_cache_path=tmp_path / "cache" / "cookies.txt",
        relay_instances=["https://inv.example.org", "https://pipedapi.example.org"],
        subprocess_extractor="off",
        strategy_timeout_seconds=20,
    )


# ─── Helpers ─────────────────────────────────────────────────────────────────

async def assert_stream_playable(source: MediaSource, min_bytes: int = MIN_STREAM_BYTES, msg_prefix: str = "") -> int:
    """
    Read at least ``min_bytes`` from a live source, then release it.
    Returns the number of bytes read.
    """
    prefix = f"{msg_prefix}: " if msg_prefix else ""
    received = 0
    try:
        async for chunk in source.iter_bytes():
            received += len(chunk)
            if received >= min_bytes:
                break
    finally:
        await source.aclose()
    assert received >= min_bytes, (
        f"{prefix}stream too small ({received:,} bytes < {min_bytes:,}). "
        f"Likely an error page or empty response."
    )
    return received
