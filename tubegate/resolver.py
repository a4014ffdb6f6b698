"""
Source resolver: (video id, media kind) -> playable MediaSource.

Strategy order (tried sequentially until one succeeds):
  1. yt-dlp web+auth / ios+auth / android+auth
                          — stored cookies and visitor/PO token (only when credentials exist)
  2. yt-dlp web / ios / android
                          — same client profiles, no cookies or tokens
  3. relay instances      — Invidious / Piped mirrors resolve the stream URL; the
                            first instance whose URL can be fetched is streamed through
  4. subprocess extractor — `yt-dlp -o -` piped from stdout (only when enabled;
                            SUBPROCESS_EXTRACTOR=auto checks the binary is on PATH)

Every attempt builds its own yt-dlp options and HTTP client, so nothing one
strategy leaves behind can leak into the next.
"""

import logging
from typing import List, Optional

import httpx

from .clients import CLIENT_PROFILES, DESKTOP_USER_AGENT, ResolutionAttempt, build_ytdlp_opts, extract_info
from .config import Settings
from .credentials import AuthContext
from .errors import StrategiesExhausted, StrategyFailed, UpstreamUnavailable
from .formats import content_type_for, select_format
from .media import MediaSource, open_http_source, open_subprocess_source
from .models import ErrorCode, ErrorDetail, MediaKind
from .relays import RelayInstance
from .strategies import Strategy, run_strategies
from .validation import validate_video_id, watch_url

logger = logging.getLogger(__name__)

# Format selectors for the command-line extractor: itag 18 (360p) and 22 (720p)
# are the progressive mp4 formats
SUBPROCESS_FORMATS = {
    MediaKind.VIDEO: "18/22/best[vcodec!=none][acodec!=none]/worst",
    MediaKind.AUDIO: "bestaudio",
}


def _content_length(fmt: dict) -> Optional[int]:
    value = fmt.get("filesize") or fmt.get("contentLength") or fmt.get("clen")
    try:
        return int(value) if value else None
    except (TypeError, ValueError):
        return None


class DirectStreamStrategy(Strategy):
    """yt-dlp as a library, one client profile, with or without credentials."""

    def __init__(
        self,
        attempt: ResolutionAttempt,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.resolution = attempt
        self.name = attempt.strategy_name
        self.settings = settings
        self.transport = transport

    async def attempt(
        self,
        video_id: str,
        kind: MediaKind,
        range_header: Optional[str] = None,
    ) -> MediaSource:
        opts = build_ytdlp_opts(
            profile=self.resolution.client_profile,
            auth=self.resolution.auth,
            proxy=self.settings.proxy,
        )
        info = await extract_info(watch_url(video_id), opts, timeout=self.settings.strategy_timeout_seconds)

        fmt = select_format(info.get("formats") or [], kind)
        if fmt is None:
            raise StrategyFailed(f"no {kind.value} format found")

        logger.info(
            f"🎞️ {self.name}: format {fmt.get('format_id')} "
            f"({fmt.get('format_note') or fmt.get('height') or fmt.get('abr') or 'audio'})"
        )
        headers = dict(info.get("http_headers") or {})
        headers.update(fmt.get("http_headers") or {})
        headers.setdefault("User-Agent", self.resolution.client_profile.user_agent)

        return await open_http_source(
            fmt["url"],
            content_type=content_type_for(kind, ext=fmt.get("ext")),
            headers=headers,
            content_length=_content_length(fmt),
            range_header=range_header,
            transport=self.transport,
            origin=self.name,
        )


class RelayStreamStrategy(Strategy):
    """Ask a relay instance for a stream URL, then stream its body through."""

    def __init__(self, instance: RelayInstance, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.instance = instance
        self.name = instance.name
        self.transport = transport

    async def attempt(
        self,
        video_id: str,
        kind: MediaKind,
        range_header: Optional[str] = None,
    ) -> MediaSource:
        stream = await self.instance.fetch_stream(video_id, kind)
        logger.info(f"🔗 Got stream URL from {self.instance.host}")

        return await open_http_source(
            stream["url"],
            content_type=content_type_for(kind, mime=stream.get("mimeType") or stream.get("type")),
            headers={"User-Agent": DESKTOP_USER_AGENT, "Referer": "https://www.youtube.com/"},
            content_length=_content_length(stream),
            range_header=range_header,
            transport=self.transport,
            origin=self.name,
        )


class SubprocessStreamStrategy(Strategy):
    """Local command-line extractor writing the media to stdout."""

    def __init__(self, settings: Settings, auth: Optional[AuthContext] = None) -> None:
        self.settings = settings
        self.auth = auth
        self.name = f"subprocess ({settings.extractor_binary})"

    def build_argv(self, video_id: str, kind: MediaKind) -> List[str]:
        argv = [
            self.settings.extractor_binary,
            "--quiet", "--no-warnings", "--no-playlist", "--no-part",
            "-f", SUBPROCESS_FORMATS[kind],
            "-o", "-",
        ]
        if self.auth is not None and self.auth.cookie_file:
            argv += ["--cookies", str(self.auth.cookie_file)]
        if self.settings.proxy:
            argv += ["--proxy", self.settings.proxy]
        argv.append(watch_url(video_id))
        return argv

    async def attempt(
        self,
        video_id: str,
        kind: MediaKind,
        range_header: Optional[str] = None,
    ) -> MediaSource:
        if range_header:
            logger.info(f"{self.name}: range requests unsupported, streaming from the start")
        return await open_subprocess_source(
            self.build_argv(video_id, kind),
            content_type=content_type_for(kind, ext="mp4" if kind == MediaKind.VIDEO else None),
            first_chunk_timeout=self.settings.strategy_timeout_seconds,
            origin=self.name,
        )


class SourceResolver:
    """Multi-strategy stream resolution with automatic fallback."""

    def __init__(
        self,
        settings: Settings,
        auth: Optional[AuthContext] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.auth = auth
        self.transport = transport
        self.relays = [
            RelayInstance(url, transport=transport) for url in settings.relay_instances
        ]

    def build_attempts(self) -> List[ResolutionAttempt]:
        attempts: List[ResolutionAttempt] = []
        if self.auth is not None:
            for profile in CLIENT_PROFILES:
                attempts.append(ResolutionAttempt(f"yt-dlp {profile.name}+auth", profile, self.auth))
        for profile in CLIENT_PROFILES:
            attempts.append(ResolutionAttempt(f"yt-dlp {profile.name}", profile, None))
        return attempts

    def build_strategies(self, kind: MediaKind = MediaKind.VIDEO) -> List[Strategy]:
        strategies: List[Strategy] = [
            DirectStreamStrategy(attempt, self.settings, transport=self.transport)
            for attempt in self.build_attempts()
        ]
        strategies += [RelayStreamStrategy(relay, transport=self.transport) for relay in self.relays]
        if self.settings.subprocess_extractor_enabled():
            strategies.append(SubprocessStreamStrategy(self.settings, self.auth))
        return strategies

    def list_strategies(self, kind: MediaKind = MediaKind.VIDEO) -> List[str]:
        return [s.name for s in self.build_strategies(kind)]

    async def resolve_stream(
        self,
        video_id: str,
        kind: MediaKind = MediaKind.VIDEO,
        range_header: Optional[str] = None,
    ) -> MediaSource:
        """
        Resolve a playable source. Raises UpstreamUnavailable (503) when every
        strategy fails.
        """
        video_id = validate_video_id(video_id)
        strategies = self.build_strategies(kind)

        try:
            return await run_strategies(
                strategies, video_id, kind, range_header,
                label=f"stream {video_id}",
            )
        except StrategiesExhausted as e:
            logger.error(f"❌ Stream {video_id} ({kind.value}) unavailable: {'; '.join(e.summary())}")
            raise UpstreamUnavailable(
                ErrorDetail(
                    code=ErrorCode.UPSTREAM_UNAVAILABLE,
                    message="Video not available. All streaming methods failed.",
                    is_transient=True,
                    retry_after_seconds=60,
                    original_url=watch_url(video_id),
                ),
                status_code=503,
            )
