"""
Search service: free-text query -> page of VideoSummary.

Strategies:
  1. yt-dlp flat search (ytsearchN:query)
  2. each relay instance's search API

The requested count is capped at MAX_SEARCH_RESULTS whatever the caller asks for.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .clients import build_ytdlp_opts, extract_info
from .config import Settings
from .errors import GatewayError, StrategiesExhausted, StrategyFailed
from .images import proxied_image_url
from .models import ErrorCode, ErrorDetail, SearchResponse, VideoSummary
from .parsing import parse_duration, parse_upload_date, parse_view_count
from .relays import RelayInstance, default_thumbnail
from .strategies import Strategy, run_strategies
from .validation import VIDEO_ID_PATTERN

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 50
DEFAULT_SEARCH_LIMIT = 20


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_SEARCH_LIMIT
    return max(0, min(int(limit), MAX_SEARCH_RESULTS))


def summary_from_ytdlp_entry(entry: Dict[str, Any]) -> Optional[VideoSummary]:
    """Build a VideoSummary from a yt-dlp (flat) search entry."""
    video_id = entry.get("id")
    if not video_id or not VIDEO_ID_PATTERN.fullmatch(str(video_id)):
        return None

    thumbnails = [t for t in entry.get("thumbnails") or [] if t.get("url")]
    thumbnail = thumbnails[-1]["url"] if thumbnails else entry.get("thumbnail")

    return VideoSummary(
        video_id=video_id,
        title=entry.get("title") or "Unknown",
        thumbnail_url=thumbnail or default_thumbnail(video_id),
        channel_id=entry.get("channel_id"),
        channel_name=entry.get("channel") or entry.get("uploader") or "Unknown",
        duration_seconds=parse_duration(entry.get("duration") or entry.get("duration_string")),
        view_count=parse_view_count(entry.get("view_count")),
        published_at=parse_upload_date(entry.get("upload_date") or entry.get("timestamp")),
        is_live=entry.get("live_status") == "is_live" or bool(entry.get("is_live")),
    )


class YtDlpSearchStrategy(Strategy):
    name = "yt-dlp search"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def attempt(self, query: str, limit: int) -> List[VideoSummary]:
        opts = build_ytdlp_opts(proxy=self.settings.proxy)
        opts["extract_flat"] = "in_playlist"
        info = await extract_info(
            f"ytsearch{limit}:{query}", opts,
            timeout=self.settings.strategy_timeout_seconds,
            process=True,
        )
        entries = [e for e in info.get("entries") or [] if e]
        return [v for v in (summary_from_ytdlp_entry(e) for e in entries) if v]


class RelaySearchStrategy(Strategy):
    def __init__(self, instance: RelayInstance) -> None:
        self.instance = instance
        self.name = f"{instance.name} search"

    async def attempt(self, query: str, limit: int) -> List[VideoSummary]:
        videos = await self.instance.search(query, limit)
        if not videos:
            raise StrategyFailed(f"{self.instance.name}: no results")
        return videos


class SearchService:
    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.relays = [RelayInstance(url, transport=transport) for url in settings.relay_instances]

    def build_strategies(self) -> List[Strategy]:
        strategies: List[Strategy] = [YtDlpSearchStrategy(self.settings)]
        strategies += [RelaySearchStrategy(relay) for relay in self.relays]
        return strategies

    async def search(self, query: str, limit: Optional[int] = None) -> SearchResponse:
        limit = clamp_limit(limit)
        if limit == 0:
            return SearchResponse(query=query, total_results=0, videos=[])
        try:
            videos: List[VideoSummary] = await run_strategies(
                self.build_strategies(), query, limit, label="search",
            )
        except StrategiesExhausted as e:
            logger.error(f"Search API Error: {'; '.join(e.summary())}")
            raise GatewayError(
                ErrorDetail(
                    code=ErrorCode.UPSTREAM_UNAVAILABLE,
                    message="Search failed. Please try again.",
                    is_transient=True,
                    retry_after_seconds=30,
                ),
                status_code=500,
            )

        videos = videos[:limit]
        if self.settings.proxy_images:
            videos = [proxy_summary_images(v) for v in videos]
        return SearchResponse(query=query, total_results=len(videos), videos=videos)


def proxy_summary_images(summary: VideoSummary) -> VideoSummary:
    """Route thumbnail and avatar through /proxy-image."""
    return summary.model_copy(update={
        "thumbnail_url": proxied_image_url(summary.thumbnail_url),
        "channel_avatar_url": (
            proxied_image_url(summary.channel_avatar_url) if summary.channel_avatar_url else None
        ),
    })
