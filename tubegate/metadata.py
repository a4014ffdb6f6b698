"""
Metadata resolver: video id -> VideoInfo for the watch page.

Strategies:
  1. yt-dlp info extraction with stored credentials (only when they exist)
  2. yt-dlp info extraction without credentials
  3. search fallback — search for the id itself and take the exact-id match;
     often works for public videos when the player API is blocked

The HTTP status of a total failure comes from the FIRST strategy's error:
"video unavailable" -> 404, "sign in" -> 403, anything else -> 502.
"""

import logging
from typing import Any, Dict, Optional

from .clients import build_ytdlp_opts, extract_info
from .config import Settings
from .credentials import AuthContext
from .errors import GatewayError, StrategiesExhausted, StrategyFailed, UpstreamUnavailable, classify_upstream_error
from .models import ErrorCode, ErrorDetail, VideoInfo
from .parsing import parse_duration, parse_upload_date, parse_view_count
from .relays import default_thumbnail
from .search import SearchService, proxy_summary_images
from .strategies import Strategy, run_strategies
from .validation import validate_video_id, watch_url

logger = logging.getLogger(__name__)


def info_from_ytdlp(info: Dict[str, Any]) -> VideoInfo:
    """Build VideoInfo from a yt-dlp info dict."""
    video_id = info.get("id")
    thumbnails = [t for t in info.get("thumbnails") or [] if t.get("url")]
    thumbnail = info.get("thumbnail") or (thumbnails[-1]["url"] if thumbnails else None)
    categories = info.get("categories") or []

    return VideoInfo(
        video_id=video_id,
        title=info.get("title") or "Unknown",
        description=info.get("description") or "",
        thumbnail_url=thumbnail or default_thumbnail(video_id),
        channel_id=info.get("channel_id"),
        channel_name=info.get("channel") or info.get("uploader") or "Unknown",
        duration_seconds=parse_duration(info.get("duration")),
        view_count=parse_view_count(info.get("view_count")),
        published_at=parse_upload_date(info.get("upload_date")),
        keywords=list(info.get("tags") or []),
        category=categories[0] if categories else None,
        is_live=bool(info.get("is_live") or info.get("live_status") == "is_live"),
    )


class DirectInfoStrategy(Strategy):
    def __init__(self, settings: Settings, auth: Optional[AuthContext] = None) -> None:
        self.settings = settings
        self.auth = auth
        self.name = "yt-dlp info+auth" if auth is not None else "yt-dlp info"

    async def attempt(self, video_id: str) -> VideoInfo:
        opts = build_ytdlp_opts(auth=self.auth, proxy=self.settings.proxy)
        info = await extract_info(watch_url(video_id), opts, timeout=self.settings.strategy_timeout_seconds)
        if info.get("id") != video_id:
            raise StrategyFailed(f"yt-dlp returned info for {info.get('id')!r}")
        return info_from_ytdlp(info)


class SearchLookupStrategy(Strategy):
    name = "search lookup"

    def __init__(self, search_service: SearchService) -> None:
        self.search_service = search_service

    async def attempt(self, video_id: str) -> VideoInfo:
        try:
            results = await self.search_service.search(video_id, limit=5)
        except GatewayError as e:
            raise StrategyFailed(f"search fallback failed: {e}")
        for video in results.videos:
            if video.video_id == video_id:
                return VideoInfo(**video.model_dump())
        raise StrategyFailed(f"search returned no exact match for {video_id}")


class MetadataResolver:
    def __init__(
        self,
        settings: Settings,
        search_service: SearchService,
        auth: Optional[AuthContext] = None,
    ) -> None:
        self.settings = settings
        self.search_service = search_service
        self.auth = auth

    def build_strategies(self) -> list:
        strategies = []
        if self.auth is not None:
            strategies.append(DirectInfoStrategy(self.settings, self.auth))
        strategies.append(DirectInfoStrategy(self.settings))
        strategies.append(SearchLookupStrategy(self.search_service))
        return strategies

    async def resolve_info(self, video_id: str) -> VideoInfo:
        video_id = validate_video_id(video_id)

        try:
            info: VideoInfo = await run_strategies(
                self.build_strategies(), video_id, label=f"info {video_id}",
            )
        except StrategiesExhausted as e:
            raise self._unavailable(video_id, e)

        logger.info(f"✅ Info resolved: {info.title} ({info.duration_seconds}s)")
        if self.settings.proxy_images:
            info = proxy_summary_images(info)
        return info

    def _unavailable(self, video_id: str, exhausted: StrategiesExhausted) -> UpstreamUnavailable:
        logger.error(f"❌ Info {video_id} unavailable: {'; '.join(exhausted.summary())}")

        classified = classify_upstream_error(exhausted.first_message)
        if classified is not None:
            status_code, code, message = classified
            return UpstreamUnavailable(
                ErrorDetail(
                    code=code,
                    message=message,
                    is_transient=False,
                    original_url=watch_url(video_id),
                ),
                status_code=status_code,
            )

        return UpstreamUnavailable(
            ErrorDetail(
                code=ErrorCode.UPSTREAM_UNAVAILABLE,
                message="Failed to fetch info",
                is_transient=True,
                retry_after_seconds=60,
                original_url=watch_url(video_id),
            ),
            status_code=502,
        )
