"""
Public Invidious / Piped relay instances.

Both are alternative YouTube frontends that resolve stream URLs on their own
servers. Invidious is asked with local=true so that the URLs it hands back are
proxied through the instance itself. A base URL containing "piped" is treated
as a Piped API instance, anything else as Invidious.

  Invidious: GET {instance}/api/v1/videos/{id}?local=true
             GET {instance}/api/v1/search?q=...&type=video
  Piped:     GET {instance}/streams/{id}
             GET {instance}/search?q=...&filter=videos
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import httpx

from .clients import DESKTOP_USER_AGENT
from .errors import StrategyFailed
from .formats import pick_invidious_stream, pick_piped_stream
from .models import MediaKind, VideoSummary
from .parsing import parse_duration, parse_view_count
from .validation import VIDEO_ID_PATTERN

logger = logging.getLogger(__name__)


def default_thumbnail(video_id: str) -> str:
    return f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"


class RelayInstance:
    """One public relay instance."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.host = urlparse(self.base_url).netloc or self.base_url
        self.is_piped = "piped" in self.base_url
        self.timeout = timeout
        self.transport = transport

    @property
    def kind(self) -> str:
        return "piped" if self.is_piped else "invidious"

    @property
    def name(self) -> str:
        return f"{self.kind} ({self.host})"

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                resp = await client.get(
                    url,
                    params=params,
                    headers={"User-Agent": DESKTOP_USER_AGENT, "Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise StrategyFailed(f"{self.name} request failed: {e}")

        if resp.status_code != 200:
            raise StrategyFailed(f"{self.name} returned HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError:
            raise StrategyFailed(f"{self.name} invalid JSON response")

        if isinstance(data, dict) and data.get("error"):
            raise StrategyFailed(f"{self.name} error: {data['error']}")
        return data

    # ─────────────────────────────────────────────────────────────────────────
    # Streams
    # ─────────────────────────────────────────────────────────────────────────

    async def fetch_stream(self, video_id: str, kind: MediaKind) -> Dict[str, Any]:
        """
        Return the chosen stream entry (always has a ``url``).
        Raises StrategyFailed when the instance has nothing usable.
        """
        if self.is_piped:
            data = await self._get_json(f"/streams/{video_id}")
            stream = pick_piped_stream(data, kind)
        else:
            data = await self._get_json(f"/api/v1/videos/{video_id}", params={"local": "true"})
            stream = pick_invidious_stream(data, kind)

        if not stream or not stream.get("url"):
            raise StrategyFailed(f"{self.name}: no {kind.value} stream available")

        url = stream["url"]
        if url.startswith("/"):
            # local=true answers with instance-relative URLs
            stream = dict(stream, url=f"{self.base_url}{url}")
        return stream

    # ─────────────────────────────────────────────────────────────────────────
    # Search
    # ─────────────────────────────────────────────────────────────────────────

    async def search(self, query: str, limit: int) -> List[VideoSummary]:
        if self.is_piped:
            data = await self._get_json("/search", params={"q": query, "filter": "videos"})
            items = data.get("items", []) if isinstance(data, dict) else []
            videos = [v for v in (self._piped_summary(i) for i in items) if v]
        else:
            data = await self._get_json("/api/v1/search", params={"q": query, "type": "video"})
            items = data if isinstance(data, list) else []
            videos = [v for v in (self._invidious_summary(i) for i in items) if v]
        return videos[:limit]

    def _invidious_summary(self, item: Dict[str, Any]) -> Optional[VideoSummary]:
        video_id = item.get("videoId")
        if item.get("type", "video") != "video" or not video_id:
            return None

        thumbnails = item.get("videoThumbnails") or []
        thumbnail = next(
            (t.get("url") for t in thumbnails if t.get("quality") in ("high", "medium") and t.get("url")),
            None,
        )
        if thumbnail and thumbnail.startswith("/"):
            thumbnail = f"{self.base_url}{thumbnail}"

        avatars = item.get("authorThumbnails") or []
        return VideoSummary(
            video_id=video_id,
            title=item.get("title") or "Unknown",
            thumbnail_url=thumbnail or default_thumbnail(video_id),
            channel_id=item.get("authorId"),
            channel_name=item.get("author") or "Unknown",
            channel_avatar_url=avatars[-1].get("url") if avatars else None,
            duration_seconds=parse_duration(item.get("lengthSeconds")),
            view_count=parse_view_count(item.get("viewCountText") or item.get("viewCount")),
            published_at=item.get("publishedText"),
            is_live=bool(item.get("liveNow", False)),
        )

    def _piped_summary(self, item: Dict[str, Any]) -> Optional[VideoSummary]:
        if item.get("type", "stream") != "stream":
            return None
        video_id = parse_qs(urlparse(item.get("url") or "").query).get("v", [None])[0]
        if not video_id or not VIDEO_ID_PATTERN.fullmatch(video_id):
            return None

        uploader_url = item.get("uploaderUrl") or ""
        channel_id = uploader_url.rsplit("/", 1)[-1] if uploader_url.startswith("/channel/") else None
        duration = item.get("duration")
        return VideoSummary(
            video_id=video_id,
            title=item.get("title") or "Unknown",
            thumbnail_url=item.get("thumbnail") or default_thumbnail(video_id),
            channel_id=channel_id,
            channel_name=item.get("uploaderName") or "Unknown",
            channel_avatar_url=item.get("uploaderAvatar"),
            duration_seconds=parse_duration(duration),
            view_count=parse_view_count(item.get("views")),
            published_at=item.get("uploadedDate"),
            is_live=duration == -1,
        )
