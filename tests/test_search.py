import httpx
import pytest

from .conftest import FakeStrategy, failing, mock_transport
from tubegate.errors import GatewayError
from tubegate.models import VideoSummary
from tubegate.relays import RelayInstance
from tubegate.search import (
    MAX_SEARCH_RESULTS,
    SearchService,
    clamp_limit,
    summary_from_ytdlp_entry,
)


def _videos(n):
    return [
        VideoSummary(video_id=f"vid{i:08d}", title=f"Video {i}", thumbnail_url=f"https://i.ytimg.com/vi/{i}.jpg")
        for i in range(n)
    ]


def test_clamp_limit():
    assert clamp_limit(None) == 20
    assert clamp_limit(10) == 10
    assert clamp_limit(500) == MAX_SEARCH_RESULTS
    assert clamp_limit(0) == 0
    assert clamp_limit(-3) == 0


def test_summary_from_flat_entry():
    entry = {
        "id": "dQw4w9WgXcQ",
        "title": "Never Gonna Give You Up",
        "thumbnails": [{"url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/hq720.jpg"}],
        "channel": "Rick Astley",
        "channel_id": "UCuAXFkgsw1L7xaCfnd5JJOw",
        "duration": 212.0,
        "view_count": 1_500_000_000,
    }
    summary = summary_from_ytdlp_entry(entry)
    assert summary.duration_seconds == 212
    assert summary.thumbnail_url.endswith("hq720.jpg")
    assert summary.is_live is False

    assert summary_from_ytdlp_entry({"id": "UCuAXFkgsw1L7xaCfnd5JJOw", "title": "a channel"}) is None


@pytest.mark.parametrize("requested,expected", [(10, 10), (500, 50), (None, 20)])
async def test_results_never_exceed_the_cap(settings, monkeypatch, requested, expected):
    service = SearchService(settings)
    strategy = FakeStrategy("many", result=_videos(80))
    monkeypatch.setattr(service, "build_strategies", lambda: [strategy])

    result = await service.search("lofi", requested)

    assert result.total_results == expected
    assert len(result.videos) == expected
    assert strategy.calls == [("lofi", expected)]


@pytest.mark.parametrize("requested", [0, -5])
async def test_non_positive_limit_returns_nothing(settings, monkeypatch, requested):
    service = SearchService(settings)
    strategy = FakeStrategy("many", result=_videos(5))
    monkeypatch.setattr(service, "build_strategies", lambda: [strategy])

    result = await service.search("lofi", requested)

    assert result.total_results == 0
    assert result.videos == []
    assert strategy.calls == []


def test_entry_with_trailing_newline_id_is_skipped():
    assert summary_from_ytdlp_entry({"id": "dQw4w9WgXcQ\n", "title": "t"}) is None


async def test_search_falls_back_to_relays(settings, monkeypatch):
    service = SearchService(settings)
    relay = FakeStrategy("relay", result=_videos(3))
    monkeypatch.setattr(service, "build_strategies", lambda: [failing("yt-dlp search"), relay])

    result = await service.search("lofi", 5)
    assert [v.video_id for v in result.videos] == ["vid00000000", "vid00000001", "vid00000002"]


async def test_search_exhausted_is_500(settings, monkeypatch):
    service = SearchService(settings)
    monkeypatch.setattr(service, "build_strategies", lambda: [failing("a"), failing("b")])

    with pytest.raises(GatewayError) as exc:
        await service.search("lofi")
    assert exc.value.status_code == 500
    assert exc.value.detail.message == "Search failed. Please try again."


def test_strategy_order(settings):
    names = [s.name for s in SearchService(settings).build_strategies()]
    assert names == [
        "yt-dlp search",
        "invidious (inv.example.org) search",
        "piped (pipedapi.example.org) search",
    ]


async def test_proxy_images(settings, monkeypatch):
    settings.proxy_images = True
    service = SearchService(settings)
    video = VideoSummary(
        video_id="dQw4w9WgXcQ", title="t",
        thumbnail_url="https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg",
        channel_avatar_url="https://yt3.ggpht.com/avatar=s88",
    )
    monkeypatch.setattr(service, "build_strategies", lambda: [FakeStrategy("one", result=[video])])

    result = await service.search("rick", 1)

    assert result.videos[0].thumbnail_url.startswith("/proxy-image?url=")
    assert result.videos[0].channel_avatar_url.startswith("/proxy-image?url=")


# ─── Relay search parsing ─────────────────────────────────────────────────────

async def test_invidious_search_results():
    def handler(request):
        assert request.url.path == "/api/v1/search"
        return httpx.Response(200, json=[
            {"type": "channel", "author": "Someone"},
            {
                "type": "video", "videoId": "dQw4w9WgXcQ", "title": "Never Gonna Give You Up",
                "author": "Rick Astley", "authorId": "UCuAXFkgsw1L7xaCfnd5JJOw",
                "videoThumbnails": [{"quality": "maxres", "url": "https://i.ytimg.com/maxres.jpg"},
                                    {"quality": "high", "url": "/vi/dQw4w9WgXcQ/hqdefault.jpg"}],
                "lengthSeconds": 212, "viewCountText": "1.5B views", "publishedText": "14 years ago",
                "liveNow": False,
            },
        ])

    videos = await RelayInstance("https://inv.example.org", transport=mock_transport(handler)).search("rick", 10)

    assert len(videos) == 1
    video = videos[0]
    assert video.thumbnail_url == "https://inv.example.org/vi/dQw4w9WgXcQ/hqdefault.jpg"
    assert video.view_count == 1_500_000_000
    assert video.duration_seconds == 212
    assert video.channel_name == "Rick Astley"


async def test_piped_search_results():
    def handler(request):
        assert request.url.params["filter"] == "videos"
        return httpx.Response(200, json={"items": [
            {
                "type": "stream", "url": "/watch?v=dQw4w9WgXcQ", "title": "Never Gonna Give You Up",
                "thumbnail": "https://pipedproxy.example.org/vi/dQw4w9WgXcQ/hqdefault.jpg",
                "uploaderName": "Rick Astley", "uploaderUrl": "/channel/UCuAXFkgsw1L7xaCfnd5JJOw",
                "duration": 212, "views": 1500000000, "uploadedDate": "14 years ago",
            },
            {"type": "stream", "url": "/watch?v=live_stream", "title": "24/7 radio", "duration": -1},
            {"type": "playlist", "url": "/playlist?list=PL123"},
        ]})

    videos = await RelayInstance("https://pipedapi.example.org", transport=mock_transport(handler)).search("rick", 10)

    assert [v.video_id for v in videos] == ["dQw4w9WgXcQ", "live_stream"]
    assert videos[0].channel_id == "UCuAXFkgsw1L7xaCfnd5JJOw"
    assert videos[0].is_live is False
    assert videos[1].is_live is True
    assert videos[1].duration_seconds == 0
    assert videos[1].thumbnail_url == "https://i.ytimg.com/vi/live_stream/hqdefault.jpg"
