"""
Format selection policy.

Video: progressive (audio+video muxed in one file) formats only, walking the
quality ladder 360p -> 480p -> 720p; if none of those exist, the lowest
progressive format available. Audio: the audio-only format with the highest
bitrate.

The same policy is applied to yt-dlp format lists and to the stream lists
returned by Invidious and Piped relay instances.
"""

from typing import Any, Dict, List, Optional

from .models import MediaKind

VIDEO_QUALITY_LADDER = ("360p", "480p", "720p")

DEFAULT_CONTENT_TYPES = {
    MediaKind.VIDEO: "video/mp4",
    MediaKind.AUDIO: "audio/webm",
}

_EXT_CONTENT_TYPES = {
    (MediaKind.VIDEO, "mp4"): "video/mp4",
    (MediaKind.VIDEO, "webm"): "video/webm",
    (MediaKind.VIDEO, "3gp"): "video/3gpp",
    (MediaKind.AUDIO, "m4a"): "audio/mp4",
    (MediaKind.AUDIO, "mp4"): "audio/mp4",
    (MediaKind.AUDIO, "webm"): "audio/webm",
    (MediaKind.AUDIO, "opus"): "audio/ogg",
}


def content_type_for(kind: MediaKind, ext: Optional[str] = None, mime: Optional[str] = None) -> str:
    """Response Content-Type for a selected stream."""
    if mime:
        base = mime.split(";")[0].strip()
        if base.startswith(("video/", "audio/")):
            return base
    if ext:
        found = _EXT_CONTENT_TYPES.get((kind, ext.lower()))
        if found:
            return found
    return DEFAULT_CONTENT_TYPES[kind]


def _has_codec(value: Optional[str]) -> bool:
    return bool(value) and value != "none"


def _height(fmt: Dict[str, Any]) -> int:
    height = fmt.get("height")
    if isinstance(height, (int, float)):
        return int(height)
    return 0


def _label_height(label: str) -> int:
    return int(label.rstrip("p"))


def _is_fetchable(fmt: Dict[str, Any]) -> bool:
    return bool(fmt.get("url")) and fmt.get("protocol", "https") in ("http", "https")


def select_format(formats: List[Dict[str, Any]], kind: MediaKind) -> Optional[Dict[str, Any]]:
    """Pick a format from a yt-dlp info dict's ``formats`` list."""
    usable = [f for f in formats if _is_fetchable(f)]

    if kind == MediaKind.AUDIO:
        audio_only = [
            f for f in usable
            if not _has_codec(f.get("vcodec")) and _has_codec(f.get("acodec"))
        ]
        if not audio_only:
            return None
        return max(audio_only, key=lambda f: f.get("abr") or f.get("tbr") or 0)

    progressive = [
        f for f in usable
        if _has_codec(f.get("vcodec")) and _has_codec(f.get("acodec"))
    ]
    return _walk_ladder(progressive, _height)


def _walk_ladder(candidates: List[Dict[str, Any]], height_of) -> Optional[Dict[str, Any]]:
    if not candidates:
        return None
    for label in VIDEO_QUALITY_LADDER:
        wanted = _label_height(label)
        for candidate in candidates:
            if height_of(candidate) == wanted:
                return candidate
    return min(candidates, key=lambda c: height_of(c) or float("inf"))


def _quality_label_height(label: Any) -> int:
    """'360p' / '720p60' / '640x360' -> 360."""
    if not label:
        return 0
    text = str(label)
    if "x" in text:
        text = text.split("x", 1)[1]
    digits = ""
    for ch in text:
        if not ch.isdigit():
            break
        digits += ch
    return int(digits) if digits else 0


def _bitrate(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def pick_piped_stream(data: Dict[str, Any], kind: MediaKind) -> Optional[Dict[str, Any]]:
    """Pick a stream from a Piped /streams/{id} response."""
    if kind == MediaKind.AUDIO:
        audio = [s for s in data.get("audioStreams") or [] if s.get("url")]
        if not audio:
            return None
        return max(audio, key=lambda s: _bitrate(s.get("bitrate")))

    video_streams = [s for s in data.get("videoStreams") or [] if s.get("url")]
    progressive = [s for s in video_streams if s.get("videoOnly") is False]
    return _walk_ladder(
        progressive,
        lambda s: s.get("height") or _quality_label_height(s.get("quality")),
    )


def pick_invidious_stream(data: Dict[str, Any], kind: MediaKind) -> Optional[Dict[str, Any]]:
    """Pick a stream from an Invidious /api/v1/videos/{id} response."""
    if kind == MediaKind.AUDIO:
        audio = [
            f for f in data.get("adaptiveFormats") or []
            if f.get("url") and "audio" in (f.get("type") or "")
        ]
        if not audio:
            return None
        return max(audio, key=lambda f: _bitrate(f.get("bitrate")))

    format_streams = [
        f for f in data.get("formatStreams") or []
        if f.get("url") and "video" in (f.get("type") or "video")
    ]
    return _walk_ladder(
        format_streams,
        lambda f: _quality_label_height(f.get("qualityLabel") or f.get("resolution") or f.get("size")),
    )
