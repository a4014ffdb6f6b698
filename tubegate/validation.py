import re
from typing import Optional

from .errors import InputValidationError
from .models import MediaKind

VIDEO_ID_PATTERN = re.compile(r"[a-zA-Z0-9_-]{11}")


def validate_video_id(video_id: Optional[str]) -> str:
    """Reject anything that is not an 11-character YouTube video id."""
    if not video_id:
        raise InputValidationError("Missing videoId parameter")
    if not VIDEO_ID_PATTERN.fullmatch(video_id):
        raise InputValidationError("Invalid videoId format")
    return video_id


def validate_media_kind(value: Optional[str]) -> MediaKind:
    if not value:
        return MediaKind.VIDEO
    try:
        return MediaKind(value.lower())
    except ValueError:
        raise InputValidationError(f"Invalid type '{value}' (expected video or audio)")


def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"
