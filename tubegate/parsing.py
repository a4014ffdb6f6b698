"""
Normalization of the human-readable values search results come back with.
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

_VIEW_COUNT_CHARS = re.compile(r"[^0-9.KMB]", re.IGNORECASE)

_VIEW_COUNT_SCALE = {
    "B": 1_000_000_000,
    "M": 1_000_000,
    "K": 1_000,
}


def parse_duration(duration: Any) -> int:
    """
    Duration in seconds.

    Numbers are taken as seconds already. Strings are split on ':' and read as
    (H:)M:S, so "12:34" -> 754 and "1:23:45" -> 5025. Anything else is 0.
    """
    if duration is None or isinstance(duration, bool):
        return 0
    if isinstance(duration, (int, float)):
        return max(int(duration), 0)

    text = str(duration).strip()
    if not text:
        return 0
    try:
        parts = [int(p) for p in text.split(":")]
    except ValueError:
        return 0

    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    return 0


def parse_view_count(views: Any) -> int:
    """
    View count as an integer, e.g. "1.2M views" -> 1200000, "900K" -> 900000.
    """
    if views is None or isinstance(views, bool):
        return 0
    if isinstance(views, (int, float)):
        return max(int(views), 0)

    cleaned = _VIEW_COUNT_CHARS.sub("", str(views)).upper()
    number = re.match(r"\d+(?:\.\d+)?|\.\d+", cleaned)
    if not number:
        return 0
    value = float(number.group(0))

    for suffix, scale in _VIEW_COUNT_SCALE.items():
        if suffix in cleaned:
            return int(round(value * scale))
    return int(value)


def parse_upload_date(value: Any) -> Optional[str]:
    """yt-dlp upload_date (YYYYMMDD) or a unix timestamp -> ISO date."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc).date().isoformat()
    text = str(value)
    if len(text) == 8 and text.isdigit():
        return f"{text[:4]}-{text[4:6]}-{text[6:]}"
    return text
