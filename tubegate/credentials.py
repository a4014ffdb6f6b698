"""
Loads optional YouTube session cookies and visitor/PO tokens from local files.

Two cookie formats are accepted:
  cookies.json — JSON array as exported by browser cookie extensions
  cookies.txt  — Netscape tab-separated export (the format yt-dlp reads)

The JSON file wins when both exist. Whatever was loaded is re-rendered as a
Netscape file at COOKIE_CACHE_PATH: yt-dlp saves its cookie jar back to the
cookiefile on exit, so it is never pointed at the user's own export.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .config import Settings

logger = logging.getLogger(__name__)

_HTTPONLY_PREFIX = "#HttpOnly_"


@dataclass(frozen=True)
class Cookie:
    domain: str
    name: str
    value: str
    path: str = "/"
    secure: bool = False
    http_only: bool = False
    expires: Optional[int] = None


@dataclass(frozen=True)
class AuthContext:
    """Credentials used by the authenticated strategies. Read-only after startup."""
    cookies: Tuple[Cookie, ...] = field(default_factory=tuple)
    visitor_data: Optional[str] = None
    po_token: Optional[str] = None
    cookie_file: Optional[Path] = None

    @property
    def has_tokens(self) -> bool:
        return bool(self.visitor_data and self.po_token)


def parse_json_cookies(text: str) -> List[Cookie]:
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("cookie JSON must be an array")

    cookies: List[Cookie] = []
    for item in data:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        expires = item.get("expirationDate") or item.get("expires")
        cookies.append(Cookie(
            domain=item.get("domain") or ".youtube.com",
            name=str(item["name"]),
            value=str(item.get("value", "")),
            path=item.get("path") or "/",
            secure=bool(item.get("secure", False)),
            http_only=bool(item.get("httpOnly", False)),
            expires=int(expires) if isinstance(expires, (int, float)) and expires > 0 else None,
        ))
    return cookies


def parse_netscape_cookies(text: str) -> List[Cookie]:
    cookies: List[Cookie] = []
    for line in text.splitlines():
        http_only = False
        if line.startswith(_HTTPONLY_PREFIX):
            line = line[len(_HTTPONLY_PREFIX):]
            http_only = True
        if not line.strip() or line.startswith("#"):
            continue

        parts = line.split("\t")
        if len(parts) < 7:
            continue
        try:
            expires = int(parts[4]) or None
        except ValueError:
            expires = None
        cookies.append(Cookie(
            domain=parts[0],
            name=parts[5],
            value=parts[6].strip(),
            path=parts[2],
            secure=parts[3].upper() == "TRUE",
            http_only=http_only,
            expires=expires,
        ))
    return cookies


def render_netscape(cookies: List[Cookie]) -> str:
    lines = ["# Netscape HTTP Cookie File", ""]
    for c in cookies:
        domain = f"{_HTTPONLY_PREFIX}{c.domain}" if c.http_only else c.domain
        lines.append("\t".join([
            domain,
            "TRUE" if c.domain.startswith(".") else "FALSE",
            c.path,
            "TRUE" if c.secure else "FALSE",
            str(c.expires or 0),
            c.name,
            c.value,
        ]))
    return "\n".join(lines) + "\n"


def load_cookies(json_path: Path, txt_path: Path) -> Optional[List[Cookie]]:
    """Load cookies from the JSON export, falling back to cookies.txt."""
    if json_path.exists():
        try:
            cookies = parse_json_cookies(json_path.read_text(encoding="utf-8"))
            if cookies:
                logger.info(f"🍪 Loaded {len(cookies)} cookies from {json_path.name}")
                return cookies
        except (OSError, ValueError) as e:
            logger.error(f"❌ Error loading {json_path}: {e}")

    if txt_path.exists():
        try:
            cookies = parse_netscape_cookies(txt_path.read_text(encoding="utf-8"))
            if cookies:
                logger.info(f"🍪 Loaded {len(cookies)} cookies from {txt_path.name}")
                return cookies
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"❌ Error loading {txt_path}: {e}")

    return None


def load_tokens(path: Path) -> Optional[Tuple[str, str]]:
    """Return (visitor_data, po_token), only when both are present."""
    if not path.exists():
        return None
    try:
        tokens = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error(f"❌ Error loading tokens from {path}: {e}")
        return None

    if isinstance(tokens, dict) and tokens.get("visitorData") and tokens.get("poToken"):
        logger.info("🎫 Loaded PO token and visitor data")
        return str(tokens["visitorData"]), str(tokens["poToken"])
    logger.warning(f"⚠️ {path.name} needs both visitorData and poToken — ignoring it")
    return None


def load_auth_context(settings: Settings) -> Optional[AuthContext]:
    """Build the authentication context, or None when no credentials exist."""
    cookies = load_cookies(settings.cookies_json_file, settings.cookies_file)
    tokens = load_tokens(settings.tokens_file)

    if not cookies and not tokens:
        logger.warning(
            "⚠️ Running without cookies or tokens — authenticated strategies disabled "
            "(bot detection risk)"
        )
        return None

    cookie_file: Optional[Path] = None
    if cookies:
        try:
            settings.cookie_cache_path.parent.mkdir(parents=True, exist_ok=True)
            settings.cookie_cache_path.write_text(render_netscape(cookies), encoding="utf-8")
            cookie_file = settings.cookie_cache_path
        except OSError as e:
            logger.error(f"❌ Failed to write cookie file for yt-dlp: {e}")

    visitor_data, po_token = tokens if tokens else (None, None)
    return AuthContext(
        cookies=tuple(cookies or ()),
        visitor_data=visitor_data,
        po_token=po_token,
        cookie_file=cookie_file,
    )
