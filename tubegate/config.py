"""
Process configuration, read from environment variables once at startup.

Environment variables:
  COOKIES_FILE             — Netscape cookies.txt export (default: cookies.txt)
  COOKIES_JSON_FILE        — JSON array cookie export, tried first (default: cookies.json)
  TOKENS_FILE              — {"visitorData": ..., "poToken": ...} (default: tokens.json)
  COOKIE_CACHE_PATH        — Netscape copy of the cookies handed to yt-dlp
  RELAY_INSTANCES          — comma-separated Invidious/Piped base URLs
  SUBPROCESS_EXTRACTOR     — auto | on | off (auto = enabled when the binary is on PATH)
  EXTRACTOR_BINARY         — command-line extractor (default: yt-dlp)
  YTDLP_PROXY              — HTTP/SOCKS proxy URL for yt-dlp strategies
  STRATEGY_TIMEOUT_SECONDS — per-attempt timeout (default: 60)
  PROXY_IMAGES             — rewrite thumbnail URLs to /proxy-image (default: false)
  ALLOWED_ORIGINS          — CORS origins, comma separated (default: *)
  LOG_LEVEL                — root log level (default: INFO)
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

# Public Invidious/Piped instances, tried in order
DEFAULT_RELAY_INSTANCES = [
    "https://inv.nadeko.net",
    "https://invidious.nerdvpn.de",
    "https://invidious.jing.rocks",
    "https://pipedapi.kavin.rocks",
    "https://pipedapi.syncpundit.io",
]


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Gateway settings. Constructed once and passed to every service."""

    cookies_file: Path = Path("cookies.txt")
    cookies_json_file: Path = Path("cookies.json")
    tokens_file: Path = Path("tokens.json")
    cookie_cache_path: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "tubegate_cookies.txt"
    )
    relay_instances: List[str] = Field(default_factory=lambda: list(DEFAULT_RELAY_INSTANCES))
    subprocess_extractor: str = "auto"
    extractor_binary: str = "yt-dlp"
    proxy: Optional[str] = None
    strategy_timeout_seconds: float = 60.0
    proxy_images: bool = False
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        values = {
            "cookies_file": Path(os.getenv("COOKIES_FILE", "cookies.txt")),
            "cookies_json_file": Path(os.getenv("COOKIES_JSON_FILE", "cookies.json")),
            "tokens_file": Path(os.getenv("TOKENS_FILE", "tokens.json")),
            "subprocess_extractor": os.getenv("SUBPROCESS_EXTRACTOR", "auto").strip().lower(),
            "extractor_binary": os.getenv("EXTRACTOR_BINARY", "yt-dlp"),
            "proxy": os.getenv("YTDLP_PROXY") or None,
            "strategy_timeout_seconds": float(os.getenv("STRATEGY_TIMEOUT_SECONDS", "60")),
            "proxy_images": _env_bool("PROXY_IMAGES"),
            "allowed_origins": _split_csv(os.getenv("ALLOWED_ORIGINS", "*")) or ["*"],
            "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        }
        if os.getenv("COOKIE_CACHE_PATH"):
            values["cookie_cache_path"] = Path(os.environ["COOKIE_CACHE_PATH"])
        relays = _split_csv(os.getenv("RELAY_INSTANCES"))
        if relays:
            values["relay_instances"] = relays
        return cls(**values)

    def subprocess_extractor_enabled(self) -> bool:
        """True when the command-line extractor tier should be tried."""
        mode = self.subprocess_extractor
        if mode == "off":
            return False
        if mode == "on":
            return True
        return shutil.which(self.extractor_binary) is not None
