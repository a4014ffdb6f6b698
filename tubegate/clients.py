"""
Client profiles and yt-dlp invocation helpers.

A client profile varies the player client yt-dlp impersonates and the outgoing
User-Agent, to reduce the chance of the request being blocked:
  web      — desktop web player
  ios      — iOS YouTube app protocol
  android  — Android YouTube app protocol
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yt_dlp

from .credentials import AuthContext
from .errors import StrategyFailed

logger = logging.getLogger(__name__)

DESKTOP_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) '
    'AppleWebKit/537.36 (KHTML, like Gecko) '
    'Chrome/120.0.0.0 Safari/537.36'
)


@dataclass(frozen=True)
class ClientProfile:
    name: str
    player_client: str
    user_agent: str


CLIENT_PROFILES = (
    ClientProfile("web", "web", DESKTOP_USER_AGENT),
    ClientProfile(
        "ios", "ios",
        'com.google.ios.youtube/19.10.5 (iPhone16,2; U; CPU iOS 17_4_1 like Mac OS X)',
    ),
    ClientProfile(
        "android", "android",
        'Mozilla/5.0 (Linux; Android 10; K) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36',
    ),
)


@dataclass(frozen=True)
class ResolutionAttempt:
    """One direct-access attempt: a client profile, with or without credentials."""
    strategy_name: str
    client_profile: ClientProfile
    auth: Optional[AuthContext] = None


def build_ytdlp_opts(
    profile: Optional[ClientProfile] = None,
    auth: Optional[AuthContext] = None,
    proxy: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a yt-dlp options dict for one attempt. Always a fresh dict."""
    extractor_args: Dict[str, Any] = {}
    if profile is not None:
        extractor_args['player_client'] = [profile.player_client]
    if auth is not None and auth.has_tokens:
        client = profile.player_client if profile is not None else 'web'
        extractor_args['po_token'] = [f'{client}+{auth.po_token}']
        extractor_args['visitor_data'] = [auth.visitor_data]

    opts: Dict[str, Any] = {
        'user_agent': profile.user_agent if profile is not None else DESKTOP_USER_AGENT,
        'http_headers': {
            'Accept-Language': 'en-US,en;q=0.9',
            'Referer': 'https://www.youtube.com/',
        },
        'quiet': True,
        'no_warnings': True,
        'noplaylist': True,
        'socket_timeout': 15,
        'retries': 2,
    }
    if extractor_args:
        opts['extractor_args'] = {'youtube': extractor_args}
    if auth is not None and auth.cookie_file:
        opts['cookiefile'] = str(auth.cookie_file)
    if proxy:
        opts['proxy'] = proxy
    return opts


async def extract_info(
    url: str,
    opts: Dict[str, Any],
    timeout: float,
    process: bool = False,
) -> Dict[str, Any]:
    """
    Run yt-dlp extraction (no download) in the default executor.
    Raises StrategyFailed on any yt-dlp or network failure.
    """
    def _extract():
        with yt_dlp.YoutubeDL(opts) as ydl:
            return ydl.extract_info(url, download=False, process=process)

    loop = asyncio.get_running_loop()
    try:
        info = await asyncio.wait_for(loop.run_in_executor(None, _extract), timeout=timeout)
    except asyncio.TimeoutError:
        raise StrategyFailed(f"yt-dlp timed out after {timeout:.0f}s")
    except yt_dlp.utils.DownloadError as e:
        raise StrategyFailed(str(e))

    if not info:
        raise StrategyFailed("yt-dlp returned no info")
    return info
