"""
Image relay: re-serves YouTube thumbnails and channel avatars from our own
origin so the browser never fetches them cross-origin.

Only hosts on the allow-list (or their subdomains) are fetched; anything else
is rejected before any outbound request is made.
"""

import logging
from typing import Optional, Tuple
from urllib.parse import quote, urlparse

import httpx

from .clients import DESKTOP_USER_AGENT
from .errors import GatewayError, InputValidationError
from .models import ErrorCode, ErrorDetail

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_HOSTS = (
    "i.ytimg.com",
    "i9.ytimg.com",
    "yt3.ggpht.com",
    "lh3.googleusercontent.com",
)

IMAGE_CACHE_CONTROL = "public, max-age=86400"  # 24 hours
PLACEHOLDER_IMAGE = "/placeholder.jpg"
PROXY_IMAGE_PATH = "/proxy-image"


def is_allowed_image_url(url: Optional[str]) -> bool:
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    host = (parsed.hostname or "").lower()
    return any(host == allowed or host.endswith("." + allowed) for allowed in ALLOWED_IMAGE_HOSTS)


def proxied_image_url(url: Optional[str]) -> str:
    """Rewrite an allow-listed image URL to go through the image relay."""
    if not url:
        return PLACEHOLDER_IMAGE
    if url.startswith("/") or url.startswith("data:"):
        return url
    if is_allowed_image_url(url):
        return f"{PROXY_IMAGE_PATH}?url={quote(url, safe='')}"
    return url


class ImageRelay:
    def __init__(
        self,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, url: Optional[str]) -> Tuple[bytes, str]:
        """Return (body, content_type) for an allow-listed image URL."""
        if not url:
            raise InputValidationError("Missing url parameter")
        if not is_allowed_image_url(url):
            raise InputValidationError("Invalid image host", code=ErrorCode.INVALID_IMAGE_HOST)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                resp = await client.get(url, headers={
                    "User-Agent": DESKTOP_USER_AGENT,
                    "Accept": "image/*",
                    "Referer": "https://www.youtube.com/",
                })
        except httpx.HTTPError as e:
            logger.error(f"Image proxy error: {e}")
            raise GatewayError(
                ErrorDetail(code=ErrorCode.NETWORK_ERROR, message="Image proxy error", is_transient=True),
                status_code=500,
            )

        if resp.status_code >= 400:
            logger.warning(f"⚠️ Image upstream returned HTTP {resp.status_code}: {url}")
            raise GatewayError(
                ErrorDetail(
                    code=ErrorCode.UPSTREAM_UNAVAILABLE,
                    message="Failed to fetch image",
                    is_transient=resp.status_code >= 500,
                ),
                status_code=resp.status_code,
            )

        return resp.content, resp.headers.get("content-type", "image/jpeg")
