import logging
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlencode, urlparse

import httpx

from narra.config.settings import settings

logger = logging.getLogger(__name__)

PROXY_PATH = "/api/v1/media/image-proxy"
CACHE_CONTROL = "public, max-age=86400, immutable"
DEFAULT_CONTENT_TYPE = "image/jpeg"

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)

_INSTAGRAM_HOSTS = ("instagram", "fbcdn", "cdninstagram")


@dataclass
class ProxiedImage:
    status_code: int
    content: bytes = b""
    content_type: str = DEFAULT_CONTENT_TYPE
    error: Optional[str] = None


def is_valid_image_url(url: Optional[str]) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def build_upstream_headers(url: str, platform: Optional[str] = None) -> Dict[str, str]:
    """Browser-like headers plus the Referer the platform CDN expects"""
    headers = {
        "User-Agent": _USER_AGENT,
        "Accept": "image/*,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }
    host = urlparse(url).netloc.lower()
    if platform == "tiktok" or "tiktok" in host:
        headers["Referer"] = "https://www.tiktok.com/"
        headers["Origin"] = "https://www.tiktok.com"
    elif platform == "instagram" or any(h in host for h in _INSTAGRAM_HOSTS):
        headers["Referer"] = "https://www.instagram.com/"
        headers["Origin"] = "https://www.instagram.com"
    return headers


def fetch_image(url: str, platform: Optional[str] = None, http_client: Optional[httpx.Client] = None) -> ProxiedImage:
    """Fetch an image from a platform CDN. Upstream status codes are mirrored; transport errors become 500."""
    client = http_client or httpx.Client(timeout=settings.scrape_timeout_seconds, follow_redirects=True)
    try:
        resp = client.get(url, headers=build_upstream_headers(url, platform))
    except httpx.HTTPError as e:
        logger.error(f"Image proxy error for {url}: {e}")
        return ProxiedImage(status_code=500, error="Failed to proxy image")
    finally:
        if http_client is None:
            client.close()

    if resp.status_code >= 400:
        logger.error(f"Failed to fetch image from {url} with status {resp.status_code}")
        return ProxiedImage(status_code=resp.status_code, error=f"Failed to fetch image: {resp.status_code}")

    return ProxiedImage(
        status_code=200,
        content=resp.content,
        content_type=resp.headers.get("content-type") or DEFAULT_CONTENT_TYPE,
    )


def proxy_image_url(url: Optional[str], platform: Optional[str] = None) -> Optional[str]:
    """Rewrite a CDN image URL to go through the image proxy. Relative and data: URLs pass through."""
    if not url or url.startswith("/") or url.startswith("data:"):
        return url
    params = {"url": url}
    if platform:
        params["platform"] = platform
    return f"{PROXY_PATH}?{urlencode(params)}"
