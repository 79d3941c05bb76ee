"""
ScrapeCreators API client (creator profiles, posts, transcripts).
Every call returns a ScrapeResult; transport and HTTP errors are reported, never raised.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from narra.config.settings import settings
from narra.core.cache import TTLCache

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    cached: bool = False

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success}
        if self.success:
            out["data"] = self.data
        else:
            out["error"] = self.error
        return out


class ScrapeCreatorsClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        cache_ttl: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.scrapecreators_api_key
        self.base_url = (base_url or settings.scrapecreators_base_url).rstrip("/")
        ttl = cache_ttl if cache_ttl is not None else settings.scrape_cache_ttl_seconds
        self._cache = TTLCache(ttl)
        self._http = http_client or httpx.Client(timeout=settings.scrape_timeout_seconds)

    def _get(self, path: str, params: Dict[str, Any]) -> ScrapeResult:
        if not self.api_key:
            return ScrapeResult(success=False, error="SCRAPECREATORS_API_KEY is not configured")

        params = {k: v for k, v in params.items() if v is not None}
        cache_key = (path, tuple(sorted((k, str(v)) for k, v in params.items())))
        cached = self._cache.get(cache_key)
        if cached is not None:
            return ScrapeResult(success=True, data=cached, cached=True)

        try:
            resp = self._http.get(
                f"{self.base_url}{path}",
                params=params,
                headers={"x-api-key": self.api_key, "Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"ScrapeCreators request to {path} failed: {e}")
            return ScrapeResult(success=False, error=str(e) or "Request failed")

        if resp.status_code >= 400:
            logger.error(f"ScrapeCreators {path} returned {resp.status_code}")
            return ScrapeResult(
                success=False,
                error=f"API request failed: {resp.status_code} {resp.reason_phrase}",
            )
        try:
            data = resp.json()
        except ValueError:
            return ScrapeResult(success=False, error="Invalid JSON from ScrapeCreators")

        self._cache.set(cache_key, data)
        return ScrapeResult(success=True, data=data)

    def get_instagram_profile(self, handle: str) -> ScrapeResult:
        return self._get("/v1/instagram/profile", {"handle": handle})

    def get_tiktok_profile(self, handle: str) -> ScrapeResult:
        return self._get("/v1/tiktok/profile", {"handle": handle})

    def get_profile(self, platform: str, handle: str) -> ScrapeResult:
        if platform == "tiktok":
            return self.get_tiktok_profile(handle)
        return self.get_instagram_profile(handle)

    def get_instagram_posts(self, handle: str, count: Optional[int] = None) -> ScrapeResult:
        return self._get("/v2/instagram/user/posts", {"handle": handle, "count": count})

    def get_tiktok_profile_videos(self, handle: str, max_cursor: Optional[str] = None) -> ScrapeResult:
        return self._get("/v3/tiktok/profile/videos", {"handle": handle, "max_cursor": max_cursor})

    def get_instagram_post(self, url: str) -> ScrapeResult:
        return self._get("/v1/instagram/post", {"url": url})

    def get_transcript(self, platform: str, url: str, language: str = "en") -> ScrapeResult:
        """Fetch a video transcript; data is normalised to the plain transcript text"""
        if platform == "tiktok":
            result = self._get("/v1/tiktok/video/transcript", {"url": url, "language": language})
            if result.success:
                result.data = (result.data or {}).get("transcript") or ""
            return result

        result = self._get("/v2/instagram/media/transcript", {"url": url})
        if result.success:
            transcripts = (result.data or {}).get("transcripts") or []
            result.data = "\n".join(t.get("text", "") for t in transcripts if t.get("text"))
        return result

    def close(self) -> None:
        self._http.close()


_client: Optional[ScrapeCreatorsClient] = None


def get_scrape_client() -> ScrapeCreatorsClient:
    """Process-wide client so the response cache is shared between requests"""
    global _client
    if _client is None:
        _client = ScrapeCreatorsClient()
    return _client
