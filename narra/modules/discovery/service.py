import re
import logging
from fastapi import HTTPException
from narra.config.plans_config import PLATFORMS
from narra.modules.discovery.scrape_creators import ScrapeCreatorsClient
from narra.modules.discovery.schemas import SearchResponse, PostsResponse, TranscriptResponse
from narra.modules.discovery.image_proxy import proxy_image_url
from narra.modules.discovery.transformers import profile_to_app, posts_to_app
from narra.modules.users.service import UsageService
from typing import Optional, Tuple
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

PROFILE_DISCOVERY_COUNTER = "monthly_profile_discoveries"
TRANSCRIPT_COUNTER = "monthly_transcripts_viewed"

_TIKTOK_VIDEO_ID = re.compile(r"/video/(\d+)")
_INSTAGRAM_SHORTCODE = re.compile(r"/(?:p|reel|reels|tv)/([A-Za-z0-9_-]+)")


def clean_handle(handle: Optional[str]) -> str:
    return (handle or "").strip().lstrip("@").strip()


def validate_platform(platform: Optional[str]) -> str:
    if platform not in PLATFORMS:
        raise HTTPException(status_code=400, detail="Platform must be 'instagram' or 'tiktok'")
    return platform


def parse_video_url(url: Optional[str]) -> Tuple[str, str]:
    """Return (platform, video id) for a TikTok or Instagram post URL, 400 otherwise"""
    if not url:
        raise HTTPException(status_code=400, detail="URL parameter required")
    parsed = urlparse(url)
    host = parsed.netloc.lower()
    if parsed.scheme not in ("http", "https"):
        raise HTTPException(status_code=400, detail="Invalid URL")
    if host == "tiktok.com" or host.endswith(".tiktok.com"):
        match = _TIKTOK_VIDEO_ID.search(parsed.path)
        return "tiktok", match.group(1) if match else parsed.path.rstrip("/").rsplit("/", 1)[-1]
    if host == "instagram.com" or host.endswith(".instagram.com"):
        match = _INSTAGRAM_SHORTCODE.search(parsed.path)
        return "instagram", match.group(1) if match else parsed.path.rstrip("/").rsplit("/", 1)[-1]
    raise HTTPException(status_code=400, detail="Only TikTok and Instagram URLs are supported")


class DiscoveryService:
    def __init__(self, client: ScrapeCreatorsClient, usage: UsageService):
        self.client = client
        self.usage = usage

    def search_profile(self, user_id: str, platform: Optional[str], handle: Optional[str]) -> SearchResponse:
        """Look up a creator profile, counting one profile discovery on success"""
        platform = validate_platform(platform)
        handle = clean_handle(handle)
        if not handle:
            raise HTTPException(status_code=400, detail="Handle cannot be empty")

        self.usage.check_limit(user_id, PROFILE_DISCOVERY_COUNTER)
        result = self.client.get_profile(platform, handle)
        if not result.success:
            raise HTTPException(status_code=500, detail=result.error or "Profile lookup failed")
        profile = profile_to_app(platform, result.data)
        if not profile:
            raise HTTPException(status_code=404, detail=f"Profile @{handle} not found on {platform}")
        profile["avatar_proxy_url"] = proxy_image_url(profile.get("avatar_url"), platform)

        self.usage.consume(user_id, PROFILE_DISCOVERY_COUNTER)
        logger.info(f"User {user_id} discovered {platform}/@{handle} (cached={result.cached})")
        return SearchResponse(profile=profile, cached=result.cached)

    def list_posts(
        self,
        platform: Optional[str],
        handle: Optional[str],
        max_cursor: Optional[str] = None,
        count: Optional[int] = None
    ) -> PostsResponse:
        platform = validate_platform(platform)
        handle = clean_handle(handle)
        if not handle:
            raise HTTPException(status_code=400, detail="Handle cannot be empty")

        if platform == "tiktok":
            result = self.client.get_tiktok_profile_videos(handle, max_cursor=max_cursor)
        else:
            result = self.client.get_instagram_posts(handle, count=count)
        if not result.success:
            raise HTTPException(status_code=500, detail=result.error or "Failed to fetch posts")

        data = result.data or {}
        if platform == "tiktok":
            has_more = data.get("has_more") in (1, True)
            next_cursor = data.get("max_cursor")
        else:
            has_more = bool(data.get("more_available"))
            next_cursor = data.get("next_max_id")
        posts = posts_to_app(platform, data, handle)
        for post in posts:
            post["thumbnail_proxy_url"] = proxy_image_url(post.get("thumbnail_url"), platform)
        return PostsResponse(
            posts=posts,
            has_more=has_more,
            max_cursor=next_cursor,
        )

    def get_transcript(self, user_id: str, url: Optional[str], language: str = "en") -> TranscriptResponse:
        """Fetch a video transcript, counting one transcript view on success"""
        platform, video_id = parse_video_url(url)
        self.usage.check_limit(user_id, TRANSCRIPT_COUNTER)
        result = self.client.get_transcript(platform, url, language=language)
        if not result.success:
            raise HTTPException(status_code=500, detail=result.error or "Failed to fetch transcript")

        self.usage.consume(user_id, TRANSCRIPT_COUNTER)
        return TranscriptResponse(id=video_id, url=url, transcript=result.data or "", cached=result.cached)
