"""
Profile refresh: pull a creator's latest posts into followed_posts for one follower.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from supabase import Client

from narra.config.settings import settings
from narra.modules.discovery.scrape_creators import ScrapeCreatorsClient
from narra.modules.discovery.transformers import extract_post_items, item_to_post, profile_to_app

logger = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    success: bool
    new_posts: int = 0
    errors: int = 0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "newPosts": self.new_posts,
            "errors": self.errors,
            "message": self.message,
        }


class ProfileRefreshService:
    def __init__(
        self,
        supabase: Client,
        client: ScrapeCreatorsClient,
        fetch_count: Optional[int] = None,
        post_limit: Optional[int] = None
    ):
        self.supabase = supabase
        self.client = client
        self.fetch_count = fetch_count or settings.refresh_fetch_count
        self.post_limit = post_limit or settings.refresh_post_limit

    def refresh(self, user_id: str, profile_id: str) -> RefreshResult:
        """Fetch the latest posts and store the ones this user has not seen yet. Never raises."""
        try:
            profile = self._load_profile(profile_id)
            if not profile:
                return RefreshResult(success=False, errors=1, message=f"Profile not found: {profile_id}")

            platform, handle = profile["platform"], profile["handle"]
            logger.info(f"Refreshing {platform}/@{handle} for user {user_id}")
            self._refresh_metadata(profile)

            items = self._fetch_latest_items(platform, handle)
            if items is None:
                return RefreshResult(
                    success=False, errors=1, message=f"Failed to fetch posts for @{handle}"
                )

            candidates: List[Dict[str, Any]] = []
            errors = 0
            for index, item in enumerate(items[:self.post_limit]):
                try:
                    post = item_to_post(platform, item, handle)
                except Exception as e:
                    logger.error(f"Error transforming post at index {index} for @{handle}: {e}")
                    errors += 1
                    continue
                if post:
                    candidates.append(post)

            existing = self._existing_post_ids(user_id, profile_id, [p["platform_post_id"] for p in candidates])
            new_rows = []
            for post in candidates:
                if post["platform_post_id"] in existing:
                    logger.debug(f"Post {post['platform_post_id']} already stored, skipping")
                    continue
                existing.add(post["platform_post_id"])
                new_rows.append({**post, "user_id": user_id, "profile_id": profile_id})

            new_posts = 0
            if new_rows:
                try:
                    self.supabase.table("followed_posts").insert(new_rows).execute()
                    new_posts = len(new_rows)
                except Exception as e:
                    logger.error(f"Error inserting {len(new_rows)} posts for @{handle}: {e}")
                    errors += len(new_rows)

            self._stamp_last_refresh(user_id, profile_id)
            message = f"Refreshed @{handle}: {new_posts} new posts, {errors} errors"
            logger.info(message)
            return RefreshResult(success=True, new_posts=new_posts, errors=errors, message=message)
        except Exception as e:
            logger.exception(f"Refresh of profile {profile_id} for user {user_id} failed")
            return RefreshResult(success=False, errors=1, message=str(e) or "Unknown error")

    def _load_profile(self, profile_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("profiles")\
            .select("*")\
            .eq("id", profile_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            return None
        return result.data

    def _refresh_metadata(self, profile: Dict[str, Any]) -> None:
        result = self.client.get_profile(profile["platform"], profile["handle"])
        if not result.success:
            logger.warning(f"Could not refresh metadata for @{profile['handle']}: {result.error}")
            return
        fresh = profile_to_app(profile["platform"], result.data)
        if not fresh:
            return
        try:
            self.supabase.table("profiles")\
                .update({
                    "display_name": fresh["display_name"],
                    "bio": fresh["bio"],
                    "followers_count": fresh["followers"],
                    "avatar_url": fresh["avatar_url"],
                    "verified": fresh["verified"],
                    "last_updated": datetime.now(timezone.utc).isoformat(),
                })\
                .eq("id", profile["id"])\
                .execute()
        except Exception as e:
            logger.error(f"Error updating metadata for profile {profile['id']}: {e}")

    def _fetch_latest_items(self, platform: str, handle: str) -> Optional[List[Dict[str, Any]]]:
        if platform == "tiktok":
            result = self.client.get_tiktok_profile_videos(handle)
        else:
            result = self.client.get_instagram_posts(handle, count=self.fetch_count)
        if not result.success:
            logger.error(f"Fetching posts for {platform}/@{handle} failed: {result.error}")
            return None
        return extract_post_items(platform, result.data)[:self.fetch_count]

    def _existing_post_ids(self, user_id: str, profile_id: str, post_ids: List[str]) -> Set[str]:
        if not post_ids:
            return set()
        result = self.supabase.table("followed_posts")\
            .select("platform_post_id")\
            .eq("user_id", user_id)\
            .eq("profile_id", profile_id)\
            .in_("platform_post_id", post_ids)\
            .execute()
        return {row["platform_post_id"] for row in (result.data or [])}

    def _stamp_last_refresh(self, user_id: str, profile_id: str) -> None:
        try:
            self.supabase.table("follows")\
                .update({"last_refresh": datetime.now(timezone.utc).isoformat()})\
                .eq("user_id", user_id)\
                .eq("profile_id", profile_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error updating last_refresh for {user_id}/{profile_id}: {e}")
