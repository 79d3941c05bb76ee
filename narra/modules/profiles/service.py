from supabase import Client
from narra.core.exceptions import UsageLimitExceeded
from narra.config.plans_config import is_unlimited
from narra.modules.discovery.service import clean_handle, validate_platform
from narra.modules.users.service import UsageService
from narra.modules.profiles.schemas import (
    ProfileResponse, FollowResponse, FollowedPostResponse, RefreshJobResponse,
    FollowByHandleRequest, FollowByHandleResponse
)
from typing import List, Dict, Any, Optional
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

FOLLOW_LIMIT_KEY = "profile_follows"


class FollowService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_profile(self, profile_id: str) -> ProfileResponse:
        result = self.supabase.table("profiles")\
            .select("*")\
            .eq("id", profile_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            raise HTTPException(status_code=404, detail="Profile not found")
        return ProfileResponse(**result.data)

    def _follow_limit(self, user_id: str) -> int:
        user = self.supabase.table("users")\
            .select("plan_id")\
            .eq("id", user_id)\
            .maybe_single()\
            .execute()
        if not user or not user.data or not user.data.get("plan_id"):
            raise HTTPException(status_code=403, detail="No active plan. Please select a plan to continue.")
        return UsageService(self.supabase).get_plan_limits(user.data["plan_id"]).get(FOLLOW_LIMIT_KEY, 0)

    def find_profile_by_handle(self, platform: str, handle: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("profiles")\
            .select("*")\
            .eq("platform", platform)\
            .eq("handle", handle)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            return None
        return result.data

    def is_following(self, user_id: str, profile_id: str) -> bool:
        result = self.supabase.table("follows")\
            .select("id")\
            .eq("user_id", user_id)\
            .eq("profile_id", profile_id)\
            .limit(1)\
            .execute()
        return bool(result.data)

    def _insert_follow(self, user_id: str, profile_id: str) -> FollowResponse:
        if self.is_following(user_id, profile_id):
            raise HTTPException(status_code=409, detail="Already following this profile")

        limit = self._follow_limit(user_id)
        if not is_unlimited(limit):
            current = self.supabase.table("follows")\
                .select("id", count="exact", head=True)\
                .eq("user_id", user_id)\
                .execute()
            used = current.count or 0
            if used >= limit:
                raise UsageLimitExceeded(FOLLOW_LIMIT_KEY, used, limit)

        result = self.supabase.table("follows")\
            .insert({"user_id": user_id, "profile_id": profile_id})\
            .execute()
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to follow profile")
        logger.info(f"User {user_id} followed profile {profile_id}")
        return FollowResponse(**result.data[0])

    def follow(self, user_id: str, profile_id: str) -> FollowResponse:
        """Follow a creator profile, bounded by the plan's profile_follows limit"""
        try:
            self.get_profile(profile_id)
            return self._insert_follow(user_id, profile_id)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def follow_by_handle(self, user_id: str, data: FollowByHandleRequest) -> FollowByHandleResponse:
        """
        Follow a creator found through discovery.
        The profile row is created or refreshed from the discovered metadata first,
        keyed by (platform, handle).
        """
        try:
            handle = clean_handle(data.handle)
            if not handle:
                raise HTTPException(status_code=400, detail="Handle cannot be empty")
            platform = validate_platform(data.platform)

            result = self.supabase.table("profiles")\
                .upsert({
                    "handle": handle,
                    "platform": platform,
                    "display_name": data.display_name or handle,
                    "bio": data.bio or "",
                    "followers_count": data.followers or 0,
                    "avatar_url": data.avatar_url or "",
                    "verified": bool(data.verified),
                    "last_updated": datetime.now(timezone.utc).isoformat(),
                }, on_conflict="platform,handle")\
                .execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to save profile")
            profile = result.data[0]

            follow = self._insert_follow(user_id, profile["id"])
            return FollowByHandleResponse(profile=ProfileResponse(**profile), follow=follow)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def unfollow(self, user_id: str, profile_id: str) -> None:
        try:
            self.supabase.table("follows")\
                .delete()\
                .eq("user_id", user_id)\
                .eq("profile_id", profile_id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def unfollow_by_handle(self, user_id: str, platform: str, handle: str) -> None:
        profile = self.find_profile_by_handle(validate_platform(platform), clean_handle(handle))
        if not profile:
            raise HTTPException(status_code=404, detail="Profile not found")
        self.unfollow(user_id, profile["id"])

    def is_following_handle(self, user_id: str, platform: str, handle: str) -> bool:
        """Unknown profiles are simply not followed"""
        profile = self.find_profile_by_handle(validate_platform(platform), clean_handle(handle))
        if not profile:
            return False
        return self.is_following(user_id, profile["id"])

    def list_following(self, user_id: str) -> List[ProfileResponse]:
        try:
            result = self.supabase.table("follows")\
                .select("created_at, profiles(*)")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            return [ProfileResponse(**row["profiles"]) for row in (result.data or []) if row.get("profiles")]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_followed_posts(self, user_id: str, limit: int = 50, offset: int = 0) -> List[FollowedPostResponse]:
        """Posts collected by refreshes of the profiles the user follows, newest first"""
        try:
            result = self.supabase.table("followed_posts")\
                .select("*, profiles(*)")\
                .eq("user_id", user_id)\
                .order("date_posted", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()
            return [FollowedPostResponse(**row) for row in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))


class RefreshJobService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def create_job(self, user_id: str, profile_id: str) -> Dict[str, Any]:
        result = self.supabase.table("refresh_jobs")\
            .insert({
                "user_id": user_id,
                "profile_id": profile_id,
                "status": "queued",
                "attempts": 0,
            })\
            .execute()
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to queue refresh")
        return result.data[0]

    def find_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("refresh_jobs")\
            .select("*")\
            .eq("id", job_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            return None
        return result.data

    def get_job_for_user(self, job_id: str, user_id: str) -> RefreshJobResponse:
        job = self.find_job(job_id)
        if not job or job.get("user_id") != user_id:
            raise HTTPException(status_code=404, detail="Refresh job not found")
        return RefreshJobResponse(**job)

    def update_job(self, job_id: str, updates: Dict[str, Any]) -> None:
        updates = {**updates, "updated_at": datetime.now(timezone.utc).isoformat()}
        self.supabase.table("refresh_jobs").update(updates).eq("id", job_id).execute()

    def list_retryable_jobs(self, max_attempts: int) -> List[Dict[str, Any]]:
        result = self.supabase.table("refresh_jobs")\
            .select("*")\
            .in_("status", ["failed", "queued", "running"])\
            .lt("attempts", max_attempts)\
            .order("created_at")\
            .execute()
        return result.data or []
