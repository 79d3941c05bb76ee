from supabase import Client
from narra.config.settings import settings
from narra.config.plans_config import (
    ACTIVE_SUBSCRIPTION_STATUSES, DEFAULT_SUBSCRIPTION_STATUS, DEFAULT_PLAN_LIMITS,
    USAGE_COUNTERS, get_limit_key, get_usage_level, is_unlimited
)
from narra.core.exceptions import UsageLimitExceeded
from narra.modules.users.schemas import UserResponse, SubscriptionStatusResponse, UsageResponse
from typing import Dict, Any, Optional
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def first_day_of_next_month(now: datetime) -> datetime:
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)


def _reset_payload(now: datetime) -> Dict[str, Any]:
    return {
        "monthly_profile_discoveries": 0,
        "monthly_transcripts_viewed": 0,
        "usage_reset_date": first_day_of_next_month(now).isoformat(),
        "updated_at": now.isoformat(),
    }


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def find_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("users")\
            .select("*")\
            .eq("id", user_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            return None
        return result.data

    def get_user(self, user_id: str) -> UserResponse:
        """Get user row by ID"""
        try:
            user = self.find_user(user_id)
            if not user:
                raise HTTPException(status_code=404, detail="User not found")
            return UserResponse(**user)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def sync_identity_user(self, user_id: str, email: str) -> bool:
        """Upsert a user from an identity-provider event. Returns True when the row was created.

        role and subscription_status are only written for new rows so a later update
        event never demotes an admin or resets a paid subscription.
        """
        existing = self.supabase.table("users")\
            .select("subscription_status")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        is_new = not existing.data

        user_data = {
            "id": user_id,
            "email": email,
            "updated_at": utcnow().isoformat(),
        }
        if is_new:
            user_data["role"] = "user"
            user_data["subscription_status"] = DEFAULT_SUBSCRIPTION_STATUS
            logger.info(f"Creating new user {user_id} with {DEFAULT_SUBSCRIPTION_STATUS} status")
        else:
            logger.info(
                f"Updating existing user {user_id}, preserving subscription status: "
                f"{existing.data[0].get('subscription_status')}"
            )

        self.supabase.table("users").upsert(user_data).execute()
        return is_new

    def get_subscription_status(self, user_id: str) -> SubscriptionStatusResponse:
        user = self.get_user(user_id)
        status = user.subscription_status or DEFAULT_SUBSCRIPTION_STATUS
        return SubscriptionStatusResponse(
            hasActiveSubscription=status in ACTIVE_SUBSCRIPTION_STATUSES,
            subscriptionStatus=status,
            planId=user.plan_id,
        )

    def update_subscription_fields(self, user_id: str, updates: Dict[str, Any]) -> None:
        updates = {**updates, "updated_at": utcnow().isoformat()}
        self.supabase.table("users").update(updates).eq("id", user_id).execute()


class UsageService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def reset_monthly_usage_counters(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Reset counters for every user whose usage_reset_date is strictly in the past"""
        now = now or utcnow()
        try:
            result = self.supabase.table("users")\
                .update(_reset_payload(now))\
                .lt("usage_reset_date", now.isoformat())\
                .execute()
            users_reset = len(result.data or [])
            logger.info(f"Reset monthly usage counters for {users_reset} users")
            return {"success": True, "usersReset": users_reset}
        except Exception as e:
            logger.error(f"Error resetting monthly usage counters: {e}")
            return {"success": False, "usersReset": 0, "error": str(e)}

    def check_and_reset_user_usage(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Reset a single user's counters if their reset date has passed"""
        now = now or utcnow()
        try:
            result = self.supabase.table("users")\
                .select("usage_reset_date")\
                .eq("id", user_id)\
                .maybe_single()\
                .execute()
            if not result or not result.data or not result.data.get("usage_reset_date"):
                return {"success": True, "resetNeeded": False}

            reset_date = datetime.fromisoformat(str(result.data["usage_reset_date"]).replace("Z", "+00:00"))
            if reset_date.tzinfo is None:
                reset_date = reset_date.replace(tzinfo=timezone.utc)
            if reset_date > now:
                return {"success": True, "resetNeeded": False}

            self.supabase.table("users").update(_reset_payload(now)).eq("id", user_id).execute()
            return {"success": True, "resetNeeded": True}
        except Exception as e:
            logger.error(f"Error checking usage reset for {user_id}: {e}")
            return {"success": False, "error": str(e)}

    def get_plan_limits(self, plan_id: str) -> Dict[str, int]:
        result = self.supabase.table("plans")\
            .select("limits")\
            .eq("id", plan_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data or not result.data.get("limits"):
            return dict(DEFAULT_PLAN_LIMITS)
        return {**DEFAULT_PLAN_LIMITS, **result.data["limits"]}

    def _get_usage_row(self, user_id: str) -> Dict[str, Any]:
        result = self.supabase.table("users")\
            .select("plan_id, monthly_profile_discoveries, monthly_transcripts_viewed, subscription_status")\
            .eq("id", user_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            raise HTTPException(status_code=404, detail="User not found")
        return result.data

    def get_usage(self, user_id: str) -> UsageResponse:
        """Counters, plan limits and warning levels for the usage display"""
        try:
            user = self._get_usage_row(user_id)
            if not user.get("plan_id"):
                raise HTTPException(status_code=404, detail="No active plan")
            limits = self.get_plan_limits(user["plan_id"])
            status = user.get("subscription_status") or DEFAULT_SUBSCRIPTION_STATUS

            subscription = self.supabase.table("subscriptions")\
                .select("billing_period, current_period_end")\
                .eq("user_id", user_id)\
                .eq("status", status)\
                .limit(1)\
                .execute()
            sub = subscription.data[0] if subscription.data else {}

            levels = {}
            for counter, meta in USAGE_COUNTERS.items():
                limit_key = meta["limit_key"]
                levels[limit_key] = get_usage_level(
                    user.get(counter) or 0, limits.get(limit_key), settings.usage_warning_ratio
                )

            return UsageResponse(
                plan_id=user["plan_id"],
                monthly_profile_discoveries=user.get("monthly_profile_discoveries") or 0,
                monthly_transcripts_viewed=user.get("monthly_transcripts_viewed") or 0,
                subscription_status=status,
                billing_period=sub.get("billing_period") or "monthly",
                current_period_end=sub.get("current_period_end"),
                limits=limits,
                levels=levels,
            )
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Usage lookup failed for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch usage data")

    def check_limit(self, user_id: str, counter: str) -> int:
        """Raise UsageLimitExceeded when the counter is at its plan limit, else return current usage"""
        limit_key = get_limit_key(counter)
        self.check_and_reset_user_usage(user_id)
        user = self._get_usage_row(user_id)
        if not user.get("plan_id"):
            raise HTTPException(status_code=403, detail="A plan is required")
        used = user.get(counter) or 0
        limit = self.get_plan_limits(user["plan_id"]).get(limit_key)
        if not is_unlimited(limit) and used >= limit:
            raise UsageLimitExceeded(counter, used, limit)
        return used

    def consume(self, user_id: str, counter: str) -> int:
        """Count one unit of a metered action, refusing once the plan limit is reached.

        Read-then-write without a lock; concurrent requests can overshoot by a few units.
        """
        used = self.check_limit(user_id, counter)
        self.supabase.table("users")\
            .update({counter: used + 1})\
            .eq("id", user_id)\
            .execute()
        return used + 1

    def reset_for_new_billing_cycle(self, user_id: str) -> None:
        now = utcnow()
        self.supabase.table("users").update(_reset_payload(now)).eq("id", user_id).execute()

    def count_follows(self, user_id: str) -> int:
        try:
            result = self.supabase.table("follows")\
                .select("id", count="exact", head=True)\
                .eq("user_id", user_id)\
                .execute()
            return result.count or 0
        except Exception as e:
            logger.error(f"Follow count failed for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch follow count")
