from fastapi import APIRouter, Depends
from narra.database.supabase_client import get_supabase
from narra.modules.auth.schemas import (
    CurrentUserResponse, AdminStatusResponse, CacheDebugResponse, CacheClearResponse
)
from narra.core.cache import AuthorizationCache, UserAccess
from narra.core.dependencies import (
    get_current_user, get_optional_user, get_current_access, get_auth_cache, get_user_access
)
from supabase import Client
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(
    user_data: Dict = Depends(get_current_user),
    access: UserAccess = Depends(get_current_access)
):
    """Get current authenticated user with plan and admin flag (for frontend UI)."""
    return CurrentUserResponse(
        **user_data,
        role="admin" if access.is_admin else "user",
        plan_id=access.plan_id,
        is_admin=access.is_admin,
    )


@router.get("/admin-status", response_model=AdminStatusResponse)
async def get_admin_status(
    user_data: Optional[Dict] = Depends(get_optional_user),
    supabase: Client = Depends(get_supabase),
    cache: AuthorizationCache = Depends(get_auth_cache)
):
    """Whether the caller is an admin. Never fails: any error reads as not admin."""
    if not user_data:
        return AdminStatusResponse(isAdmin=False)
    try:
        return AdminStatusResponse(isAdmin=get_user_access(user_data["id"], supabase, cache).is_admin)
    except Exception as e:
        logger.error(f"Error checking admin status: {e}")
        return AdminStatusResponse(isAdmin=False)


@router.get("/cache", response_model=CacheDebugResponse)
async def debug_cache(
    user_data: Dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    cache: AuthorizationCache = Depends(get_auth_cache)
):
    """Show the caller's cached authorization entry next to the database row"""
    user_id = user_data["id"]
    cached = cache.get(user_id)
    age = cache.age_seconds(user_id)

    result = supabase.table("users")\
        .select("plan_id, role, subscription_status")\
        .eq("id", user_id)\
        .maybe_single()\
        .execute()

    return CacheDebugResponse(
        userId=user_id,
        cached=cached is not None,
        cacheData={"planId": cached.plan_id, "isAdmin": cached.is_admin} if cached else None,
        cacheAgeMinutes=int(age // 60) if age is not None else None,
        cacheTtlMinutes=int(cache.ttl_seconds // 60),
        databaseData=result.data if result else None,
    )


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(
    user_data: Dict = Depends(get_current_user),
    cache: AuthorizationCache = Depends(get_auth_cache)
):
    """Drop the caller's cached authorization entry"""
    cache.delete(user_data["id"], reason="manual clear")
    return CacheClearResponse(success=True, message="Cache cleared")
