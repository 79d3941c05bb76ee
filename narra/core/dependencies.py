"""
Core dependencies for the request gate: session check, admin gate and plan gate
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from narra.config.plans_config import SIGN_IN_REDIRECT, DASHBOARD_REDIRECT, SELECT_PLAN_REDIRECT
from narra.core.cache import AuthorizationCache, UserAccess
from narra.core.exceptions import GateRejected
from narra.database.supabase_client import get_supabase
from narra.modules.auth.service import AuthService
from supabase import Client
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

SESSION_COOKIE = "__session"


def get_auth_cache(request: Request) -> AuthorizationCache:
    """Process-wide authorization cache, created by the app factory"""
    return request.app.state.auth_cache


def get_auth_service(
    supabase: Client = Depends(get_supabase),
    cache: AuthorizationCache = Depends(get_auth_cache)
) -> AuthService:
    return AuthService(supabase, cache)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict:
    """Resolve the signed-in user from the bearer token or the session cookie"""
    token = credentials.credentials if credentials else request.cookies.get(SESSION_COOKIE)
    if not token:
        raise GateRejected(status.HTTP_401_UNAUTHORIZED, "Unauthorized", redirect=SIGN_IN_REDIRECT)
    try:
        return auth_service.verify_session_token(token)
    except HTTPException as e:
        if e.status_code == status.HTTP_401_UNAUTHORIZED:
            raise GateRejected(status.HTTP_401_UNAUTHORIZED, e.detail, redirect=SIGN_IN_REDIRECT)
        raise


def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Optional[Dict]:
    """Like get_current_user but returns None instead of rejecting the request"""
    try:
        return get_current_user(request, credentials, auth_service)
    except HTTPException:
        return None


def get_user_access(user_id: str, supabase: Client, cache: AuthorizationCache) -> UserAccess:
    """Plan id and admin flag for a user: cache first, database on miss or expiry."""
    cached = cache.get(user_id)
    if cached is not None:
        return cached
    try:
        result = supabase.table("users")\
            .select("plan_id, role")\
            .eq("id", user_id)\
            .maybe_single()\
            .execute()
    except Exception as e:
        logger.error(f"Error loading access data for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load user access")
    if not result or not result.data:
        # Not cached so the row is picked up as soon as the identity webhook creates it
        return UserAccess(plan_id=None, is_admin=False, timestamp=0.0)
    return cache.set(user_id, result.data.get("plan_id"), result.data.get("role") == "admin")


def get_current_access(
    user_data: Dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    cache: AuthorizationCache = Depends(get_auth_cache)
) -> UserAccess:
    return get_user_access(user_data["id"], supabase, cache)


def require_admin(
    user_data: Dict = Depends(get_current_user),
    access: UserAccess = Depends(get_current_access)
) -> Dict:
    """Dependency for admin-only routes"""
    if not access.is_admin:
        logger.info(f"User {user_data['id']} rejected from admin route")
        raise GateRejected(status.HTTP_403_FORBIDDEN, "Forbidden", redirect=DASHBOARD_REDIRECT)
    return user_data


def require_plan(
    user_data: Dict = Depends(get_current_user),
    access: UserAccess = Depends(get_current_access)
) -> Dict:
    """Dependency for plan-gated routes: the user must have selected a plan"""
    if not access.plan_id:
        raise GateRejected(status.HTTP_403_FORBIDDEN, "A plan is required", redirect=SELECT_PLAN_REDIRECT)
    return {**user_data, "plan_id": access.plan_id}
