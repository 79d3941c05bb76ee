from fastapi import APIRouter, Depends, Query
from narra.database.supabase_client import get_service_supabase
from narra.modules.admin.schemas import (
    AdminStatsResponse, AdminUserResponse, RoleUpdateRequest, RoleUpdateResponse
)
from narra.modules.admin.service import AdminService
from narra.modules.auth.service import AuthService
from narra.core.cache import AuthorizationCache
from narra.core.dependencies import require_admin, get_auth_cache
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/admin", tags=["admin"])


def get_admin_service(supabase: Client = Depends(get_service_supabase)) -> AdminService:
    return AdminService(supabase)


@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats(
    user_data: Dict = Depends(require_admin),
    service: AdminService = Depends(get_admin_service)
):
    """Dashboard totals"""
    return service.get_stats()


@router.get("/users", response_model=List[AdminUserResponse])
async def list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_data: Dict = Depends(require_admin),
    service: AdminService = Depends(get_admin_service)
):
    return service.list_users(limit=limit, offset=offset)


@router.put("/users/{user_id}/role", response_model=RoleUpdateResponse)
async def update_user_role(
    user_id: str,
    body: RoleUpdateRequest,
    user_data: Dict = Depends(require_admin),
    supabase: Client = Depends(get_service_supabase),
    cache: AuthorizationCache = Depends(get_auth_cache)
):
    """Promote or demote a user; their cached authorization is dropped"""
    AuthService(supabase, cache).set_user_role(user_id, body.role)
    return RoleUpdateResponse(id=user_id, role=body.role, message=f"User {user_id} role set to {body.role}")
