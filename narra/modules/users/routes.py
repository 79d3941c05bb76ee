from fastapi import APIRouter, Depends
from narra.database.supabase_client import get_supabase
from narra.modules.users.schemas import (
    UsageResponse, FollowCountResponse, SubscriptionStatusResponse, UsageResetResponse
)
from narra.modules.users.service import UserService, UsageService
from narra.core.dependencies import get_current_user, require_admin
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


def get_usage_service(supabase: Client = Depends(get_supabase)) -> UsageService:
    return UsageService(supabase)


@router.get("/me/usage", response_model=UsageResponse)
async def get_my_usage(
    user_data: Dict = Depends(get_current_user),
    service: UsageService = Depends(get_usage_service)
):
    """Monthly counters against the plan limits"""
    service.check_and_reset_user_usage(user_data["id"])
    return service.get_usage(user_data["id"])


@router.get("/me/follows", response_model=FollowCountResponse)
async def get_my_follow_count(
    user_data: Dict = Depends(get_current_user),
    service: UsageService = Depends(get_usage_service)
):
    return FollowCountResponse(current_follows=service.count_follows(user_data["id"]))


@router.get("/me/subscription", response_model=SubscriptionStatusResponse)
async def get_my_subscription_status(
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return service.get_subscription_status(user_data["id"])


@router.post("/usage/reset", response_model=UsageResetResponse)
async def reset_monthly_usage(
    user_data: Dict = Depends(require_admin),
    service: UsageService = Depends(get_usage_service)
):
    """Run the monthly usage reset for every user whose reset date has passed"""
    return service.reset_monthly_usage_counters()
