from fastapi import APIRouter, Depends, HTTPException, BackgroundTasks, Query
from narra.database.supabase_client import get_supabase
from narra.modules.profiles.schemas import (
    ProfileResponse, FollowResponse, IsFollowingResponse, FollowedPostResponse,
    RefreshResponse, RefreshStartedResponse, RefreshJobResponse,
    FollowByHandleRequest, FollowByHandleResponse
)
from narra.modules.profiles.service import FollowService, RefreshJobService
from narra.modules.profiles.refresh import ProfileRefreshService
from narra.modules.profiles.refresh_worker import run_refresh_job
from narra.modules.discovery.scrape_creators import ScrapeCreatorsClient, get_scrape_client
from narra.core.dependencies import get_current_user, require_plan
from supabase import Client
from typing import List, Dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profiles", tags=["profiles"])


def get_follow_service(supabase: Client = Depends(get_supabase)) -> FollowService:
    return FollowService(supabase)


def get_refresh_job_service(supabase: Client = Depends(get_supabase)) -> RefreshJobService:
    return RefreshJobService(supabase)


def get_refresh_service(
    supabase: Client = Depends(get_supabase),
    client: ScrapeCreatorsClient = Depends(get_scrape_client)
) -> ProfileRefreshService:
    return ProfileRefreshService(supabase, client)


@router.get("/following", response_model=List[ProfileResponse])
async def list_following(
    user_data: Dict = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service)
):
    """Profiles the current user follows, most recently followed first"""
    return service.list_following(user_data["id"])


@router.get("/following/posts", response_model=List[FollowedPostResponse])
async def list_followed_posts(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_data: Dict = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service)
):
    return service.list_followed_posts(user_data["id"], limit=limit, offset=offset)


@router.get("/refresh-jobs/{job_id}", response_model=RefreshJobResponse)
async def get_refresh_job(
    job_id: str,
    user_data: Dict = Depends(get_current_user),
    service: RefreshJobService = Depends(get_refresh_job_service)
):
    return service.get_job_for_user(job_id, user_data["id"])


@router.post("/follow", response_model=FollowByHandleResponse, status_code=201)
async def follow_discovered_profile(
    data: FollowByHandleRequest,
    user_data: Dict = Depends(require_plan),
    service: FollowService = Depends(get_follow_service)
):
    """Create or update a discovered profile by platform and handle, then follow it"""
    return service.follow_by_handle(user_data["id"], data)


@router.delete("/by-handle/{platform}/{handle}/follow", status_code=204)
async def unfollow_profile_by_handle(
    platform: str,
    handle: str,
    user_data: Dict = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service)
):
    service.unfollow_by_handle(user_data["id"], platform, handle)
    return None


@router.get("/by-handle/{platform}/{handle}/following", response_model=IsFollowingResponse)
async def check_following_by_handle(
    platform: str,
    handle: str,
    user_data: Dict = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service)
):
    return IsFollowingResponse(isFollowing=service.is_following_handle(user_data["id"], platform, handle))


@router.post("/{profile_id}/follow", response_model=FollowResponse, status_code=201)
async def follow_profile(
    profile_id: str,
    user_data: Dict = Depends(require_plan),
    service: FollowService = Depends(get_follow_service)
):
    return service.follow(user_data["id"], profile_id)


@router.delete("/{profile_id}/follow", status_code=204)
async def unfollow_profile(
    profile_id: str,
    user_data: Dict = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service)
):
    service.unfollow(user_data["id"], profile_id)
    return None


@router.get("/{profile_id}/following", response_model=IsFollowingResponse)
async def check_following(
    profile_id: str,
    user_data: Dict = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service)
):
    return IsFollowingResponse(isFollowing=service.is_following(user_data["id"], profile_id))


@router.post("/{profile_id}/refresh", response_model=RefreshResponse)
def refresh_profile(
    profile_id: str,
    user_data: Dict = Depends(get_current_user),
    follows: FollowService = Depends(get_follow_service),
    service: ProfileRefreshService = Depends(get_refresh_service)
):
    """Refresh a followed profile now and report how many new posts were stored"""
    if not follows.is_following(user_data["id"], profile_id):
        raise HTTPException(status_code=404, detail="You are not following this profile")
    return service.refresh(user_data["id"], profile_id).to_dict()


@router.post("/{profile_id}/refresh-async", response_model=RefreshStartedResponse, status_code=202)
async def refresh_profile_async(
    profile_id: str,
    background_tasks: BackgroundTasks,
    user_data: Dict = Depends(get_current_user),
    follows: FollowService = Depends(get_follow_service),
    jobs: RefreshJobService = Depends(get_refresh_job_service)
):
    """Queue a refresh job and run it after the response is sent"""
    if not follows.is_following(user_data["id"], profile_id):
        raise HTTPException(status_code=404, detail="You are not following this profile")
    job = jobs.create_job(user_data["id"], profile_id)
    background_tasks.add_task(run_refresh_job, job["id"])
    logger.info(f"Queued refresh job {job['id']} for profile {profile_id}")
    return RefreshStartedResponse(success=True, message="Refresh started", jobId=job["id"])
