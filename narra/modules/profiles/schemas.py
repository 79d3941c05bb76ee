from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime


class ProfileResponse(BaseModel):
    id: str
    handle: str
    platform: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    followers_count: Optional[int] = 0
    avatar_url: Optional[str] = None
    verified: Optional[bool] = False
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class FollowResponse(BaseModel):
    id: str
    user_id: str
    profile_id: str
    last_refresh: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IsFollowingResponse(BaseModel):
    isFollowing: bool


class FollowedPostResponse(BaseModel):
    id: str
    user_id: str
    profile_id: str
    platform: str
    platform_post_id: str
    embed_url: str
    caption: Optional[str] = ""
    transcript: Optional[str] = ""
    thumbnail_url: Optional[str] = None
    metrics: Optional[Dict[str, Any]] = None
    date_posted: Optional[datetime] = None
    profiles: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class RefreshResponse(BaseModel):
    success: bool
    newPosts: int = 0
    errors: int = 0
    message: str


class RefreshStartedResponse(BaseModel):
    success: bool
    message: str
    jobId: str


class RefreshJobResponse(BaseModel):
    id: str
    user_id: str
    profile_id: str
    status: str
    attempts: int = 0
    new_posts: Optional[int] = None
    errors: Optional[int] = None
    message: Optional[str] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FollowByHandleRequest(BaseModel):
    """A profile as returned by discovery search; unknown keys are ignored"""
    handle: str
    platform: str
    display_name: Optional[str] = None
    bio: Optional[str] = ""
    followers: Optional[int] = 0
    avatar_url: Optional[str] = ""
    verified: Optional[bool] = False


class FollowByHandleResponse(BaseModel):
    success: bool = True
    profile: ProfileResponse
    follow: FollowResponse
