from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class FolderUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class BoardCreate(BaseModel):
    folder_id: str
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class BoardUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    folder_id: Optional[str] = None


class BoardShareRequest(BaseModel):
    is_shared: bool


class BoardCopyRequest(BaseModel):
    folder_id: str
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class BoardResponse(BaseModel):
    id: str
    folder_id: str
    name: str
    description: Optional[str] = None
    is_shared: bool = False
    public_id: Optional[str] = None
    copied_from_public_id: Optional[str] = None
    copied_at: Optional[datetime] = None
    original_board_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FolderResponse(BaseModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    boards: List[BoardResponse] = []

    class Config:
        from_attributes = True


class PostResponse(BaseModel):
    id: str
    profile_id: Optional[str] = None
    platform: str
    platform_post_id: str
    embed_url: str
    caption: Optional[str] = ""
    transcript: Optional[str] = None
    original_url: Optional[str] = None
    thumbnail: Optional[str] = None
    is_video: Optional[bool] = None
    metrics: Optional[Dict[str, Any]] = None
    date_posted: Optional[datetime] = None
    profiles: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class BoardWithPostsResponse(BoardResponse):
    posts: List[PostResponse] = []


class AlreadyCopiedResponse(BaseModel):
    alreadyCopied: bool


class PostMetricsIn(BaseModel):
    views: Optional[int] = None
    likes: Optional[int] = None
    comments: Optional[int] = None
    shares: Optional[int] = None


class SavePostRequest(BaseModel):
    handle: str
    platform: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    followers: Optional[int] = None
    avatar_url: Optional[str] = None
    verified: Optional[bool] = None
    platform_post_id: str
    embed_url: str
    caption: Optional[str] = None
    original_url: Optional[str] = None
    metrics: Optional[PostMetricsIn] = None
    date_posted: datetime
    thumbnail: Optional[str] = None
    is_video: Optional[bool] = None
    transcript: Optional[str] = None


class SavePostResponse(BaseModel):
    success: bool = True
    post_id: str
    platform_post_id: str
    platform: str
    profile_id: str
    handle: str
