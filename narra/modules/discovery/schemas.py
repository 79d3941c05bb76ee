from pydantic import BaseModel
from typing import Optional, List, Any


class CreatorProfile(BaseModel):
    handle: str
    display_name: Optional[str] = None
    platform: str
    followers: int = 0
    following: int = 0
    posts: int = 0
    bio: str = ""
    avatar_url: str = ""
    avatar_proxy_url: Optional[str] = None
    verified: bool = False
    is_private: bool = False
    external_url: Optional[str] = None


class SearchResponse(BaseModel):
    success: bool = True
    profile: CreatorProfile
    cached: bool = False


class PostMetrics(BaseModel):
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0


class DiscoveredPost(BaseModel):
    platform: str
    platform_post_id: str
    embed_url: str
    caption: str = ""
    transcript: str = ""
    thumbnail_url: Optional[str] = None
    thumbnail_proxy_url: Optional[str] = None
    metrics: PostMetrics
    date_posted: str


class PostsResponse(BaseModel):
    success: bool = True
    posts: List[DiscoveredPost]
    has_more: bool = False
    max_cursor: Optional[Any] = None


class TranscriptResponse(BaseModel):
    success: bool = True
    id: str
    url: str
    transcript: str
    cached: bool = False
