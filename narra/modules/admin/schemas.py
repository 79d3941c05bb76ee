from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class AdminStatsResponse(BaseModel):
    totalUsers: int
    newUsersThisMonth: int
    totalCollections: int
    totalPosts: int


class AdminUserResponse(BaseModel):
    id: str
    email: str
    role: str
    joinedAt: Optional[datetime] = None
    postsCount: int = 0
    boardsCount: int = 0


class RoleUpdateRequest(BaseModel):
    role: str


class RoleUpdateResponse(BaseModel):
    id: str
    role: str
    message: str
