from pydantic import BaseModel
from typing import Optional, Dict, Any


class CurrentUserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    session_id: Optional[str] = None
    role: str = "user"
    plan_id: Optional[str] = None
    is_admin: bool = False


class AdminStatusResponse(BaseModel):
    isAdmin: bool


class CacheDebugResponse(BaseModel):
    userId: str
    cached: bool
    cacheData: Optional[Dict[str, Any]] = None
    cacheAgeMinutes: Optional[int] = None
    cacheTtlMinutes: int
    databaseData: Optional[Dict[str, Any]] = None


class CacheClearResponse(BaseModel):
    success: bool
    message: str
