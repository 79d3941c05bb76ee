from pydantic import BaseModel, EmailStr
from typing import Optional, Dict
from datetime import datetime


class UserResponse(BaseModel):
    id: str
    email: EmailStr
    role: str = "user"
    plan_id: Optional[str] = None
    subscription_status: Optional[str] = "inactive"
    monthly_profile_discoveries: int = 0
    monthly_transcripts_viewed: int = 0
    usage_reset_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubscriptionStatusResponse(BaseModel):
    hasActiveSubscription: bool
    subscriptionStatus: str
    planId: Optional[str] = None


class UsageResponse(BaseModel):
    plan_id: str
    monthly_profile_discoveries: int
    monthly_transcripts_viewed: int
    subscription_status: str
    billing_period: str = "monthly"
    current_period_end: Optional[datetime] = None
    limits: Dict[str, int]
    levels: Dict[str, str]


class FollowCountResponse(BaseModel):
    current_follows: int


class UsageResetResponse(BaseModel):
    success: bool
    usersReset: int = 0
    error: Optional[str] = None
