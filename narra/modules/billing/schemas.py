from pydantic import BaseModel
from typing import Optional, Literal


class CheckoutRequest(BaseModel):
    planId: str
    billingPeriod: Literal["monthly", "yearly"]


class CheckoutResponse(BaseModel):
    sessionId: str
    url: Optional[str] = None


class PortalResponse(BaseModel):
    url: str


class VerifySessionRequest(BaseModel):
    sessionId: str


class VerifySessionResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    planId: Optional[str] = None
    subscriptionStatus: Optional[str] = None


class WebhookAck(BaseModel):
    received: bool = True
    duplicate: bool = False
