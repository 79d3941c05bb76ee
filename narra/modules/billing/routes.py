from fastapi import APIRouter, Depends, Request
from narra.database.supabase_client import get_supabase, get_service_supabase
from narra.modules.billing.schemas import (
    CheckoutRequest, CheckoutResponse, PortalResponse,
    VerifySessionRequest, VerifySessionResponse, WebhookAck
)
from narra.modules.billing.service import BillingService, StripeWebhookService
from narra.modules.notifications.service import EmailService, get_email_service
from narra.core.cache import AuthorizationCache
from narra.core.dependencies import get_current_user, get_auth_cache
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/billing", tags=["billing"])


def get_billing_service(supabase: Client = Depends(get_supabase)) -> BillingService:
    return BillingService(supabase)


def get_stripe_webhook_service(
    supabase: Client = Depends(get_service_supabase),
    cache: AuthorizationCache = Depends(get_auth_cache),
    email_service: EmailService = Depends(get_email_service)
) -> StripeWebhookService:
    return StripeWebhookService(supabase, cache, email_service)


@router.post("/checkout", response_model=CheckoutResponse)
def create_checkout_session(
    checkout: CheckoutRequest,
    user_data: Dict = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service)
):
    """Create a Stripe Checkout Session for the chosen plan"""
    return service.create_checkout_session(user_data, checkout)


@router.post("/portal", response_model=PortalResponse)
def create_portal_session(
    user_data: Dict = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service)
):
    """Stripe customer portal link for managing the subscription"""
    return service.create_portal_session(user_data["id"])


@router.post("/verify-session", response_model=VerifySessionResponse)
def verify_session(
    body: VerifySessionRequest,
    user_data: Dict = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service)
):
    return service.verify_session(user_data["id"], body.sessionId)


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    service: StripeWebhookService = Depends(get_stripe_webhook_service)
):
    """Stripe events. Uses the raw body to verify the signature."""
    payload = await request.body()
    event = service.construct_event(payload, request.headers.get("stripe-signature"))
    processed = service.handle_event(event)
    return WebhookAck(received=True, duplicate=not processed)
