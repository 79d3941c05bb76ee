from fastapi import APIRouter, Depends, Request
from narra.database.supabase_client import get_service_supabase
from narra.modules.webhooks.service import ClerkWebhookService, verify_clerk_webhook
from narra.modules.notifications.service import EmailService, get_email_service
from narra.core.cache import AuthorizationCache
from narra.core.dependencies import get_auth_cache
from supabase import Client

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_clerk_webhook_service(
    supabase: Client = Depends(get_service_supabase),
    cache: AuthorizationCache = Depends(get_auth_cache),
    email_service: EmailService = Depends(get_email_service)
) -> ClerkWebhookService:
    return ClerkWebhookService(supabase, cache, email_service)


@router.post("/clerk")
async def clerk_webhook(
    request: Request,
    service: ClerkWebhookService = Depends(get_clerk_webhook_service)
):
    """Identity-provider user events; the signature is checked before anything is written"""
    body = await request.body()
    event = verify_clerk_webhook(body, request.headers)
    service.handle_event(event)
    return {"received": True}
