import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException
from supabase import Client
from svix.webhooks import Webhook, WebhookVerificationError

from narra.config.settings import settings
from narra.core.cache import AuthorizationCache
from narra.modules.notifications.service import EmailService
from narra.modules.users.service import UserService

logger = logging.getLogger(__name__)

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")
USER_EVENTS = ("user.created", "user.updated")


def verify_clerk_webhook(body: bytes, headers: Mapping[str, str], secret: Optional[str] = None) -> Dict[str, Any]:
    """Check the svix signature of an identity-provider webhook and return the parsed event.

    Raises 400 for missing headers or a bad signature and 500 when no secret is configured.
    """
    svix_headers = {name: headers.get(name) for name in SVIX_HEADERS}
    if not all(svix_headers.values()):
        raise HTTPException(status_code=400, detail="Error occured -- no svix headers")

    secret = secret if secret is not None else settings.clerk_webhook_secret
    if not secret:
        logger.error("CLERK_WEBHOOK_SECRET is not set")
        raise HTTPException(status_code=500, detail="Server configuration error")

    try:
        return Webhook(secret).verify(body, svix_headers)
    except WebhookVerificationError as e:
        logger.error(f"Error verifying identity webhook: {e}")
        raise HTTPException(status_code=400, detail="Invalid webhook signature")


def primary_email(data: Dict[str, Any]) -> Optional[str]:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return address.get("email_address")
    return addresses[0].get("email_address") if addresses else None


class ClerkWebhookService:
    def __init__(self, supabase: Client, cache: AuthorizationCache, email_service: EmailService):
        self.users = UserService(supabase)
        self.cache = cache
        self.email_service = email_service

    def handle_event(self, event: Dict[str, Any]) -> None:
        event_type = event.get("type")
        if event_type not in USER_EVENTS:
            logger.debug(f"Ignoring identity event {event_type}")
            return

        data = event.get("data") or {}
        user_id = data.get("id")
        email = primary_email(data)
        if not user_id or not email:
            raise HTTPException(status_code=400, detail="No email found")

        try:
            self.users.sync_identity_user(user_id, email)
        except Exception as e:
            logger.error(f"Error upserting user {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Error creating user")
        self.cache.delete(user_id, reason=event_type)

        if event_type == "user.created":
            self.email_service.send_template("welcome", email)
