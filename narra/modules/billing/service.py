import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from fastapi import HTTPException
from supabase import Client

from narra.config.settings import settings
from narra.config.plans_config import ACTIVE_SUBSCRIPTION_STATUSES, DEFAULT_SUBSCRIPTION_STATUS
from narra.core.cache import AuthorizationCache
from narra.modules.billing.schemas import (
    CheckoutRequest, CheckoutResponse, PortalResponse, VerifySessionResponse
)
from narra.modules.notifications.service import EmailService
from narra.modules.plans.service import PlanService
from narra.modules.users.service import UsageService, UserService

logger = logging.getLogger(__name__)


def configure_stripe() -> None:
    if not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail="STRIPE_SECRET_KEY is not configured")
    stripe.api_key = settings.stripe_secret_key


def _iso_from_unix(ts) -> Optional[str]:
    if not ts:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).isoformat()


def _period_bound(subscription: Dict[str, Any], field: str) -> Optional[str]:
    """Billing period bounds live on the subscription in older API versions and on its items in newer ones"""
    value = subscription.get(field)
    if value is None:
        items = (subscription.get("items") or {}).get("data") or []
        value = items[0].get(field) if items else None
    return _iso_from_unix(value)


def _format_amount(amount_cents, currency: Optional[str]) -> str:
    amount = (amount_cents or 0) / 100
    return f"{amount:.2f} {(currency or 'usd').upper()}"


def _to_dict(obj) -> Dict[str, Any]:
    """Plain dict view of a Stripe API resource"""
    to_dict = getattr(obj, "to_dict_recursive", None) or getattr(obj, "to_dict", None)
    return to_dict() if callable(to_dict) else dict(obj)


class BillingService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.plans = PlanService(supabase)
        self.users = UserService(supabase)

    def create_checkout_session(self, user_data: Dict[str, Any], checkout: CheckoutRequest) -> CheckoutResponse:
        """Start a subscription checkout for a plan and billing period"""
        plan = self.plans.get_plan(checkout.planId)
        price_id = settings.get_price_id(plan.id, checkout.billingPeriod)
        if not price_id:
            raise HTTPException(
                status_code=400,
                detail=f"No price configured for {plan.id} ({checkout.billingPeriod})"
            )
        configure_stripe()

        metadata = {
            "userId": user_data["id"],
            "planId": plan.id,
            "billingPeriod": checkout.billingPeriod,
        }
        params: Dict[str, Any] = {
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": f"{settings.app_url}/payment/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{settings.app_url}/select-plan",
            "metadata": metadata,
            "subscription_data": {"metadata": metadata},
        }
        if settings.stripe_trial_period_days:
            params["subscription_data"]["trial_period_days"] = settings.stripe_trial_period_days
        if user_data.get("email"):
            params["customer_email"] = user_data["email"]

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error(f"Error creating checkout session for {user_data['id']}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create checkout session")
        logger.info(f"Created checkout session {session.id} for {user_data['id']} ({plan.id}/{checkout.billingPeriod})")
        return CheckoutResponse(sessionId=session.id, url=session.url)

    def create_portal_session(self, user_id: str) -> PortalResponse:
        result = self.supabase.table("subscriptions")\
            .select("stripe_customer_id")\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        if not result.data or not result.data[0].get("stripe_customer_id"):
            raise HTTPException(status_code=404, detail="No subscription found")
        configure_stripe()
        try:
            session = stripe.billing_portal.Session.create(
                customer=result.data[0]["stripe_customer_id"],
                return_url=f"{settings.app_url}/settings",
            )
        except stripe.StripeError as e:
            logger.error(f"Error creating portal session for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create portal session")
        return PortalResponse(url=session.url)

    def verify_session(self, user_id: str, session_id: str) -> VerifySessionResponse:
        """Tell the success page whether the webhook has already activated the purchased plan"""
        configure_stripe()
        try:
            session = _to_dict(stripe.checkout.Session.retrieve(session_id))
        except stripe.StripeError as e:
            logger.error(f"Error retrieving checkout session {session_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to verify session")

        if (session.get("metadata") or {}).get("userId") != user_id:
            raise HTTPException(status_code=403, detail="Session does not belong to user")
        if session.get("status") != "complete":
            return VerifySessionResponse(success=False, message="Payment not completed")

        user = self.users.find_user(user_id) or {}
        status = user.get("subscription_status")
        if user.get("plan_id") and status in ACTIVE_SUBSCRIPTION_STATUSES:
            return VerifySessionResponse(success=True, planId=user["plan_id"], subscriptionStatus=status)
        return VerifySessionResponse(
            success=False,
            message="Payment completed, webhook still processing",
            planId=user.get("plan_id"),
            subscriptionStatus=status,
        )


class StripeWebhookService:
    def __init__(self, supabase: Client, cache: AuthorizationCache, email_service: EmailService):
        self.supabase = supabase
        self.cache = cache
        self.email_service = email_service
        self.users = UserService(supabase)
        self.usage = UsageService(supabase)

    @staticmethod
    def construct_event(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify the Stripe-Signature header; 400 on any failure, before any database access"""
        if not signature:
            raise HTTPException(status_code=400, detail="No signature")
        if not settings.stripe_webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET is not set")
            raise HTTPException(status_code=500, detail="Server configuration error")
        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body, signature, settings.stripe_webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
            return json.loads(body)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.error(f"Webhook signature verification failed: {e}")
            raise HTTPException(status_code=400, detail="Invalid signature")

    def is_processed(self, event_id: str) -> bool:
        result = self.supabase.table("webhook_events")\
            .select("id")\
            .eq("stripe_event_id", event_id)\
            .limit(1)\
            .execute()
        return bool(result.data)

    def mark_processed(self, event_id: str, event_type: str) -> None:
        try:
            self.supabase.table("webhook_events")\
                .insert({"stripe_event_id": event_id, "event_type": event_type})\
                .execute()
        except Exception as e:
            logger.warning(f"Could not record webhook event {event_id}: {e}")

    def handle_event(self, event: Dict[str, Any]) -> bool:
        """Apply a verified event. Returns False when it was already processed."""
        event_id, event_type = event["id"], event["type"]
        if self.is_processed(event_id):
            logger.info(f"Skipping already processed webhook event {event_id}")
            return False

        obj = event["data"]["object"]
        try:
            if event_type == "checkout.session.completed":
                self._on_checkout_completed(obj)
            elif event_type == "customer.subscription.updated":
                self._on_subscription_updated(obj)
            elif event_type == "customer.subscription.deleted":
                self._on_subscription_deleted(obj)
            elif event_type == "invoice.payment_succeeded":
                self._on_invoice_paid(obj)
            elif event_type == "invoice.payment_failed":
                self._on_invoice_failed(obj)
            else:
                logger.debug(f"Unhandled Stripe event type {event_type}")
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Webhook handler error for {event_type} ({event_id}): {e}")
            raise HTTPException(status_code=500, detail="Webhook handler failed")

        self.mark_processed(event_id, event_type)
        return True

    def _on_checkout_completed(self, session: Dict[str, Any]) -> None:
        if session.get("mode") != "subscription":
            return
        metadata = session.get("metadata") or {}
        user_id, plan_id = metadata.get("userId"), metadata.get("planId")
        if not user_id or not plan_id:
            logger.error("Missing metadata in checkout session")
            raise HTTPException(status_code=400, detail="Missing metadata")

        configure_stripe()
        subscription = _to_dict(stripe.Subscription.retrieve(session["subscription"]))

        self.users.update_subscription_fields(user_id, {
            "plan_id": plan_id,
            "subscription_status": "active",
        })
        self.supabase.table("subscriptions")\
            .upsert({
                "user_id": user_id,
                "stripe_customer_id": session.get("customer"),
                "stripe_subscription_id": subscription["id"],
                "plan_id": plan_id,
                "status": subscription.get("status"),
                "billing_period": metadata.get("billingPeriod") or "monthly",
                "current_period_start": _period_bound(subscription, "current_period_start"),
                "current_period_end": _period_bound(subscription, "current_period_end"),
                "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
            }, on_conflict="user_id")\
            .execute()
        self.cache.delete(user_id, reason="checkout completed")

    def _subscription_user_id(self, stripe_subscription_id: Optional[str]) -> Optional[str]:
        if not stripe_subscription_id:
            return None
        result = self.supabase.table("subscriptions")\
            .select("user_id")\
            .eq("stripe_subscription_id", stripe_subscription_id)\
            .limit(1)\
            .execute()
        return result.data[0]["user_id"] if result.data else None

    def _on_subscription_updated(self, subscription: Dict[str, Any]) -> None:
        status = subscription.get("status")
        self.supabase.table("subscriptions")\
            .update({
                "status": status,
                "current_period_start": _period_bound(subscription, "current_period_start"),
                "current_period_end": _period_bound(subscription, "current_period_end"),
                "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
            })\
            .eq("stripe_subscription_id", subscription["id"])\
            .execute()

        user_id = self._subscription_user_id(subscription["id"])
        if not user_id:
            logger.warning(f"No user for subscription {subscription['id']}")
            return
        user_status = status if status in ACTIVE_SUBSCRIPTION_STATUSES else DEFAULT_SUBSCRIPTION_STATUS
        self.users.update_subscription_fields(user_id, {"subscription_status": user_status})
        self.cache.delete(user_id, reason=f"subscription {status}")

    def _on_subscription_deleted(self, subscription: Dict[str, Any]) -> None:
        self.supabase.table("subscriptions")\
            .update({"status": "canceled"})\
            .eq("stripe_subscription_id", subscription["id"])\
            .execute()

        user_id = self._subscription_user_id(subscription["id"])
        if not user_id:
            logger.warning(f"No user for canceled subscription {subscription['id']}")
            return
        self.users.update_subscription_fields(user_id, {
            "subscription_status": DEFAULT_SUBSCRIPTION_STATUS,
            "plan_id": None,
        })
        self.cache.delete(user_id, reason="subscription canceled")

    def _invoice_context(self, invoice: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """User email and plan details for an invoice email, None for non-subscription invoices"""
        stripe_subscription_id = invoice.get("subscription") or (
            ((invoice.get("parent") or {}).get("subscription_details") or {}).get("subscription")
        )
        user_id = self._subscription_user_id(stripe_subscription_id)
        if not user_id:
            return None
        user = self.users.find_user(user_id) or {}
        sub = self.supabase.table("subscriptions")\
            .select("plan_id, billing_period")\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        sub_row = sub.data[0] if sub.data else {}
        plan_name = sub_row.get("plan_id") or user.get("plan_id") or "Narra"
        if sub_row.get("plan_id"):
            plan = self.supabase.table("plans")\
                .select("name")\
                .eq("id", sub_row["plan_id"])\
                .maybe_single()\
                .execute()
            if plan and plan.data:
                plan_name = plan.data.get("name") or plan_name
        return {
            "user_id": user_id,
            "email": user.get("email"),
            "plan_name": plan_name,
            "billing_period": sub_row.get("billing_period") or "monthly",
        }

    def _on_invoice_paid(self, invoice: Dict[str, Any]) -> None:
        context = self._invoice_context(invoice)
        if not context:
            return
        self.usage.reset_for_new_billing_cycle(context["user_id"])
        if context["email"]:
            self.email_service.send_template(
                "payment_success",
                context["email"],
                plan_name=context["plan_name"],
                amount=_format_amount(invoice.get("amount_paid"), invoice.get("currency")),
                billing_period=context["billing_period"],
            )

    def _on_invoice_failed(self, invoice: Dict[str, Any]) -> None:
        context = self._invoice_context(invoice)
        if not context or not context["email"]:
            return
        self.email_service.send_template(
            "payment_failed",
            context["email"],
            plan_name=context["plan_name"],
            amount=_format_amount(invoice.get("amount_due"), invoice.get("currency")),
        )
