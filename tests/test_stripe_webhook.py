import hashlib
import hmac
import json
import time

import pytest
import stripe
from conftest import seed_plan, seed_user

from narra.config.settings import settings

WEBHOOK_SECRET = "whsec_stripe_test"


@pytest.fixture(autouse=True)
def stripe_settings(monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")


@pytest.fixture
def retrieve_subscription(mocker):
    return mocker.patch.object(stripe.Subscription, "retrieve", return_value={
        "id": "sub_1",
        "status": "trialing",
        "cancel_at_period_end": False,
        "items": {"data": [{"current_period_start": 1767225600, "current_period_end": 1769904000}]},
    })


def send(client, event, secret: str = WEBHOOK_SECRET):
    payload = json.dumps(event)
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return client.post(
        "/api/v1/billing/webhook",
        content=payload,
        headers={"stripe-signature": f"t={timestamp},v1={signature}", "content-type": "application/json"},
    )


def checkout_completed(event_id: str = "evt_1"):
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_1",
            "mode": "subscription",
            "customer": "cus_1",
            "subscription": "sub_1",
            "metadata": {"userId": "user_1", "planId": "growth", "billingPeriod": "yearly"},
        }},
    }


def test_missing_signature_is_rejected(client, db):
    response = client.post("/api/v1/billing/webhook", content=json.dumps(checkout_completed()))

    assert response.status_code == 400
    assert response.json()["error"] == "No signature"
    assert db.calls == []


def test_invalid_signature_touches_no_data(client, db):
    response = send(client, checkout_completed(), secret="whsec_wrong")

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid signature"
    assert db.calls == []


def test_checkout_completed_activates_plan(client, db, auth_cache, retrieve_subscription):
    seed_user(db, "user_1")
    auth_cache.set("user_1", None, False)

    response = send(client, checkout_completed())

    assert response.status_code == 200
    assert response.json() == {"received": True, "duplicate": False}
    user = db.rows("users", id="user_1")[0]
    assert user["plan_id"] == "growth"
    assert user["subscription_status"] == "active"
    subscription = db.rows("subscriptions", user_id="user_1")[0]
    assert subscription["stripe_subscription_id"] == "sub_1"
    assert subscription["billing_period"] == "yearly"
    assert subscription["current_period_end"] == "2026-02-01T00:00:00+00:00"
    assert db.rows("webhook_events", stripe_event_id="evt_1")
    assert not auth_cache.is_cached("user_1")


def test_replayed_event_is_applied_once(client, db, retrieve_subscription):
    seed_user(db, "user_1")

    first = send(client, checkout_completed())
    second = send(client, checkout_completed())

    assert first.json()["duplicate"] is False
    assert second.json() == {"received": True, "duplicate": True}
    assert retrieve_subscription.call_count == 1
    assert len(db.rows("subscriptions")) == 1


def test_failed_handler_is_not_recorded(client, db):
    event = checkout_completed()
    event["data"]["object"]["metadata"] = {}

    response = send(client, event)

    assert response.status_code == 400
    assert response.json()["error"] == "Missing metadata"
    assert db.rows("webhook_events") == []


def test_subscription_deleted_clears_plan(client, db, auth_cache):
    seed_user(db, "user_1", plan_id="growth")
    db.add("subscriptions", {"user_id": "user_1", "stripe_subscription_id": "sub_1", "status": "active"})
    auth_cache.set("user_1", "growth", False)

    send(client, {"id": "evt_del", "type": "customer.subscription.deleted", "data": {"object": {"id": "sub_1"}}})

    user = db.rows("users", id="user_1")[0]
    assert user["plan_id"] is None
    assert user["subscription_status"] == "inactive"
    assert db.rows("subscriptions")[0]["status"] == "canceled"
    assert not auth_cache.is_cached("user_1")


@pytest.mark.parametrize("stripe_status,user_status", [
    ("active", "active"),
    ("trialing", "trialing"),
    ("past_due", "inactive"),
])
def test_subscription_updated_mirrors_status(client, db, stripe_status, user_status):
    seed_user(db, "user_1", plan_id="growth")
    db.add("subscriptions", {"user_id": "user_1", "stripe_subscription_id": "sub_1", "status": "active"})

    send(client, {
        "id": f"evt_{stripe_status}",
        "type": "customer.subscription.updated",
        "data": {"object": {"id": "sub_1", "status": stripe_status, "current_period_end": 1769904000}},
    })

    assert db.rows("users", id="user_1")[0]["subscription_status"] == user_status
    assert db.rows("subscriptions")[0]["status"] == stripe_status


def test_invoice_paid_resets_usage_and_emails(client, db, email_service):
    seed_plan(db, "growth")
    seed_user(db, "user_1", plan_id="growth", monthly_profile_discoveries=40, monthly_transcripts_viewed=7)
    db.add("subscriptions", {
        "user_id": "user_1", "stripe_subscription_id": "sub_1", "plan_id": "growth", "billing_period": "monthly",
    })

    send(client, {
        "id": "evt_inv",
        "type": "invoice.payment_succeeded",
        "data": {"object": {"id": "in_1", "subscription": "sub_1", "amount_paid": 2900, "currency": "usd"}},
    })

    user = db.rows("users", id="user_1")[0]
    assert user["monthly_profile_discoveries"] == 0
    assert user["monthly_transcripts_viewed"] == 0
    email_service.send_template.assert_called_once_with(
        "payment_success", "user_1@example.com",
        plan_name="Growth", amount="29.00 USD", billing_period="monthly",
    )


def test_invoice_failed_emails_user(client, db, email_service):
    seed_user(db, "user_1", plan_id="growth")
    db.add("subscriptions", {"user_id": "user_1", "stripe_subscription_id": "sub_1"})

    send(client, {
        "id": "evt_fail",
        "type": "invoice.payment_failed",
        "data": {"object": {
            "id": "in_2",
            "parent": {"subscription_details": {"subscription": "sub_1"}},
            "amount_due": 900,
            "currency": "eur",
        }},
    })

    email_service.send_template.assert_called_once_with(
        "payment_failed", "user_1@example.com", plan_name="growth", amount="9.00 EUR",
    )
