# Supabase tables: subscriptions, webhook_events
# This file documents the expected database schema
# subscriptions is described in narra/modules/users/models.py; webhook writes use the service-role client

"""
Expected Supabase table structure:

webhook_events:
- id: uuid (primary key)
- stripe_event_id: text (unique, not null)
- event_type: text (not null)
- processed_at: timestamp (default: now())

Stripe metadata set on every Checkout Session:
- userId: users.id of the purchaser
- planId: plans.id being bought
- billingPeriod: monthly | yearly
"""
