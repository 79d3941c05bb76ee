# Supabase tables: users, plans, subscriptions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Identity is owned by the auth provider; rows here are kept in sync by the identity webhook

"""
Expected Supabase table structure:

users:
- id: text (primary key, identity-provider user id)
- email: text (not null)
- role: text (user | admin, default 'user')
- plan_id: text (nullable, references plans.id)
- subscription_status: text (active | inactive | trialing | past_due | canceled)
- monthly_profile_discoveries: integer (default 0)
- monthly_transcripts_viewed: integer (default 0)
- usage_reset_date: timestamptz (nullable) - counters reset once this is in the past
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

plans:
- id: text (primary key, e.g. 'inspiration', 'growth')
- name: text
- price_monthly: numeric
- price_yearly: numeric
- limits: jsonb {profile_discoveries, transcript_views, profile_follows}; negative means unlimited
- features: jsonb (nullable)

subscriptions:
- id: uuid (primary key)
- user_id: text (unique, references users.id)
- stripe_customer_id: text
- stripe_subscription_id: text (unique)
- plan_id: text
- status: text
- billing_period: text (monthly | yearly)
- current_period_start: timestamptz
- current_period_end: timestamptz
- cancel_at_period_end: boolean
- created_at / updated_at: timestamp
"""
