# Supabase table: plans
# This file documents the expected database schema
# Plans are seeded by hand; the API only reads them

"""
Expected Supabase table structure:

plans:
- id: text (primary key, e.g. 'inspiration', 'growth')
- name: text (not null)
- description: text (nullable)
- price_monthly: numeric (not null)
- price_yearly: numeric (not null)
- limits: jsonb {profile_discoveries, transcript_views, profile_follows}; negative means unlimited
- features: jsonb (list of marketing bullet points)
- created_at: timestamp (default: now())
"""
