# Supabase tables: profiles, follows, followed_posts, refresh_jobs
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py, refresh.py and refresh_worker.py

"""
Expected Supabase table structure:

profiles:
- id: uuid (primary key)
- handle: text (not null)
- platform: text (instagram | tiktok)
- display_name: text
- bio: text
- followers_count: integer
- avatar_url: text
- verified: boolean
- last_updated: timestamp
- unique (platform, handle)

follows:
- id: uuid (primary key)
- user_id: text (references users.id)
- profile_id: uuid (references profiles.id)
- last_refresh: timestamp (nullable)
- created_at: timestamp (default: now())
- unique (user_id, profile_id)

followed_posts:
- id: uuid (primary key)
- user_id: text
- profile_id: uuid
- platform: text
- platform_post_id: text
- embed_url: text
- caption: text
- transcript: text
- thumbnail_url: text (nullable)
- metrics: jsonb {views, likes, comments, shares}
- date_posted: timestamp
- created_at: timestamp (default: now())
- unique (user_id, profile_id, platform_post_id)

refresh_jobs:
- id: uuid (primary key)
- user_id: text
- profile_id: uuid
- status: text (queued | running | succeeded | failed)
- attempts: integer (default 0)
- new_posts: integer (nullable)
- errors: integer (nullable)
- message: text (nullable)
- last_error: text (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
