# Supabase tables: folders, boards, board_posts, posts
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py and copy_service.py
# A board belongs to whoever owns its folder

"""
Expected Supabase table structure:

folders:
- id: uuid (primary key)
- user_id: text (references users.id)
- name: text (not null)
- description: text (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

boards:
- id: uuid (primary key)
- folder_id: uuid (references folders.id, on delete cascade)
- name: text (not null)
- description: text (nullable)
- is_shared: boolean (default false)
- public_id: text (unique, nullable) - minted on first share
- copied_from_public_id: text (nullable) - public_id of the shared board this was copied from
- copied_at: timestamp (nullable)
- original_board_name: text (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
- recommended: unique (folder owner, copied_from_public_id) to close the copy check/insert race

board_posts:
- id: uuid (primary key)
- board_id: uuid (references boards.id, on delete cascade)
- post_id: uuid (references posts.id)
- added_at: timestamp (default: now())
- unique (board_id, post_id)

posts:
- id: uuid (primary key)
- profile_id: uuid (references profiles.id)
- platform: text (instagram | tiktok)
- platform_post_id: text - Instagram ids are stored as shortcodes
- embed_url: text
- caption: text
- transcript: text (nullable)
- original_url: text (nullable)
- thumbnail: text (nullable)
- is_video: boolean (nullable)
- metrics: jsonb {views, likes, comments, shares}
- date_posted: timestamp
- created_at: timestamp (default: now())
- unique (platform, platform_post_id)
"""
