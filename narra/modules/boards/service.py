import re
import secrets
from supabase import Client
from narra.config.plans_config import PLATFORMS
from narra.modules.boards.schemas import (
    FolderCreate, FolderUpdate, FolderResponse,
    BoardCreate, BoardUpdate, BoardResponse, BoardWithPostsResponse, PostResponse,
    SavePostRequest, SavePostResponse
)
from typing import List, Dict, Any, Optional
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

_INSTAGRAM_NUMERIC_ID = re.compile(r"\d+_\d+")
_INSTAGRAM_SHORTCODE_IN_URL = re.compile(r"/p/([A-Za-z0-9_-]+)")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_public_id() -> str:
    return secrets.token_urlsafe(12)


def normalize_instagram_id(platform_post_id: str, embed_url: str) -> str:
    """Store Instagram posts under their shortcode so the same post saved twice maps to one row"""
    if not _INSTAGRAM_NUMERIC_ID.search(platform_post_id) and len(platform_post_id) < 20:
        return platform_post_id
    match = _INSTAGRAM_SHORTCODE_IN_URL.search(embed_url or "")
    if match:
        return match.group(1)
    return platform_post_id


class FolderService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_owned_folder(self, user_id: str, folder_id: str) -> Dict[str, Any]:
        result = self.supabase.table("folders")\
            .select("*")\
            .eq("id", folder_id)\
            .eq("user_id", user_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            raise HTTPException(status_code=404, detail="Folder not found")
        return result.data

    def list_folder_ids(self, user_id: str) -> List[str]:
        result = self.supabase.table("folders")\
            .select("id")\
            .eq("user_id", user_id)\
            .execute()
        return [row["id"] for row in (result.data or [])]

    def list_folders(self, user_id: str) -> List[FolderResponse]:
        """Folders of the user with their boards, newest first"""
        try:
            result = self.supabase.table("folders")\
                .select("*, boards(*)")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            return [FolderResponse(**row) for row in (result.data or [])]
        except Exception as e:
            logger.error(f"Failed to get folders for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to load folders")

    def create_folder(self, user_id: str, folder_data: FolderCreate) -> FolderResponse:
        try:
            result = self.supabase.table("folders")\
                .insert({**folder_data.model_dump(), "user_id": user_id})\
                .execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create folder")
            return FolderResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_folder(self, user_id: str, folder_id: str, folder_data: FolderUpdate) -> FolderResponse:
        self.get_owned_folder(user_id, folder_id)
        update_dict = folder_data.model_dump(exclude_unset=True)
        if not update_dict:
            raise HTTPException(status_code=400, detail="No fields to update")
        update_dict["updated_at"] = _now()
        try:
            result = self.supabase.table("folders")\
                .update(update_dict)\
                .eq("id", folder_id)\
                .execute()
            return FolderResponse(**result.data[0])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_folder(self, user_id: str, folder_id: str) -> None:
        self.get_owned_folder(user_id, folder_id)
        try:
            self.supabase.table("folders").delete().eq("id", folder_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))


class BoardService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.folders = FolderService(supabase)

    def get_owned_board(self, user_id: str, board_id: str) -> Dict[str, Any]:
        result = self.supabase.table("boards")\
            .select("*")\
            .eq("id", board_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            raise HTTPException(status_code=404, detail="Board not found")
        try:
            self.folders.get_owned_folder(user_id, result.data["folder_id"])
        except HTTPException:
            raise HTTPException(status_code=404, detail="Board not found")
        return result.data

    def get_board_posts(self, board_id: str, limit: Optional[int] = None, offset: int = 0) -> List[PostResponse]:
        query = self.supabase.table("board_posts")\
            .select("added_at, posts(*, profiles(*))")\
            .eq("board_id", board_id)\
            .order("added_at", desc=True)
        if limit is not None:
            query = query.range(offset, offset + limit - 1)
        result = query.execute()
        return [PostResponse(**row["posts"]) for row in (result.data or []) if row.get("posts")]

    def create_board(self, user_id: str, board_data: BoardCreate) -> BoardResponse:
        self.folders.get_owned_folder(user_id, board_data.folder_id)
        try:
            result = self.supabase.table("boards")\
                .insert({**board_data.model_dump(), "is_shared": False})\
                .execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create board")
            return BoardResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_board(self, user_id: str, board_id: str) -> BoardWithPostsResponse:
        board = self.get_owned_board(user_id, board_id)
        return BoardWithPostsResponse(**board, posts=self.get_board_posts(board_id))

    def update_board(self, user_id: str, board_id: str, board_data: BoardUpdate) -> BoardResponse:
        self.get_owned_board(user_id, board_id)
        update_dict = board_data.model_dump(exclude_unset=True)
        if not update_dict:
            raise HTTPException(status_code=400, detail="No fields to update")
        if "folder_id" in update_dict:
            self.folders.get_owned_folder(user_id, update_dict["folder_id"])
        update_dict["updated_at"] = _now()
        try:
            result = self.supabase.table("boards")\
                .update(update_dict)\
                .eq("id", board_id)\
                .execute()
            return BoardResponse(**result.data[0])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_board(self, user_id: str, board_id: str) -> None:
        self.get_owned_board(user_id, board_id)
        try:
            self.supabase.table("boards").delete().eq("id", board_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def share_board(self, user_id: str, board_id: str, is_shared: bool) -> BoardResponse:
        """Toggle public sharing; the public_id is minted on first share and kept afterwards"""
        board = self.get_owned_board(user_id, board_id)
        update_dict: Dict[str, Any] = {"is_shared": is_shared, "updated_at": _now()}
        if is_shared and not board.get("public_id"):
            update_dict["public_id"] = generate_public_id()
        try:
            result = self.supabase.table("boards")\
                .update(update_dict)\
                .eq("id", board_id)\
                .execute()
            logger.info(f"Board {board_id} sharing set to {is_shared}")
            return BoardResponse(**result.data[0])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def find_shared_board(self, public_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("boards")\
            .select("*")\
            .eq("public_id", public_id)\
            .eq("is_shared", True)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            return None
        return result.data

    def get_shared_board(self, public_id: str) -> BoardWithPostsResponse:
        """Public read of a shared board and its posts"""
        board = self.find_shared_board(public_id)
        if not board:
            raise HTTPException(status_code=404, detail="Shared board not found")
        return BoardWithPostsResponse(**board, posts=self.get_board_posts(board["id"]))


class SavedPostService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.boards = BoardService(supabase)

    def _upsert_profile(self, post_data: SavePostRequest) -> Dict[str, Any]:
        result = self.supabase.table("profiles")\
            .upsert({
                "handle": post_data.handle,
                "platform": post_data.platform,
                "display_name": post_data.display_name or post_data.handle,
                "bio": post_data.bio or "",
                "followers_count": post_data.followers or 0,
                "avatar_url": post_data.avatar_url or "",
                "verified": bool(post_data.verified),
            }, on_conflict="platform,handle")\
            .execute()
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to save profile")
        return result.data[0]

    def _upsert_post(self, post_data: SavePostRequest, profile_id: str, platform_post_id: str) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "profile_id": profile_id,
            "platform": post_data.platform,
            "platform_post_id": platform_post_id,
            "embed_url": post_data.embed_url,
            "caption": post_data.caption or "",
            "metrics": post_data.metrics.model_dump(exclude_none=True) if post_data.metrics else {},
            "date_posted": post_data.date_posted.isoformat(),
        }
        for field in ("transcript", "original_url", "thumbnail", "is_video"):
            value = getattr(post_data, field)
            if value is not None and value != "":
                row[field] = value
        result = self.supabase.table("posts")\
            .upsert(row, on_conflict="platform,platform_post_id")\
            .execute()
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to save post")
        return result.data[0]

    def save_post(self, user_id: str, board_id: str, post_data: SavePostRequest) -> SavePostResponse:
        """Store a discovered post (and its creator) and link it to one of the user's boards"""
        if post_data.platform not in PLATFORMS:
            raise HTTPException(status_code=400, detail="Platform must be 'instagram' or 'tiktok'")
        self.boards.get_owned_board(user_id, board_id)

        platform_post_id = post_data.platform_post_id
        if post_data.platform == "instagram":
            platform_post_id = normalize_instagram_id(platform_post_id, post_data.embed_url)

        try:
            profile = self._upsert_profile(post_data)
            post = self._upsert_post(post_data, profile["id"], platform_post_id)

            existing = self.supabase.table("board_posts")\
                .select("id")\
                .eq("board_id", board_id)\
                .eq("post_id", post["id"])\
                .limit(1)\
                .execute()
            if existing.data:
                raise HTTPException(status_code=409, detail="Post already exists in this board")

            self.supabase.table("board_posts")\
                .insert({"board_id": board_id, "post_id": post["id"]})\
                .execute()
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Save post to board {board_id} failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to save post")

        logger.info(f"Saved {post_data.platform} post {platform_post_id} to board {board_id}")
        return SavePostResponse(
            post_id=post["id"],
            platform_post_id=platform_post_id,
            platform=post["platform"],
            profile_id=profile["id"],
            handle=profile["handle"],
        )

    def remove_post(self, user_id: str, board_id: str, post_id: str) -> None:
        self.boards.get_owned_board(user_id, board_id)
        try:
            self.supabase.table("board_posts")\
                .delete()\
                .eq("board_id", board_id)\
                .eq("post_id", post_id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
