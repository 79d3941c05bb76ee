from supabase import Client
from narra.modules.boards.schemas import BoardResponse
from narra.modules.boards.service import BoardService, FolderService
from typing import List, Optional, Dict, Any
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


class BoardCopyService:
    """Copies of shared boards into a user's own folders.

    A copy references the same post rows as the source; only the board and its
    board_posts links are new.
    """

    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.folders = FolderService(supabase)
        self.boards = BoardService(supabase)

    def find_existing_copy(self, user_id: str, public_id: str) -> Optional[Dict[str, Any]]:
        folder_ids = self.folders.list_folder_ids(user_id)
        if not folder_ids:
            return None
        result = self.supabase.table("boards")\
            .select("*")\
            .in_("folder_id", folder_ids)\
            .eq("copied_from_public_id", public_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def is_already_copied(self, user_id: str, public_id: str) -> bool:
        return self.find_existing_copy(user_id, public_id) is not None

    def list_copied_boards(self, user_id: str) -> List[BoardResponse]:
        folder_ids = self.folders.list_folder_ids(user_id)
        if not folder_ids:
            return []
        result = self.supabase.table("boards")\
            .select("*")\
            .in_("folder_id", folder_ids)\
            .order("copied_at", desc=True)\
            .execute()
        return [BoardResponse(**row) for row in (result.data or []) if row.get("copied_from_public_id")]

    def copy_shared_board(
        self,
        user_id: str,
        public_id: str,
        folder_id: str,
        name: Optional[str] = None
    ) -> BoardResponse:
        """Copy a shared board into one of the user's folders, at most once per source board.

        The duplicate check and the insert are not atomic; two simultaneous requests can
        both pass the check unless the database enforces uniqueness on the copy provenance.
        """
        source = self.boards.find_shared_board(public_id)
        if not source:
            raise HTTPException(status_code=404, detail="Shared board not found")
        self.folders.get_owned_folder(user_id, folder_id)

        if self.is_already_copied(user_id, public_id):
            raise HTTPException(status_code=409, detail="You have already copied this board")

        post_ids = self._source_post_ids(source["id"])

        try:
            result = self.supabase.table("boards")\
                .insert({
                    "folder_id": folder_id,
                    "name": name or f"{source['name']} (Copy)",
                    "description": source.get("description"),
                    "copied_from_public_id": public_id,
                    "copied_at": datetime.now(timezone.utc).isoformat(),
                    "original_board_name": source["name"],
                    "is_shared": False,
                })\
                .execute()
        except Exception as e:
            logger.error(f"Failed to create copy of board {public_id} for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to copy board")
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to copy board")
        new_board = result.data[0]

        if post_ids:
            try:
                self.supabase.table("board_posts")\
                    .insert([{"board_id": new_board["id"], "post_id": post_id} for post_id in post_ids])\
                    .execute()
            except Exception as e:
                logger.error(f"Copying posts into board {new_board['id']} failed, removing it: {e}")
                self._discard_board(new_board["id"])
                raise HTTPException(status_code=500, detail="Failed to copy board")

        logger.info(f"User {user_id} copied shared board {public_id} with {len(post_ids)} posts")
        return BoardResponse(**new_board)

    def _source_post_ids(self, board_id: str) -> List[str]:
        result = self.supabase.table("board_posts")\
            .select("post_id")\
            .eq("board_id", board_id)\
            .order("added_at")\
            .execute()
        seen = set()
        post_ids = []
        for row in result.data or []:
            if row["post_id"] not in seen:
                seen.add(row["post_id"])
                post_ids.append(row["post_id"])
        return post_ids

    def _discard_board(self, board_id: str) -> None:
        try:
            self.supabase.table("board_posts").delete().eq("board_id", board_id).execute()
            self.supabase.table("boards").delete().eq("id", board_id).execute()
        except Exception as e:
            logger.error(f"Could not remove partial board copy {board_id}: {e}")
