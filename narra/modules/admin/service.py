from supabase import Client
from narra.modules.admin.schemas import AdminStatsResponse, AdminUserResponse
from typing import List, Dict, Optional
from collections import Counter
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def start_of_month(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class AdminService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _count(self, table: str, label: str, since: Optional[datetime] = None) -> int:
        """Exact row count; a failed count degrades to 0 so the dashboard still renders"""
        try:
            query = self.supabase.table(table).select("id", count="exact", head=True)
            if since is not None:
                query = query.gte("created_at", since.isoformat())
            return query.execute().count or 0
        except Exception as e:
            logger.error(f"Error counting {label}: {e}")
            return 0

    def get_stats(self, now: Optional[datetime] = None) -> AdminStatsResponse:
        return AdminStatsResponse(
            totalUsers=self._count("users", "users"),
            newUsersThisMonth=self._count("users", "new users", since=start_of_month(now)),
            totalCollections=self._count("boards", "boards"),
            totalPosts=self._count("posts", "posts"),
        )

    def list_users(self, limit: int = 50, offset: int = 0) -> List[AdminUserResponse]:
        """Users, newest first, with how many boards they own and posts they saved"""
        try:
            users = self.supabase.table("users")\
                .select("id, email, role, created_at")\
                .order("created_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()
            rows = users.data or []
            if not rows:
                return []

            folders = self.supabase.table("folders")\
                .select("id, user_id")\
                .in_("user_id", [u["id"] for u in rows])\
                .execute()
            folder_owner: Dict[str, str] = {f["id"]: f["user_id"] for f in (folders.data or [])}

            board_owner: Dict[str, str] = {}
            if folder_owner:
                boards = self.supabase.table("boards")\
                    .select("id, folder_id")\
                    .in_("folder_id", list(folder_owner))\
                    .execute()
                board_owner = {b["id"]: folder_owner[b["folder_id"]] for b in (boards.data or [])}

            posts_per_user: Counter = Counter()
            if board_owner:
                links = self.supabase.table("board_posts")\
                    .select("board_id")\
                    .in_("board_id", list(board_owner))\
                    .execute()
                posts_per_user.update(board_owner[link["board_id"]] for link in (links.data or []))
            boards_per_user = Counter(board_owner.values())

            return [
                AdminUserResponse(
                    id=u["id"],
                    email=u["email"],
                    role=u.get("role") or "user",
                    joinedAt=u.get("created_at"),
                    postsCount=posts_per_user[u["id"]],
                    boardsCount=boards_per_user[u["id"]],
                )
                for u in rows
            ]
        except Exception as e:
            logger.error(f"Error fetching admin user list: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to fetch users: {str(e)}")
