from fastapi import APIRouter, Depends, Query
from narra.database.supabase_client import get_supabase
from narra.modules.boards.schemas import (
    FolderCreate, FolderUpdate, FolderResponse,
    BoardCreate, BoardUpdate, BoardShareRequest, BoardCopyRequest,
    BoardResponse, BoardWithPostsResponse, PostResponse, AlreadyCopiedResponse,
    SavePostRequest, SavePostResponse
)
from narra.modules.boards.service import FolderService, BoardService, SavedPostService
from narra.modules.boards.copy_service import BoardCopyService
from narra.core.dependencies import get_current_user
from supabase import Client
from typing import List, Dict

folders_router = APIRouter(prefix="/folders", tags=["folders"])
router = APIRouter(prefix="/boards", tags=["boards"])


def get_folder_service(supabase: Client = Depends(get_supabase)) -> FolderService:
    return FolderService(supabase)


def get_board_service(supabase: Client = Depends(get_supabase)) -> BoardService:
    return BoardService(supabase)


def get_copy_service(supabase: Client = Depends(get_supabase)) -> BoardCopyService:
    return BoardCopyService(supabase)


def get_saved_post_service(supabase: Client = Depends(get_supabase)) -> SavedPostService:
    return SavedPostService(supabase)


@folders_router.get("", response_model=List[FolderResponse])
async def list_folders(
    user_data: Dict = Depends(get_current_user),
    service: FolderService = Depends(get_folder_service)
):
    """Folders of the current user, each with its boards"""
    return service.list_folders(user_data["id"])


@folders_router.post("", response_model=FolderResponse, status_code=201)
async def create_folder(
    folder_data: FolderCreate,
    user_data: Dict = Depends(get_current_user),
    service: FolderService = Depends(get_folder_service)
):
    return service.create_folder(user_data["id"], folder_data)


@folders_router.put("/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: str,
    folder_data: FolderUpdate,
    user_data: Dict = Depends(get_current_user),
    service: FolderService = Depends(get_folder_service)
):
    return service.update_folder(user_data["id"], folder_id, folder_data)


@folders_router.delete("/{folder_id}", status_code=204)
async def delete_folder(
    folder_id: str,
    user_data: Dict = Depends(get_current_user),
    service: FolderService = Depends(get_folder_service)
):
    """Delete a folder and (by cascade) its boards"""
    service.delete_folder(user_data["id"], folder_id)
    return None


@router.post("", response_model=BoardResponse, status_code=201)
async def create_board(
    board_data: BoardCreate,
    user_data: Dict = Depends(get_current_user),
    service: BoardService = Depends(get_board_service)
):
    return service.create_board(user_data["id"], board_data)


@router.get("/copied", response_model=List[BoardResponse])
async def list_copied_boards(
    user_data: Dict = Depends(get_current_user),
    service: BoardCopyService = Depends(get_copy_service)
):
    """Boards the current user copied from shared links"""
    return service.list_copied_boards(user_data["id"])


@router.get("/shared/{public_id}", response_model=BoardWithPostsResponse)
async def get_shared_board(
    public_id: str,
    service: BoardService = Depends(get_board_service)
):
    """Public view of a shared board (no sign-in required)"""
    return service.get_shared_board(public_id)


@router.get("/shared/{public_id}/copied", response_model=AlreadyCopiedResponse)
async def check_already_copied(
    public_id: str,
    user_data: Dict = Depends(get_current_user),
    service: BoardCopyService = Depends(get_copy_service)
):
    return AlreadyCopiedResponse(alreadyCopied=service.is_already_copied(user_data["id"], public_id))


@router.post("/shared/{public_id}/copy", response_model=BoardResponse, status_code=201)
async def copy_shared_board(
    public_id: str,
    copy_data: BoardCopyRequest,
    user_data: Dict = Depends(get_current_user),
    service: BoardCopyService = Depends(get_copy_service)
):
    """Copy a shared board into one of the current user's folders"""
    return service.copy_shared_board(user_data["id"], public_id, copy_data.folder_id, copy_data.name)


@router.get("/{board_id}", response_model=BoardWithPostsResponse)
async def get_board(
    board_id: str,
    user_data: Dict = Depends(get_current_user),
    service: BoardService = Depends(get_board_service)
):
    return service.get_board(user_data["id"], board_id)


@router.put("/{board_id}", response_model=BoardResponse)
async def update_board(
    board_id: str,
    board_data: BoardUpdate,
    user_data: Dict = Depends(get_current_user),
    service: BoardService = Depends(get_board_service)
):
    return service.update_board(user_data["id"], board_id, board_data)


@router.delete("/{board_id}", status_code=204)
async def delete_board(
    board_id: str,
    user_data: Dict = Depends(get_current_user),
    service: BoardService = Depends(get_board_service)
):
    service.delete_board(user_data["id"], board_id)
    return None


@router.put("/{board_id}/share", response_model=BoardResponse)
async def share_board(
    board_id: str,
    share_data: BoardShareRequest,
    user_data: Dict = Depends(get_current_user),
    service: BoardService = Depends(get_board_service)
):
    """Turn the public link of a board on or off"""
    return service.share_board(user_data["id"], board_id, share_data.is_shared)


@router.get("/{board_id}/posts", response_model=List[PostResponse])
async def list_board_posts(
    board_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_data: Dict = Depends(get_current_user),
    service: BoardService = Depends(get_board_service)
):
    service.get_owned_board(user_data["id"], board_id)
    return service.get_board_posts(board_id, limit=limit, offset=offset)


@router.post("/{board_id}/posts", response_model=SavePostResponse, status_code=201)
async def save_post_to_board(
    board_id: str,
    post_data: SavePostRequest,
    user_data: Dict = Depends(get_current_user),
    service: SavedPostService = Depends(get_saved_post_service)
):
    """Save a discovered post into a board"""
    return service.save_post(user_data["id"], board_id, post_data)


@router.delete("/{board_id}/posts/{post_id}", status_code=204)
async def remove_post_from_board(
    board_id: str,
    post_id: str,
    user_data: Dict = Depends(get_current_user),
    service: SavedPostService = Depends(get_saved_post_service)
):
    service.remove_post(user_data["id"], board_id, post_id)
    return None
