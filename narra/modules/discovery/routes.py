from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response
from narra.database.supabase_client import get_supabase
from narra.modules.discovery.schemas import SearchResponse, PostsResponse, TranscriptResponse
from narra.modules.discovery.service import DiscoveryService
from narra.modules.discovery.scrape_creators import ScrapeCreatorsClient, get_scrape_client
from narra.modules.discovery.image_proxy import fetch_image, is_valid_image_url, CACHE_CONTROL
from narra.modules.users.service import UsageService
from narra.core.dependencies import require_plan
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/discovery", tags=["discovery"])
media_router = APIRouter(prefix="/media", tags=["media"])


def get_discovery_service(
    supabase: Client = Depends(get_supabase),
    client: ScrapeCreatorsClient = Depends(get_scrape_client)
) -> DiscoveryService:
    return DiscoveryService(client, UsageService(supabase))


# Plain def: these block on the scraping API and run in the threadpool
@router.get("/search", response_model=SearchResponse)
def search_profile(
    platform: Optional[str] = None,
    handle: Optional[str] = None,
    user_data: Dict = Depends(require_plan),
    service: DiscoveryService = Depends(get_discovery_service)
):
    """Look up a creator profile (counts against the monthly discovery limit)"""
    return service.search_profile(user_data["id"], platform, handle)


@router.get("/posts", response_model=PostsResponse)
def list_posts(
    platform: Optional[str] = None,
    handle: Optional[str] = None,
    max_cursor: Optional[str] = None,
    count: Optional[int] = Query(None, ge=1, le=50),
    user_data: Dict = Depends(require_plan),
    service: DiscoveryService = Depends(get_discovery_service)
):
    """Latest posts of a creator"""
    return service.list_posts(platform, handle, max_cursor=max_cursor, count=count)


@router.get("/transcript", response_model=TranscriptResponse)
def get_transcript(
    url: Optional[str] = None,
    language: str = "en",
    user_data: Dict = Depends(require_plan),
    service: DiscoveryService = Depends(get_discovery_service)
):
    """Transcript of a TikTok or Instagram video (counts against the monthly transcript limit)"""
    return service.get_transcript(user_data["id"], url, language=language)


@media_router.get("/image-proxy")
def image_proxy(url: Optional[str] = None, platform: Optional[str] = None):
    """Serve a platform CDN image through our origin so browsers can display it"""
    if not is_valid_image_url(url):
        return JSONResponse(status_code=400, content={"success": False, "error": "A valid http(s) url parameter is required"})

    image = fetch_image(url, platform)
    if image.error:
        return JSONResponse(status_code=image.status_code, content={"success": False, "error": image.error})
    return Response(
        content=image.content,
        media_type=image.content_type,
        headers={"Cache-Control": CACHE_CONTROL},
    )
