"""Turn raw ScrapeCreators payloads into the app's profile and post shapes."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def _iso_from_unix(ts) -> str:
    if ts:
        return datetime.fromtimestamp(int(ts), tz=timezone.utc).isoformat()
    return datetime.now(timezone.utc).isoformat()


def _int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def instagram_profile_to_app(api_response: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    user = ((api_response or {}).get("data") or {}).get("user")
    if not user:
        return None
    return {
        "handle": user.get("username"),
        "display_name": user.get("full_name") or user.get("username"),
        "platform": "instagram",
        "followers": _int((user.get("edge_followed_by") or {}).get("count")),
        "following": _int((user.get("edge_follow") or {}).get("count")),
        "posts": _int((user.get("edge_owner_to_timeline_media") or {}).get("count")),
        "bio": user.get("biography") or "",
        "avatar_url": user.get("profile_pic_url_hd") or user.get("profile_pic_url") or "",
        "verified": bool(user.get("is_verified")),
        "is_private": bool(user.get("is_private")),
        "external_url": user.get("external_url"),
    }


def tiktok_profile_to_app(api_response: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    api_response = api_response or {}
    user = api_response.get("user")
    stats = api_response.get("stats") or api_response.get("statsV2") or {}
    if not user:
        return None
    return {
        "handle": user.get("uniqueId"),
        "display_name": user.get("nickname") or user.get("uniqueId"),
        "platform": "tiktok",
        "followers": _int(stats.get("followerCount")),
        "following": _int(stats.get("followingCount")),
        "posts": _int(stats.get("videoCount")),
        "bio": user.get("signature") or "",
        "avatar_url": user.get("avatarLarger") or user.get("avatarMedium") or user.get("avatarThumb") or "",
        "verified": bool(user.get("verified")),
    }


def profile_to_app(platform: str, api_response: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if platform == "tiktok":
        return tiktok_profile_to_app(api_response)
    return instagram_profile_to_app(api_response)


def extract_post_items(platform: str, api_response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """The list of raw post objects in a posts/videos response"""
    api_response = api_response or {}
    if platform == "tiktok":
        items = api_response.get("aweme_list")
    else:
        items = api_response.get("items") or (api_response.get("data") or {}).get("items")
    return items if isinstance(items, list) else []


def tiktok_video_to_post(item: Dict[str, Any], handle: str) -> Optional[Dict[str, Any]]:
    post_id = item.get("aweme_id")
    if not post_id:
        return None
    video = item.get("video") or {}
    cover_urls = (video.get("cover") or {}).get("url_list") or []
    thumbnail = (
        ((video.get("dynamic_cover") or {}).get("url_list") or [None])[0]
        or next((u for u in cover_urls if ".jpeg" in u), None)
        or (cover_urls[0] if cover_urls else None)
    )
    stats = item.get("statistics") or {}
    return {
        "platform": "tiktok",
        "platform_post_id": str(post_id),
        "embed_url": f"https://www.tiktok.com/@{handle}/video/{post_id}",
        "caption": item.get("desc") or "",
        "transcript": "",
        "thumbnail_url": thumbnail,
        "metrics": {
            "views": _int(stats.get("play_count")),
            "likes": _int(stats.get("digg_count")),
            "comments": _int(stats.get("comment_count")),
            "shares": _int(stats.get("share_count")),
        },
        "date_posted": _iso_from_unix(item.get("create_time")),
    }


def instagram_item_to_post(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    post_id = item.get("id") or item.get("code")
    if not post_id:
        return None
    candidates = (item.get("image_versions2") or {}).get("candidates") or []
    return {
        "platform": "instagram",
        "platform_post_id": str(post_id),
        "embed_url": f"https://www.instagram.com/p/{item.get('code')}/",
        "caption": (item.get("caption") or {}).get("text") or "",
        "transcript": "",
        "thumbnail_url": candidates[0].get("url") if candidates else None,
        "metrics": {
            "views": _int(item.get("video_view_count") or item.get("view_count")),
            "likes": _int(item.get("like_count")),
            "comments": _int(item.get("comment_count")),
            "shares": 0,
        },
        "date_posted": _iso_from_unix(item.get("taken_at")),
    }


def item_to_post(platform: str, item: Dict[str, Any], handle: str) -> Optional[Dict[str, Any]]:
    """Transform one raw post; None when the item carries no usable id"""
    if platform == "tiktok":
        return tiktok_video_to_post(item, handle)
    return instagram_item_to_post(item)


def posts_to_app(platform: str, api_response: Dict[str, Any], handle: str) -> List[Dict[str, Any]]:
    posts = []
    for item in extract_post_items(platform, api_response):
        post = item_to_post(platform, item, handle)
        if post:
            posts.append(post)
    return posts
