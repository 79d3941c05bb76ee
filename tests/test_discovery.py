import httpx
import pytest
from conftest import SCRAPE_BASE_URL, seed_plan, seed_user

from narra.modules.discovery.scrape_creators import ScrapeCreatorsClient
from narra.modules.discovery.transformers import instagram_profile_to_app, posts_to_app

INSTAGRAM_PROFILE = {
    "data": {"user": {
        "username": "gram",
        "full_name": "Gram Creator",
        "biography": "photos",
        "edge_followed_by": {"count": 9100},
        "edge_follow": {"count": 12},
        "edge_owner_to_timeline_media": {"count": 300},
        "profile_pic_url_hd": "https://scontent.cdninstagram.test/pic.jpg",
        "is_verified": False,
    }}
}


@pytest.fixture
def plan_user(db, login):
    seed_plan(db, "inspiration", profile_discoveries=2, transcript_views=1)
    seed_user(db, "user_1", plan_id="inspiration")
    login("user_1")


def test_client_caches_successful_responses(http_mock, scrape_client):
    route = http_mock.get(f"{SCRAPE_BASE_URL}/v1/instagram/profile").mock(
        return_value=httpx.Response(200, json=INSTAGRAM_PROFILE)
    )

    first = scrape_client.get_instagram_profile("gram")
    second = scrape_client.get_instagram_profile("gram")

    assert first.success and not first.cached
    assert second.cached
    assert second.data == INSTAGRAM_PROFILE
    assert route.call_count == 1
    assert route.calls.last.request.headers["x-api-key"] == "scrape-test-key"


def test_client_reports_errors_instead_of_raising(http_mock, scrape_client):
    http_mock.get(f"{SCRAPE_BASE_URL}/v1/tiktok/profile").mock(return_value=httpx.Response(404))
    http_mock.get(f"{SCRAPE_BASE_URL}/v1/instagram/profile").mock(side_effect=httpx.ConnectError("boom"))

    not_found = scrape_client.get_tiktok_profile("ghost")
    unreachable = scrape_client.get_instagram_profile("gram")

    assert not_found.success is False
    assert "404" in not_found.error
    assert unreachable.success is False
    assert unreachable.to_dict() == {"success": False, "error": "boom"}


def test_client_without_api_key_makes_no_request(http_mock):
    client = ScrapeCreatorsClient(api_key="", base_url=SCRAPE_BASE_URL)

    result = client.get_tiktok_profile("creator")

    assert result.success is False
    assert "SCRAPECREATORS_API_KEY" in result.error
    assert not http_mock.calls


def test_instagram_transcript_joins_segments(http_mock, scrape_client):
    http_mock.get(f"{SCRAPE_BASE_URL}/v2/instagram/media/transcript").mock(
        return_value=httpx.Response(200, json={"transcripts": [{"text": "hello"}, {"text": ""}, {"text": "world"}]})
    )

    result = scrape_client.get_transcript("instagram", "https://www.instagram.com/reel/Abc123/")

    assert result.data == "hello\nworld"


def test_search_counts_one_discovery_per_lookup(client, db, http_mock, plan_user):
    http_mock.get(f"{SCRAPE_BASE_URL}/v1/instagram/profile").mock(
        return_value=httpx.Response(200, json=INSTAGRAM_PROFILE)
    )

    response = client.get("/api/v1/discovery/search", params={"platform": "instagram", "handle": " @gram "})

    assert response.status_code == 200
    profile = response.json()["profile"]
    assert profile["handle"] == "gram"
    assert profile["followers"] == 9100
    assert profile["avatar_url"] == "https://scontent.cdninstagram.test/pic.jpg"
    assert profile["avatar_proxy_url"] == (
        "/api/v1/media/image-proxy?url=https%3A%2F%2Fscontent.cdninstagram.test%2Fpic.jpg&platform=instagram"
    )
    assert db.rows("users", id="user_1")[0]["monthly_profile_discoveries"] == 1


def test_search_at_limit_is_refused_before_calling_upstream(client, db, http_mock, plan_user):
    db.rows("users", id="user_1")[0]["monthly_profile_discoveries"] = 2
    route = http_mock.get(f"{SCRAPE_BASE_URL}/v1/tiktok/profile").mock(return_value=httpx.Response(200, json={}))

    response = client.get("/api/v1/discovery/search", params={"platform": "tiktok", "handle": "creator"})

    assert response.status_code == 403
    assert route.call_count == 0


def test_search_validates_platform_and_handle(client, plan_user):
    assert client.get("/api/v1/discovery/search", params={"platform": "youtube", "handle": "x"}).status_code == 400
    assert client.get("/api/v1/discovery/search", params={"platform": "tiktok", "handle": "@ "}).status_code == 400


def test_search_unknown_profile_is_404_and_not_counted(client, db, http_mock, plan_user):
    http_mock.get(f"{SCRAPE_BASE_URL}/v1/tiktok/profile").mock(return_value=httpx.Response(200, json={}))

    response = client.get("/api/v1/discovery/search", params={"platform": "tiktok", "handle": "ghost"})

    assert response.status_code == 404
    assert db.rows("users", id="user_1")[0]["monthly_profile_discoveries"] == 0


def test_posts_returns_transformed_page(client, http_mock, plan_user):
    http_mock.get(f"{SCRAPE_BASE_URL}/v3/tiktok/profile/videos").mock(return_value=httpx.Response(200, json={
        "aweme_list": [
            {"aweme_id": "111", "desc": "clip", "create_time": 1767225600,
             "video": {"cover": {"url_list": ["https://p16.tiktokcdn.test/cover.jpeg"]}},
             "statistics": {"play_count": 50, "digg_count": 3}},
            {"desc": "no id"},
        ],
        "has_more": 1,
        "max_cursor": 1767225000,
    }))

    body = client.get("/api/v1/discovery/posts", params={"platform": "tiktok", "handle": "creator"}).json()

    assert body["has_more"] is True
    assert body["max_cursor"] == 1767225000
    assert len(body["posts"]) == 1
    post = body["posts"][0]
    assert post["embed_url"] == "https://www.tiktok.com/@creator/video/111"
    assert post["metrics"] == {"views": 50, "likes": 3, "comments": 0, "shares": 0}
    assert post["thumbnail_url"] == "https://p16.tiktokcdn.test/cover.jpeg"
    assert post["thumbnail_proxy_url"].startswith("/api/v1/media/image-proxy?url=https%3A%2F%2Fp16.tiktokcdn.test")
    assert post["thumbnail_proxy_url"].endswith("&platform=tiktok")


def test_transcript_counts_views_and_rejects_other_hosts(client, db, http_mock, plan_user):
    http_mock.get(f"{SCRAPE_BASE_URL}/v1/tiktok/video/transcript").mock(
        return_value=httpx.Response(200, json={"transcript": "WEBVTT hello"})
    )
    url = "https://www.tiktok.com/@creator/video/7301234567890"

    ok = client.get("/api/v1/discovery/transcript", params={"url": url})
    assert ok.json() == {"success": True, "id": "7301234567890", "url": url, "transcript": "WEBVTT hello", "cached": False}
    assert db.rows("users", id="user_1")[0]["monthly_transcripts_viewed"] == 1

    assert client.get("/api/v1/discovery/transcript", params={"url": url}).status_code == 403
    assert client.get("/api/v1/discovery/transcript", params={"url": "https://youtube.com/watch?v=1"}).status_code == 400


def test_transformers_handle_missing_fields():
    assert instagram_profile_to_app({"data": {}}) is None
    posts = posts_to_app("instagram", {"data": {"items": [{"id": "1_2", "code": "Abc"}]}}, "gram")
    assert posts[0]["embed_url"] == "https://www.instagram.com/p/Abc/"
    assert posts[0]["thumbnail_url"] is None
