from datetime import datetime, timedelta, timezone

import httpx
import pytest
from conftest import SCRAPE_BASE_URL, seed_plan, seed_user

from narra.modules.profiles import refresh_worker
from narra.modules.profiles.refresh import ProfileRefreshService

TIKTOK_PROFILE = {
    "user": {"uniqueId": "creator", "nickname": "The Creator", "signature": "bio", "verified": True},
    "stats": {"followerCount": 5000, "followingCount": 10, "videoCount": 42},
}


def tiktok_video(aweme_id: str) -> dict:
    return {
        "aweme_id": aweme_id,
        "desc": f"video {aweme_id}",
        "create_time": 1767225600,
        "video": {"cover": {"url_list": ["https://p16.tiktokcdn.test/cover.jpeg"]}},
        "statistics": {"play_count": 100, "digg_count": 5, "comment_count": 1, "share_count": 0},
    }


@pytest.fixture
def followed_profile(db):
    profile = db.add("profiles", {"handle": "creator", "platform": "tiktok", "display_name": "Old name"})
    seed_user(db, "user_1", plan_id="growth")
    db.add("follows", {"user_id": "user_1", "profile_id": profile["id"]})
    return profile


@pytest.fixture
def tiktok_api(http_mock):
    def _mock(video_ids, status_code=200):
        http_mock.get(f"{SCRAPE_BASE_URL}/v1/tiktok/profile").mock(
            return_value=httpx.Response(200, json=TIKTOK_PROFILE)
        )
        return http_mock.get(f"{SCRAPE_BASE_URL}/v3/tiktok/profile/videos").mock(
            return_value=httpx.Response(status_code, json={"aweme_list": [tiktok_video(v) for v in video_ids]})
        )
    return _mock


def store_followed_posts(db, profile, post_ids):
    for post_id in post_ids:
        db.add("followed_posts", {
            "user_id": "user_1",
            "profile_id": profile["id"],
            "platform": "tiktok",
            "platform_post_id": post_id,
            "embed_url": f"https://www.tiktok.com/@creator/video/{post_id}",
        })


def test_refresh_inserts_only_unseen_posts(client, db, login, followed_profile, tiktok_api):
    store_followed_posts(db, followed_profile, ["p1", "p2", "p3"])
    tiktok_api(["p2", "p3", "p4"])
    login("user_1")

    response = client.post(f"/api/v1/profiles/{followed_profile['id']}/refresh")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["newPosts"] == 1
    assert body["message"] == "Refreshed @creator: 1 new posts, 0 errors"
    stored = sorted(r["platform_post_id"] for r in db.rows("followed_posts", user_id="user_1"))
    assert stored == ["p1", "p2", "p3", "p4"]
    assert db.rows("profiles")[0]["display_name"] == "The Creator"
    assert db.rows("follows")[0]["last_refresh"]


def test_refresh_keeps_only_the_latest_posts(db, followed_profile, tiktok_api, scrape_client):
    tiktok_api([f"v{i}" for i in range(10)])

    result = ProfileRefreshService(db, scrape_client, fetch_count=10, post_limit=7).refresh(
        "user_1", followed_profile["id"]
    )

    assert result.new_posts == 7
    assert [r["platform_post_id"] for r in db.rows("followed_posts")] == [f"v{i}" for i in range(7)]


def test_refresh_reports_upstream_failure(client, db, login, followed_profile, tiktok_api):
    tiktok_api([], status_code=500)
    login("user_1")

    body = client.post(f"/api/v1/profiles/{followed_profile['id']}/refresh").json()

    assert body["success"] is False
    assert body["errors"] == 1
    assert db.rows("followed_posts") == []


def test_refresh_requires_following(client, db, login, followed_profile):
    seed_user(db, "user_2", plan_id="growth")
    login("user_2")

    response = client.post(f"/api/v1/profiles/{followed_profile['id']}/refresh")

    assert response.status_code == 404


def test_async_refresh_records_job_outcome(client, db, login, followed_profile, tiktok_api, scrape_client, monkeypatch):
    monkeypatch.setattr(refresh_worker, "get_scrape_client", lambda: scrape_client)
    tiktok_api(["p1", "p2"])
    login("user_1")

    response = client.post(f"/api/v1/profiles/{followed_profile['id']}/refresh-async")

    assert response.status_code == 202
    job_id = response.json()["jobId"]
    job = client.get(f"/api/v1/profiles/refresh-jobs/{job_id}").json()
    assert job["status"] == "succeeded"
    assert job["attempts"] == 1
    assert job["new_posts"] == 2

    login("user_2")
    assert client.get(f"/api/v1/profiles/refresh-jobs/{job_id}").status_code == 404


def test_retry_picks_failed_and_stale_queued_jobs(db, mocker):
    now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    run = mocker.patch.object(refresh_worker, "run_refresh_job", return_value="succeeded")
    failed = db.add("refresh_jobs", {"status": "failed", "attempts": 1, "user_id": "u", "profile_id": "p"})
    stale = db.add("refresh_jobs", {"status": "queued", "attempts": 0, "user_id": "u", "profile_id": "p",
                                    "created_at": (now - timedelta(hours=1)).isoformat()})
    db.add("refresh_jobs", {"status": "queued", "attempts": 0, "user_id": "u", "profile_id": "p",
                            "created_at": now.isoformat()})
    db.add("refresh_jobs", {"status": "failed", "attempts": 3, "user_id": "u", "profile_id": "p"})
    db.add("refresh_jobs", {"status": "succeeded", "attempts": 1, "user_id": "u", "profile_id": "p"})

    retried = refresh_worker.retry_failed_refresh_jobs(supabase=db, now=now)

    assert retried == 2
    assert {call.args[0] for call in run.call_args_list} == {failed["id"], stale["id"]}


def test_follow_limit_and_duplicates(client, db, login):
    seed_plan(db, "inspiration", profile_follows=1)
    seed_user(db, "user_1", plan_id="inspiration")
    first = db.add("profiles", {"handle": "one", "platform": "tiktok"})
    second = db.add("profiles", {"handle": "two", "platform": "instagram"})
    login("user_1")

    assert client.post(f"/api/v1/profiles/{first['id']}/follow").status_code == 201
    assert client.post(f"/api/v1/profiles/{first['id']}/follow").status_code == 409
    limited = client.post(f"/api/v1/profiles/{second['id']}/follow")
    assert limited.status_code == 403
    assert client.get(f"/api/v1/profiles/{first['id']}/following").json() == {"isFollowing": True}
    assert [p["handle"] for p in client.get("/api/v1/profiles/following").json()] == ["one"]

    assert client.delete(f"/api/v1/profiles/{first['id']}/follow").status_code == 204
    assert client.post(f"/api/v1/profiles/{second['id']}/follow").status_code == 201


def test_follow_unknown_profile_is_404(client, db, login):
    seed_user(db, "user_1", plan_id="growth")
    login("user_1")

    assert client.post("/api/v1/profiles/missing/follow").status_code == 404


def test_followed_posts_feed_is_newest_first(client, db, login, followed_profile):
    for post_id, day in (("old", 1), ("new", 20)):
        db.add("followed_posts", {
            "user_id": "user_1",
            "profile_id": followed_profile["id"],
            "platform": "tiktok",
            "platform_post_id": post_id,
            "embed_url": f"https://www.tiktok.com/@creator/video/{post_id}",
            "date_posted": f"2026-01-{day:02d}T00:00:00+00:00",
        })
    login("user_1")

    feed = client.get("/api/v1/profiles/following/posts").json()

    assert [p["platform_post_id"] for p in feed] == ["new", "old"]
    assert feed[0]["profiles"]["handle"] == "creator"


def test_retry_picks_running_jobs_abandoned_by_a_dead_worker(db, mocker):
    now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    run = mocker.patch.object(refresh_worker, "run_refresh_job", return_value="succeeded")
    abandoned = db.add("refresh_jobs", {"status": "running", "attempts": 1, "user_id": "u", "profile_id": "p",
                                        "updated_at": (now - timedelta(days=1)).isoformat()})
    db.add("refresh_jobs", {"status": "running", "attempts": 1, "user_id": "u", "profile_id": "p",
                            "updated_at": (now - timedelta(seconds=30)).isoformat()})
    db.add("refresh_jobs", {"status": "running", "attempts": 3, "user_id": "u", "profile_id": "p",
                            "updated_at": (now - timedelta(days=1)).isoformat()})

    retried = refresh_worker.retry_failed_refresh_jobs(supabase=db, now=now)

    assert retried == 1
    run.assert_called_once_with(abandoned["id"], supabase=db)


def test_follow_requires_a_plan(client, db, login):
    seed_user(db, "user_1")
    profile = db.add("profiles", {"handle": "one", "platform": "tiktok"})
    login("user_1")

    response = client.post(f"/api/v1/profiles/{profile['id']}/follow")

    assert response.status_code == 403
    assert response.json()["redirect"] == "/select-plan"
    assert db.rows("follows") == []


def test_plan_without_follow_limit_allows_no_follows(client, db, login):
    seed_plan(db, "starter")["limits"] = {"profile_discoveries": 5}
    seed_user(db, "user_1", plan_id="starter")
    profile = db.add("profiles", {"handle": "one", "platform": "tiktok"})
    login("user_1")

    response = client.post(f"/api/v1/profiles/{profile['id']}/follow")

    assert response.status_code == 403
    assert "profile_follows (0/0)" in response.json()["error"]
    assert db.rows("follows") == []


def test_discovered_creator_can_be_followed_and_refreshed(client, db, login, tiktok_api):
    seed_plan(db, "growth")
    seed_user(db, "user_1", plan_id="growth")
    tiktok_api(["p1", "p2"])
    login("user_1")

    discovered = client.get("/api/v1/discovery/search", params={"platform": "tiktok", "handle": "creator"}).json()
    assert db.rows("profiles") == []

    followed = client.post("/api/v1/profiles/follow", json=discovered["profile"])

    assert followed.status_code == 201
    profile = followed.json()["profile"]
    assert profile["handle"] == "creator"
    assert profile["followers_count"] == 5000
    assert profile["verified"] is True
    assert db.rows("follows", user_id="user_1")[0]["profile_id"] == profile["id"]
    assert client.post("/api/v1/profiles/follow", json=discovered["profile"]).status_code == 409
    assert len(db.rows("profiles")) == 1

    refreshed = client.post(f"/api/v1/profiles/{profile['id']}/refresh").json()
    assert refreshed["newPosts"] == 2


def test_follow_by_handle_updates_a_known_profile(client, db, login):
    seed_plan(db, "growth")
    seed_user(db, "user_1", plan_id="growth")
    known = db.add("profiles", {"handle": "gram", "platform": "instagram", "display_name": "Old", "followers_count": 1})
    login("user_1")

    response = client.post("/api/v1/profiles/follow", json={
        "handle": "@gram", "platform": "instagram", "display_name": "Gram Creator", "followers": 9100,
    })

    assert response.status_code == 201
    assert response.json()["profile"]["id"] == known["id"]
    assert db.rows("profiles")[0]["display_name"] == "Gram Creator"
    assert db.rows("profiles")[0]["followers_count"] == 9100
    assert client.post("/api/v1/profiles/follow", json={"handle": "x", "platform": "youtube"}).status_code == 400


def test_follow_status_and_unfollow_by_handle(client, db, login):
    seed_user(db, "user_1", plan_id="growth")
    profile = db.add("profiles", {"handle": "creator", "platform": "tiktok"})
    db.add("follows", {"user_id": "user_1", "profile_id": profile["id"]})
    login("user_1")

    assert client.get("/api/v1/profiles/by-handle/tiktok/creator/following").json() == {"isFollowing": True}
    assert client.get("/api/v1/profiles/by-handle/tiktok/stranger/following").json() == {"isFollowing": False}

    assert client.delete("/api/v1/profiles/by-handle/tiktok/creator/follow").status_code == 204
    assert db.rows("follows") == []
    assert client.get("/api/v1/profiles/by-handle/tiktok/creator/following").json() == {"isFollowing": False}
    assert client.delete("/api/v1/profiles/by-handle/tiktok/stranger/follow").status_code == 404
