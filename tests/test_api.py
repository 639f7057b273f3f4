"""
HTTP surface through the application factory: auth enforcement, catalog CRUD,
ordered-list moves, class and video creation, registration, member admin,
consumer routes, comment moderation, profiles and health.
"""
import json
from types import SimpleNamespace

import pytest

from infinite_flow.api import videos as videos_api
from infinite_flow.clients.auth_admin import AuthAdminError
from infinite_flow.db.record_store import RecordStore
from infinite_flow.models.engagement import ClassComment, ClassNote
from infinite_flow.models.media import FitnessClass, Video
from infinite_flow.models.profile import Member, Profile

from tests.conftest import make_token

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


# ─── Auth enforcement ──────────────────────────────────────────────────────────

async def test_public_routes(client):
    assert (await client.get("/")).status_code == 200
    health = await client.get("/health")
    assert health.status_code == 200, health.text
    assert health.json()["dependencies"]["postgres"] == "ok"
    assert health.json()["dependencies"]["redis"] == "ok"


async def test_admin_routes_reject_missing_token(client):
    r = await client.get("/admin/allergies")
    assert r.status_code == 401, f"Expected 401, got {r.status_code}: {r.text}"


async def test_admin_routes_reject_tampered_token(client):
    token = make_token() + "x"
    r = await client.get("/admin/allergies", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


async def test_admin_routes_reject_wrong_audience(client):
    token = make_token(aud="someone-else")
    r = await client.get("/admin/allergies", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


async def test_admin_routes_require_admin_role(client, user_headers):
    r = await client.get("/admin/allergies", headers=user_headers)
    assert r.status_code == 403


# ─── Ordered lists ─────────────────────────────────────────────────────────────

async def _create_allergies(client, headers, *names) -> list[str]:
    ids = []
    for name in names:
        r = await client.post("/admin/allergies", json={"name": name}, headers=headers)
        assert r.status_code == 201, r.text
        ids.append(r.json()["allergy_id"])
    return ids


async def test_allergy_move_round_trip(client, admin_headers):
    a, b, c = await _create_allergies(client, admin_headers, "Peanuts", "Dairy", "Gluten")

    r = await client.post(
        "/admin/allergies/move",
        json={"item_id": a, "from_index": 0, "to_index": 2},
        headers=admin_headers,
    )

    assert r.status_code == 200, r.text
    assert [(x["allergy_id"], x["order_number"]) for x in r.json()] == [(b, 0), (c, 1), (a, 2)]
    listed = (await client.get("/admin/allergies", headers=admin_headers)).json()
    assert [x["name"] for x in listed] == ["Dairy", "Gluten", "Peanuts"]


async def test_move_refused_while_searching(client, admin_headers):
    a, _ = await _create_allergies(client, admin_headers, "Peanuts", "Dairy")

    r = await client.post(
        "/admin/allergies/move",
        json={"item_id": a, "from_index": 0, "to_index": 1, "search": "pea"},
        headers=admin_headers,
    )

    assert r.status_code == 409


async def test_stale_move_returns_current_list(client, admin_headers):
    a, b = await _create_allergies(client, admin_headers, "Peanuts", "Dairy")

    r = await client.post(
        "/admin/allergies/move",
        json={"item_id": b, "from_index": 0, "to_index": 1},
        headers=admin_headers,
    )

    assert r.status_code == 409
    detail = r.json()["detail"]
    assert [x["allergy_id"] for x in detail["data"]] == [a, b]


async def test_search_filters_case_insensitively(client, admin_headers):
    await _create_allergies(client, admin_headers, "Peanuts", "Tree nuts", "Dairy")

    r = await client.get("/admin/allergies", params={"search": "NUT"}, headers=admin_headers)

    assert [x["name"] for x in r.json()] == ["Peanuts", "Tree nuts"]


async def test_explicit_order(client, admin_headers):
    a, b, c = await _create_allergies(client, admin_headers, "A", "B", "C")

    ok = await client.patch("/admin/allergies/order", json={"ordered_ids": [c, b, a]}, headers=admin_headers)
    incomplete = await client.patch("/admin/allergies/order", json={"ordered_ids": [c, b]}, headers=admin_headers)

    assert ok.status_code == 200
    assert [x["allergy_id"] for x in ok.json()] == [c, b, a]
    assert incomplete.status_code == 400


async def test_blank_name_is_rejected(client, admin_headers):
    r = await client.post("/admin/dietary-preferences", json={"name": "   "}, headers=admin_headers)
    assert r.status_code == 400


# ─── Plain CRUD ────────────────────────────────────────────────────────────────

async def test_equipment_crud(client, admin_headers):
    created = await client.post("/admin/equipment", json={"name": "Reformer"}, headers=admin_headers)
    item_id = created.json()["equipment_id"]

    patched = await client.patch(f"/admin/equipment/{item_id}", json={"description": "Studio"}, headers=admin_headers)
    deleted = await client.delete(f"/admin/equipment/{item_id}", headers=admin_headers)
    missing = await client.get(f"/admin/equipment/{item_id}", headers=admin_headers)

    assert created.status_code == 201
    assert patched.json()["description"] == "Studio"
    assert deleted.json() == {"deleted": True, "id": item_id}
    assert missing.status_code == 404


@pytest.mark.parametrize("payload", [
    {"name": "Gold", "tier_level": 0, "duration_months": 1, "price_usd": 9.99},
    {"name": "Gold", "tier_level": 1, "duration_months": 0, "price_usd": 9.99},
    {"name": "Gold", "tier_level": 1, "duration_months": 1, "price_usd": -1},
])
async def test_subscription_validation(client, admin_headers, payload):
    r = await client.post("/admin/subscriptions", json=payload, headers=admin_headers)
    assert r.status_code == 400


# ─── Classes ───────────────────────────────────────────────────────────────────

CLASS = {"class_name": "Morning Flow", "description": "Gentle mobility", "instructor_id": "inst-1", "duration": 30}


async def test_create_class_with_badge_and_videos(client, admin_headers, session, storage):
    video = (await RecordStore(session, Video).insert({"description": "Warm up"})).unwrap()

    r = await client.post(
        "/admin/classes",
        data={"metadata": json.dumps(CLASS), "video_ids": json.dumps([video.video_id])},
        files={"badge": ("badge.png", PNG, "image/png")},
        headers=admin_headers,
    )

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["complete"] is True
    assert body["data"]["badge"].startswith(storage.base_url)
    class_id = body["data"]["class_id"]

    listed = await client.get(f"/admin/classes/{class_id}/videos", headers=admin_headers)
    assert [(cv["video_id"], cv["sort_order"]) for cv in listed.json()] == [(video.video_id, 0)]
    assert listed.json()[0]["video"]["description"] == "Warm up"


async def test_create_class_reports_failed_banner(client, admin_headers):
    r = await client.post(
        "/admin/classes",
        data={"metadata": json.dumps(CLASS)},
        files={"banner": ("banner.gif", b"GIF89a", "image/gif")},
        headers=admin_headers,
    )

    assert r.status_code == 201
    body = r.json()
    assert body["complete"] is False
    assert {s["name"]: s["status"] for s in body["steps"]} == {"create_class": "done", "upload_banner": "failed"}


async def test_create_class_rejects_bad_metadata(client, admin_headers):
    r = await client.post("/admin/classes", data={"metadata": "{"}, headers=admin_headers)
    assert r.status_code == 422


async def test_class_video_move_and_delete(client, admin_headers, session):
    store = RecordStore(session, Video)
    v1 = (await store.insert({"description": "one"})).unwrap()
    v2 = (await store.insert({"description": "two"})).unwrap()
    created = await client.post(
        "/admin/classes",
        data={"metadata": json.dumps(CLASS), "video_ids": json.dumps([v1.video_id, v2.video_id])},
        headers=admin_headers,
    )
    class_id = created.json()["data"]["class_id"]
    rows = (await client.get(f"/admin/classes/{class_id}/videos", headers=admin_headers)).json()

    moved = await client.post(
        f"/admin/classes/{class_id}/videos/move",
        json={"item_id": rows[1]["class_video_id"], "from_index": 1, "to_index": 0},
        headers=admin_headers,
    )
    deleted = await client.delete(f"/admin/classes/{class_id}", headers=admin_headers)

    assert moved.status_code == 200, moved.text
    assert [cv["video_id"] for cv in moved.json()] == [v2.video_id, v1.video_id]
    assert deleted.status_code == 200
    assert (await client.get(f"/admin/classes/{class_id}", headers=admin_headers)).status_code == 404


# ─── Videos ────────────────────────────────────────────────────────────────────

async def test_upload_url_and_inverted_calories(client, admin_headers, mux):
    ok = await client.post("/admin/videos/upload-url", json={"description": "Flow"}, headers=admin_headers)
    bad = await client.post(
        "/admin/videos/upload-url", json={"min_calories": 300, "max_calories": 100}, headers=admin_headers
    )

    assert ok.status_code == 201
    assert set(ok.json()) == {"upload_url", "upload_id", "video_id"}
    assert bad.status_code == 400
    assert len(mux.calls) == 1


async def test_import_polls_until_budget_exhausted(app, client, admin_headers, mux, fake_sleep):
    r = await client.post(
        "/admin/videos/import", json={"video_url": "https://cdn.example.com/a.mp4"}, headers=admin_headers
    )
    video_id = r.json()["video_id"]

    outcome = await app.state.poll_registry.wait(video_id)
    status = await client.get(f"/admin/videos/{video_id}/poll", headers=admin_headers)

    assert r.status_code == 201
    assert outcome.status.value == "still_processing"
    assert mux.status_queries() == 3
    assert fake_sleep.calls == [5.0, 5.0, 5.0]
    assert status.json()["is_ready"] is False


async def test_check_stamps_ready_video(client, admin_headers, mux):
    created = (await client.post("/admin/videos/upload-url", json={}, headers=admin_headers)).json()
    mux.make_ready("asset-42", upload_id=created["upload_id"])

    r = await client.post(f"/admin/videos/{created['video_id']}/check", headers=admin_headers)
    video = await client.get(f"/admin/videos/{created['video_id']}", headers=admin_headers)

    assert r.json()["is_ready"] is True
    assert video.json()["mux_playback_id"] == "pb-asset-42"


async def test_create_video_with_thumbnail(client, admin_headers, storage):
    r = await client.post(
        "/admin/videos",
        data={"metadata": json.dumps({"description": "Flow"})},
        files={"thumbnail": ("thumb.png", PNG, "image/png")},
        headers=admin_headers,
    )

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["complete"] is True
    assert body["data"]["upload_id"] == "upload-1"
    assert storage.uploads[0][0] == "videos"


async def test_poll_status_unknown_video(client, admin_headers):
    r = await client.get("/admin/videos/nope/poll", headers=admin_headers)
    assert r.status_code == 404


def _sse_events(text: str) -> list[dict]:
    return [json.loads(line[len("data: "):]) for line in text.splitlines() if line.startswith("data: ")]


async def test_events_after_finished_poll_send_outcome_and_close(app, client, admin_headers, fake_redis):
    r = await client.post(
        "/admin/videos/import", json={"video_url": "https://cdn.example.com/a.mp4"}, headers=admin_headers
    )
    video_id = r.json()["video_id"]
    await app.state.poll_registry.wait(video_id)

    stream = await client.get(f"/admin/videos/{video_id}/events", headers=admin_headers)

    assert stream.status_code == 200
    assert stream.headers["content-type"].startswith("text/event-stream")
    events = _sse_events(stream.text)
    assert [e["status"] for e in events] == ["still_processing"]
    assert events[0]["attempts"] == 3
    assert fake_redis.subscribers == []


class _ConnectedRequest:
    def __init__(self, app):
        self.app = app

    async def is_disconnected(self) -> bool:
        return False


async def test_events_stream_live_progress_until_terminal(app, fake_redis):
    stream = videos_api._sse_generator("v9", _ConnectedRequest(app), app.state.poll_registry)

    assert (await stream.__anext__()).startswith(": connected")
    await fake_redis.publish("media:v9", json.dumps({"video_id": "v9", "status": "processing", "attempt": 1}))
    await fake_redis.publish("media:v9", json.dumps({"video_id": "v9", "status": "ready", "playback_id": "pb-1"}))
    await fake_redis.publish("media:v9", json.dumps({"video_id": "v9", "status": "processing", "attempt": 9}))
    rest = [chunk async for chunk in stream]

    updates = _sse_events("".join(rest))
    assert [u["status"] for u in updates] == ["processing", "ready"]
    assert fake_redis.subscribers == []


async def test_sync_is_queued(client, admin_headers, monkeypatch):
    monkeypatch.setattr(
        videos_api.sync_video_playback_ids, "delay", lambda: SimpleNamespace(id="task-1"), raising=False
    )

    r = await client.post("/admin/videos/sync", headers=admin_headers)

    assert r.status_code == 202
    assert r.json() == {"task_id": "task-1", "status": "queued"}


# ─── Profile ───────────────────────────────────────────────────────────────────

async def test_profile_read_and_patch(client, user_headers, session):
    await RecordStore(session, Profile).insert({"uid": "user-1", "email": "user@example.com"})

    got = await client.get("/users/me/profile", headers=user_headers)
    empty = await client.patch("/users/me/profile", json={}, headers=user_headers)
    patched = await client.patch("/users/me/profile", json={"nickname": "Flo", "height": 170}, headers=user_headers)

    assert got.status_code == 200
    assert got.json()["email"] == "user@example.com"
    assert empty.status_code == 400
    assert empty.json()["detail"] == "No valid fields to update."
    assert patched.json()["nickname"] == "Flo"
    assert patched.json()["height"] == 170


async def test_profile_requires_token(client):
    assert (await client.get("/users/me/profile")).status_code == 401


# ─── Registration ──────────────────────────────────────────────────────────────

async def test_register_then_email_is_taken(client, auth_admin):
    body = {"email": "flo@example.com", "password": "secret1", "display_name": "Flo"}

    before = await client.get("/auth/check-email", params={"email": "Flo@example.com"})
    created = await client.post("/auth/register", json=body)
    after = await client.get("/auth/check-email", params={"email": "flo@example.com"})
    again = await client.post("/auth/register", json=body)

    assert before.json() == {"email": "flo@example.com", "is_available": True}
    assert created.status_code == 201, created.text
    assert created.json()["message"] == "Account created successfully"
    assert created.json()["user"]["uid"] == "auth-1"
    assert after.json()["is_available"] is False
    assert again.status_code == 409
    assert auth_admin.created == ["flo@example.com"]


async def test_register_relays_auth_rejection(client, auth_admin):
    auth_admin.fail_with = AuthAdminError("Password should be at least 8 characters", status_code=422)

    r = await client.post(
        "/auth/register", json={"email": "flo@example.com", "password": "secret1", "display_name": "Flo"}
    )

    assert r.status_code == 400
    assert r.json()["detail"] == "Password should be at least 8 characters"


async def test_register_validates_payload(client):
    r = await client.post("/auth/register", json={"email": "not-an-email", "password": "x", "display_name": ""})
    assert r.status_code == 422


# ─── Member admin ──────────────────────────────────────────────────────────────

async def test_member_admin_round_trip(client, admin_headers, session):
    await RecordStore(session, Member).insert(
        {"user_id": "admin-1", "nickname": "Boss", "email": "boss@example.com", "user_type": "A"}
    )

    created = await client.post("/admin/users", json={"nickname": "Kim", "email": "kim@example.com"}, headers=admin_headers)
    user_id = created.json()["user_id"]
    listed = await client.get("/admin/users", headers=admin_headers)
    bad_status = await client.patch(f"/admin/users/{user_id}", json={"subscription_status": "paused"}, headers=admin_headers)
    patched = await client.patch(f"/admin/users/{user_id}", json={"subscription_status": "inactive"}, headers=admin_headers)
    admin_delete = await client.delete("/admin/users/admin-1", headers=admin_headers)
    deleted = await client.delete(f"/admin/users/{user_id}", headers=admin_headers)

    assert created.status_code == 201, created.text
    assert [u["nickname"] for u in listed.json()] == ["Kim"]
    assert bad_status.status_code == 400
    assert patched.json()["subscription_status"] == "inactive"
    assert admin_delete.status_code == 404
    assert deleted.json() == {"message": "User deleted successfully", "user_id": user_id}


async def test_member_admin_requires_admin(client, user_headers):
    assert (await client.get("/admin/users", headers=user_headers)).status_code == 403


# ─── Consumer ──────────────────────────────────────────────────────────────────

async def _published_class(session, name="Core Flow", published=True) -> str:
    row = await RecordStore(session, FitnessClass).insert({
        "instructor_id": "ins-1", "class_name": name, "description": "Flow",
        "duration": 30, "is_published": published,
    })
    return row.unwrap().class_id


async def test_browse_classes_is_paginated(client, user_headers, session):
    await _published_class(session, "Core Flow")
    await _published_class(session, "Deep Stretch")
    draft = await _published_class(session, "Draft", published=False)

    r = await client.get("/users/classes", params={"page": 1, "limit": 1}, headers=user_headers)
    hidden = await client.get(f"/users/classes/{draft}", headers=user_headers)

    assert r.status_code == 200, r.text
    assert r.json()["pagination"] == {"page": 1, "limit": 1, "total": 2}
    assert len(r.json()["data"]) == 1
    assert hidden.status_code == 404


async def test_consumer_routes_require_token(client):
    assert (await client.get("/users/classes")).status_code == 401
    assert (await client.get("/users/progress")).status_code == 401


async def test_favorites_over_http(client, user_headers, session):
    class_id = await _published_class(session)
    body = {"item_id": class_id, "item_type": "class"}

    added = await client.post("/users/favorites", json=body, headers=user_headers)
    duplicate = await client.post("/users/favorites", json=body, headers=user_headers)
    listed = await client.get("/users/favorites", params={"type": "class"}, headers=user_headers)
    removed = await client.delete(
        "/users/favorites", params={"item_id": class_id, "item_type": "class"}, headers=user_headers
    )

    assert added.status_code == 201, added.text
    assert added.json()["user_id"] == "user-1"
    assert duplicate.status_code == 409
    assert listed.json()[0]["item"]["class_name"] == "Core Flow"
    assert removed.status_code == 200


async def test_workouts_belong_to_the_token_user(client, user_headers, session):
    class_id = await _published_class(session)
    other_headers = {"Authorization": f"Bearer {make_token(sub='user-2', admin=False)}"}

    logged = await client.post(
        "/users/workouts", json={"class_id": class_id, "duration_minutes": 25, "difficulty_rating": 3},
        headers=user_headers,
    )
    log_id = logged.json()["log_id"]
    listed = await client.get("/users/workouts", headers=user_headers)
    foreign = await client.get(f"/users/workouts/{log_id}", headers=other_headers)
    progress = await client.get("/users/progress", params={"period": "all"}, headers=user_headers)

    assert logged.status_code == 201, logged.text
    assert listed.json()["pagination"]["total"] == 1
    assert listed.json()["data"][0]["fitness_class"]["class_name"] == "Core Flow"
    assert foreign.status_code == 404
    assert progress.json()["total_workouts"] == 1
    assert progress.json()["total_minutes"] == 25
    assert progress.json()["streak"] == 1


async def test_workout_rating_is_bounded(client, user_headers, session):
    class_id = await _published_class(session)
    r = await client.post("/users/workouts", json={"class_id": class_id, "difficulty_rating": 9}, headers=user_headers)
    assert r.status_code == 422


async def test_progress_period_is_validated(client, user_headers):
    assert (await client.get("/users/progress", params={"period": "decade"}, headers=user_headers)).status_code == 422


# ─── Comment moderation ────────────────────────────────────────────────────────

async def test_comment_moderation_over_http(client, admin_headers, session):
    await RecordStore(session, Member).insert({"user_id": "m1", "nickname": "Kim", "email": "kim@example.com"})
    class_id = await _published_class(session)
    other = await _published_class(session, "Other")
    comment = (await RecordStore(session, ClassComment).insert(
        {"class_id": class_id, "user_id": "m1", "comment_text": "Loved it"}
    )).unwrap()
    comment_id = comment.comment_id
    await RecordStore(session, ClassNote).insert({"class_id": class_id, "user_id": "m1", "note_content": "Knees"})

    listed = await client.get(f"/admin/classes/{class_id}/comments", headers=admin_headers)
    hidden = await client.patch(
        f"/admin/classes/{class_id}/comments/{comment_id}", json={"is_marked_hidden": True}, headers=admin_headers
    )
    wrong_class = await client.delete(f"/admin/classes/{other}/comments/{comment_id}", headers=admin_headers)
    notes = await client.get(f"/admin/classes/{class_id}/notes", headers=admin_headers)
    deleted = await client.delete(f"/admin/classes/{class_id}/comments/{comment_id}", headers=admin_headers)

    assert listed.json()[0]["user"]["nickname"] == "Kim"
    assert hidden.json()["is_marked_hidden"] is True
    assert wrong_class.status_code == 404
    assert [n["note_content"] for n in notes.json()] == ["Knees"]
    assert deleted.status_code == 200
