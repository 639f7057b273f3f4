"""
Mux webhook: signature checks and playback stamping.
"""
import hashlib
import hmac
import json

import pytest
import pytest_asyncio

from infinite_flow.db.record_store import RecordStore
from infinite_flow.models.media import Video

SECRET = "whsec-test"


def _signed(payload: dict | bytes, secret: str = SECRET) -> tuple[bytes, dict[str, str]]:
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return body, {"Mux-Signature": f"t=1700000000,v1={digest}", "Content-Type": "application/json"}


def _ready_event(asset_id="asset-1", upload_id="up-1", playback_ids=None) -> dict:
    return {
        "type": "video.asset.ready",
        "data": {
            "id": asset_id,
            "upload_id": upload_id,
            "status": "ready",
            "playback_ids": playback_ids or [{"id": "sig-1", "policy": "signed"}, {"id": "pub-1", "policy": "public"}],
        },
    }


@pytest_asyncio.fixture
async def video(session) -> Video:
    return (await RecordStore(session, Video).insert({"mux_upload_id": "up-1"})).unwrap()


async def test_ready_event_stamps_video(client, session, video):
    body, headers = _signed(_ready_event())

    r = await client.post("/webhooks/mux", content=body, headers=headers)

    assert r.status_code == 200, r.text
    assert r.json() == {"received": True, "asset_id": "asset-1", "playback_id": "pub-1"}
    await session.refresh(video)
    assert (video.mux_asset_id, video.mux_playback_id) == ("asset-1", "pub-1")


async def test_other_events_are_acknowledged(client):
    body, headers = _signed({"type": "video.upload.created", "data": {"id": "up-1"}})

    r = await client.post("/webhooks/mux", content=body, headers=headers)

    assert r.status_code == 200
    assert r.json() == {"received": True}


async def test_missing_signature(client):
    r = await client.post("/webhooks/mux", content=json.dumps(_ready_event()).encode())
    assert r.status_code == 401


async def test_wrong_secret_is_rejected(client, session, video):
    body, headers = _signed(_ready_event(), secret="someone-else")

    r = await client.post("/webhooks/mux", content=body, headers=headers)

    assert r.status_code == 401
    await session.refresh(video)
    assert video.mux_asset_id is None


async def test_tampered_body_is_rejected(client):
    _, headers = _signed(_ready_event())
    tampered = json.dumps(_ready_event(asset_id="asset-evil")).encode()

    r = await client.post("/webhooks/mux", content=tampered, headers=headers)

    assert r.status_code == 401


async def test_invalid_json(client):
    body, headers = _signed(b"{not json")
    r = await client.post("/webhooks/mux", content=body, headers=headers)
    assert r.status_code == 400


@pytest.mark.parametrize("payload", [
    b'["video.asset.ready"]',
    b'"video.asset.ready"',
    b"42",
    b"null",
    json.dumps({"type": "video.asset.ready", "data": ["asset-1"]}).encode(),
])
async def test_non_object_payload_is_bad_request(client, payload):
    body, headers = _signed(payload)

    r = await client.post("/webhooks/mux", content=body, headers=headers)

    assert r.status_code == 400, r.text


async def test_malformed_playback_ids_are_ignored(client, session, video):
    body, headers = _signed(_ready_event(playback_ids="pub-1"))

    r = await client.post("/webhooks/mux", content=body, headers=headers)

    assert r.status_code == 200, r.text
    assert r.json()["playback_id"] is None
    await session.refresh(video)
    assert video.mux_asset_id == "asset-1"


async def test_ready_event_without_upload_id(client):
    event = _ready_event()
    del event["data"]["upload_id"]
    body, headers = _signed(event)

    r = await client.post("/webhooks/mux", content=body, headers=headers)

    assert r.status_code == 400


async def test_unknown_upload_is_not_found(client):
    body, headers = _signed(_ready_event(upload_id="up-unknown"))
    r = await client.post("/webhooks/mux", content=body, headers=headers)
    assert r.status_code == 404


async def test_unconfigured_secret(app, client, settings):
    app.state.settings = settings.model_copy(update={"MUX_WEBHOOK_SECRET": ""})
    body, headers = _signed(_ready_event())

    r = await client.post("/webhooks/mux", content=body, headers=headers)

    assert r.status_code == 500
