"""
Content API — Mux webhook

Mux calls this when an asset finishes processing. The body is verified against
the Mux-Signature header before anything is parsed. video.asset.ready stamps
the asset and playback ids on the video created for that upload; every other
event type is acknowledged and ignored.
"""
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from infinite_flow.api.errors import raise_for_result
from infinite_flow.core.config import Settings
from infinite_flow.core.deps import get_app_settings, get_video_service
from infinite_flow.core.security import verify_mux_signature
from infinite_flow.services.media_poller import select_playback_id
from infinite_flow.services.videos import VideoService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/mux")
async def mux_webhook(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    videos: VideoService = Depends(get_video_service),
):
    if not settings.MUX_WEBHOOK_SECRET:
        logger.error("MUX_WEBHOOK_SECRET is not set; rejecting webhook")
        raise HTTPException(status_code=500, detail="Webhook secret not configured.")

    body = await request.body()
    signature = request.headers.get("mux-signature")
    if not signature:
        raise HTTPException(status_code=401, detail="Missing signature.")
    if not verify_mux_signature(body, signature, settings.MUX_WEBHOOK_SECRET):
        logger.warning("Rejected Mux webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature.")

    try:
        event = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload.")
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Webhook payload must be a JSON object.")

    if event.get("type") != "video.asset.ready":
        return {"received": True}

    asset = event.get("data") or {}
    if not isinstance(asset, dict):
        raise HTTPException(status_code=400, detail="Webhook data must be a JSON object.")
    asset_id = asset.get("id")
    upload_id = asset.get("upload_id")
    if not asset_id or not upload_id:
        raise HTTPException(status_code=400, detail="Missing asset ID or upload ID.")

    playback_ids = asset.get("playback_ids")
    if not isinstance(playback_ids, list) or not all(isinstance(p, dict) for p in playback_ids):
        playback_ids = None
    playback_id = select_playback_id(playback_ids)
    raise_for_result(await videos.stamp_by_upload(upload_id, asset_id, playback_id))
    logger.info("Webhook stamped asset %s (upload %s)", asset_id, upload_id)
    return {"received": True, "asset_id": asset_id, "playback_id": playback_id}
