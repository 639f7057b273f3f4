"""
Content API — Videos API

Upload flow:
  1. POST /admin/videos/upload-url  → Mux direct-upload URL + draft video row
  2. Browser PUTs the file to Mux
  3. POST /admin/videos/{id}/poll    → background poll until the asset is ready
  4. GET  /admin/videos/{id}/events  → SSE stream of poll progress
URL imports start polling immediately.
"""
import asyncio
import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from infinite_flow.api.errors import raise_for_result
from infinite_flow.core.deps import (
    get_failure_policy,
    get_poll_registry,
    get_video_service,
    require_admin,
)
from infinite_flow.schemas.media import (
    ImportResponse,
    PollRequest,
    SyncResponse,
    UploadUrlResponse,
    VideoCreate,
    VideoImport,
    VideoResponse,
    VideoUpdate,
)
from infinite_flow.services.assets import UploadedFile
from infinite_flow.services.media_poller import MEDIA_CHANNEL, PollRegistry, PollStatus, ProcessingJob
from infinite_flow.services.videos import VideoService
from infinite_flow.services.workflow import PartialFailurePolicy, create_video_with_thumbnail
from infinite_flow.tasks.media_tasks import sync_video_playback_ids

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/videos", tags=["videos"], dependencies=[Depends(require_admin)])

TERMINAL_STATUSES = {s.value for s in PollStatus}
SSE_KEEPALIVE_SECONDS = 15.0


async def read_upload(file: UploadFile) -> UploadedFile:
    return UploadedFile(filename=file.filename or "", content_type=file.content_type, data=await file.read())


# ── Create ────────────────────────────────────────────────────

@router.post("/upload-url", response_model=UploadUrlResponse, status_code=status.HTTP_201_CREATED)
async def create_upload_url(payload: VideoCreate, videos: VideoService = Depends(get_video_service)):
    return raise_for_result(await videos.create_upload(payload))


@router.post("/import", response_model=ImportResponse, status_code=status.HTTP_201_CREATED)
async def import_video(
    payload: VideoImport,
    videos: VideoService = Depends(get_video_service),
    registry: PollRegistry = Depends(get_poll_registry),
):
    created = raise_for_result(await videos.import_from_url(payload))
    registry.start(ProcessingJob(video_id=created["video_id"], asset_id=created["asset_id"]))
    return created


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_video(
    metadata: str = Form(..., description="VideoCreate JSON; include video_url to import from a URL"),
    thumbnail: UploadFile | None = File(None),
    videos: VideoService = Depends(get_video_service),
    registry: PollRegistry = Depends(get_poll_registry),
    policy: PartialFailurePolicy = Depends(get_failure_policy),
):
    """Create a video (upload URL or URL import) and optionally its thumbnail in one request."""
    try:
        raw = json.loads(metadata)
        params = VideoImport.model_validate(raw) if raw.get("video_url") else VideoCreate.model_validate(raw)
    except (ValueError, AttributeError, ValidationError) as exc:
        raise HTTPException(status_code=422, detail=f"Invalid video metadata: {exc}")

    thumb = await read_upload(thumbnail) if thumbnail is not None else None
    result = await create_video_with_thumbnail(videos, params, thumb, policy)
    report = raise_for_result(result, serialize=lambda r: {"steps": r.as_dicts()})

    ctx = report.context
    if ctx.get("asset_id"):
        registry.start(ProcessingJob(video_id=ctx["video_id"], asset_id=ctx["asset_id"]))
    return {
        "data": {k: ctx.get(k) for k in ("video_id", "upload_id", "upload_url", "asset_id") if ctx.get(k)},
        "complete": report.complete,
        "steps": report.as_dicts(),
    }


# ── Read / update / delete ────────────────────────────────────

@router.get("", response_model=list[VideoResponse])
async def list_videos(videos: VideoService = Depends(get_video_service)):
    return raise_for_result(await videos.list_videos())


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(video_id: str, videos: VideoService = Depends(get_video_service)):
    return raise_for_result(await videos.get(video_id))


@router.patch("/{video_id}", response_model=VideoResponse)
async def update_video(video_id: str, payload: VideoUpdate, videos: VideoService = Depends(get_video_service)):
    return raise_for_result(await videos.update(video_id, payload))


@router.delete("/{video_id}")
async def delete_video(video_id: str, videos: VideoService = Depends(get_video_service)):
    """Soft delete: the row is kept with is_deleted set."""
    raise_for_result(await videos.soft_delete(video_id))
    return {"deleted": True, "video_id": video_id}


@router.post("/{video_id}/thumbnail", response_model=VideoResponse)
async def upload_thumbnail(
    video_id: str,
    file: UploadFile = File(...),
    videos: VideoService = Depends(get_video_service),
):
    return raise_for_result(await videos.upload_thumbnail(video_id, await read_upload(file)))


# ── Processing status ─────────────────────────────────────────

@router.post("/{video_id}/check")
async def check_playback(video_id: str, videos: VideoService = Depends(get_video_service)):
    """Single status check against Mux; stamps the playback id if the asset is ready."""
    video = raise_for_result(await videos.get(video_id))
    if video.mux_upload_id and not video.mux_asset_id:
        return raise_for_result(await videos.check_playback_by_upload(video.mux_upload_id))
    if video.mux_asset_id:
        return raise_for_result(await videos.check_playback_by_asset(video.mux_asset_id, video_id))
    raise HTTPException(status_code=400, detail="Video has no Mux upload or asset.")


@router.post("/{video_id}/poll", status_code=status.HTTP_202_ACCEPTED)
async def start_poll(
    video_id: str,
    payload: PollRequest | None = None,
    videos: VideoService = Depends(get_video_service),
    registry: PollRegistry = Depends(get_poll_registry),
):
    video = raise_for_result(await videos.get(video_id))
    upload_id = (payload.upload_id if payload else None) or video.mux_upload_id
    asset_id = (payload.asset_id if payload else None) or video.mux_asset_id
    if not upload_id and not asset_id:
        raise HTTPException(status_code=400, detail="Video has no Mux upload or asset to poll.")

    # an upload id is authoritative until the asset id is known
    job = ProcessingJob(video_id=video_id, upload_id=None if asset_id else upload_id, asset_id=asset_id)
    started = registry.start(job)
    return {"video_id": video_id, "started": started, "channel": MEDIA_CHANNEL.format(video_id=video_id)}


@router.get("/{video_id}/poll")
async def poll_status(video_id: str, registry: PollRegistry = Depends(get_poll_registry)):
    return raise_for_result(registry.status(video_id))


@router.delete("/{video_id}/poll")
async def cancel_poll(video_id: str, registry: PollRegistry = Depends(get_poll_registry)):
    if not registry.cancel(video_id):
        raise HTTPException(status_code=404, detail="No poll is running for this video.")
    return {"video_id": video_id, "cancelled": True}


async def _sse_generator(video_id: str, request: Request, registry: PollRegistry) -> AsyncGenerator[str, None]:
    """
    Subscribe to the video's Redis channel and yield SSE events.

    The registry's current view is sent first, so a client that connects after
    the poll finished gets the outcome and the stream closes.
    """
    redis = request.app.state.redis
    channel_name = MEDIA_CHANNEL.format(video_id=video_id)
    pubsub = redis.pubsub()
    # subscribe before the snapshot so nothing published in between is lost
    await pubsub.subscribe(channel_name)

    try:
        yield f": connected to video {video_id}\n\n"

        snapshot = registry.status(video_id)
        if snapshot.success:
            yield f"event: media_update\ndata: {json.dumps(snapshot.data)}\n\n"
            if snapshot.data.get("status") in TERMINAL_STATUSES:
                return

        while True:
            if await request.is_disconnected():
                break

            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=SSE_KEEPALIVE_SECONDS)
            if message and message["type"] == "message":
                try:
                    payload = json.loads(message["data"])
                except ValueError:
                    payload = {"raw": message["data"]}

                yield f"event: media_update\ndata: {json.dumps(payload)}\n\n"

                # Stop streaming once the poll has finished
                if payload.get("status") in TERMINAL_STATUSES:
                    break
            else:
                yield ": keepalive\n\n"
                await asyncio.sleep(0)
    finally:
        await pubsub.unsubscribe(channel_name)
        await pubsub.aclose()


@router.get("/{video_id}/events")
async def stream_events(video_id: str, request: Request, registry: PollRegistry = Depends(get_poll_registry)):
    return StreamingResponse(
        _sse_generator(video_id, request, registry),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable Nginx buffering
            "Connection": "keep-alive",
        },
    )


# ── Backfill ──────────────────────────────────────────────────

@router.post("/sync", response_model=SyncResponse, status_code=status.HTTP_202_ACCEPTED)
async def sync_playback_ids():
    """Queue the backfill of asset / playback ids on the Celery worker."""
    task = sync_video_playback_ids.delay()
    return SyncResponse(task_id=task.id)
