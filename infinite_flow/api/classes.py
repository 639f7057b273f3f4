"""
Content API — Classes API

POST /admin/classes is multipart: the class fields as JSON in `metadata`, plus
optional badge and banner images and the ids of videos to attach in order.
The steps run as a workflow; see services/workflow.py for the failure policy.
"""
import json
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import TypeAdapter, ValidationError

from infinite_flow.api.errors import raise_for_result
from infinite_flow.api.videos import read_upload
from infinite_flow.core.deps import (
    get_asset_service,
    get_class_service,
    get_class_video_service,
    get_failure_policy,
    get_moderation_service,
    require_admin,
)
from infinite_flow.schemas.common import MoveRequest, OrderRequest
from infinite_flow.schemas.engagement import CommentModeration, CommentResponse, NoteResponse
from infinite_flow.schemas.media import (
    ClassCreate,
    ClassCreatedResponse,
    ClassResponse,
    ClassUpdate,
    ClassVideoCreate,
    ClassVideoResponse,
    ClassVideoUpdate,
    ClassVideoWithVideo,
)
from infinite_flow.services.assets import AssetService
from infinite_flow.services.classes import ClassService, ClassVideoService
from infinite_flow.services.engagement import ModerationService
from infinite_flow.services.workflow import PartialFailurePolicy, create_class_with_assets

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/classes", tags=["classes"], dependencies=[Depends(require_admin)])

_video_ids = TypeAdapter(list[str])


def _class_videos(rows) -> list[ClassVideoResponse]:
    return [ClassVideoResponse.model_validate(r) for r in rows]


# ── Classes ───────────────────────────────────────────────────

@router.post("", response_model=ClassCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    metadata: str = Form(..., description="ClassCreate JSON"),
    video_ids: str = Form("[]", description="JSON list of video ids, attached in this order"),
    badge: UploadFile | None = File(None),
    banner: UploadFile | None = File(None),
    classes: ClassService = Depends(get_class_service),
    class_videos: ClassVideoService = Depends(get_class_video_service),
    assets: AssetService = Depends(get_asset_service),
    policy: PartialFailurePolicy = Depends(get_failure_policy),
):
    try:
        params = ClassCreate.model_validate_json(metadata)
        ids = _video_ids.validate_json(video_ids or "[]")
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=json.loads(exc.json()))

    result = await create_class_with_assets(
        classes,
        class_videos,
        assets,
        params,
        badge=await read_upload(badge) if badge is not None else None,
        banner=await read_upload(banner) if banner is not None else None,
        video_ids=ids,
        policy=policy,
    )
    report = raise_for_result(result, serialize=lambda r: {"steps": r.as_dicts()})
    return ClassCreatedResponse(
        data=ClassResponse.model_validate(report.context["class"]),
        complete=report.complete,
        steps=report.as_dicts(),
    )


@router.get("", response_model=list[ClassResponse])
async def list_classes(classes: ClassService = Depends(get_class_service)):
    return raise_for_result(await classes.list_all())


@router.get("/{class_id}", response_model=ClassResponse)
async def get_class(class_id: str, classes: ClassService = Depends(get_class_service)):
    return raise_for_result(await classes.get(class_id))


@router.patch("/{class_id}", response_model=ClassResponse)
async def update_class(class_id: str, payload: ClassUpdate, classes: ClassService = Depends(get_class_service)):
    return raise_for_result(await classes.update(class_id, payload))


@router.delete("/{class_id}")
async def delete_class(
    class_id: str,
    classes: ClassService = Depends(get_class_service),
    class_videos: ClassVideoService = Depends(get_class_video_service),
):
    raise_for_result(await class_videos.delete_all(class_id))
    raise_for_result(await classes.delete(class_id))
    return {"deleted": True, "class_id": class_id}


# ── Class videos ──────────────────────────────────────────────

@router.get("/{class_id}/videos", response_model=list[ClassVideoWithVideo])
async def list_class_videos(class_id: str, class_videos: ClassVideoService = Depends(get_class_video_service)):
    return raise_for_result(await class_videos.list_for_class(class_id))


@router.post("/{class_id}/videos", response_model=ClassVideoResponse, status_code=status.HTTP_201_CREATED)
async def add_class_video(
    class_id: str,
    payload: ClassVideoCreate,
    class_videos: ClassVideoService = Depends(get_class_video_service),
):
    return raise_for_result(await class_videos.create(class_id, payload))


@router.patch("/{class_id}/videos/order", response_model=list[ClassVideoResponse])
async def update_class_video_order(
    class_id: str,
    payload: OrderRequest,
    class_videos: ClassVideoService = Depends(get_class_video_service),
):
    result = await class_videos.update_order(class_id, payload.ordered_ids)
    return raise_for_result(result, serialize=_class_videos)


@router.post("/{class_id}/videos/move", response_model=list[ClassVideoResponse])
async def move_class_video(
    class_id: str,
    payload: MoveRequest,
    class_videos: ClassVideoService = Depends(get_class_video_service),
):
    result = await class_videos.move(class_id, payload.item_id, payload.from_index, payload.to_index, payload.search)
    return raise_for_result(result, serialize=_class_videos)


@router.patch("/{class_id}/videos/{class_video_id}", response_model=ClassVideoResponse)
async def update_class_video(
    class_id: str,
    class_video_id: str,
    payload: ClassVideoUpdate,
    class_videos: ClassVideoService = Depends(get_class_video_service),
):
    return raise_for_result(await class_videos.update(class_id, class_video_id, payload))


@router.delete("/{class_id}/videos/{class_video_id}")
async def remove_class_video(
    class_id: str,
    class_video_id: str,
    class_videos: ClassVideoService = Depends(get_class_video_service),
):
    raise_for_result(await class_videos.delete(class_id, class_video_id))
    return {"deleted": True, "class_video_id": class_video_id}


# ── Comments and notes ────────────────────────────────────────

@router.get("/{class_id}/comments", response_model=list[CommentResponse])
async def list_comments(class_id: str, moderation: ModerationService = Depends(get_moderation_service)):
    return raise_for_result(await moderation.list_comments(class_id))


@router.patch("/{class_id}/comments/{comment_id}", response_model=CommentResponse)
async def moderate_comment(
    class_id: str,
    comment_id: str,
    payload: CommentModeration,
    moderation: ModerationService = Depends(get_moderation_service),
):
    return raise_for_result(await moderation.moderate_comment(class_id, comment_id, payload))


@router.delete("/{class_id}/comments/{comment_id}")
async def delete_comment(
    class_id: str,
    comment_id: str,
    moderation: ModerationService = Depends(get_moderation_service),
):
    raise_for_result(await moderation.delete_comment(class_id, comment_id))
    return {"deleted": True, "comment_id": comment_id}


@router.get("/{class_id}/notes", response_model=list[NoteResponse])
async def list_notes(class_id: str, moderation: ModerationService = Depends(get_moderation_service)):
    return raise_for_result(await moderation.list_notes(class_id))
