"""
Content API — Video and class schemas
"""
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, Field

VideoStatus = Literal["Draft", "Published"]
SubscriptionPlan = Literal["free", "premium"]


# ─── Videos ───────────────────────────────────────────────────────────────────

class VideoCreate(BaseModel):
    description: str = ""
    status: VideoStatus = "Draft"
    subscription_plan: SubscriptionPlan = "free"
    meta_title: str | None = Field(None, max_length=255)
    meta_description: str | None = None
    thumbnail_url: str | None = None
    equipments: list[str] | None = None
    instructions: str | None = None
    min_calories: int | None = Field(None, ge=0)
    max_calories: int | None = Field(None, ge=0)


class VideoImport(VideoCreate):
    video_url: str


class VideoUpdate(BaseModel):
    description: str | None = None
    status: VideoStatus | None = None
    subscription_plan: SubscriptionPlan | None = None
    meta_title: str | None = Field(None, max_length=255)
    meta_description: str | None = None
    thumbnail_url: str | None = None
    equipments: list[str] | None = None
    instructions: str | None = None
    min_calories: int | None = Field(None, ge=0)
    max_calories: int | None = Field(None, ge=0)


class VideoResponse(BaseModel):
    video_id: str
    description: str | None
    status: str
    subscription_plan: str
    mux_upload_id: str | None
    mux_asset_id: str | None
    mux_playback_id: str | None
    meta_title: str | None
    meta_description: str | None
    thumbnail_url: str | None
    equipments: list[str] | None
    instructions: str | None
    min_calories: int | None
    max_calories: int | None
    is_deleted: bool
    deleted_time: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UploadUrlResponse(BaseModel):
    upload_url: str
    upload_id: str
    video_id: str


class ImportResponse(BaseModel):
    asset_id: str
    video_id: str


class PollRequest(BaseModel):
    upload_id: str | None = None
    asset_id: str | None = None


class SyncResponse(BaseModel):
    task_id: str
    status: str = "queued"


# ─── Classes ──────────────────────────────────────────────────────────────────

class ClassCreate(BaseModel):
    class_name: str = Field(..., max_length=255)
    description: str
    instructor_id: str
    duration: int
    category: str | None = None
    level: str | None = None
    intensity_level: str | None = None
    body_area: list[str] = Field(default_factory=list)
    video_url: str = ""
    thumbnail_image: str = ""
    equipment_list: list[str] = Field(default_factory=list)
    is_premium: bool = False
    is_published: bool = False
    notes: str | None = None
    challenge: bool = False
    badge: str | None = None
    banner_image: str | None = None
    preview_video_url: str | None = None
    challenge_start_date: datetime | None = None
    challenge_end_date: datetime | None = None


class ClassUpdate(BaseModel):
    class_name: str | None = Field(None, max_length=255)
    description: str | None = None
    instructor_id: str | None = None
    duration: int | None = None
    category: str | None = None
    level: str | None = None
    intensity_level: str | None = None
    body_area: list[str] | None = None
    video_url: str | None = None
    thumbnail_image: str | None = None
    equipment_list: list[str] | None = None
    is_premium: bool | None = None
    is_published: bool | None = None
    notes: str | None = None
    challenge: bool | None = None
    badge: str | None = None
    banner_image: str | None = None
    preview_video_url: str | None = None
    challenge_start_date: datetime | None = None
    challenge_end_date: datetime | None = None


class ClassResponse(BaseModel):
    class_id: str
    instructor_id: str
    class_name: str
    description: str
    category: str
    level: str
    body_area: list[str]
    duration: int
    intensity_level: str
    video_url: str
    thumbnail_image: str
    equipment_list: list[str]
    is_premium: bool
    is_published: bool
    view_count: int
    completion_count: int
    notes: str | None
    challenge: bool
    badge: str | None
    banner_image: str | None
    preview_video_url: str | None
    challenge_start_date: datetime | None
    challenge_end_date: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StepReportResponse(BaseModel):
    name: str
    status: str
    error: str | None = None


class ClassCreatedResponse(BaseModel):
    data: ClassResponse | None
    complete: bool
    steps: list[StepReportResponse]


# ─── Class videos ─────────────────────────────────────────────────────────────

class ClassVideoCreate(BaseModel):
    video_id: str
    description: str | None = None


class ClassVideoUpdate(BaseModel):
    description: str | None = None
    sort_order: int | None = Field(None, ge=0)


class ClassVideoResponse(BaseModel):
    class_video_id: str
    class_id: str
    video_id: str
    description: str | None
    sort_order: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class VideoSummary(BaseModel):
    video_id: str
    description: str | None
    meta_title: str | None
    status: str
    mux_playback_id: str | None
    thumbnail_url: str | None

    model_config = {"from_attributes": True}


class ClassVideoWithVideo(ClassVideoResponse):
    video: VideoSummary | None = None
