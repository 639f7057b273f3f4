"""
Content API — Consumer activity and moderation schemas
"""
from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

from infinite_flow.schemas.media import ClassResponse
from infinite_flow.schemas.catalog import RecipeResponse
from infinite_flow.schemas.profile import MemberSummary

T = TypeVar("T")

ItemType = Literal["class", "recipe"]
Period = Literal["week", "month", "year", "all"]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int


class Page(BaseModel, Generic[T]):
    data: list[T]
    pagination: Pagination


# ── Favorites ─────────────────────────────────────────────────

class FavoriteCreate(BaseModel):
    item_id: str = Field(..., min_length=1)
    item_type: ItemType


class FavoriteResponse(BaseModel):
    id: str
    user_id: str
    item_id: str
    item_type: str
    created_at: datetime
    # the favorited class or recipe, when it still exists
    item: ClassResponse | RecipeResponse | None = None

    model_config = {"from_attributes": True}


# ── Workouts ──────────────────────────────────────────────────

class WorkoutUpdate(BaseModel):
    duration_minutes: int | None = Field(None, ge=0)
    difficulty_rating: int | None = Field(None, ge=1, le=5)
    mood_before: str | None = Field(None, max_length=32)
    mood_after: str | None = Field(None, max_length=32)
    notes: str | None = None
    calories_burned: int | None = Field(None, ge=0)


class WorkoutCreate(WorkoutUpdate):
    class_id: str = Field(..., min_length=1)


class WorkoutResponse(WorkoutCreate):
    log_id: str
    user_id: str
    completed_at: datetime

    model_config = {"from_attributes": True}


class WorkoutWithClass(WorkoutResponse):
    fitness_class: ClassResponse


class ProgressResponse(BaseModel):
    period: Period
    total_workouts: int
    total_minutes: int
    total_calories: int
    avg_difficulty: float
    streak: int
    recent_workouts: list[WorkoutResponse]


# ── Comments and notes ────────────────────────────────────────

class CommentModeration(BaseModel):
    is_marked_hidden: bool | None = None


class CommentResponse(BaseModel):
    comment_id: str
    class_id: str
    user_id: str
    comment_text: str
    created_at: datetime
    updated_at: datetime
    is_marked_hidden: bool
    user: MemberSummary | None = None

    model_config = {"from_attributes": True}


class NoteResponse(BaseModel):
    note_id: str
    class_id: str
    user_id: str
    note_content: str
    created_at: datetime
    updated_at: datetime
    is_archived: bool
    user: MemberSummary | None = None

    model_config = {"from_attributes": True}
