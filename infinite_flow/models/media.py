"""
Content API — Video and class models

Videos are soft-deleted (is_deleted + deleted_time). mux_asset_id and
mux_playback_id are stamped once Mux reports the asset ready, by the status
poller, the webhook or the backfill task.
Class videos form one ordered list per class_id via sort_order.
"""
import uuid
from datetime import datetime
from sqlalchemy import String, Integer, Boolean, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from infinite_flow.db.database import Base, utcnow


class Video(Base):
    __tablename__ = "videos"

    video_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="Draft", nullable=False)
    subscription_plan: Mapped[str] = mapped_column(String(16), default="free", nullable=False)
    mux_upload_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    mux_asset_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    mux_playback_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    meta_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    equipments: Mapped[list | None] = mapped_column(JSON, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    min_calories: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_calories: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Video video_id={self.video_id} upload={self.mux_upload_id} asset={self.mux_asset_id}>"


class FitnessClass(Base):
    __tablename__ = "classes"

    class_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    instructor_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    class_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(64), default="Pilates", nullable=False)
    level: Mapped[str] = mapped_column(String(32), default="Beginner", nullable=False)
    body_area: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    intensity_level: Mapped[str] = mapped_column(String(32), default="Low", nullable=False)
    video_url: Mapped[str] = mapped_column(Text, default="", nullable=False)
    thumbnail_image: Mapped[str] = mapped_column(Text, default="", nullable=False)
    equipment_list: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completion_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    challenge: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    badge: Mapped[str | None] = mapped_column(Text, nullable=True)
    banner_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    preview_video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    challenge_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    challenge_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class ClassVideo(Base):
    """Join row between a class and a video, with its own order and description override."""
    __tablename__ = "class_videos"

    class_video_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    class_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("classes.class_id", ondelete="CASCADE"), index=True, nullable=False
    )
    video_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("videos.video_id", ondelete="CASCADE"), nullable=False
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    video: Mapped[Video] = relationship(lazy="raise")
