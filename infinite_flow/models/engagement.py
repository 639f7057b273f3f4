"""
Content API — Consumer activity models

Favorites point at either a class or a recipe (item_type), so item_id carries
no foreign key. Workouts are logged against a class. Comments and notes are
written by the mobile app; admins read them and hide or delete comments.
"""
import uuid
from datetime import datetime
from sqlalchemy import String, Integer, Boolean, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from infinite_flow.db.database import Base, utcnow
from infinite_flow.models.media import FitnessClass
from infinite_flow.models.profile import Member

FAVORITE_ITEM_TYPES = ("class", "recipe")


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "item_id", "item_type", name="uq_favorite_item"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), nullable=False)
    item_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Workout(Base):
    __tablename__ = "workout"

    log_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    class_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("classes.class_id", ondelete="CASCADE"), index=True, nullable=False
    )
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    difficulty_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mood_before: Mapped[str | None] = mapped_column(String(32), nullable=True)
    mood_after: Mapped[str | None] = mapped_column(String(32), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    calories_burned: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    fitness_class: Mapped[FitnessClass] = relationship(lazy="raise")


class ClassComment(Base):
    __tablename__ = "class_comments"

    comment_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    class_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("classes.class_id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False
    )
    comment_text: Mapped[str] = mapped_column(Text, nullable=False)
    is_marked_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user: Mapped[Member | None] = relationship(lazy="raise")


class ClassNote(Base):
    __tablename__ = "class_notes"

    note_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    class_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("classes.class_id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False
    )
    note_content: Mapped[str] = mapped_column(Text, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user: Mapped[Member | None] = relationship(lazy="raise")
