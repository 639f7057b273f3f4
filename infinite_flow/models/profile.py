"""
Content API — End-user models

Profile is the `users` table keyed by the Supabase Auth uid; registration
writes it and the consumer app edits it. Member is the `profiles` table that
admins manage from the user list; user_type "A" marks an admin row, which the
admin user endpoints never list, edit or delete.
"""
import uuid
from datetime import date, datetime
from sqlalchemy import String, Float, Date, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from infinite_flow.db.database import Base, utcnow

ADMIN_USER_TYPE = "A"
SUBSCRIPTION_STATUSES = ("active", "inactive", "cancelled")


class Profile(Base):
    __tablename__ = "users"

    uid: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    provider: Mapped[str] = mapped_column(String(32), default="email", nullable=False)
    provider_type: Mapped[str] = mapped_column(String(32), default="local", nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    nickname: Mapped[str | None] = mapped_column(String(128), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(32), nullable=True)
    height: Mapped[float | None] = mapped_column(Float, nullable=True)
    height_unit: Mapped[str | None] = mapped_column(String(8), nullable=True)
    weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight_unit: Mapped[str | None] = mapped_column(String(8), nullable=True)
    activity_level: Mapped[str | None] = mapped_column(String(32), nullable=True)
    dietary_preference: Mapped[str | None] = mapped_column(String(64), nullable=True)
    allergies: Mapped[list | None] = mapped_column(JSON, nullable=True)
    last_sign_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Profile uid={self.uid} email={self.email}>"


class Member(Base):
    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    nickname: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    user_type: Mapped[str] = mapped_column(String(1), default="S", nullable=False)
    subscription_status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<Member user_id={self.user_id} type={self.user_type}>"
