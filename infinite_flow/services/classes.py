"""
Content API — Classes and their ordered video lists
"""
import logging
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from infinite_flow.core.result import ErrorKind, Result
from infinite_flow.db.record_store import RecordStore
from infinite_flow.models.media import ClassVideo, FitnessClass, Video
from infinite_flow.schemas.media import ClassVideoCreate, ClassVideoUpdate
from infinite_flow.services.catalog import CrudService, require_positive, require_text
from infinite_flow.services.ordering import ReorderService, ScopeLock

logger = logging.getLogger(__name__)

CLASS_DEFAULTS = {"category": "Pilates", "level": "Beginner", "intensity_level": "Low"}


class ClassService(CrudService[FitnessClass]):
    model = FitnessClass
    label = "class"

    def order_by(self) -> list:
        return [FitnessClass.created_at.desc()]

    def validate_create(self, values: dict[str, Any]) -> Result[None]:
        checked = require_text(values, ["class_name", "description"], "Class name and description are required.")
        if not checked.success:
            return checked
        checked = require_text(values, ["instructor_id"], "Instructor is required.")
        if not checked.success:
            return checked
        checked = require_positive(values, "duration", "Duration must be greater than 0.")
        if not checked.success:
            return checked
        for name, default in CLASS_DEFAULTS.items():
            values[name] = values.get(name) or default
        for name in ("notes", "badge"):
            if isinstance(values.get(name), str):
                values[name] = values[name].strip() or None
        return Result.ok(None)

    def validate_update(self, record: FitnessClass, changes: dict[str, Any]) -> Result[None]:
        for name in ("class_name", "description", "instructor_id"):
            if name in changes:
                checked = require_text(changes, [name], f"{name.replace('_', ' ').capitalize()} cannot be empty.")
                if not checked.success:
                    return checked
        if "duration" in changes:
            return require_positive(changes, "duration", "Duration must be greater than 0.")
        return Result.ok(None)


class ClassVideoService:
    """Videos attached to one class, ordered by sort_order within that class."""

    def __init__(self, session: AsyncSession, lock: ScopeLock):
        self.store = RecordStore(session, ClassVideo, label="class video")
        self.classes = RecordStore(session, FitnessClass, label="class")
        self.videos = RecordStore(session, Video, label="video")
        self.reorder = ReorderService(
            self.store, lock, order_field="sort_order", name_field="created_at", scope_field="class_id"
        )

    async def list_for_class(self, class_id: str) -> Result[list[ClassVideo]]:
        return await self.store.list(
            filters={"class_id": class_id},
            order_by=[
                ClassVideo.sort_order.is_(None),
                ClassVideo.sort_order,
                ClassVideo.created_at,
            ],
            options=[selectinload(ClassVideo.video)],
        )

    async def _in_class(self, class_id: str, class_video_id: str) -> Result[ClassVideo]:
        found = await self.store.get(class_video_id)
        if found.success and found.data.class_id != class_id:
            return Result.fail(ErrorKind.NOT_FOUND, "Class video not found.")
        return found

    async def create(self, class_id: str, params: ClassVideoCreate) -> Result[ClassVideo]:
        """Attach a video at the end of the class's list."""
        parent = await self.classes.get(class_id)
        if not parent.success:
            return parent
        video = await self.videos.get(params.video_id)
        if not video.success:
            return video
        if video.data.is_deleted:
            return Result.fail(ErrorKind.NOT_FOUND, "Video not found.")

        highest = await self.store.max_value("sort_order", filters={"class_id": class_id})
        if not highest.success:
            return highest
        return await self.store.insert({
            "class_id": class_id,
            "video_id": params.video_id,
            "description": params.description.strip() if params.description else None,
            "sort_order": 0 if highest.data is None else highest.data + 1,
        })

    async def attach_many(self, class_id: str, video_ids: Sequence[str]) -> Result[list[ClassVideo]]:
        """Attach videos in the given order. Stops at the first failure."""
        attached = []
        for video_id in video_ids:
            created = await self.create(class_id, ClassVideoCreate(video_id=video_id))
            if not created.success:
                return Result.fail(
                    ErrorKind.PARTIAL if attached else created.kind,
                    f"Attached {len(attached)} of {len(video_ids)} videos: {created.error}",
                    data=attached,
                )
            attached.append(created.data)
        return Result.ok(attached)

    async def update(self, class_id: str, class_video_id: str, patch: ClassVideoUpdate) -> Result[ClassVideo]:
        found = await self._in_class(class_id, class_video_id)
        if not found.success:
            return found
        changes = patch.model_dump(exclude_unset=True)
        if not changes:
            return found
        return await self.store.update(class_video_id, changes)

    async def delete(self, class_id: str, class_video_id: str) -> Result[None]:
        found = await self._in_class(class_id, class_video_id)
        if not found.success:
            return found
        return await self.store.delete(class_video_id)

    async def delete_all(self, class_id: str) -> Result[None]:
        listed = await self.store.list(filters={"class_id": class_id})
        if not listed.success:
            return listed
        for row in listed.data:
            deleted = await self.store.delete(row.class_video_id)
            if not deleted.success:
                return deleted
        return Result.ok(None)

    async def update_order(self, class_id: str, ordered_ids: Sequence[str]) -> Result[list[ClassVideo]]:
        return await self.reorder.apply_order(class_id, ordered_ids)

    async def move(
        self,
        class_id: str,
        item_id: str,
        from_index: int,
        to_index: int,
        search: str | None = None,
    ) -> Result[list[ClassVideo]]:
        return await self.reorder.move(class_id, item_id, from_index, to_index, search_active=bool(search))
