"""
Content API — Consumer browsing, favorites, workouts, progress and moderation

Consumer operations are scoped to the authenticated user: a workout or
favorite that belongs to someone else is reported as not found.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Generic, Sequence, TypeVar

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from infinite_flow.core.result import ErrorKind, Result
from infinite_flow.db.database import utcnow
from infinite_flow.db.record_store import RecordStore
from infinite_flow.models.catalog import Recipe
from infinite_flow.models.engagement import ClassComment, ClassNote, Favorite, Workout
from infinite_flow.models.media import FitnessClass
from infinite_flow.schemas.engagement import CommentModeration, FavoriteCreate, WorkoutCreate, WorkoutUpdate

logger = logging.getLogger(__name__)

M = TypeVar("M")

PERIOD_DAYS = {"week": 7, "month": 30, "year": 365, "all": None}
RECENT_WORKOUTS = 5


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class PageResult(Generic[M]):
    items: list[M]
    page: int
    limit: int
    total: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "data": self.items,
            "pagination": {"page": self.page, "limit": self.limit, "total": self.total},
        }


async def _page(store: RecordStore, paging: PageRequest, where: Sequence, order_by: Sequence, **kwargs) -> Result:
    total = await store.count(where=where)
    if not total.success:
        return total
    rows = await store.list(where=where, order_by=order_by, limit=paging.limit, offset=paging.offset, **kwargs)
    if not rows.success:
        return rows
    return Result.ok(PageResult(rows.data, paging.page, paging.limit, total.data))


def _contains(column, text: str):
    return column.ilike(f"%{text}%")


# ─── Browsing ─────────────────────────────────────────────────────────────────

class BrowseService:
    """Published classes and recipes as the mobile app lists them, newest first."""

    def __init__(self, session: AsyncSession):
        self.classes = RecordStore(session, FitnessClass, label="class")
        self.recipes = RecordStore(session, Recipe, label="meal")

    async def classes_page(
        self,
        paging: PageRequest,
        category: str | None = None,
        level: str | None = None,
        search: str | None = None,
        is_premium: bool | None = None,
        instructor_id: str | None = None,
    ) -> Result[PageResult[FitnessClass]]:
        where = [FitnessClass.is_published.is_(True)]
        if category:
            where.append(FitnessClass.category == category)
        if level:
            where.append(FitnessClass.level == level)
        if search:
            where.append(or_(_contains(FitnessClass.class_name, search), _contains(FitnessClass.description, search)))
        if is_premium is not None:
            where.append(FitnessClass.is_premium.is_(is_premium))
        if instructor_id:
            where.append(FitnessClass.instructor_id == instructor_id)
        return await _page(self.classes, paging, where, [FitnessClass.created_at.desc()])

    async def open_class(self, class_id: str) -> Result[FitnessClass]:
        """A published class; each successful read counts as one view."""
        found = await self.classes.get(class_id)
        if not found.success:
            return found
        if not found.data.is_published:
            return Result.fail(ErrorKind.NOT_FOUND, "Class not found.")
        counted = await self.classes.update(class_id, {"view_count": (found.data.view_count or 0) + 1})
        if not counted.success:
            # the failed write rolled back the session; read the class again
            logger.warning("Could not count view of class %s: %s", class_id, counted.error)
            return await self.classes.get(class_id)
        return counted

    async def meals_page(
        self,
        paging: PageRequest,
        category: str | None = None,
        search: str | None = None,
        is_premium: bool | None = None,
    ) -> Result[PageResult[Recipe]]:
        where = [Recipe.is_published.is_(True)]
        if category:
            where.append(_contains(Recipe.class_name, category))
        if search:
            where.append(or_(_contains(Recipe.recipe_name, search), _contains(Recipe.description, search)))
        if is_premium is not None:
            where.append(Recipe.is_premium.is_(is_premium))
        return await _page(self.recipes, paging, where, [Recipe.created_at.desc()])


# ─── Favorites ────────────────────────────────────────────────────────────────

class FavoriteService:
    def __init__(self, session: AsyncSession):
        self.store = RecordStore(session, Favorite, label="favorite")
        self.items = {
            "class": RecordStore(session, FitnessClass, label="class"),
            "recipe": RecordStore(session, Recipe, label="recipe"),
        }

    async def list_for_user(self, user_id: str, item_type: str | None = None) -> Result[list[tuple[Favorite, Any]]]:
        """Favorites newest first, each paired with its class or recipe (None if it was deleted)."""
        filters = {"user_id": user_id}
        if item_type:
            filters["item_type"] = item_type
        listed = await self.store.list(filters=filters, order_by=[Favorite.created_at.desc()])
        if not listed.success:
            return listed

        resolved: dict[tuple[str, str], Any] = {}
        for kind, store in self.items.items():
            ids = [f.item_id for f in listed.data if f.item_type == kind]
            if not ids:
                continue
            rows = await store.list(where=[store.pk.in_(ids)])
            if not rows.success:
                return rows
            resolved.update({(kind, getattr(r, store.pk_name)): r for r in rows.data})
        return Result.ok([(f, resolved.get((f.item_type, f.item_id))) for f in listed.data])

    async def add(self, user_id: str, params: FavoriteCreate) -> Result[Favorite]:
        target = await self.items[params.item_type].get(params.item_id)
        if not target.success:
            return target
        existing = await self.store.count(
            filters={"user_id": user_id, "item_id": params.item_id, "item_type": params.item_type}
        )
        if not existing.success:
            return existing
        if existing.data:
            return Result.fail(ErrorKind.CONFLICT, "Already in favorites.")
        return await self.store.insert({"user_id": user_id, "item_id": params.item_id, "item_type": params.item_type})

    async def remove(self, user_id: str, item_id: str, item_type: str) -> Result[None]:
        listed = await self.store.list(
            filters={"user_id": user_id, "item_id": item_id, "item_type": item_type}, limit=1
        )
        if not listed.success:
            return listed
        if not listed.data:
            return Result.fail(ErrorKind.NOT_FOUND, "Favorite not found.")
        return await self.store.delete(listed.data[0].id)


# ─── Workouts and progress ────────────────────────────────────────────────────

def workout_streak(days: Sequence[date], today: date) -> int:
    """
    Consecutive days with at least one workout, counted back from the most
    recent one. The run only counts if it reaches today or yesterday.
    """
    ordered = sorted(set(days), reverse=True)
    if not ordered or ordered[0] < today - timedelta(days=1):
        return 0
    streak = 1
    for newer, older in zip(ordered, ordered[1:]):
        if newer - older != timedelta(days=1):
            break
        streak += 1
    return streak


class WorkoutService:
    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.store = RecordStore(session, Workout, label="workout")
        self.classes = RecordStore(session, FitnessClass, label="class")
        self._clock = clock

    async def _own(self, user_id: str, log_id: str, with_class: bool = False) -> Result[Workout]:
        options = [selectinload(Workout.fitness_class)] if with_class else []
        found = await self.store.get(log_id, options=options, refresh=with_class)
        if found.success and found.data.user_id != user_id:
            return Result.fail(ErrorKind.NOT_FOUND, "Workout not found.")
        return found

    async def list_for_user(
        self, user_id: str, paging: PageRequest, class_id: str | None = None
    ) -> Result[PageResult[Workout]]:
        where = [Workout.user_id == user_id]
        if class_id:
            where.append(Workout.class_id == class_id)
        return await _page(
            self.store, paging, where, [Workout.completed_at.desc()],
            options=[selectinload(Workout.fitness_class)],
        )

    async def get(self, user_id: str, log_id: str) -> Result[Workout]:
        return await self._own(user_id, log_id, with_class=True)

    async def log(self, user_id: str, params: WorkoutCreate) -> Result[Workout]:
        parent = await self.classes.get(params.class_id)
        if not parent.success:
            return parent
        return await self.store.insert({**params.model_dump(), "user_id": user_id, "completed_at": self._clock()})

    async def update(self, user_id: str, log_id: str, patch: WorkoutUpdate) -> Result[Workout]:
        changes = patch.model_dump(exclude_unset=True)
        if not changes:
            return Result.fail(ErrorKind.VALIDATION, "No valid fields to update.")
        found = await self._own(user_id, log_id)
        if not found.success:
            return found
        return await self.store.update(log_id, changes)

    async def delete(self, user_id: str, log_id: str) -> Result[None]:
        found = await self._own(user_id, log_id)
        if not found.success:
            return found
        return await self.store.delete(log_id)

    async def progress(self, user_id: str, period: str = "week") -> Result[dict[str, Any]]:
        if period not in PERIOD_DAYS:
            return Result.fail(ErrorKind.VALIDATION, f"Unknown period '{period}'.")
        now = self._clock()
        where = [Workout.user_id == user_id]
        if PERIOD_DAYS[period] is not None:
            where.append(Workout.completed_at >= now - timedelta(days=PERIOD_DAYS[period]))
        listed = await self.store.list(where=where, order_by=[Workout.completed_at.desc()])
        if not listed.success:
            return listed

        workouts = listed.data
        rated = [w.difficulty_rating or 0 for w in workouts]
        return Result.ok({
            "period": period,
            "total_workouts": len(workouts),
            "total_minutes": sum(w.duration_minutes or 0 for w in workouts),
            "total_calories": sum(w.calories_burned or 0 for w in workouts),
            "avg_difficulty": round(sum(rated) / len(rated), 1) if rated else 0.0,
            "streak": workout_streak([w.completed_at.date() for w in workouts], now.date()),
            "recent_workouts": workouts[:RECENT_WORKOUTS],
        })


# ─── Moderation ───────────────────────────────────────────────────────────────

class ModerationService:
    """Admin side of class comments and notes, authors attached."""

    def __init__(self, session: AsyncSession):
        self.comments = RecordStore(session, ClassComment, label="comment")
        self.notes = RecordStore(session, ClassNote, label="note")

    async def list_comments(self, class_id: str) -> Result[list[ClassComment]]:
        # hidden comments included; admins decide what to unhide
        return await self.comments.list(
            filters={"class_id": class_id},
            order_by=[ClassComment.created_at.desc()],
            options=[selectinload(ClassComment.user)],
        )

    async def list_notes(self, class_id: str) -> Result[list[ClassNote]]:
        return await self.notes.list(
            filters={"class_id": class_id},
            order_by=[ClassNote.created_at.desc()],
            options=[selectinload(ClassNote.user)],
        )

    async def _comment_in_class(self, class_id: str, comment_id: str) -> Result[ClassComment]:
        found = await self.comments.get(comment_id)
        if found.success and found.data.class_id != class_id:
            return Result.fail(ErrorKind.NOT_FOUND, "Comment not found.")
        return found

    async def moderate_comment(
        self, class_id: str, comment_id: str, patch: CommentModeration
    ) -> Result[ClassComment]:
        if patch.is_marked_hidden is None:
            return Result.fail(ErrorKind.VALIDATION, "No valid fields to update.")
        found = await self._comment_in_class(class_id, comment_id)
        if not found.success:
            return found
        updated = await self.comments.update(
            comment_id, {"is_marked_hidden": patch.is_marked_hidden, "updated_at": utcnow()}
        )
        if not updated.success:
            return updated
        return await self.comments.get(comment_id, options=[selectinload(ClassComment.user)], refresh=True)

    async def delete_comment(self, class_id: str, comment_id: str) -> Result[None]:
        found = await self._comment_in_class(class_id, comment_id)
        if not found.success:
            return found
        return await self.comments.delete(comment_id)
