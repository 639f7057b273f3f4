"""
Content API — Catalog operations

Every operation validates locally, forwards to the record store and returns a
Result. Allergies, dietary preferences and recipe banners are ordered lists:
new rows are appended after the current maximum and drag-and-drop moves go
through ReorderService.
"""
import logging
from typing import Any, Generic, Sequence, TypeVar

from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from infinite_flow.core.result import ErrorKind, Result
from infinite_flow.db.record_store import RecordStore
from infinite_flow.models.catalog import (
    Allergy,
    DietaryPreference,
    Equipment,
    Instructor,
    Recipe,
    RecipeBanner,
    Subscription,
)
from infinite_flow.services.ordering import ReorderService, ScopeLock

logger = logging.getLogger(__name__)

M = TypeVar("M")


def require_text(values: dict[str, Any], fields: Sequence[str], message: str) -> Result[None]:
    """Strip the given string fields in place; fail if any is missing or blank."""
    for name in fields:
        value = values.get(name)
        if isinstance(value, str):
            value = value.strip()
            values[name] = value
        if not value:
            return Result.fail(ErrorKind.VALIDATION, message)
    return Result.ok(None)


def require_positive(values: dict[str, Any], field: str, message: str) -> Result[None]:
    value = values.get(field)
    if value is None or value <= 0:
        return Result.fail(ErrorKind.VALIDATION, message)
    return Result.ok(None)


class CrudService(Generic[M]):
    model: type
    label: str

    def __init__(self, session: AsyncSession):
        self.store: RecordStore[M] = RecordStore(session, self.model, label=self.label)

    def order_by(self) -> list:
        return []

    def validate_create(self, values: dict[str, Any]) -> Result[None]:
        return Result.ok(None)

    def validate_update(self, record: M, changes: dict[str, Any]) -> Result[None]:
        return Result.ok(None)

    async def list_all(self) -> Result[list[M]]:
        return await self.store.list(order_by=self.order_by())

    async def get(self, record_id: str) -> Result[M]:
        return await self.store.get(record_id)

    async def create(self, params: BaseModel) -> Result[M]:
        values = params.model_dump()
        checked = self.validate_create(values)
        if not checked.success:
            return checked
        return await self.store.insert(values)

    async def update(self, record_id: str, patch: BaseModel) -> Result[M]:
        changes = patch.model_dump(exclude_unset=True)
        found = await self.store.get(record_id)
        if not found.success:
            return found
        checked = self.validate_update(found.data, changes)
        if not checked.success:
            return checked
        if not changes:
            return found
        return await self.store.update(record_id, changes)

    async def delete(self, record_id: str) -> Result[None]:
        return await self.store.delete(record_id)


class OrderedCatalog(CrudService[M]):
    """A flat list kept in a dense, user-defined order."""

    order_field = "order_number"
    name_field = "name"

    def __init__(self, session: AsyncSession, lock: ScopeLock):
        super().__init__(session)
        self.reorder = ReorderService(
            self.store, lock, order_field=self.order_field, name_field=self.name_field
        )

    def order_by(self) -> list:
        order_col = self.store.column(self.order_field)
        name_col = self.store.column(self.name_field)
        return [order_col.is_(None), order_col, func.lower(name_col)]

    def validate_create(self, values: dict[str, Any]) -> Result[None]:
        return require_text(values, [self.name_field], f"{self.label.capitalize()} name is required.")

    def validate_update(self, record: M, changes: dict[str, Any]) -> Result[None]:
        if self.name_field in changes:
            return require_text(changes, [self.name_field], f"{self.label.capitalize()} name is required.")
        return Result.ok(None)

    async def list_all(self, search: str | None = None) -> Result[list[M]]:
        where = []
        if search:
            where.append(self.store.column(self.name_field).ilike(f"%{search.strip()}%"))
        return await self.store.list(order_by=self.order_by(), where=where)

    async def create(self, params: BaseModel) -> Result[M]:
        values = params.model_dump()
        checked = self.validate_create(values)
        if not checked.success:
            return checked
        highest = await self.store.max_value(self.order_field)
        if not highest.success:
            return highest
        values[self.order_field] = 0 if highest.data is None else highest.data + 1
        return await self.store.insert(values)

    async def update_order(self, ordered_ids: Sequence[str]) -> Result[list[M]]:
        return await self.reorder.apply_order(None, ordered_ids)

    async def move(
        self, item_id: str, from_index: int, to_index: int, search: str | None = None
    ) -> Result[list[M]]:
        return await self.reorder.move(None, item_id, from_index, to_index, search_active=bool(search))


# ─── Concrete catalogs ────────────────────────────────────────────────────────

class AllergyService(OrderedCatalog[Allergy]):
    model = Allergy
    label = "allergy"


class DietaryPreferenceService(OrderedCatalog[DietaryPreference]):
    model = DietaryPreference
    label = "dietary preference"


class RecipeBannerService(OrderedCatalog[RecipeBanner]):
    model = RecipeBanner
    label = "recipe banner"
    order_field = "display_order"
    name_field = "title"

    def validate_create(self, values: dict[str, Any]) -> Result[None]:
        return require_text(values, ["image_url"], "Banner image is required.")

    def validate_update(self, record: RecipeBanner, changes: dict[str, Any]) -> Result[None]:
        if "image_url" in changes:
            return require_text(changes, ["image_url"], "Banner image is required.")
        return Result.ok(None)


class EquipmentService(CrudService[Equipment]):
    model = Equipment
    label = "equipment"

    def order_by(self) -> list:
        return [func.lower(Equipment.name)]

    def validate_create(self, values: dict[str, Any]) -> Result[None]:
        return require_text(values, ["name"], "Equipment name is required.")


def _check_subscription(values: dict[str, Any]) -> Result[None]:
    if "tier_level" in values and (values["tier_level"] is None or values["tier_level"] < 1):
        return Result.fail(ErrorKind.VALIDATION, "Tier level must be at least 1.")
    if "duration_months" in values and (values["duration_months"] is None or values["duration_months"] < 1):
        return Result.fail(ErrorKind.VALIDATION, "Duration must be at least 1 month.")
    if "price_usd" in values and (values["price_usd"] is None or values["price_usd"] < 0):
        return Result.fail(ErrorKind.VALIDATION, "Price cannot be negative.")
    return Result.ok(None)


class SubscriptionService(CrudService[Subscription]):
    model = Subscription
    label = "subscription"

    def order_by(self) -> list:
        return [Subscription.tier_level]

    def validate_create(self, values: dict[str, Any]) -> Result[None]:
        checked = require_text(values, ["name"], "Subscription name is required.")
        if not checked.success:
            return checked
        return _check_subscription(values)

    def validate_update(self, record: Subscription, changes: dict[str, Any]) -> Result[None]:
        if "name" in changes:
            checked = require_text(changes, ["name"], "Subscription name is required.")
            if not checked.success:
                return checked
        return _check_subscription(changes)


class InstructorService(CrudService[Instructor]):
    model = Instructor
    label = "instructor"

    def order_by(self) -> list:
        return [Instructor.created_at.desc()]

    def validate_create(self, values: dict[str, Any]) -> Result[None]:
        return require_text(values, ["instructor_id", "bio"], "Instructor ID and bio are required.")


class RecipeService(CrudService[Recipe]):
    model = Recipe
    label = "recipe"

    def order_by(self) -> list:
        return [Recipe.created_at.desc()]

    def _check_numbers(self, values: dict[str, Any]) -> Result[None]:
        for field, message in (
            ("prep_time_minutes", "Prep time must be greater than 0."),
            ("cook_time_minutes", "Cook time must be greater than 0."),
            ("servings", "Servings must be greater than 0."),
        ):
            if field in values:
                checked = require_positive(values, field, message)
                if not checked.success:
                    return checked
        return Result.ok(None)

    def validate_create(self, values: dict[str, Any]) -> Result[None]:
        checked = require_text(values, ["recipe_name", "description"], "Recipe name and description are required.")
        if not checked.success:
            return checked
        checked = require_text(values, ["class_name"], "Class name is required.")
        if not checked.success:
            return checked
        return self._check_numbers(values)

    def validate_update(self, record: Recipe, changes: dict[str, Any]) -> Result[None]:
        for field in ("recipe_name", "description", "class_name"):
            if field in changes:
                checked = require_text(changes, [field], f"{field.replace('_', ' ').capitalize()} cannot be empty.")
                if not checked.success:
                    return checked
        return self._check_numbers(changes)
