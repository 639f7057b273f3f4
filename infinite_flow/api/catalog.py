"""
Content API — Catalog APIs

Equipment, subscriptions, instructors and recipes are plain CRUD resources.
Allergies, dietary preferences and recipe banners are ordered lists and also
expose PATCH /order (full explicit order) and POST /move (drag-and-drop move).
"""
from typing import Any, Callable

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from infinite_flow.api.errors import raise_for_result
from infinite_flow.core.deps import (
    get_allergy_service,
    get_dietary_preference_service,
    get_equipment_service,
    get_instructor_service,
    get_recipe_banner_service,
    get_recipe_service,
    get_subscription_service,
    require_admin,
)
from infinite_flow.schemas.catalog import (
    AllergyResponse,
    DietaryPreferenceResponse,
    EquipmentResponse,
    InstructorCreate,
    InstructorResponse,
    InstructorUpdate,
    NamedItemCreate,
    NamedItemUpdate,
    RecipeBannerCreate,
    RecipeBannerResponse,
    RecipeBannerUpdate,
    RecipeCreate,
    RecipeResponse,
    RecipeUpdate,
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionUpdate,
)
from infinite_flow.schemas.common import MoveRequest, OrderRequest
from infinite_flow.services.catalog import CrudService, OrderedCatalog


def add_item_routes(
    router: APIRouter,
    get_service: Callable[..., CrudService],
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    response_schema: type[BaseModel],
) -> None:
    """POST collection, then GET / PATCH / DELETE on /{item_id}."""

    @router.post("", response_model=response_schema, status_code=status.HTTP_201_CREATED)
    async def create_item(payload: create_schema, service: CrudService = Depends(get_service)):  # type: ignore[valid-type]
        return raise_for_result(await service.create(payload))

    @router.get("/{item_id}", response_model=response_schema)
    async def get_item(item_id: str, service: CrudService = Depends(get_service)):
        return raise_for_result(await service.get(item_id))

    @router.patch("/{item_id}", response_model=response_schema)
    async def update_item(item_id: str, payload: update_schema, service: CrudService = Depends(get_service)):  # type: ignore[valid-type]
        return raise_for_result(await service.update(item_id, payload))

    @router.delete("/{item_id}")
    async def delete_item(item_id: str, service: CrudService = Depends(get_service)):
        raise_for_result(await service.delete(item_id))
        return {"deleted": True, "id": item_id}


def crud_router(
    prefix: str,
    tag: str,
    get_service: Callable[..., CrudService],
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    response_schema: type[BaseModel],
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag], dependencies=[Depends(require_admin)])

    @router.get("", response_model=list[response_schema])
    async def list_items(service: CrudService = Depends(get_service)):
        return raise_for_result(await service.list_all())

    add_item_routes(router, get_service, create_schema, update_schema, response_schema)
    return router


def ordered_list_router(
    prefix: str,
    tag: str,
    get_service: Callable[..., OrderedCatalog],
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    response_schema: type[BaseModel],
) -> APIRouter:
    # list, order and move are registered before /{item_id} so they win the match
    router = APIRouter(prefix=prefix, tags=[tag], dependencies=[Depends(require_admin)])

    def serialize(rows: list[Any]) -> list[BaseModel]:
        return [response_schema.model_validate(r) for r in rows]

    @router.get("", response_model=list[response_schema])
    async def list_items(
        search: str | None = Query(None, description="Case-insensitive name filter"),
        service: OrderedCatalog = Depends(get_service),
    ):
        return raise_for_result(await service.list_all(search=search))

    @router.patch("/order", response_model=list[response_schema])
    async def update_order(payload: OrderRequest, service: OrderedCatalog = Depends(get_service)):
        return raise_for_result(await service.update_order(payload.ordered_ids), serialize=serialize)

    @router.post("/move", response_model=list[response_schema])
    async def move_item(payload: MoveRequest, service: OrderedCatalog = Depends(get_service)):
        result = await service.move(payload.item_id, payload.from_index, payload.to_index, payload.search)
        return raise_for_result(result, serialize=serialize)

    add_item_routes(router, get_service, create_schema, update_schema, response_schema)
    return router


allergies = ordered_list_router(
    "/admin/allergies", "allergies", get_allergy_service,
    NamedItemCreate, NamedItemUpdate, AllergyResponse,
)
dietary_preferences = ordered_list_router(
    "/admin/dietary-preferences", "dietary-preferences", get_dietary_preference_service,
    NamedItemCreate, NamedItemUpdate, DietaryPreferenceResponse,
)
recipe_banners = ordered_list_router(
    "/admin/recipe-banners", "recipe-banners", get_recipe_banner_service,
    RecipeBannerCreate, RecipeBannerUpdate, RecipeBannerResponse,
)
equipment = crud_router(
    "/admin/equipment", "equipment", get_equipment_service,
    NamedItemCreate, NamedItemUpdate, EquipmentResponse,
)
subscriptions = crud_router(
    "/admin/subscriptions", "subscriptions", get_subscription_service,
    SubscriptionCreate, SubscriptionUpdate, SubscriptionResponse,
)
instructors = crud_router(
    "/admin/instructors", "instructors", get_instructor_service,
    InstructorCreate, InstructorUpdate, InstructorResponse,
)
recipes = crud_router(
    "/admin/recipes", "recipes", get_recipe_service,
    RecipeCreate, RecipeUpdate, RecipeResponse,
)

routers = [allergies, dietary_preferences, recipe_banners, equipment, subscriptions, instructors, recipes]
