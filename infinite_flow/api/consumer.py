"""
Content API — Consumer API

Routes the mobile app calls on behalf of a signed-in member. The member is
always the token subject; nothing here accepts a user id from the client.
"""
from typing import Any

from fastapi import APIRouter, Depends, Query, status

from infinite_flow.api.errors import raise_for_result
from infinite_flow.core.deps import current_user, get_browse_service, get_favorite_service, get_workout_service
from infinite_flow.schemas.catalog import RecipeResponse
from infinite_flow.schemas.engagement import (
    FavoriteCreate,
    FavoriteResponse,
    ItemType,
    Page,
    Period,
    ProgressResponse,
    WorkoutCreate,
    WorkoutResponse,
    WorkoutUpdate,
    WorkoutWithClass,
)
from infinite_flow.schemas.media import ClassResponse
from infinite_flow.services.engagement import (
    BrowseService,
    FavoriteService,
    PageRequest,
    WorkoutService,
)

router = APIRouter(prefix="/users", tags=["consumer"])

ITEM_SCHEMAS = {"class": ClassResponse, "recipe": RecipeResponse}


def paging(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100)) -> PageRequest:
    return PageRequest(page=page, limit=limit)


def _favorite(favorite, item) -> FavoriteResponse:
    response = FavoriteResponse.model_validate(favorite)
    if item is not None:
        response.item = ITEM_SCHEMAS[favorite.item_type].model_validate(item)
    return response


# ── Browsing ──────────────────────────────────────────────────

@router.get("/classes", response_model=Page[ClassResponse])
async def browse_classes(
    category: str | None = None,
    level: str | None = None,
    search: str | None = None,
    is_premium: bool | None = None,
    instructor_id: str | None = None,
    page: PageRequest = Depends(paging),
    browse: BrowseService = Depends(get_browse_service),
):
    result = await browse.classes_page(page, category, level, search, is_premium, instructor_id)
    return raise_for_result(result).as_dict()


@router.get("/classes/{class_id}", response_model=ClassResponse)
async def open_class(class_id: str, browse: BrowseService = Depends(get_browse_service)):
    return raise_for_result(await browse.open_class(class_id))


@router.get("/meals", response_model=Page[RecipeResponse])
async def browse_meals(
    category: str | None = None,
    search: str | None = None,
    is_premium: bool | None = None,
    page: PageRequest = Depends(paging),
    browse: BrowseService = Depends(get_browse_service),
):
    return raise_for_result(await browse.meals_page(page, category, search, is_premium)).as_dict()


# ── Favorites ─────────────────────────────────────────────────

@router.get("/favorites", response_model=list[FavoriteResponse])
async def list_favorites(
    item_type: ItemType | None = Query(None, alias="type"),
    user: dict[str, Any] = Depends(current_user),
    favorites: FavoriteService = Depends(get_favorite_service),
):
    rows = raise_for_result(await favorites.list_for_user(user["sub"], item_type))
    return [_favorite(f, item) for f, item in rows]


@router.post("/favorites", response_model=FavoriteResponse, status_code=status.HTTP_201_CREATED)
async def add_favorite(
    payload: FavoriteCreate,
    user: dict[str, Any] = Depends(current_user),
    favorites: FavoriteService = Depends(get_favorite_service),
):
    return raise_for_result(await favorites.add(user["sub"], payload))


@router.delete("/favorites")
async def remove_favorite(
    item_id: str = Query(..., min_length=1),
    item_type: ItemType = Query(...),
    user: dict[str, Any] = Depends(current_user),
    favorites: FavoriteService = Depends(get_favorite_service),
):
    raise_for_result(await favorites.remove(user["sub"], item_id, item_type))
    return {"message": "Removed from favorites"}


# ── Workouts ──────────────────────────────────────────────────

@router.get("/workouts", response_model=Page[WorkoutWithClass])
async def list_workouts(
    class_id: str | None = None,
    page: PageRequest = Depends(paging),
    user: dict[str, Any] = Depends(current_user),
    workouts: WorkoutService = Depends(get_workout_service),
):
    return raise_for_result(await workouts.list_for_user(user["sub"], page, class_id)).as_dict()


@router.post("/workouts", response_model=WorkoutResponse, status_code=status.HTTP_201_CREATED)
async def log_workout(
    payload: WorkoutCreate,
    user: dict[str, Any] = Depends(current_user),
    workouts: WorkoutService = Depends(get_workout_service),
):
    return raise_for_result(await workouts.log(user["sub"], payload))


@router.get("/workouts/{log_id}", response_model=WorkoutWithClass)
async def get_workout(
    log_id: str,
    user: dict[str, Any] = Depends(current_user),
    workouts: WorkoutService = Depends(get_workout_service),
):
    return raise_for_result(await workouts.get(user["sub"], log_id))


@router.patch("/workouts/{log_id}", response_model=WorkoutResponse)
async def update_workout(
    log_id: str,
    payload: WorkoutUpdate,
    user: dict[str, Any] = Depends(current_user),
    workouts: WorkoutService = Depends(get_workout_service),
):
    return raise_for_result(await workouts.update(user["sub"], log_id, payload))


@router.delete("/workouts/{log_id}")
async def delete_workout(
    log_id: str,
    user: dict[str, Any] = Depends(current_user),
    workouts: WorkoutService = Depends(get_workout_service),
):
    raise_for_result(await workouts.delete(user["sub"], log_id))
    return {"message": "Workout deleted successfully", "log_id": log_id}


@router.get("/progress", response_model=ProgressResponse)
async def progress(
    period: Period = "week",
    user: dict[str, Any] = Depends(current_user),
    workouts: WorkoutService = Depends(get_workout_service),
):
    return raise_for_result(await workouts.progress(user["sub"], period))
