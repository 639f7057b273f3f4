"""
Content API — FastAPI dependencies

Clients live on app.state (built in the lifespan); services are assembled per
request around the request's database session.
"""
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from infinite_flow.clients.auth_admin import AuthAdminClient
from infinite_flow.clients.mux import MuxClient
from infinite_flow.clients.storage import StorageClient
from infinite_flow.core.config import Settings
from infinite_flow.core.security import is_admin
from infinite_flow.db.database import get_db
from infinite_flow.services.accounts import MemberService, RegistrationService
from infinite_flow.services.assets import AssetService
from infinite_flow.services.catalog import (
    AllergyService,
    DietaryPreferenceService,
    EquipmentService,
    InstructorService,
    RecipeBannerService,
    RecipeService,
    SubscriptionService,
)
from infinite_flow.services.classes import ClassService, ClassVideoService
from infinite_flow.services.engagement import BrowseService, FavoriteService, ModerationService, WorkoutService
from infinite_flow.services.media_poller import PollRegistry
from infinite_flow.services.ordering import ScopeLock
from infinite_flow.services.profiles import ProfileService
from infinite_flow.services.videos import VideoService
from infinite_flow.services.workflow import PartialFailurePolicy


# ─── App-scoped clients ───────────────────────────────────────────────────────

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_mux(request: Request) -> MuxClient:
    return request.app.state.mux


def get_storage(request: Request) -> StorageClient:
    return request.app.state.storage


def get_auth_admin(request: Request) -> AuthAdminClient:
    return request.app.state.auth_admin


def get_poll_registry(request: Request) -> PollRegistry:
    return request.app.state.poll_registry


def get_scope_lock(request: Request) -> ScopeLock:
    return request.app.state.scope_lock


def get_failure_policy(settings: Settings = Depends(get_app_settings)) -> PartialFailurePolicy:
    return PartialFailurePolicy(settings.ASSET_FAILURE_POLICY.lower())


# ─── Auth ─────────────────────────────────────────────────────────────────────

def current_user(request: Request) -> dict[str, Any]:
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated.")
    return user


def require_admin(user: dict[str, Any] = Depends(current_user)) -> dict[str, Any]:
    if not is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required.")
    return user


# ─── Per-request services ─────────────────────────────────────────────────────

def get_asset_service(
    storage: StorageClient = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
) -> AssetService:
    return AssetService(storage, settings)


def get_video_service(
    db: AsyncSession = Depends(get_db),
    mux: MuxClient = Depends(get_mux),
    settings: Settings = Depends(get_app_settings),
    assets: AssetService = Depends(get_asset_service),
) -> VideoService:
    return VideoService(db, mux, settings, assets)


def get_class_service(db: AsyncSession = Depends(get_db)) -> ClassService:
    return ClassService(db)


def get_class_video_service(
    db: AsyncSession = Depends(get_db), lock: ScopeLock = Depends(get_scope_lock)
) -> ClassVideoService:
    return ClassVideoService(db, lock)


def get_allergy_service(
    db: AsyncSession = Depends(get_db), lock: ScopeLock = Depends(get_scope_lock)
) -> AllergyService:
    return AllergyService(db, lock)


def get_dietary_preference_service(
    db: AsyncSession = Depends(get_db), lock: ScopeLock = Depends(get_scope_lock)
) -> DietaryPreferenceService:
    return DietaryPreferenceService(db, lock)


def get_recipe_banner_service(
    db: AsyncSession = Depends(get_db), lock: ScopeLock = Depends(get_scope_lock)
) -> RecipeBannerService:
    return RecipeBannerService(db, lock)


def get_equipment_service(db: AsyncSession = Depends(get_db)) -> EquipmentService:
    return EquipmentService(db)


def get_subscription_service(db: AsyncSession = Depends(get_db)) -> SubscriptionService:
    return SubscriptionService(db)


def get_instructor_service(db: AsyncSession = Depends(get_db)) -> InstructorService:
    return InstructorService(db)


def get_recipe_service(db: AsyncSession = Depends(get_db)) -> RecipeService:
    return RecipeService(db)


def get_profile_service(db: AsyncSession = Depends(get_db)) -> ProfileService:
    return ProfileService(db)


def get_registration_service(
    db: AsyncSession = Depends(get_db), auth_admin: AuthAdminClient = Depends(get_auth_admin)
) -> RegistrationService:
    return RegistrationService(db, auth_admin)


def get_member_service(db: AsyncSession = Depends(get_db)) -> MemberService:
    return MemberService(db)


def get_browse_service(db: AsyncSession = Depends(get_db)) -> BrowseService:
    return BrowseService(db)


def get_favorite_service(db: AsyncSession = Depends(get_db)) -> FavoriteService:
    return FavoriteService(db)


def get_workout_service(db: AsyncSession = Depends(get_db)) -> WorkoutService:
    return WorkoutService(db)


def get_moderation_service(db: AsyncSession = Depends(get_db)) -> ModerationService:
    return ModerationService(db)
