"""
Content API — Consumer profile API
"""
from fastapi import APIRouter, Depends

from infinite_flow.api.errors import raise_for_result
from infinite_flow.core.deps import current_user, get_profile_service
from infinite_flow.schemas.profile import ProfileResponse, ProfileUpdate
from infinite_flow.services.profiles import ProfileService

router = APIRouter(prefix="/users/me", tags=["profile"])


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(user: dict = Depends(current_user), profiles: ProfileService = Depends(get_profile_service)):
    return raise_for_result(await profiles.get(user["sub"]))


@router.patch("/profile", response_model=ProfileResponse)
async def update_profile(
    payload: ProfileUpdate,
    user: dict = Depends(current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    return raise_for_result(await profiles.update(user["sub"], payload))
