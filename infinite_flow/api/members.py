"""
Content API — Admin user management API

Lists and edits subscriber rows in `profiles`. Admin accounts never appear
here and cannot be changed through these routes.
"""
from fastapi import APIRouter, Depends, status

from infinite_flow.api.errors import raise_for_result
from infinite_flow.core.deps import get_member_service, require_admin
from infinite_flow.schemas.profile import MemberCreate, MemberResponse, MemberUpdate
from infinite_flow.services.accounts import MemberService

router = APIRouter(prefix="/admin/users", tags=["users"], dependencies=[Depends(require_admin)])


@router.get("", response_model=list[MemberResponse])
async def list_users(members: MemberService = Depends(get_member_service)):
    return raise_for_result(await members.list_all())


@router.post("", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def create_user(payload: MemberCreate, members: MemberService = Depends(get_member_service)):
    return raise_for_result(await members.create(payload))


@router.patch("/{user_id}", response_model=MemberResponse)
async def update_user(user_id: str, payload: MemberUpdate, members: MemberService = Depends(get_member_service)):
    return raise_for_result(await members.update(user_id, payload))


@router.delete("/{user_id}")
async def delete_user(user_id: str, members: MemberService = Depends(get_member_service)):
    raise_for_result(await members.delete(user_id))
    return {"message": "User deleted successfully", "user_id": user_id}
