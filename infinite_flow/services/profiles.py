"""
Content API — End-user profile
"""
from sqlalchemy.ext.asyncio import AsyncSession

from infinite_flow.core.result import ErrorKind, Result
from infinite_flow.db.record_store import RecordStore
from infinite_flow.models.profile import Profile
from infinite_flow.schemas.profile import ProfileUpdate


class ProfileService:
    def __init__(self, session: AsyncSession):
        self.store = RecordStore(session, Profile, label="profile")

    async def get(self, uid: str) -> Result[Profile]:
        return await self.store.get(uid)

    async def update(self, uid: str, patch: ProfileUpdate) -> Result[Profile]:
        """Only fields present in the request are written."""
        changes = patch.model_dump(exclude_unset=True)
        if not changes:
            return Result.fail(ErrorKind.VALIDATION, "No valid fields to update.")
        return await self.store.update(uid, changes)
