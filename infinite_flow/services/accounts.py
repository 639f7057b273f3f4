"""
Content API — Account registration and admin user management

Registration provisions the Supabase Auth user first, then the `users` row.
If the row cannot be written the auth user is deleted again, so a failed
registration never leaves a login without a profile.
"""
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from infinite_flow.clients.auth_admin import AuthAdminClient, AuthAdminError
from infinite_flow.core.result import ErrorKind, Result
from infinite_flow.db.record_store import RecordStore
from infinite_flow.models.profile import ADMIN_USER_TYPE, SUBSCRIPTION_STATUSES, Member, Profile
from infinite_flow.schemas.profile import MemberCreate, MemberUpdate, RegisterRequest

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class RegistrationService:
    def __init__(self, session: AsyncSession, auth_admin: AuthAdminClient):
        self.profiles = RecordStore(session, Profile, label="user")
        self.auth_admin = auth_admin

    async def check_email(self, email: str) -> Result[dict[str, Any]]:
        email = normalize_email(email)
        taken = await self.profiles.count(filters={"email": email})
        if not taken.success:
            return Result.fail(ErrorKind.EXTERNAL, "Error checking email availability.")
        return Result.ok({"email": email, "is_available": taken.data == 0})

    async def register(self, params: RegisterRequest) -> Result[Profile]:
        if not self.auth_admin.configured:
            return Result.fail(ErrorKind.CONFIGURATION, "Supabase credentials are not configured.")
        display_name = params.display_name.strip()
        if not display_name:
            return Result.fail(ErrorKind.VALIDATION, "Email, password, and display name are required.")

        availability = await self.check_email(params.email)
        if not availability.success:
            return availability
        if not availability.data["is_available"]:
            return Result.fail(ErrorKind.CONFLICT, "Email already registered.")
        email = availability.data["email"]

        try:
            auth_user = await self.auth_admin.create_user(email, params.password)
        except AuthAdminError as exc:
            logger.warning("Auth user creation for %s failed: %s", email, exc.message)
            kind = ErrorKind.VALIDATION if exc.rejected else ErrorKind.EXTERNAL
            return Result.fail(kind, exc.message or "Failed to create user account.")
        uid = (auth_user or {}).get("id")
        if not uid:
            return Result.fail(ErrorKind.EXTERNAL, "Failed to create user account.")

        created = await self.profiles.insert({
            "uid": uid,
            "display_name": display_name,
            "email": email,
            "phone": (params.phone or "").strip() or None,
            "provider": params.provider or "email",
            "provider_type": params.provider_type or "local",
            "last_sign_in_at": None,
        })
        if not created.success:
            logger.error("User row for %s not written; removing auth user %s", email, uid)
            try:
                await self.auth_admin.delete_user(uid)
            except AuthAdminError as exc:
                logger.error("Could not remove orphaned auth user %s: %s", uid, exc.message)
            return created

        logger.info("Registered user %s", uid)
        return created


def _subscription_status(value: str | None) -> Result[str | None]:
    if value is None:
        return Result.ok(None)
    status = value.strip().lower()
    if status not in SUBSCRIPTION_STATUSES:
        return Result.fail(
            ErrorKind.VALIDATION,
            f"Invalid subscription_status. Must be one of: {', '.join(SUBSCRIPTION_STATUSES)}",
        )
    return Result.ok(status)


class MemberService:
    """Admin view of the `profiles` table. Admin rows are invisible here."""

    def __init__(self, session: AsyncSession):
        self.store = RecordStore(session, Member, label="user")

    async def _non_admin(self, user_id: str) -> Result[Member]:
        found = await self.store.get(user_id)
        if found.kind not in (None, ErrorKind.NOT_FOUND):
            return found
        if not found.success or found.data.user_type == ADMIN_USER_TYPE:
            return Result.fail(ErrorKind.NOT_FOUND, "User not found or is an admin.")
        return found

    async def list_all(self) -> Result[list[Member]]:
        return await self.store.list(
            where=[Member.user_type != ADMIN_USER_TYPE],
            order_by=[Member.created_at.desc()],
        )

    async def create(self, params: MemberCreate) -> Result[Member]:
        status = _subscription_status(params.subscription_status)
        if not status.success:
            return status
        nickname = params.nickname.strip()
        if not nickname:
            return Result.fail(ErrorKind.VALIDATION, "Nickname and email are required.")
        return await self.store.insert({
            "nickname": nickname,
            "email": params.email.strip(),
            "first_name": nickname,
            "last_name": "",
            "user_type": "S",
            "subscription_status": status.data or "active",
        })

    async def update(self, user_id: str, patch: MemberUpdate) -> Result[Member]:
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        if "subscription_status" in changes:
            status = _subscription_status(changes["subscription_status"])
            if not status.success:
                return status
            changes["subscription_status"] = status.data
        for name in ("nickname", "email"):
            if name in changes:
                changes[name] = changes[name].strip()
        if not changes:
            return Result.fail(ErrorKind.VALIDATION, "No valid fields to update.")

        found = await self._non_admin(user_id)
        if not found.success:
            return found
        return await self.store.update(user_id, changes)

    async def delete(self, user_id: str) -> Result[None]:
        found = await self._non_admin(user_id)
        if not found.success:
            return found
        return await self.store.delete(user_id)
