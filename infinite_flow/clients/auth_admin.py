"""
Content API — Supabase Auth admin REST client

Creates and deletes auth users through /auth/v1/admin with the service role
key. Registration uses it to provision the login before writing the profile.
"""
import logging
from typing import Any

import httpx

from infinite_flow.core.config import Settings

logger = logging.getLogger(__name__)


class AuthAdminError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def rejected(self) -> bool:
        """The auth service refused the request itself (bad email, weak password, duplicate)."""
        return self.status_code is not None and 400 <= self.status_code < 500


class AuthAdminClient:
    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None):
        self.configured = settings.supabase_configured
        self._http = http or httpx.AsyncClient(
            base_url=f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/admin",
            headers={
                "Authorization": f"Bearer {settings.SUPABASE_SERVICE_ROLE_KEY}",
                "apikey": settings.SUPABASE_SERVICE_ROLE_KEY,
            },
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def aclose(self):
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            raise AuthAdminError(f"Auth service unreachable: {exc}") from exc

        if not response.is_success:
            try:
                body = response.json()
                message = body.get("msg") or body.get("message") or body.get("error_description") or response.text
            except ValueError:
                message = response.text
            raise AuthAdminError(str(message)[:300], status_code=response.status_code)
        return response.json() if response.content else None

    async def create_user(self, email: str, password: str) -> dict[str, Any]:
        """Create a confirmed email/password user; returns the auth user (with `id`)."""
        return await self._request(
            "POST", "/users", json={"email": email, "password": password, "email_confirm": True}
        )

    async def delete_user(self, user_id: str) -> None:
        logger.info("Deleting auth user %s", user_id)
        await self._request("DELETE", f"/users/{user_id}")
