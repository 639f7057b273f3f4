"""
Content API — Supabase Storage REST client

Talks to /storage/v1 with the service role key. Public buckets serve objects
from /storage/v1/object/public/<bucket>/<path>.
"""
import logging
from typing import Any

import httpx

from infinite_flow.core.config import Settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def bucket_missing(self) -> bool:
        text = self.message.lower()
        return "bucket not found" in text or ("bucket" in text and "not found" in text)


class StorageClient:
    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None):
        self.configured = settings.supabase_configured
        self.base_url = settings.SUPABASE_URL.rstrip("/")
        self._http = http or httpx.AsyncClient(
            base_url=f"{self.base_url}/storage/v1",
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
            raise StorageError(f"Storage unreachable: {exc}") from exc

        if not response.is_success:
            try:
                body = response.json()
                message = body.get("message") or body.get("error") or response.text
            except ValueError:
                message = response.text
            raise StorageError(str(message)[:300], status_code=response.status_code)
        return response.json()

    async def list_buckets(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/bucket")

    async def create_bucket(
        self,
        name: str,
        public: bool = True,
        allowed_mime_types: list[str] | None = None,
        file_size_limit: int | None = None,
    ) -> dict[str, Any]:
        logger.info("Creating storage bucket %s", name)
        return await self._request(
            "POST",
            "/bucket",
            json={
                "id": name,
                "name": name,
                "public": public,
                "allowed_mime_types": allowed_mime_types,
                "file_size_limit": file_size_limit,
            },
        )

    async def upload(
        self, bucket: str, path: str, data: bytes, content_type: str, upsert: bool = False
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/object/{bucket}/{path}",
            content=data,
            headers={
                "Content-Type": content_type,
                "Cache-Control": "max-age=3600",
                "x-upsert": "true" if upsert else "false",
            },
        )

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"
