"""
Content API — Mux Video REST client

One MuxClient (and its httpx.AsyncClient) is created in the application lifespan
and shared by request handlers, the status poller and the webhook.
Methods return the `data` object of the Mux response and raise MuxError on any
transport or API failure.
"""
import logging
from typing import Any

import httpx

from infinite_flow.core.config import Settings

logger = logging.getLogger(__name__)


class MuxError(Exception):
    def __init__(self, message: str, status_code: int | None = None, error_type: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class MuxClient:
    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None):
        self.configured = settings.mux_configured
        self.cors_origin = settings.MUX_CORS_ORIGIN
        self._http = http or httpx.AsyncClient(
            base_url=settings.MUX_API_URL,
            auth=(settings.MUX_TOKEN_ID, settings.MUX_TOKEN_SECRET),
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def aclose(self):
        await self._http.aclose()

    async def _request(self, method: str, path: str, json: dict | None = None) -> dict[str, Any]:
        try:
            response = await self._http.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            raise MuxError(f"Mux did not respond in time: {exc}") from exc
        except httpx.RequestError as exc:
            raise MuxError(f"Mux unreachable: {exc}") from exc

        if not response.is_success:
            error_type, message = None, response.text[:200]
            try:
                error = response.json().get("error") or {}
                error_type = error.get("type")
                messages = error.get("messages") or []
                message = error.get("message") or "; ".join(messages) or error_type or message
            except ValueError:
                pass
            logger.warning("Mux %s %s failed (%s): %s", method, path, response.status_code, message)
            raise MuxError(message, status_code=response.status_code, error_type=error_type)

        return response.json().get("data") or {}

    # ── Uploads ───────────────────────────────────────────────

    async def create_direct_upload(self, playback_policy: list[str], passthrough: str) -> dict[str, Any]:
        """Returns {id, url, ...}; the browser PUTs the file straight to `url`."""
        return await self._request(
            "POST",
            "/video/v1/uploads",
            json={
                "cors_origin": self.cors_origin,
                "new_asset_settings": {
                    "playback_policy": playback_policy,
                    "passthrough": passthrough,
                },
            },
        )

    async def retrieve_upload(self, upload_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/video/v1/uploads/{upload_id}")

    # ── Assets ────────────────────────────────────────────────

    async def create_asset(self, input_url: str, playback_policy: list[str], passthrough: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/video/v1/assets",
            json={
                "inputs": [{"url": input_url}],
                "playback_policy": playback_policy,
                "passthrough": passthrough,
            },
        )

    async def retrieve_asset(self, asset_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/video/v1/assets/{asset_id}")
