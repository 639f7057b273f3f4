"""
Content API — Video operations

Videos are created in two ways:
  - direct upload: Mux issues a one-off upload URL, the browser sends the file
    straight to Mux, and we store the upload id
  - URL import: Mux pulls the file from a public URL, and we store the asset id
Either way the row is written immediately; the asset and playback ids are
filled in later by the status poller, the webhook or the backfill sync.
"""
import json
import logging
from typing import Any
from urllib.parse import urlparse

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infinite_flow.clients.mux import MuxClient, MuxError
from infinite_flow.core.config import Settings
from infinite_flow.core.result import ErrorKind, Result
from infinite_flow.db.record_store import RecordStore
from infinite_flow.models.media import Video
from infinite_flow.schemas.media import VideoCreate, VideoImport, VideoUpdate
from infinite_flow.services.assets import AssetService, UploadedFile
from infinite_flow.services.media_poller import ProcessingJob, query_status, select_playback_id

logger = logging.getLogger(__name__)

PLAYBACK_POLICY = {"free": ["public"], "premium": ["signed"]}


def validate_calorie_range(min_calories: int | None, max_calories: int | None) -> Result[None]:
    if min_calories is not None and max_calories is not None and min_calories > max_calories:
        return Result.fail(ErrorKind.VALIDATION, "Min calories cannot be greater than max calories.")
    return Result.ok(None)


def validate_video_url(url: str) -> Result[None]:
    parsed = urlparse((url or "").strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return Result.fail(ErrorKind.VALIDATION, "Video URL must be a valid http(s) URL.")
    return Result.ok(None)


def _passthrough(params: VideoCreate) -> str:
    return json.dumps({
        "description": params.description,
        "status": params.status,
        "subscription_plan": params.subscription_plan,
    })


def _metadata(params: VideoCreate) -> dict[str, Any]:
    return params.model_dump(exclude={"video_url"})


class PlaybackStamper:
    """Writes playback ids from background polls, each in its own session."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def stamp(self, video_id: str, asset_id: str, playback_id: str | None) -> Result[Video]:
        async with self.sessionmaker() as session:
            store = RecordStore(session, Video, label="video")
            return await store.update(video_id, {"mux_asset_id": asset_id, "mux_playback_id": playback_id})


class VideoService:
    def __init__(
        self,
        session: AsyncSession,
        media: MuxClient,
        settings: Settings,
        assets: AssetService | None = None,
    ):
        self.store = RecordStore(session, Video, label="video")
        self.media = media
        self.settings = settings
        self.assets = assets

    def _configuration_error(self) -> Result | None:
        if not self.settings.supabase_configured:
            return Result.fail(ErrorKind.CONFIGURATION, "Supabase credentials are not configured.")
        if not self.media.configured:
            return Result.fail(
                ErrorKind.CONFIGURATION,
                "Mux credentials are not configured. Set MUX_TOKEN_ID and MUX_TOKEN_SECRET.",
            )
        return None

    # ── Create ────────────────────────────────────────────────

    async def create_upload(self, params: VideoCreate) -> Result[dict]:
        """Issue a direct-upload URL and record the video as a draft."""
        checked = validate_calorie_range(params.min_calories, params.max_calories)
        if not checked.success:
            return checked
        misconfigured = self._configuration_error()
        if misconfigured:
            return misconfigured

        try:
            upload = await self.media.create_direct_upload(
                PLAYBACK_POLICY[params.subscription_plan], _passthrough(params)
            )
        except MuxError as exc:
            logger.error("Creating Mux upload failed: %s", exc.message)
            return Result.fail(ErrorKind.EXTERNAL, f"Failed to create Mux upload: {exc.message}")
        if not upload.get("id") or not upload.get("url"):
            return Result.fail(ErrorKind.EXTERNAL, "Failed to create Mux upload. Invalid response from Mux API.")

        inserted = await self.store.insert({**_metadata(params), "mux_upload_id": upload["id"]})
        if not inserted.success:
            return Result.fail(inserted.kind, f"Failed to save video metadata: {inserted.error}")

        video = inserted.data
        logger.info("Created upload %s for video %s", upload["id"], video.video_id)
        return Result.ok({"upload_url": upload["url"], "upload_id": upload["id"], "video_id": video.video_id})

    async def import_from_url(self, params: VideoImport) -> Result[dict]:
        checked = validate_video_url(params.video_url)
        if not checked.success:
            return checked
        checked = validate_calorie_range(params.min_calories, params.max_calories)
        if not checked.success:
            return checked
        misconfigured = self._configuration_error()
        if misconfigured:
            return misconfigured

        try:
            asset = await self.media.create_asset(
                params.video_url.strip(), PLAYBACK_POLICY[params.subscription_plan], _passthrough(params)
            )
        except MuxError as exc:
            logger.error("Creating Mux asset from %s failed: %s", params.video_url, exc.message)
            if exc.error_type == "download_failed" or "download" in exc.message.lower():
                return Result.fail(
                    ErrorKind.EXTERNAL,
                    "Failed to download video from URL. The file must be publicly accessible "
                    f"without authentication. Error: {exc.message}",
                )
            return Result.fail(ErrorKind.EXTERNAL, f"Mux API error: {exc.message}")
        if not asset.get("id"):
            return Result.fail(ErrorKind.EXTERNAL, "Failed to create Mux asset. Invalid response from Mux API.")

        inserted = await self.store.insert({**_metadata(params), "mux_asset_id": asset["id"]})
        if not inserted.success:
            return Result.fail(inserted.kind, f"Failed to save video metadata: {inserted.error}")
        return Result.ok({"asset_id": asset["id"], "video_id": inserted.data.video_id})

    # ── Read / update / delete ────────────────────────────────

    async def list_videos(self) -> Result[list[Video]]:
        return await self.store.list(filters={"is_deleted": False}, order_by=[Video.created_at.desc()])

    async def get(self, video_id: str) -> Result[Video]:
        found = await self.store.get(video_id)
        if found.success and found.data.is_deleted:
            return Result.fail(ErrorKind.NOT_FOUND, "Video not found.")
        return found

    async def update(self, video_id: str, patch: VideoUpdate) -> Result[Video]:
        changes = patch.model_dump(exclude_unset=True)
        found = await self.get(video_id)
        if not found.success:
            return found
        video = found.data
        checked = validate_calorie_range(
            changes.get("min_calories", video.min_calories),
            changes.get("max_calories", video.max_calories),
        )
        if not checked.success:
            return checked
        if not changes:
            return found
        return await self.store.update(video_id, changes)

    async def soft_delete(self, video_id: str) -> Result[Video]:
        found = await self.get(video_id)
        if not found.success:
            return found
        return await self.store.soft_delete(video_id)

    # ── Playback ids ──────────────────────────────────────────

    async def stamp(self, video_id: str, asset_id: str, playback_id: str | None) -> Result[Video]:
        return await self.store.update(video_id, {"mux_asset_id": asset_id, "mux_playback_id": playback_id})

    async def stamp_by_upload(self, upload_id: str, asset_id: str, playback_id: str | None) -> Result[Video]:
        listed = await self.store.list(filters={"mux_upload_id": upload_id}, limit=1)
        if not listed.success:
            return listed
        if not listed.data:
            return Result.fail(ErrorKind.NOT_FOUND, f"No video found for upload {upload_id}.")
        return await self.stamp(listed.data[0].video_id, asset_id, playback_id)

    async def _check(self, job: ProcessingJob, stamp) -> Result[dict]:
        misconfigured = self._configuration_error()
        if misconfigured:
            return misconfigured
        try:
            check = await query_status(self.media, job)
        except MuxError as exc:
            return Result.fail(ErrorKind.EXTERNAL, f"Failed to retrieve status from Mux: {exc.message}")
        if not check.ready:
            return Result.ok({"is_ready": False, "asset_id": check.asset_id, "playback_id": None})

        stamped = await stamp(check.asset_id, check.playback_id)
        if not stamped.success:
            return Result.fail(stamped.kind, f"Failed to update database: {stamped.error}")
        return Result.ok({"is_ready": True, "asset_id": check.asset_id, "playback_id": check.playback_id})

    async def check_playback_by_upload(self, upload_id: str) -> Result[dict]:
        """One status check for a direct upload; stamps the video when ready."""
        job = ProcessingJob(video_id="", upload_id=upload_id)
        return await self._check(
            job, lambda asset_id, playback_id: self.stamp_by_upload(upload_id, asset_id, playback_id)
        )

    async def check_playback_by_asset(self, asset_id: str, video_id: str) -> Result[dict]:
        job = ProcessingJob(video_id=video_id, asset_id=asset_id)
        return await self._check(
            job, lambda found_asset, playback_id: self.stamp(video_id, found_asset, playback_id)
        )

    async def sync_playback_ids(self) -> Result[int]:
        """
        Backfill asset and playback ids for uploaded videos that never got them.
        Videos that cannot be resolved are skipped; the result is how many were updated.
        """
        misconfigured = self._configuration_error()
        if misconfigured:
            return misconfigured

        pending = await self.store.list(where=[
            Video.mux_upload_id.isnot(None),
            or_(Video.mux_playback_id.is_(None), Video.mux_asset_id.is_(None)),
        ])
        if not pending.success:
            return pending

        synced = 0
        for video in pending.data:
            asset_id = video.mux_asset_id
            try:
                if not asset_id:
                    upload = await self.media.retrieve_upload(video.mux_upload_id)
                    asset_id = upload.get("asset_id")
                if not asset_id:
                    logger.warning("No asset yet for video %s", video.video_id)
                    continue
                asset = await self.media.retrieve_asset(asset_id)
            except MuxError as exc:
                logger.warning("Skipping video %s: %s", video.video_id, exc.message)
                continue

            playback_id = select_playback_id(asset.get("playback_ids"))
            stamped = await self.stamp(video.video_id, asset_id, playback_id)
            if stamped.success:
                synced += 1
                logger.info("Synced playback id for video %s", video.video_id)

        return Result.ok(synced)

    # ── Thumbnail ─────────────────────────────────────────────

    async def upload_thumbnail(self, video_id: str, file: UploadedFile) -> Result[Video]:
        found = await self.get(video_id)
        if not found.success:
            return found
        uploaded = await self.assets.upload("thumbnail", video_id, file)
        if not uploaded.success:
            return uploaded
        return await self.store.update(video_id, {"thumbnail_url": uploaded.data})
