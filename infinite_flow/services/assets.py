"""
Content API — Image uploads to Supabase Storage

Three asset kinds, each with its own public bucket and limits:
  thumbnail → videos/thumbnails/   image/*                  5 MB
  badge     → badges/badges/       svg, jpeg, png           5 MB
  banner    → banners/banners/     jpeg, png, webp         10 MB
Objects are named {owner_id}-{epoch_ms}.{ext}. Buckets are created on first use.
"""
import logging
import mimetypes
import time
from dataclasses import dataclass
from typing import Callable

from infinite_flow.clients.storage import StorageClient, StorageError
from infinite_flow.core.config import Settings
from infinite_flow.core.result import ErrorKind, Result

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetKind:
    name: str
    bucket: str
    folder: str
    mime_types: tuple[str, ...]
    extensions: tuple[str, ...]
    max_bytes: int
    type_message: str
    # badges and banners are also accepted when only the extension matches
    match_extension: bool = False

    def accepts(self, content_type: str | None, ext: str | None) -> bool:
        content_type = (content_type or "").lower()
        for allowed in self.mime_types:
            if allowed.endswith("/*") and content_type.startswith(allowed[:-1]):
                return True
            if content_type == allowed:
                return True
        return self.match_extension and ext in self.extensions


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str | None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str | None:
        if "." in self.filename:
            return self.filename.rsplit(".", 1)[1].lower() or None
        return None


def asset_kinds(settings: Settings) -> dict[str, AssetKind]:
    return {
        "thumbnail": AssetKind(
            name="thumbnail",
            bucket="videos",
            folder="thumbnails",
            mime_types=("image/*",),
            extensions=(),
            max_bytes=settings.THUMBNAIL_MAX_BYTES,
            type_message="File must be an image.",
        ),
        "badge": AssetKind(
            name="badge",
            bucket="badges",
            folder="badges",
            mime_types=("image/svg+xml", "image/jpeg", "image/jpg", "image/png"),
            extensions=("svg", "jpeg", "jpg", "png"),
            max_bytes=settings.BADGE_MAX_BYTES,
            type_message="File must be an SVG, JPEG, or PNG image.",
            match_extension=True,
        ),
        "banner": AssetKind(
            name="banner",
            bucket="banners",
            folder="banners",
            mime_types=("image/jpeg", "image/jpg", "image/png", "image/webp"),
            extensions=("jpeg", "jpg", "png", "webp"),
            max_bytes=settings.BANNER_MAX_BYTES,
            type_message="File must be a JPEG, PNG, or WebP image.",
            match_extension=True,
        ),
    }


def validate_upload(kind: AssetKind, file: UploadedFile) -> Result[None]:
    if not kind.accepts(file.content_type, file.extension):
        return Result.fail(ErrorKind.VALIDATION, kind.type_message)
    if file.size > kind.max_bytes:
        limit_mb = kind.max_bytes // (1024 * 1024)
        return Result.fail(ErrorKind.VALIDATION, f"Image size must be less than {limit_mb}MB.")
    if file.size == 0:
        return Result.fail(ErrorKind.VALIDATION, "File is empty.")
    return Result.ok(None)


class AssetService:
    def __init__(
        self,
        storage: StorageClient,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.kinds = asset_kinds(settings)
        self._clock = clock

    def kind(self, name: str) -> AssetKind:
        return self.kinds[name]

    async def ensure_bucket(self, kind: AssetKind) -> Result[None]:
        """Create the bucket if it is missing. A failed listing is logged and ignored."""
        try:
            buckets = await self.storage.list_buckets()
        except StorageError as exc:
            logger.error("Could not list storage buckets: %s", exc.message)
            return Result.ok(None)

        if any(b.get("name") == kind.bucket or b.get("id") == kind.bucket for b in buckets):
            return Result.ok(None)

        mime_types = [m for m in kind.mime_types if not m.endswith("/*")] or ["image/*"]
        try:
            await self.storage.create_bucket(
                kind.bucket,
                public=True,
                allowed_mime_types=mime_types,
                file_size_limit=kind.max_bytes,
            )
        except StorageError as exc:
            logger.error("Could not create storage bucket %s: %s", kind.bucket, exc.message)
            return Result.fail(
                ErrorKind.EXTERNAL,
                f"Storage bucket '{kind.bucket}' does not exist and could not be created: {exc.message}",
            )
        return Result.ok(None)

    def object_path(self, kind: AssetKind, owner_id: str, file: UploadedFile) -> str:
        ext = file.extension
        if not ext and file.content_type:
            guessed = mimetypes.guess_extension(file.content_type) or ""
            ext = guessed.lstrip(".") or None
        millis = int(self._clock() * 1000)
        return f"{kind.folder}/{owner_id}-{millis}.{ext or 'bin'}"

    async def upload(self, kind_name: str, owner_id: str, file: UploadedFile) -> Result[str]:
        """Validate and store `file`; the result carries its public URL."""
        if not self.storage.configured:
            return Result.fail(ErrorKind.CONFIGURATION, "Supabase credentials are not configured.")

        kind = self.kind(kind_name)
        checked = validate_upload(kind, file)
        if not checked.success:
            return checked

        ensured = await self.ensure_bucket(kind)
        if not ensured.success:
            return ensured

        path = self.object_path(kind, owner_id, file)
        content_type = file.content_type or f"image/{file.extension}"
        try:
            await self.storage.upload(kind.bucket, path, file.data, content_type)
        except StorageError as exc:
            logger.error("Uploading %s %s failed: %s", kind.name, path, exc.message)
            if exc.bucket_missing:
                return Result.fail(
                    ErrorKind.EXTERNAL,
                    f"Storage bucket '{kind.bucket}' not found. Create it as a public bucket in Supabase Storage.",
                )
            return Result.fail(ErrorKind.EXTERNAL, f"Failed to upload {kind.name}: {exc.message}")

        return Result.ok(self.storage.public_url(kind.bucket, path))
