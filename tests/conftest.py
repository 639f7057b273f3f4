"""
Shared fixtures: in-memory SQLite store, fake Mux / storage / auth admin
clients, an in-process scope lock, and an ASGI client over the application factory.
"""
import asyncio
import itertools
import time
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport
from jose import jwt
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from infinite_flow.clients.auth_admin import AuthAdminError
from infinite_flow.clients.mux import MuxError
from infinite_flow.clients.storage import StorageError
from infinite_flow.core.config import Settings
from infinite_flow.db.database import Base
from infinite_flow.main import create_app
from infinite_flow.models import catalog, engagement, media, profile  # noqa: F401  (register tables)
from infinite_flow.services.media_poller import PollRegistry, StatusPoller
from infinite_flow.services.videos import PlaybackStamper

JWT_SECRET = "test-jwt-secret"


# ─── Fakes ─────────────────────────────────────────────────────────────────────

class FakeMux:
    """Scripted Mux: uploads/assets are dicts keyed by id, errors raise MuxError."""

    def __init__(self):
        self.configured = True
        self.uploads: dict[str, dict] = {}
        self.assets: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.fail_with: MuxError | None = None
        self._ids = itertools.count(1)

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def create_direct_upload(self, playback_policy, passthrough):
        self.calls.append(("create_direct_upload", playback_policy, passthrough))
        self._maybe_fail()
        upload_id = f"upload-{next(self._ids)}"
        self.uploads[upload_id] = {"id": upload_id, "status": "waiting"}
        return {"id": upload_id, "url": f"https://storage.mux.test/{upload_id}"}

    async def create_asset(self, input_url, playback_policy, passthrough):
        self.calls.append(("create_asset", input_url, playback_policy, passthrough))
        self._maybe_fail()
        asset_id = f"asset-{next(self._ids)}"
        self.assets[asset_id] = {"id": asset_id, "status": "preparing"}
        return {"id": asset_id}

    async def retrieve_upload(self, upload_id):
        self.calls.append(("retrieve_upload", upload_id))
        self._maybe_fail()
        if upload_id not in self.uploads:
            raise MuxError("Upload not found", status_code=404, error_type="not_found")
        return self.uploads[upload_id]

    async def retrieve_asset(self, asset_id):
        self.calls.append(("retrieve_asset", asset_id))
        self._maybe_fail()
        if asset_id not in self.assets:
            raise MuxError("Asset not found", status_code=404, error_type="not_found")
        return self.assets[asset_id]

    def make_ready(self, asset_id, playback_ids=None, upload_id=None):
        self.assets[asset_id] = {
            "id": asset_id,
            "status": "ready",
            "playback_ids": playback_ids if playback_ids is not None else [{"id": f"pb-{asset_id}", "policy": "public"}],
        }
        if upload_id is not None:
            self.uploads[upload_id] = {"id": upload_id, "status": "asset_created", "asset_id": asset_id}

    def status_queries(self) -> int:
        return sum(1 for c in self.calls if c[0] in ("retrieve_upload", "retrieve_asset"))

    async def aclose(self):
        pass


class FakeStorage:
    def __init__(self, base_url="https://project.supabase.test"):
        self.configured = True
        self.base_url = base_url
        self.buckets: list[dict] = []
        self.uploads: list[tuple] = []
        self.created: list[dict] = []
        self.fail_upload: str | None = None
        self.fail_list = False

    async def list_buckets(self):
        if self.fail_list:
            raise StorageError("listing failed", status_code=500)
        return list(self.buckets)

    async def create_bucket(self, name, public=True, allowed_mime_types=None, file_size_limit=None):
        bucket = {"id": name, "name": name, "public": public,
                  "allowed_mime_types": allowed_mime_types, "file_size_limit": file_size_limit}
        self.created.append(bucket)
        self.buckets.append(bucket)
        return {"name": name}

    async def upload(self, bucket, path, data, content_type, upsert=False):
        if self.fail_upload:
            raise StorageError(self.fail_upload, status_code=400)
        self.uploads.append((bucket, path, content_type, len(data)))
        return {"Key": f"{bucket}/{path}"}

    def public_url(self, bucket, path):
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"

    async def aclose(self):
        pass


class FakeAuthAdmin:
    def __init__(self):
        self.configured = True
        self.created: list[str] = []
        self.deleted: list[str] = []
        self.fail_with: AuthAdminError | None = None
        self._ids = itertools.count(1)

    async def create_user(self, email, password):
        if self.fail_with is not None:
            raise self.fail_with
        self.created.append(email)
        return {"id": f"auth-{next(self._ids)}", "email": email}

    async def delete_user(self, user_id):
        self.deleted.append(user_id)

    async def aclose(self):
        pass


class FakeLock:
    def __init__(self):
        self.held: dict[str, str] = {}
        self.acquired: list[str] = []
        self._tokens = itertools.count(1)

    async def acquire(self, key: str) -> str | None:
        if key in self.held:
            return None
        token = f"t{next(self._tokens)}"
        self.held[key] = token
        self.acquired.append(key)
        return token

    async def release(self, key: str, token: str) -> None:
        if self.held.get(key) == token:
            del self.held[key]


class FakePubSub:
    """Delivers messages published after subscribe(); get_message never blocks."""

    def __init__(self, redis: "FakeRedis"):
        self.redis = redis
        self.channels: set[str] = set()
        self.queue: list[dict] = []
        self.closed = False

    async def subscribe(self, channel):
        self.channels.add(channel)
        self.redis.subscribers.append(self)

    async def unsubscribe(self, channel):
        self.channels.discard(channel)

    async def get_message(self, ignore_subscribe_messages=False, timeout=None):
        await asyncio.sleep(0)
        return self.queue.pop(0) if self.queue else None

    async def aclose(self):
        self.closed = True
        self.redis.subscribers.remove(self)


class FakeRedis:
    def __init__(self):
        self.published: list[tuple[str, str]] = []
        self.subscribers: list[FakePubSub] = []

    async def publish(self, channel, message):
        self.published.append((channel, message))
        receivers = [s for s in self.subscribers if channel in s.channels]
        for sub in receivers:
            sub.queue.append({"type": "message", "channel": channel, "data": message})
        return len(receivers)

    def pubsub(self) -> FakePubSub:
        return FakePubSub(self)

    async def ping(self):
        return True


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)

    @property
    def elapsed(self) -> float:
        return sum(self.calls)


# ─── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        SUPABASE_URL="https://project.supabase.test",
        SUPABASE_SERVICE_ROLE_KEY="service-role-key",
        SUPABASE_JWT_SECRET=JWT_SECRET,
        MUX_TOKEN_ID="mux-id",
        MUX_TOKEN_SECRET="mux-secret",
        MUX_WEBHOOK_SECRET="whsec-test",
        MEDIA_POLL_MAX_ATTEMPTS=3,
        MEDIA_POLL_INTERVAL_SECONDS=5.0,
        METRICS_ENABLED=False,
        LOG_LEVEL="WARNING",
    )


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(sessionmaker):
    async with sessionmaker() as session:
        yield session


@pytest.fixture
def mux() -> FakeMux:
    return FakeMux()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def auth_admin() -> FakeAuthAdmin:
    return FakeAuthAdmin()


@pytest.fixture
def lock() -> FakeLock:
    return FakeLock()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest_asyncio.fixture
async def app(settings, engine, sessionmaker, mux, storage, auth_admin, lock, fake_sleep, fake_redis):
    app = create_app(settings)
    app.state.engine = engine
    app.state.sessionmaker = sessionmaker
    app.state.redis = fake_redis
    app.state.mux = mux
    app.state.storage = storage
    app.state.auth_admin = auth_admin
    app.state.scope_lock = lock
    app.state.poll_registry = PollRegistry(
        StatusPoller(
            mux,
            PlaybackStamper(sessionmaker),
            sleep=fake_sleep,
            max_attempts=settings.MEDIA_POLL_MAX_ATTEMPTS,
            interval=settings.MEDIA_POLL_INTERVAL_SECONDS,
        ),
        redis=fake_redis,
    )
    yield app
    await app.state.poll_registry.shutdown()


@pytest_asyncio.fixture
async def client(app):
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def make_token(sub: str = "admin-1", admin: bool = True, **extra: Any) -> str:
    claims = {
        "sub": sub,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(time.time()) + 3600,
        "app_metadata": {"role": "admin"} if admin else {},
        **extra,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def user_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub='user-1', admin=False)}"}
