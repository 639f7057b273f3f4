"""
Content API — FastAPI application entrypoint
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from infinite_flow.api import auth, classes, consumer, health, members, profiles, videos, webhooks
from infinite_flow.api.catalog import routers as catalog_routers
from infinite_flow.clients.auth_admin import AuthAdminClient
from infinite_flow.clients.mux import MuxClient
from infinite_flow.clients.storage import StorageClient
from infinite_flow.core.config import Settings, get_settings
from infinite_flow.core.logger_setup import setup_logging
from infinite_flow.core.redis_client import close_redis, create_redis
from infinite_flow.db.database import build_engine, build_sessionmaker
from infinite_flow.middleware.auth import JWTAuthMiddleware
from infinite_flow.services.media_poller import PollRegistry, StatusPoller
from infinite_flow.services.ordering import RedisScopeLock
from infinite_flow.services.videos import PlaybackStamper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    app.state.engine = build_engine(settings)
    app.state.sessionmaker = build_sessionmaker(app.state.engine)
    app.state.redis = create_redis(settings)
    app.state.mux = MuxClient(settings)
    app.state.storage = StorageClient(settings)
    app.state.auth_admin = AuthAdminClient(settings)
    app.state.scope_lock = RedisScopeLock(app.state.redis, ttl_seconds=settings.REORDER_LOCK_TTL_SECONDS)
    app.state.poll_registry = PollRegistry(
        StatusPoller(
            app.state.mux,
            PlaybackStamper(app.state.sessionmaker),
            max_attempts=settings.MEDIA_POLL_MAX_ATTEMPTS,
            interval=settings.MEDIA_POLL_INTERVAL_SECONDS,
        ),
        redis=app.state.redis,
        max_outcomes=settings.MEDIA_POLL_OUTCOME_LIMIT,
    )
    if not settings.mux_configured:
        logger.warning("Mux credentials are not set; video uploads will be refused")
    if not settings.supabase_configured:
        logger.warning("Supabase credentials are not set; storage uploads and login will be refused")

    yield

    await app.state.poll_registry.shutdown()
    await app.state.mux.aclose()
    await app.state.storage.aclose()
    await app.state.auth_admin.aclose()
    await close_redis(app.state.redis)
    await app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="Infinite Flow Content API",
        description="Admin CMS backend: videos via Mux, classes, recipes and catalog data in Supabase.",
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url=None,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(JWTAuthMiddleware)

    if settings.METRICS_ENABLED:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(videos.router)
    app.include_router(classes.router)
    for router in catalog_routers:
        app.include_router(router)
    app.include_router(members.router)
    app.include_router(profiles.router)
    app.include_router(consumer.router)
    app.include_router(webhooks.router)

    @app.get("/")
    async def root():
        return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}

    return app


app = create_app()
