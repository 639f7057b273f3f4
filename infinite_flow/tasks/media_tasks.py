"""
Content API — Celery tasks (media backfill)

Worker processes run these outside the FastAPI container. The backfill picks up
videos whose asset / playback ids were never stamped because the admin closed
the upload dialog before the poll finished and the webhook was not delivered.
"""
import asyncio
import logging

from infinite_flow.clients.mux import MuxClient
from infinite_flow.core.celery_app import celery_app
from infinite_flow.core.config import get_settings
from infinite_flow.core.result import ErrorKind, ResultError
from infinite_flow.db.database import build_engine, build_sessionmaker
from infinite_flow.services.videos import VideoService

logger = logging.getLogger(__name__)


async def _sync_playback_ids() -> int:
    settings = get_settings()
    engine = build_engine(settings)
    mux = MuxClient(settings)
    try:
        async with build_sessionmaker(engine)() as session:
            result = await VideoService(session, mux, settings).sync_playback_ids()
        return result.unwrap()
    finally:
        await mux.aclose()
        await engine.dispose()


@celery_app.task(
    name="sync_video_playback_ids",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    acks_late=True,
)
def sync_video_playback_ids(self):
    try:
        synced = asyncio.run(_sync_playback_ids())
    except ResultError as exc:
        logger.error("Playback id sync failed (%s): %s", exc.kind.value, exc.message)
        if exc.kind == ErrorKind.CONFIGURATION:
            raise
        raise self.retry(exc=exc)
    logger.info("Playback id sync updated %d video(s)", synced)
    return {"synced": synced}
