"""
Content API — Celery application

Redis is both broker and result backend. The worker runs one periodic job:
beat enqueues `sync_video_playback_ids` every MEDIA_SYNC_INTERVAL_SECONDS to
backfill asset and playback ids on videos that neither the in-process poller
nor the Mux webhook managed to stamp. The same task is enqueued on demand by
POST /admin/videos/sync.

    celery -A infinite_flow.core.celery_app worker -Q media --beat
"""
from celery import Celery
from infinite_flow.core.config import get_settings

settings = get_settings()

MEDIA_QUEUE = "media"

celery_app = Celery(
    "content_api",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["infinite_flow.tasks.media_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,           # Re-delivered if the worker dies mid-backfill
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,  # Backfills are long; don't hoard them
    task_track_started=True,
    task_default_queue=MEDIA_QUEUE,
    result_expires=24 * 3600,      # Sync results are only read by the admin who queued them
    beat_schedule={
        "sync-video-playback-ids": {
            "task": "sync_video_playback_ids",
            "schedule": float(settings.MEDIA_SYNC_INTERVAL_SECONDS),
            # a run that waits longer than one interval is superseded by the next
            "options": {"expires": float(settings.MEDIA_SYNC_INTERVAL_SECONDS)},
        },
    },
)
