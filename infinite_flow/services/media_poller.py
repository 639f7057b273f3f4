"""
Content API — Bounded media status poller

After an upload or URL import is handed to Mux, the asset is transcoded
asynchronously. StatusPoller re-checks the job on a fixed interval until the
asset is ready or the attempt budget runs out:

  ready            → stamp mux_asset_id + mux_playback_id on the video once → READY
  not ready        → report (attempt, max), sleep, try again
  budget exhausted → STILL_PROCESSING (not an error; the backfill task and the
                     webhook will stamp the video later)
  query error      → STILL_PROCESSING immediately, error logged
  cancel signalled → CANCELLED

PollRegistry runs one asyncio.Task per video for the lifetime of the app and
publishes progress to Redis channel media:{video_id} for the SSE stream.
"""
import asyncio
import json
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol, Sequence

import redis.asyncio as aioredis

from infinite_flow.clients.mux import MuxClient
from infinite_flow.core.result import ErrorKind, Result

logger = logging.getLogger(__name__)

MEDIA_CHANNEL = "media:{video_id}"

Sleep = Callable[[float], Awaitable[Any]]
ProgressCallback = Callable[["ProcessingJob", int, int], Awaitable[None]]


def select_playback_id(playback_ids: Sequence[dict] | None) -> str | None:
    """Prefer the `public` playback variant, else the first one, else None."""
    if not playback_ids:
        return None
    for variant in playback_ids:
        if variant.get("policy") == "public":
            return variant.get("id")
    return playback_ids[0].get("id")


@dataclass(frozen=True)
class ProcessingJob:
    video_id: str
    upload_id: str | None = None
    asset_id: str | None = None

    def __post_init__(self):
        if not self.upload_id and not self.asset_id:
            raise ValueError("ProcessingJob needs an upload_id or an asset_id")


@dataclass(frozen=True)
class StatusCheck:
    ready: bool
    asset_id: str | None = None
    playback_id: str | None = None


async def query_status(media: MuxClient, job: ProcessingJob) -> StatusCheck:
    """
    One status query. Upload jobs resolve the asset through the upload first;
    an upload without an asset yet is simply not ready. Raises MuxError.
    """
    asset_id = job.asset_id
    if job.upload_id and not asset_id:
        upload = await media.retrieve_upload(job.upload_id)
        asset_id = upload.get("asset_id")
        if not asset_id:
            return StatusCheck(ready=False)

    asset = await media.retrieve_asset(asset_id)
    if asset.get("status") != "ready":
        return StatusCheck(ready=False, asset_id=asset_id)
    return StatusCheck(
        ready=True,
        asset_id=asset_id,
        playback_id=select_playback_id(asset.get("playback_ids")),
    )


class VideoStamper(Protocol):
    async def stamp(self, video_id: str, asset_id: str, playback_id: str | None) -> Result:
        ...


class PollStatus(str, Enum):
    READY = "ready"
    STILL_PROCESSING = "still_processing"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollOutcome:
    status: PollStatus
    attempts: int
    asset_id: str | None = None
    playback_id: str | None = None
    error: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.status == PollStatus.READY

    def as_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "is_ready": self.is_ready,
            "attempts": self.attempts,
            "asset_id": self.asset_id,
            "playback_id": self.playback_id,
            "error": self.error,
        }

    def to_result(self) -> Result[dict]:
        # every outcome is a non-error for the caller; only READY means playable
        return Result.ok(self.as_dict())


class StatusPoller:
    def __init__(
        self,
        media: MuxClient,
        videos: VideoStamper,
        sleep: Sleep = asyncio.sleep,
        max_attempts: int = 30,
        interval: float = 5.0,
        on_progress: ProgressCallback | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.media = media
        self.videos = videos
        self._sleep = sleep
        self.max_attempts = max_attempts
        self.interval = interval
        self.on_progress = on_progress

    async def _wait(self, cancel: asyncio.Event | None) -> bool:
        """Sleep one interval. Returns True if cancel fired first."""
        if cancel is None:
            await self._sleep(self.interval)
            return False
        if cancel.is_set():
            return True

        sleeper = asyncio.ensure_future(self._sleep(self.interval))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sleeper, waiter, return_exceptions=True)
        return cancel.is_set()

    async def _report(self, callback: ProgressCallback | None, job: ProcessingJob, attempt: int):
        if callback is None:
            return
        try:
            await callback(job, attempt, self.max_attempts)
        except Exception as exc:
            logger.warning("Progress callback failed for video %s: %s", job.video_id, exc)

    async def poll(
        self,
        job: ProcessingJob,
        cancel: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> PollOutcome:
        callback = on_progress or self.on_progress

        for attempt in range(1, self.max_attempts + 1):
            if cancel is not None and cancel.is_set():
                return PollOutcome(PollStatus.CANCELLED, attempts=attempt - 1)

            try:
                check = await query_status(self.media, job)
            except Exception as exc:
                logger.warning(
                    "Status query for video %s failed on attempt %d/%d: %s",
                    job.video_id, attempt, self.max_attempts, exc,
                )
                return PollOutcome(PollStatus.STILL_PROCESSING, attempts=attempt, error=str(exc))

            if check.ready:
                stamped = await self.videos.stamp(job.video_id, check.asset_id, check.playback_id)
                if not stamped.success:
                    logger.error("Asset %s ready but video %s not updated: %s",
                                 check.asset_id, job.video_id, stamped.error)
                    return PollOutcome(
                        PollStatus.STILL_PROCESSING, attempts=attempt,
                        asset_id=check.asset_id, error=stamped.error,
                    )
                logger.info("Video %s ready after %d attempt(s)", job.video_id, attempt)
                return PollOutcome(
                    PollStatus.READY, attempts=attempt,
                    asset_id=check.asset_id, playback_id=check.playback_id,
                )

            await self._report(callback, job, attempt)
            if await self._wait(cancel):
                return PollOutcome(PollStatus.CANCELLED, attempts=attempt)

        logger.info("Video %s still processing after %d attempts", job.video_id, self.max_attempts)
        return PollOutcome(PollStatus.STILL_PROCESSING, attempts=self.max_attempts)


# ─── Registry ─────────────────────────────────────────────────────────────────

@dataclass
class _Running:
    job: ProcessingJob
    task: asyncio.Task
    cancel: asyncio.Event = field(default_factory=asyncio.Event)
    attempt: int = 0


class PollRegistry:
    """
    One poll task per video, all cancelled together on shutdown().

    Finished outcomes are kept for status lookups, oldest evicted first once
    more than `max_outcomes` videos have been polled.
    """

    def __init__(
        self,
        poller: StatusPoller,
        redis: aioredis.Redis | None = None,
        max_outcomes: int = 1000,
    ):
        self.poller = poller
        self.redis = redis
        self.max_outcomes = max_outcomes
        self._running: dict[str, _Running] = {}
        self._outcomes: OrderedDict[str, PollOutcome] = OrderedDict()

    def _remember(self, video_id: str, outcome: PollOutcome):
        self._outcomes[video_id] = outcome
        self._outcomes.move_to_end(video_id)
        while len(self._outcomes) > self.max_outcomes:
            self._outcomes.popitem(last=False)

    async def _publish(self, video_id: str, payload: dict[str, Any]):
        if self.redis is None:
            return
        try:
            await self.redis.publish(MEDIA_CHANNEL.format(video_id=video_id), json.dumps(payload))
        except Exception as exc:
            # progress is advisory; a Redis outage must not stop the poll
            logger.warning("Could not publish media progress for %s: %s", video_id, exc)

    async def _progress(self, job: ProcessingJob, attempt: int, max_attempts: int):
        running = self._running.get(job.video_id)
        if running is not None:
            running.attempt = attempt
        await self._publish(job.video_id, {
            "video_id": job.video_id,
            "status": "processing",
            "attempt": attempt,
            "max_attempts": max_attempts,
        })

    async def _run(self, job: ProcessingJob, cancel: asyncio.Event):
        try:
            outcome = await self.poller.poll(job, cancel, on_progress=self._progress)
        except asyncio.CancelledError:
            outcome = PollOutcome(PollStatus.CANCELLED, attempts=self._running[job.video_id].attempt)
            self._remember(job.video_id, outcome)
            raise
        finally:
            self._running.pop(job.video_id, None)
        self._remember(job.video_id, outcome)
        await self._publish(job.video_id, {"video_id": job.video_id, **outcome.as_dict()})
        return outcome

    def start(self, job: ProcessingJob) -> bool:
        """Start polling `job`. Returns False if the video is already being polled."""
        if job.video_id in self._running:
            return False
        cancel = asyncio.Event()
        task = asyncio.create_task(self._run(job, cancel), name=f"poll:{job.video_id}")
        self._running[job.video_id] = _Running(job=job, task=task, cancel=cancel)
        self._outcomes.pop(job.video_id, None)
        return True

    def cancel(self, video_id: str) -> bool:
        running = self._running.get(video_id)
        if running is None:
            return False
        running.cancel.set()
        return True

    def status(self, video_id: str) -> Result[dict]:
        running = self._running.get(video_id)
        if running is not None:
            return Result.ok({
                "video_id": video_id,
                "status": "polling",
                "attempt": running.attempt,
                "max_attempts": self.poller.max_attempts,
            })
        outcome = self._outcomes.get(video_id)
        if outcome is None:
            return Result.fail(ErrorKind.NOT_FOUND, "No poll has run for this video.")
        return Result.ok({"video_id": video_id, **outcome.as_dict()})

    async def wait(self, video_id: str) -> PollOutcome | None:
        running = self._running.get(video_id)
        if running is not None:
            await asyncio.gather(running.task, return_exceptions=True)
        return self._outcomes.get(video_id)

    async def shutdown(self):
        running = list(self._running.values())
        for item in running:
            item.cancel.set()
            item.task.cancel()
        if running:
            await asyncio.gather(*(item.task for item in running), return_exceptions=True)
            logger.info("Cancelled %d media poll(s) on shutdown", len(running))
