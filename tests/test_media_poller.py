"""
StatusPoller with a fake Mux, a recording stamper and an injected sleep.
"""
import asyncio

import pytest

from infinite_flow.clients.mux import MuxError
from infinite_flow.core.result import ErrorKind, Result
from infinite_flow.services.media_poller import (
    PollRegistry,
    PollStatus,
    ProcessingJob,
    StatusPoller,
    select_playback_id,
)


class RecordingStamper:
    def __init__(self, fail: bool = False):
        self.stamps: list[tuple] = []
        self.fail = fail

    async def stamp(self, video_id, asset_id, playback_id):
        self.stamps.append((video_id, asset_id, playback_id))
        if self.fail:
            return Result.fail(ErrorKind.EXTERNAL, "database down")
        return Result.ok(None)


class ReadyOnAttempt:
    """Wraps FakeMux so the asset reports ready from the k-th status query on."""

    def __init__(self, mux, asset_id, k):
        self.mux, self.asset_id, self.k, self.queries = mux, asset_id, k, 0

    async def retrieve_upload(self, upload_id):
        return await self.mux.retrieve_upload(upload_id)

    async def retrieve_asset(self, asset_id):
        self.queries += 1
        if self.queries >= self.k:
            self.mux.make_ready(self.asset_id)
        return await self.mux.retrieve_asset(asset_id)


@pytest.fixture
def stamper():
    return RecordingStamper()


# ─── Variant selection ─────────────────────────────────────────────────────────

@pytest.mark.parametrize("variants,expected", [
    ([{"id": "s1", "policy": "signed"}, {"id": "p1", "policy": "public"}], "p1"),
    ([{"id": "s1", "policy": "signed"}, {"id": "s2", "policy": "signed"}], "s1"),
    ([], None),
    (None, None),
])
def test_select_playback_id(variants, expected):
    assert select_playback_id(variants) == expected


# ─── Termination ───────────────────────────────────────────────────────────────

async def test_exhaustion_reports_still_processing_once(mux, stamper, fake_sleep):
    mux.assets["asset-1"] = {"id": "asset-1", "status": "preparing"}
    progress = []

    async def on_progress(job, attempt, max_attempts):
        progress.append((attempt, max_attempts))

    poller = StatusPoller(mux, stamper, sleep=fake_sleep, max_attempts=3, interval=5.0, on_progress=on_progress)
    outcome = await poller.poll(ProcessingJob(video_id="v1", asset_id="asset-1"))

    assert outcome.status == PollStatus.STILL_PROCESSING
    assert outcome.attempts == 3
    assert mux.status_queries() == 3
    assert fake_sleep.calls == [5.0, 5.0, 5.0]
    assert fake_sleep.elapsed == 15.0
    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert stamper.stamps == []
    assert outcome.to_result().data["is_ready"] is False
    assert outcome.to_result().success


async def test_ready_on_attempt_k_stamps_once(mux, stamper, fake_sleep):
    mux.assets["asset-1"] = {"id": "asset-1", "status": "preparing"}
    media = ReadyOnAttempt(mux, "asset-1", k=3)

    poller = StatusPoller(media, stamper, sleep=fake_sleep, max_attempts=30, interval=5.0)
    outcome = await poller.poll(ProcessingJob(video_id="v1", asset_id="asset-1"))

    assert outcome.status == PollStatus.READY
    assert outcome.attempts == 3
    assert media.queries == 3
    assert stamper.stamps == [("v1", "asset-1", "pb-asset-1")]
    assert len(fake_sleep.calls) == 2


async def test_upload_without_asset_is_not_ready(mux, stamper, fake_sleep):
    mux.uploads["up-1"] = {"id": "up-1", "status": "waiting"}

    poller = StatusPoller(mux, stamper, sleep=fake_sleep, max_attempts=2, interval=1.0)
    outcome = await poller.poll(ProcessingJob(video_id="v1", upload_id="up-1"))

    assert outcome.status == PollStatus.STILL_PROCESSING
    assert [c[0] for c in mux.calls] == ["retrieve_upload", "retrieve_upload"]


async def test_upload_job_resolves_asset_then_stamps(mux, stamper, fake_sleep):
    mux.make_ready("asset-9", playback_ids=[{"id": "sig", "policy": "signed"}], upload_id="up-9")

    poller = StatusPoller(mux, stamper, sleep=fake_sleep)
    outcome = await poller.poll(ProcessingJob(video_id="v9", upload_id="up-9"))

    assert outcome.is_ready
    assert stamper.stamps == [("v9", "asset-9", "sig")]
    assert fake_sleep.calls == []


async def test_query_error_fails_open_immediately(mux, stamper, fake_sleep):
    mux.fail_with = MuxError("service unavailable", status_code=503)

    poller = StatusPoller(mux, stamper, sleep=fake_sleep, max_attempts=30)
    outcome = await poller.poll(ProcessingJob(video_id="v1", asset_id="asset-1"))

    assert outcome.status == PollStatus.STILL_PROCESSING
    assert outcome.attempts == 1
    assert outcome.error == "service unavailable"
    assert fake_sleep.calls == []
    assert outcome.to_result().success


async def test_failed_stamp_is_not_reported_ready(mux, fake_sleep):
    mux.make_ready("asset-1")
    stamper = RecordingStamper(fail=True)

    outcome = await StatusPoller(mux, stamper, sleep=fake_sleep).poll(ProcessingJob("v1", asset_id="asset-1"))

    assert outcome.status == PollStatus.STILL_PROCESSING
    assert len(stamper.stamps) == 1


# ─── Cancellation ──────────────────────────────────────────────────────────────

async def test_cancel_before_first_query(mux, stamper, fake_sleep):
    cancel = asyncio.Event()
    cancel.set()

    outcome = await StatusPoller(mux, stamper, sleep=fake_sleep).poll(ProcessingJob("v1", asset_id="a"), cancel)

    assert outcome.status == PollStatus.CANCELLED
    assert mux.calls == []


async def test_cancel_interrupts_sleep(mux, stamper):
    mux.assets["a"] = {"id": "a", "status": "preparing"}
    cancel = asyncio.Event()
    sleeping = asyncio.Event()

    async def long_sleep(seconds):
        sleeping.set()
        await asyncio.sleep(3600)

    poller = StatusPoller(mux, stamper, sleep=long_sleep, max_attempts=30, interval=5.0)
    task = asyncio.create_task(poller.poll(ProcessingJob("v1", asset_id="a"), cancel))
    await sleeping.wait()
    cancel.set()
    outcome = await asyncio.wait_for(task, timeout=1.0)

    assert outcome.status == PollStatus.CANCELLED
    assert outcome.attempts == 1
    assert mux.status_queries() == 1


def test_job_needs_an_identifier():
    with pytest.raises(ValueError):
        ProcessingJob(video_id="v1")


# ─── Registry ──────────────────────────────────────────────────────────────────

async def test_registry_publishes_progress_and_outcome(mux, stamper, fake_sleep, fake_redis):
    mux.assets["a"] = {"id": "a", "status": "preparing"}
    registry = PollRegistry(StatusPoller(mux, stamper, sleep=fake_sleep, max_attempts=2), redis=fake_redis)

    assert registry.start(ProcessingJob("v1", asset_id="a"))
    outcome = await registry.wait("v1")

    assert outcome.status == PollStatus.STILL_PROCESSING
    channels = {c for c, _ in fake_redis.published}
    assert channels == {"media:v1"}
    assert len(fake_redis.published) == 3  # two progress messages and the outcome
    assert registry.status("v1").data["status"] == "still_processing"


async def test_registry_start_is_idempotent_and_shutdown_cancels(mux, stamper):
    mux.assets["a"] = {"id": "a", "status": "preparing"}

    async def long_sleep(seconds):
        await asyncio.sleep(3600)

    registry = PollRegistry(StatusPoller(mux, stamper, sleep=long_sleep))
    assert registry.start(ProcessingJob("v1", asset_id="a"))
    assert not registry.start(ProcessingJob("v1", asset_id="a"))
    await asyncio.sleep(0)

    await registry.shutdown()

    assert registry.status("v1").data["status"] == "cancelled"
    assert registry.cancel("v1") is False


async def test_registry_status_unknown_video():
    registry = PollRegistry(StatusPoller(None, RecordingStamper()))
    assert registry.status("missing").kind == ErrorKind.NOT_FOUND


async def test_registry_keeps_only_the_newest_outcomes(mux, stamper, fake_sleep):
    mux.assets["a"] = {"id": "a", "status": "preparing"}
    registry = PollRegistry(StatusPoller(mux, stamper, sleep=fake_sleep, max_attempts=1), max_outcomes=2)

    for video_id in ("v1", "v2", "v3"):
        registry.start(ProcessingJob(video_id, asset_id="a"))
        await registry.wait(video_id)

    assert registry.status("v1").kind == ErrorKind.NOT_FOUND
    assert registry.status("v2").success
    assert registry.status("v3").success
