"""
Content API — Multi-step create workflows

Creating a class touches several systems in sequence:
  1. insert the class row                (critical)
  2. upload the badge, patch `badge`
  3. upload the banner, patch `banner_image`
  4. attach the selected videos in order

The storage and database calls share no transaction, so each Workflow step
records its outcome and may carry a compensating action. What happens when a
non-critical step fails is a named PartialFailurePolicy:
  CONTINUE → log, keep the parent record, report the workflow as incomplete
  ROLLBACK → undo completed steps in reverse order (the class is deleted)
A failed critical step always rolls back.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence

from infinite_flow.core.result import ErrorKind, Result
from infinite_flow.schemas.media import ClassCreate, ClassUpdate, VideoCreate, VideoImport
from infinite_flow.services.assets import AssetService, UploadedFile
from infinite_flow.services.classes import ClassService, ClassVideoService
from infinite_flow.services.videos import VideoService

logger = logging.getLogger(__name__)

Context = dict[str, Any]
StepAction = Callable[[Context], Awaitable[Result]]


class PartialFailurePolicy(str, Enum):
    CONTINUE = "continue"
    ROLLBACK = "rollback"


class StepStatus(str, Enum):
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"
    COMPENSATED = "compensated"


@dataclass
class Step:
    name: str
    run: StepAction
    compensate: StepAction | None = None
    critical: bool = False


@dataclass
class StepRecord:
    name: str
    status: StepStatus
    error: str | None = None


@dataclass
class WorkflowReport:
    name: str
    steps: list[StepRecord] = field(default_factory=list)
    context: Context = field(default_factory=dict)
    rolled_back: bool = False

    @property
    def complete(self) -> bool:
        return all(s.status == StepStatus.DONE for s in self.steps)

    def record(self, name: str) -> StepRecord | None:
        return next((s for s in self.steps if s.name == name), None)

    def as_dicts(self) -> list[dict]:
        return [{"name": s.name, "status": s.status.value, "error": s.error} for s in self.steps]


class Workflow:
    def __init__(
        self,
        name: str,
        steps: Sequence[Step],
        policy: PartialFailurePolicy = PartialFailurePolicy.CONTINUE,
    ):
        self.name = name
        self.steps = list(steps)
        self.policy = policy

    async def _run_step(self, step: Step, ctx: Context) -> Result:
        try:
            return await step.run(ctx)
        except Exception as exc:
            logger.exception("%s: step %s raised", self.name, step.name)
            return Result.fail(ErrorKind.EXTERNAL, str(exc))

    async def _compensate(self, completed: list[Step], ctx: Context, report: WorkflowReport):
        for step in reversed(completed):
            if step.compensate is None:
                continue
            try:
                undone = await step.compensate(ctx)
            except Exception:
                logger.exception("%s: compensating %s raised", self.name, step.name)
                continue
            if undone.success:
                report.record(step.name).status = StepStatus.COMPENSATED
            else:
                logger.error("%s: could not compensate %s: %s", self.name, step.name, undone.error)
        report.rolled_back = True

    async def run(self, ctx: Context | None = None) -> Result[WorkflowReport]:
        ctx = ctx if ctx is not None else {}
        report = WorkflowReport(name=self.name, context=ctx)
        completed: list[Step] = []

        for index, step in enumerate(self.steps):
            result = await self._run_step(step, ctx)
            if result.success:
                report.steps.append(StepRecord(step.name, StepStatus.DONE))
                completed.append(step)
                continue

            report.steps.append(StepRecord(step.name, StepStatus.FAILED, result.error))
            if not step.critical and self.policy == PartialFailurePolicy.CONTINUE:
                logger.warning("%s: step %s failed, continuing: %s", self.name, step.name, result.error)
                continue

            logger.warning("%s: step %s failed, rolling back: %s", self.name, step.name, result.error)
            await self._compensate(completed, ctx, report)
            report.steps.extend(StepRecord(s.name, StepStatus.SKIPPED) for s in self.steps[index + 1:])
            return Result.fail(
                result.kind if step.critical else ErrorKind.PARTIAL,
                result.error if step.critical else f"{step.name} failed and {self.name} was rolled back: {result.error}",
                data=report,
            )

        return Result.ok(report)


# ─── Class creation ───────────────────────────────────────────────────────────

async def create_class_with_assets(
    classes: ClassService,
    class_videos: ClassVideoService,
    assets: AssetService,
    params: ClassCreate,
    badge: UploadedFile | None = None,
    banner: UploadedFile | None = None,
    video_ids: Sequence[str] = (),
    policy: PartialFailurePolicy = PartialFailurePolicy.CONTINUE,
) -> Result[WorkflowReport]:

    async def create_class(ctx: Context) -> Result:
        created = await classes.create(params)
        if created.success:
            ctx["class_id"] = created.data.class_id
            ctx["class"] = created.data
        return created

    async def delete_class(ctx: Context) -> Result:
        return await classes.delete(ctx["class_id"])

    def upload_step(kind: str, column: str, file: UploadedFile) -> Step:
        async def upload(ctx: Context) -> Result:
            uploaded = await assets.upload(kind, ctx["class_id"], file)
            if not uploaded.success:
                return uploaded
            patched = await classes.update(ctx["class_id"], ClassUpdate(**{column: uploaded.data}))
            if patched.success:
                ctx["class"] = patched.data
            return patched
        return Step(name=f"upload_{kind}", run=upload)

    async def attach_videos(ctx: Context) -> Result:
        attached = await class_videos.attach_many(ctx["class_id"], video_ids)
        # a failed step is not compensated by the workflow, so undo the rows it did attach
        if not attached.success and attached.data and policy == PartialFailurePolicy.ROLLBACK:
            await class_videos.delete_all(ctx["class_id"])
        return attached

    async def detach_videos(ctx: Context) -> Result:
        return await class_videos.delete_all(ctx["class_id"])

    steps = [Step(name="create_class", run=create_class, compensate=delete_class, critical=True)]
    if badge is not None:
        steps.append(upload_step("badge", "badge", badge))
    if banner is not None:
        steps.append(upload_step("banner", "banner_image", banner))
    if video_ids:
        steps.append(Step(name="attach_videos", run=attach_videos, compensate=detach_videos))

    return await Workflow("create_class", steps, policy).run()


# ─── Video creation ───────────────────────────────────────────────────────────

async def create_video_with_thumbnail(
    videos: VideoService,
    params: VideoCreate | VideoImport,
    thumbnail: UploadedFile | None = None,
    policy: PartialFailurePolicy = PartialFailurePolicy.CONTINUE,
) -> Result[WorkflowReport]:
    """Direct upload, or URL import when params carry a video_url, then the thumbnail."""

    async def create_video(ctx: Context) -> Result:
        if isinstance(params, VideoImport):
            created = await videos.import_from_url(params)
        else:
            created = await videos.create_upload(params)
        if created.success:
            ctx.update(created.data)
        return created

    async def remove_video(ctx: Context) -> Result:
        return await videos.soft_delete(ctx["video_id"])

    async def upload_thumbnail(ctx: Context) -> Result:
        return await videos.upload_thumbnail(ctx["video_id"], thumbnail)

    steps = [Step(name="create_video", run=create_video, compensate=remove_video, critical=True)]
    if thumbnail is not None:
        steps.append(Step(name="upload_thumbnail", run=upload_thumbnail))

    return await Workflow("create_video", steps, policy).run()
