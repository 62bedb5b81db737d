"""
StudioOrchestrator — workflow state machine for one content-studio session.

Sequences the AI pipeline with per-item status tracking:
  Upload → Analyze → Context → Plan (script / photo ideas)
        → Generate images (fan-out) → Review (fan-out) → User approval
        → Regenerate / Retry / Add scene → Animate (video jobs + polling)

Intents that only touch the stores run synchronously. Intents that call the
backend validate and mutate synchronously, then return the asyncio.Task
doing the remaining work; await it to wait for completion.
"""

import asyncio
import logging
from typing import Coroutine, Optional

from .animate import POLL_INTERVAL, VideoPoller, normalize_video_aspect_ratio
from .errors import GenerationFailed, MissingPrecondition, StudioError
from .media import encode_bytes, is_image_content_type
from .models import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_SCENES,
    MAX_SCENES,
    MIN_SCENES,
    AspectRatio,
    ContextType,
    FlowMode,
    GeneratedImage,
    GeneratedVideo,
    ImageData,
    ImageStatus,
    ScriptScene,
    StudioSnapshot,
    UserContextItem,
    VideoStatus,
    WorkflowPhase,
)
from .storage import BlobStore
from .stores import StudioStore, new_id

logger = logging.getLogger(__name__)

# Statuses during which a pipeline is in flight for the image
IN_FLIGHT_STATUSES = frozenset({ImageStatus.PENDING, ImageStatus.GENERATING, ImageStatus.REVIEWING})


def _message(error: BaseException, default: str) -> str:
    return str(error) or default


class StudioOrchestrator:
    """
    One instance per session; owns the session's stores, blobs and poller.

    Usage:
        studio = StudioOrchestrator(gateway, session_id="abc")
        studio.select_mode(FlowMode.FULL)
        await studio.upload_image(photo_bytes, "image/png")
        await studio.confirm_setup(scene_count=3)
        await studio.confirm_script()
        print(studio.snapshot().images)
    """

    def __init__(
        self,
        gateway,
        *,
        poll_interval: float = POLL_INTERVAL,
        blob_store: Optional[BlobStore] = None,
        session_id: str = "local",
    ):
        self.gateway = gateway
        self.session_id = session_id
        self.store = StudioStore()
        self.blobs = blob_store if blob_store is not None else BlobStore(session_id)
        self.poller = VideoPoller(
            gateway, self.store, self.blobs,
            interval=poll_interval, session_id=session_id,
        )
        self._epoch = 0  # bumped on upload, back and reset
        self._tasks: set[asyncio.Task] = set()

    @property
    def phase(self) -> WorkflowPhase:
        return self.store.phase

    def snapshot(self) -> StudioSnapshot:
        return self.store.snapshot()

    # ── Background Tasks ─────────────────────────────────────────────────

    def spawn(self, coro: Coroutine, name: str = "") -> asyncio.Task:
        """Run a coroutine in the background; escaped exceptions are logged."""
        task = asyncio.create_task(coro, name=f"{self.session_id}:{name or 'task'}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task {task.get_name()} failed: {exc}", exc_info=exc)

    async def wait_idle(self):
        """Wait until no background task is left (the poller excluded)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self):
        """Stop the poller, cancel in-flight work and drop every blob."""
        await self.poller.stop()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.blobs.revoke_all()
        logger.info(f"[{self.session_id}] closed")

    # ── Helpers ──────────────────────────────────────────────────────────

    def _set_phase(self, phase: WorkflowPhase):
        if self.store.phase != phase:
            logger.info(f"[{self.session_id}] phase {self.store.phase.name} → {phase.name}")
        self.store.phase = phase

    def _fail_workflow(self, step: str, error: Exception, default: str):
        self._log_failure(step, error)
        self.store.error = _message(error, default)
        self._set_phase(WorkflowPhase.ERROR)

    def _log_failure(self, what: str, error: Exception):
        if isinstance(error, StudioError):
            logger.warning(f"[{self.session_id}] {what} failed: {error}")
        else:
            logger.error(f"[{self.session_id}] {what} failed: {error}", exc_info=True)

    def _is_current(self, epoch: int, phase: Optional[WorkflowPhase] = None) -> bool:
        if epoch != self._epoch:
            return False
        return phase is None or self.store.phase == phase

    def _require_phase(self, *phases: WorkflowPhase):
        if self.store.phase not in phases:
            allowed = ", ".join(p.name for p in phases)
            raise MissingPrecondition(
                f"Not allowed in phase {self.store.phase.name} (expected {allowed})."
            )

    def _require_inputs(self):
        if self.store.original_image is None or self.store.analysis is None:
            raise MissingPrecondition("An analyzed product image is required.")

    def _require_image(self, image_id: str) -> GeneratedImage:
        image = self.store.get_image(image_id)
        if image is None:
            raise MissingPrecondition(f"Unknown image: {image_id}")
        return image

    def _require_settled(self, image: GeneratedImage):
        if image.status in IN_FLIGHT_STATUSES:
            raise MissingPrecondition(f"Image {image.id} is still being processed.")

    def _context_images(self) -> list[Optional[ImageData]]:
        return [item.image_data for item in self.store.context_items]

    # ═════════════════════════════════════════════════════════════════════
    # Mode & Upload
    # ═════════════════════════════════════════════════════════════════════

    def select_mode(self, mode: FlowMode):
        if mode == FlowMode.LANDING:
            raise MissingPrecondition("Choose the video flow or the photo flow.")
        if self.store.mode != FlowMode.LANDING:
            raise MissingPrecondition("A flow is already selected; reset to choose another.")
        self.store.mode = mode
        self._set_phase(WorkflowPhase.IDLE)
        logger.info(f"[{self.session_id}] flow → {mode.value}")

    def upload_image(self, content: bytes, content_type: str) -> Optional[asyncio.Task]:
        """
        Store the product photo and start its analysis.

        Returns None (and changes nothing) when the content type is not an
        image; otherwise the analysis task.
        """
        if not is_image_content_type(content_type):
            logger.info(f"[{self.session_id}] ignored upload with content type {content_type!r}")
            return None
        if self.store.mode == FlowMode.LANDING:
            raise MissingPrecondition("Choose a flow before uploading a product photo.")
        self._require_phase(WorkflowPhase.IDLE)

        image = encode_bytes(content, content_type)
        self._epoch += 1
        self.store.original_image = image
        self.store.analysis = None
        self.store.error = None
        self._set_phase(WorkflowPhase.ANALYZING)
        return self.spawn(self._analyze(image, self._epoch), "analyze")

    async def _analyze(self, image: ImageData, epoch: int):
        try:
            analysis = await self.gateway.analyze_image(image)
        except Exception as e:
            if self._is_current(epoch, WorkflowPhase.ANALYZING):
                self._fail_workflow("analysis", e, "Image analysis failed.")
            return

        if not self._is_current(epoch, WorkflowPhase.ANALYZING):
            logger.info(f"[{self.session_id}] discarded stale analysis")
            return

        self.store.analysis = analysis
        self.store.context_items = [
            UserContextItem(
                id=new_id("comp"),
                type=ContextType.COMPONENT,
                name=component.name,
                description=component.description,
            )
            for component in analysis.components or []
        ]
        self._set_phase(WorkflowPhase.DEFINING_CONTEXT)

    # ═════════════════════════════════════════════════════════════════════
    # Context Items
    # ═════════════════════════════════════════════════════════════════════

    def add_context_item(
        self,
        type: ContextType = ContextType.USAGE_REFERENCE,
        description: str = "",
        name: Optional[str] = None,
    ) -> UserContextItem:
        self._require_phase(WorkflowPhase.DEFINING_CONTEXT)
        item = UserContextItem(id=new_id("item"), type=type, description=description, name=name)
        self.store.context_items = [*self.store.context_items, item]
        return item

    def update_context_item(
        self,
        item_id: str,
        *,
        type: Optional[ContextType] = None,
        description: Optional[str] = None,
        name: Optional[str] = None,
    ) -> UserContextItem:
        self._require_phase(WorkflowPhase.DEFINING_CONTEXT)
        changes = {
            key: value
            for key, value in {"type": type, "description": description, "name": name}.items()
            if value is not None
        }
        item = self.store.update_context_item(item_id, **changes)
        if item is None:
            raise MissingPrecondition(f"Unknown context item: {item_id}")
        return item

    def set_context_item_image(
        self, item_id: str, content: bytes, content_type: str
    ) -> Optional[UserContextItem]:
        """Attach a reference image. Non-image content is ignored (returns None)."""
        self._require_phase(WorkflowPhase.DEFINING_CONTEXT)
        if self.store.get_context_item(item_id) is None:
            raise MissingPrecondition(f"Unknown context item: {item_id}")
        if not is_image_content_type(content_type):
            return None
        return self.store.update_context_item(item_id, image_data=encode_bytes(content, content_type))

    def remove_context_item(self, item_id: str):
        self._require_phase(WorkflowPhase.DEFINING_CONTEXT)
        if not self.store.remove_context_item(item_id):
            raise MissingPrecondition(f"Unknown context item: {item_id}")

    # ═════════════════════════════════════════════════════════════════════
    # Setup & Script
    # ═════════════════════════════════════════════════════════════════════

    def confirm_setup(
        self,
        context_items: Optional[list[UserContextItem]] = None,
        scene_count: int = DEFAULT_SCENES,
        aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO,
    ) -> asyncio.Task:
        """Store the setup and plan scenes (video flow) or photo ideas (photo flow)."""
        self._require_phase(WorkflowPhase.DEFINING_CONTEXT)
        self._require_inputs()
        if not MIN_SCENES <= scene_count <= MAX_SCENES:
            raise ValueError(f"Scene count must be between {MIN_SCENES} and {MAX_SCENES}.")

        if context_items is not None:
            self.store.context_items = list(context_items)
        self.store.aspect_ratio = aspect_ratio
        self.store.error = None
        self._set_phase(WorkflowPhase.GENERATING_SCRIPT)
        return self.spawn(self._plan(scene_count, self._epoch), "plan")

    async def _plan(self, scene_count: int, epoch: int):
        try:
            scenes = await self.gateway.generate_scene_plan(
                self.store.analysis,
                scene_count,
                list(self.store.context_items),
                self.store.mode,
            )
        except Exception as e:
            if self._is_current(epoch, WorkflowPhase.GENERATING_SCRIPT):
                self._fail_workflow("planning", e, "Scene planning failed.")
            return

        if not self._is_current(epoch, WorkflowPhase.GENERATING_SCRIPT):
            logger.info(f"[{self.session_id}] discarded stale scene plan")
            return

        self.store.set_script(scenes)
        logger.info(f"[{self.session_id}] planned {len(self.store.script)} scene(s)")

        if self.store.mode == FlowMode.FULL:
            self._set_phase(WorkflowPhase.SCRIPT_APPROVAL)
            return

        if not self.store.script:
            self._fail_workflow("planning", GenerationFailed("No photo ideas were returned."), "")
            return
        await self._run_batch(self._start_batch(self.store.ordered_script()), epoch)

    def edit_scene(
        self,
        scene_id: str,
        *,
        description: Optional[str] = None,
        prompt: Optional[str] = None,
    ) -> ScriptScene:
        self._require_phase(WorkflowPhase.SCRIPT_APPROVAL)
        changes = {}
        if description is not None:
            changes["description"] = description
        if prompt is not None:
            changes["prompt"] = prompt
        scene = self.store.update_scene(scene_id, **changes)
        if scene is None:
            raise MissingPrecondition(f"Unknown scene: {scene_id}")
        return scene

    def confirm_script(self) -> asyncio.Task:
        """Fan out image generation, one image per scene."""
        self._require_phase(WorkflowPhase.SCRIPT_APPROVAL)
        self._require_inputs()
        if not self.store.script:
            raise MissingPrecondition("The script has no scenes.")

        self.store.error = None
        image_ids = self._start_batch(self.store.ordered_script())
        return self.spawn(self._run_batch(image_ids, self._epoch), "images")

    # ═════════════════════════════════════════════════════════════════════
    # Image Pipelines
    # ═════════════════════════════════════════════════════════════════════

    def _start_batch(self, scenes: list[ScriptScene]) -> list[str]:
        self.store.clear_images()
        images = [
            GeneratedImage(
                id=new_id("img"),
                scene_id=scene.id,
                prompt=scene.prompt,
                pain_point=scene.description,
            )
            for scene in scenes
        ]
        for image in images:
            self.store.add_image(image)
        self._set_phase(WorkflowPhase.GENERATING_IMAGES)
        return [image.id for image in images]

    async def _run_batch(self, image_ids: list[str], epoch: int):
        try:
            await self._fan_out(image_ids, epoch)
        except Exception as e:
            # Members localize their own failures; anything escaping is a bug
            if isinstance(e, ExceptionGroup):
                e = e.exceptions[0]
            if self._is_current(epoch):
                self._fail_workflow("image batch", e, "Image generation failed.")

    async def _fan_out(self, image_ids: list[str], epoch: int):
        attempts: dict[str, int] = {}
        for image_id in image_ids:
            image = self._begin_attempt(image_id, expect_status=ImageStatus.PENDING)
            if image is not None:
                attempts[image_id] = image.attempt

        async with asyncio.TaskGroup() as tg:
            for image_id, attempt in attempts.items():
                tg.create_task(self._create(image_id, attempt))

        if not self._is_current(epoch):
            logger.info(f"[{self.session_id}] image batch finished after navigation; phase kept")
            return

        reviewable = []
        for image_id, attempt in attempts.items():
            image = self.store.get_image(image_id)
            if image is not None and image.status == ImageStatus.REVIEWING and image.attempt == attempt:
                reviewable.append((image_id, attempt))

        if reviewable:
            self._set_phase(WorkflowPhase.REVIEWING_IMAGES)
            async with asyncio.TaskGroup() as tg:
                for image_id, attempt in reviewable:
                    tg.create_task(self._review(image_id, attempt))
            if not self._is_current(epoch):
                return

        self._set_phase(WorkflowPhase.USER_APPROVAL)

    def _begin_attempt(self, image_id: str, expect_status=None, **changes) -> Optional[GeneratedImage]:
        """Move an image to GENERATING under a fresh attempt number."""
        image = self.store.get_image(image_id)
        if image is None:
            return None
        return self.store.update_image(
            image_id,
            expect_status=expect_status,
            status=ImageStatus.GENERATING,
            attempt=image.attempt + 1,
            error_message=None,
            **changes,
        )

    def _fail_image(
        self,
        image_id: str,
        attempt: int,
        expect_status: ImageStatus,
        step: str,
        error: Exception,
        default: str,
        **changes,
    ):
        self._log_failure(f"{step} for image {image_id}", error)
        self.store.update_image(
            image_id,
            expect_status=expect_status,
            expect_attempt=attempt,
            status=ImageStatus.FAILED,
            error_message=_message(error, default),
            **changes,
        )

    async def _create(self, image_id: str, attempt: int) -> bool:
        image = self.store.get_image(image_id)
        if image is None:
            return False
        try:
            data = await self.gateway.create_image(
                self.store.original_image, image.prompt, self._context_images()
            )
        except Exception as e:
            self._fail_image(
                image_id, attempt, ImageStatus.GENERATING,
                "generation", e, "Image generation failed.",
            )
            return False

        updated = self.store.update_image(
            image_id,
            expect_status=ImageStatus.GENERATING,
            expect_attempt=attempt,
            status=ImageStatus.REVIEWING,
            image_data=data,
        )
        return updated is not None

    async def _review(self, image_id: str, attempt: int, restore: Optional[ImageData] = None):
        image = self.store.get_image(image_id)
        if image is None or image.status != ImageStatus.REVIEWING or image.attempt != attempt:
            return
        analysis = self.store.analysis
        try:
            review = await self.gateway.review_image(
                self.store.original_image,
                image.image_data,
                analysis.components if analysis else None,
                self._context_images(),
            )
        except Exception as e:
            rollback = {"image_data": restore} if restore is not None else {}
            self._fail_image(
                image_id, attempt, ImageStatus.REVIEWING,
                "review", e, "Image review failed.", **rollback,
            )
            return

        status = ImageStatus.AI_APPROVED if review.approved else ImageStatus.AI_REJECTED
        updated = self.store.update_image(
            image_id,
            expect_status=ImageStatus.REVIEWING,
            expect_attempt=attempt,
            status=status,
            review=review,
        )
        if updated is not None:
            logger.info(f"[{self.session_id}] image {image_id} → {status.value} (score {review.score})")

    async def _create_and_review(self, image_id: str, attempt: int):
        if await self._create(image_id, attempt):
            await self._review(image_id, attempt)

    # ═════════════════════════════════════════════════════════════════════
    # User Decisions
    # ═════════════════════════════════════════════════════════════════════

    def approve(self, image_id: str) -> GeneratedImage:
        image = self._require_image(image_id)
        self._require_settled(image)
        if image.image_data is None:
            raise MissingPrecondition(f"Image {image_id} has no image to approve.")
        return self.store.update_image(image_id, status=ImageStatus.USER_APPROVED)

    def reject(self, image_id: str) -> GeneratedImage:
        image = self._require_image(image_id)
        self._require_settled(image)
        return self.store.update_image(image_id, status=ImageStatus.USER_REJECTED)

    def submit_feedback(self, image_id: str, feedback: str) -> Optional[asyncio.Task]:
        """
        Regenerate an image from user feedback.

        The current image is kept as previous_image_data and restored if any
        step fails. Returns None when the image has nothing to regenerate
        from (it is marked FAILED instead).
        """
        feedback = (feedback or "").strip()
        if not feedback:
            raise MissingPrecondition("Feedback must not be blank.")
        image = self._require_image(image_id)
        self._require_settled(image)
        self._require_inputs()

        previous = image.image_data
        if previous is None:
            self.store.update_image(
                image_id,
                status=ImageStatus.FAILED,
                feedback=feedback,
                error_message=MissingPrecondition(
                    "The previous image is required for regeneration."
                ).message,
            )
            return None

        started = self._begin_attempt(
            image_id,
            previous_image_data=previous,
            image_data=None,
            review=None,
            feedback=feedback,
            regeneration_count=image.regeneration_count + 1,
        )
        return self.spawn(self._regenerate(image_id, started.attempt, previous, feedback), "regenerate")

    async def _regenerate(self, image_id: str, attempt: int, previous: ImageData, feedback: str):
        image = self.store.get_image(image_id)
        if image is None:
            return
        try:
            data = await self.gateway.regenerate_image(
                self.store.original_image, previous, image.prompt, feedback, self._context_images()
            )
        except Exception as e:
            self._fail_image(
                image_id, attempt, ImageStatus.GENERATING,
                "regeneration", e, "Image regeneration failed.", image_data=previous,
            )
            return

        updated = self.store.update_image(
            image_id,
            expect_status=ImageStatus.GENERATING,
            expect_attempt=attempt,
            status=ImageStatus.REVIEWING,
            image_data=data,
        )
        if updated is not None:
            await self._review(image_id, attempt, restore=previous)

    def retry(self, image_id: str) -> asyncio.Task:
        image = self._require_image(image_id)
        if image.status != ImageStatus.FAILED:
            raise MissingPrecondition(f"Image {image_id} has not failed.")
        self._require_inputs()

        started = self._begin_attempt(image_id, expect_status=ImageStatus.FAILED)
        return self.spawn(self._create_and_review(image_id, started.attempt), "retry")

    def add_scene(self) -> asyncio.Task:
        """Plan one more scene and generate its image."""
        self._require_phase(WorkflowPhase.USER_APPROVAL)
        self._require_inputs()
        if self.store.is_adding_scene:
            raise MissingPrecondition("A scene is already being added.")

        self.store.is_adding_scene = True
        return self.spawn(self._add_scene(self._epoch), "add-scene")

    async def _add_scene(self, epoch: int):
        try:
            try:
                scene = await self.gateway.generate_single_scene(
                    self.store.analysis,
                    self.store.ordered_script(),
                    list(self.store.context_items),
                )
            except Exception as e:
                if self._is_current(epoch):
                    self._log_failure("add scene", e)
                    self.store.error = _message(e, "Failed to add a new scene.")
                return

            if not self._is_current(epoch, WorkflowPhase.USER_APPROVAL):
                logger.info(f"[{self.session_id}] discarded scene planned after leaving approval")
                return

            scene = self.store.append_scene(scene)
            image = self.store.add_image(GeneratedImage(
                id=new_id("img"),
                scene_id=scene.id,
                prompt=scene.prompt,
                pain_point=scene.description,
                status=ImageStatus.GENERATING,
                attempt=1,
            ))
            logger.info(f"[{self.session_id}] added scene {scene.scene_number} → image {image.id}")
            await self._create_and_review(image.id, image.attempt)
        finally:
            if self._is_current(epoch):
                self.store.is_adding_scene = False

    # ═════════════════════════════════════════════════════════════════════
    # Videos
    # ═════════════════════════════════════════════════════════════════════

    def request_video(self, image_id: str) -> Optional[asyncio.Task]:
        """
        Start (or restart) the video for an image.

        The image's video entry is upserted; an image without data gets a
        FAILED entry and no task.
        """
        image = self._require_image(image_id)

        if image.image_data is None:
            self.store.upsert_video(
                image_id, status=VideoStatus.FAILED, error_message="Image data is missing."
            )
            return None

        video = self.store.upsert_video(image_id)
        ratio = normalize_video_aspect_ratio(self.store.aspect_ratio)
        return self.spawn(
            self._start_video(video, image.prompt, image.image_data, ratio), "video"
        )

    async def _start_video(self, requested: GeneratedVideo, prompt: str, image: ImageData, ratio: AspectRatio):
        # The entry object is replaced on re-request, reset and back
        try:
            operation = await self.gateway.generate_video(prompt, image, ratio)
        except Exception as e:
            self._log_failure(f"video start for {requested.id}", e)
            if self.store.get_video(requested.id) is requested:
                self.store.update_video(
                    requested.id,
                    status=VideoStatus.FAILED,
                    error_message=_message(e, "Failed to start video generation."),
                )
            return

        if self.store.get_video(requested.id) is not requested:
            logger.info(f"[{self.session_id}] discarded stale start for video {requested.id}")
            return

        video = self.store.update_video(requested.id, operation=operation)
        logger.info(f"[{self.session_id}] video {video.id} started: {operation.name}")

        if operation.done:
            await self.poller.resolve(video, operation)
        else:
            self.poller.ensure_running()

    # ═════════════════════════════════════════════════════════════════════
    # Navigation
    # ═════════════════════════════════════════════════════════════════════

    def _drop_images(self):
        for video in self.store.videos:
            if video.blob_url:
                self.blobs.revoke(video.blob_url)
        self.store.clear_images()

    def go_back(self) -> WorkflowPhase:
        phase = self.store.phase
        if not (WorkflowPhase.IDLE < phase < WorkflowPhase.COMPLETED or phase == WorkflowPhase.ERROR):
            raise MissingPrecondition(f"Cannot go back from {phase.name}.")

        self._epoch += 1
        self.store.error = None
        self.store.is_adding_scene = False
        full = self.store.mode == FlowMode.FULL

        if phase == WorkflowPhase.ERROR:
            if self.store.images:
                target = WorkflowPhase.USER_APPROVAL
            elif self.store.script and full:
                target = WorkflowPhase.SCRIPT_APPROVAL
            elif self.store.analysis is not None:
                target = WorkflowPhase.DEFINING_CONTEXT
            else:
                target = WorkflowPhase.IDLE
                self.store.original_image = None
                self.store.analysis = None
        elif phase in (WorkflowPhase.ANALYZING, WorkflowPhase.DEFINING_CONTEXT):
            target = WorkflowPhase.IDLE
            self.store.original_image = None
            self.store.analysis = None
        elif phase in (WorkflowPhase.GENERATING_SCRIPT, WorkflowPhase.SCRIPT_APPROVAL):
            target = WorkflowPhase.DEFINING_CONTEXT
            self.store.script = []
        else:
            self._drop_images()
            if full:
                target = WorkflowPhase.SCRIPT_APPROVAL
            else:
                target = WorkflowPhase.DEFINING_CONTEXT
                self.store.script = []

        self._set_phase(target)
        return target

    def dismiss_error(self):
        self.store.error = None

    def finish(self):
        self._require_phase(WorkflowPhase.USER_APPROVAL)
        self._set_phase(WorkflowPhase.COMPLETED)

    def reset(self):
        """Back to the landing state. In-flight results are discarded when they land."""
        self._epoch += 1
        self.poller.cancel()
        self.blobs.revoke_all()
        self.store.clear()
        logger.info(f"[{self.session_id}] reset")
