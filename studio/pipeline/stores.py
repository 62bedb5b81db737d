"""
Entity stores for one studio session.

Every collection is mutated only through "replace item by id": the old item
is swapped for an updated copy. Async completions pass the status (and
attempt) they expect; when the item has moved on the update is dropped and
None is returned, so a late result can never overwrite newer state.
"""

import logging
from typing import Iterable, Optional, Union
from uuid import uuid4

from .models import (
    DEFAULT_ASPECT_RATIO,
    AspectRatio,
    FlowMode,
    GeneratedImage,
    GeneratedVideo,
    ImageAnalysis,
    ImageData,
    ImageStatus,
    ScriptScene,
    StudioSnapshot,
    UserContextItem,
    VideoStatus,
    WorkflowPhase,
)

logger = logging.getLogger(__name__)

StatusFilter = Union[ImageStatus, VideoStatus, Iterable, None]


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:12]}"


def _matches(status, expected: StatusFilter) -> bool:
    if expected is None:
        return True
    if isinstance(expected, (ImageStatus, VideoStatus)):
        return status == expected
    return status in expected


class StudioStore:
    """In-memory state of one session. Owned by exactly one orchestrator."""

    def __init__(self):
        self.clear()

    def clear(self):
        self.mode: FlowMode = FlowMode.LANDING
        self.phase: WorkflowPhase = WorkflowPhase.IDLE
        self.error: Optional[str] = None
        self.original_image: Optional[ImageData] = None
        self.analysis: Optional[ImageAnalysis] = None
        self.context_items: list[UserContextItem] = []
        self.aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO
        self.script: list[ScriptScene] = []
        self.images: list[GeneratedImage] = []
        self.videos: list[GeneratedVideo] = []
        self.is_adding_scene = False

    # ── Context Items ────────────────────────────────────────────────────

    def get_context_item(self, item_id: str) -> Optional[UserContextItem]:
        return next((item for item in self.context_items if item.id == item_id), None)

    def update_context_item(self, item_id: str, **changes) -> Optional[UserContextItem]:
        for idx, item in enumerate(self.context_items):
            if item.id == item_id:
                updated = item.model_copy(update=changes)
                self.context_items[idx] = updated
                return updated
        return None

    def remove_context_item(self, item_id: str) -> bool:
        before = len(self.context_items)
        self.context_items = [item for item in self.context_items if item.id != item_id]
        return len(self.context_items) != before

    # ── Script ───────────────────────────────────────────────────────────

    def set_script(self, scenes: list[ScriptScene]):
        """Store a freshly planned script, re-keying duplicate or empty ids."""
        seen: set[str] = set()
        keyed = []
        for scene in scenes:
            if not scene.id or scene.id in seen:
                scene = scene.model_copy(update={"id": new_id("scene")})
            seen.add(scene.id)
            keyed.append(scene)
        self.script = keyed

    def append_scene(self, scene: ScriptScene) -> ScriptScene:
        """Append a scene as the last one (scene_number = count + 1)."""
        changes: dict = {"scene_number": len(self.script) + 1}
        if not scene.id or self.get_scene(scene.id) is not None:
            changes["id"] = new_id("scene")
        scene = scene.model_copy(update=changes)
        self.script = [*self.script, scene]
        return scene

    def get_scene(self, scene_id: str) -> Optional[ScriptScene]:
        return next((scene for scene in self.script if scene.id == scene_id), None)

    def update_scene(self, scene_id: str, **changes) -> Optional[ScriptScene]:
        for idx, scene in enumerate(self.script):
            if scene.id == scene_id:
                updated = scene.model_copy(update=changes)
                self.script[idx] = updated
                return updated
        return None

    def ordered_script(self) -> list[ScriptScene]:
        return sorted(self.script, key=lambda scene: scene.scene_number)

    # ── Images ───────────────────────────────────────────────────────────

    def get_image(self, image_id: str) -> Optional[GeneratedImage]:
        return next((img for img in self.images if img.id == image_id), None)

    def add_image(self, image: GeneratedImage) -> GeneratedImage:
        self.images = [*self.images, image]
        return image

    def update_image(
        self,
        image_id: str,
        *,
        expect_status: StatusFilter = None,
        expect_attempt: Optional[int] = None,
        **changes,
    ) -> Optional[GeneratedImage]:
        """
        Replace an image by id.

        Returns the updated image, or None when the id is gone or the
        image no longer has the expected status/attempt (stale result).
        """
        for idx, img in enumerate(self.images):
            if img.id != image_id:
                continue
            if not _matches(img.status, expect_status):
                logger.info(f"Dropped stale update for image {image_id}: status is {img.status.value}")
                return None
            if expect_attempt is not None and img.attempt != expect_attempt:
                logger.info(f"Dropped stale update for image {image_id}: attempt {expect_attempt} != {img.attempt}")
                return None
            updated = img.model_copy(update=changes)
            self.images[idx] = updated
            return updated
        return None

    def clear_images(self):
        self.images = []
        self.videos = []

    # ── Videos ───────────────────────────────────────────────────────────

    def get_video(self, video_id: str) -> Optional[GeneratedVideo]:
        return next((v for v in self.videos if v.id == video_id), None)

    def get_video_for_image(self, image_id: str) -> Optional[GeneratedVideo]:
        return next((v for v in self.videos if v.image_id == image_id), None)

    def upsert_video(self, image_id: str, **changes) -> GeneratedVideo:
        """
        Reset the image's video entry (or create it). Never yields two
        entries for the same image.
        """
        fields = {
            "status": VideoStatus.GENERATING,
            "operation": None,
            "download_url": None,
            "blob_url": None,
            "error_message": None,
            **changes,
        }
        for idx, video in enumerate(self.videos):
            if video.image_id == image_id:
                updated = video.model_copy(update=fields)
                self.videos[idx] = updated
                return updated

        video = GeneratedVideo(id=f"vid-{image_id}", image_id=image_id, **fields)
        self.videos = [*self.videos, video]
        return video

    def update_video(
        self,
        video_id: str,
        *,
        expect_status: StatusFilter = None,
        expect_operation: Optional[str] = None,
        **changes,
    ) -> Optional[GeneratedVideo]:
        """Replace a video by id; None when gone or re-requested meanwhile."""
        for idx, video in enumerate(self.videos):
            if video.id != video_id:
                continue
            if not _matches(video.status, expect_status):
                return None
            if expect_operation is not None:
                current = video.operation.name if video.operation else None
                if current != expect_operation:
                    return None
            updated = video.model_copy(update=changes)
            self.videos[idx] = updated
            return updated
        return None

    def pollable_videos(self) -> list[GeneratedVideo]:
        return [
            v for v in self.videos
            if v.status == VideoStatus.GENERATING and v.operation is not None and not v.operation.done
        ]

    # ── Snapshot ─────────────────────────────────────────────────────────

    def snapshot(self) -> StudioSnapshot:
        return StudioSnapshot(
            mode=self.mode,
            phase=self.phase,
            error=self.error,
            original_image=self.original_image,
            analysis=self.analysis,
            context_items=list(self.context_items),
            aspect_ratio=self.aspect_ratio,
            script=self.ordered_script(),
            images=list(self.images),
            videos=list(self.videos),
            is_adding_scene=self.is_adding_scene,
        )
