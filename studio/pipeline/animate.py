"""
Video animation — background polling of long-running video jobs.

One poller per session:
  - wakes every POLL_INTERVAL seconds while any video is GENERATING with a
    not-done operation handle
  - done with a URI   → download, store the bytes as a blob, COMPLETED
  - done without one  → FAILED with the operation error (or a default)
  - not done          → store the refreshed handle
  - exits once nothing is pollable; ensure_running() starts it again

A result is discarded when the video was re-requested meanwhile (its handle
name or status changed while the poll was in flight).
"""

import os
import asyncio
import logging
from contextlib import suppress
from typing import Optional

from .. import metrics
from .errors import GenerationFailed, StudioError
from .media import decode_bytes
from .models import AspectRatio, GeneratedVideo, VideoOperation, VideoStatus
from .storage import BlobStore
from .stores import StudioStore

logger = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

POLL_INTERVAL = float(os.getenv("STUDIO_VIDEO_POLL_INTERVAL", "10"))  # seconds

NO_VIDEO_LINK = "Operation finished but no video link was found."
UNKNOWN_FAILURE = "Unknown error during generation."
POLL_FAILURE = "Failed to check the video generation status."


def normalize_video_aspect_ratio(ratio: AspectRatio) -> AspectRatio:
    """Video generation has no square output; 1:1 falls back to portrait."""
    if ratio == AspectRatio.SQUARE:
        return AspectRatio.PORTRAIT
    return ratio


class VideoPoller:
    """
    Polls a session's in-flight video jobs until each one settles.

    Usage:
        poller = VideoPoller(gateway, store, blobs, session_id="abc")
        poller.ensure_running()   # after storing a not-done handle
        await poller.stop()       # on close
    """

    def __init__(
        self,
        gateway,
        store: StudioStore,
        blobs: BlobStore,
        *,
        interval: float = POLL_INTERVAL,
        session_id: str = "local",
    ):
        self.gateway = gateway
        self.store = store
        self.blobs = blobs
        self.interval = interval
        self.session_id = session_id
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def ensure_running(self) -> bool:
        """Start the loop if there is pollable work. Returns whether it runs."""
        if self.running:
            return True
        if not self.store.pollable_videos():
            return False
        self._task = asyncio.create_task(self._run(), name=f"video-poller-{self.session_id}")
        return True

    def cancel(self):
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def stop(self):
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    # ── Loop ─────────────────────────────────────────────────────────────

    async def _run(self):
        logger.info(f"[{self.session_id}] video poller started (every {self.interval:g}s)")
        while self.store.pollable_videos():
            await asyncio.sleep(self.interval)
            await self.tick()
        logger.info(f"[{self.session_id}] video poller idle")

    async def tick(self):
        """Poll every pollable video once."""
        for video in self.store.pollable_videos():
            await self.poll_one(video)

    async def poll_one(self, video: GeneratedVideo):
        handle = video.operation
        if handle is None or handle.done:
            return

        try:
            updated = await self.gateway.poll_video_operation(handle)
        except Exception as e:
            self._fail(video, handle.name, e)
            return

        if not updated.name:
            updated = updated.model_copy(update={"name": handle.name})

        if not updated.done:
            self.store.update_video(
                video.id,
                expect_status=VideoStatus.GENERATING,
                expect_operation=handle.name,
                operation=updated,
            )
            return

        await self.resolve(video, updated, expect_operation=handle.name)

    async def resolve(
        self,
        video: GeneratedVideo,
        operation: VideoOperation,
        expect_operation: Optional[str] = None,
    ):
        """Settle a video whose operation is done: download it or mark it FAILED."""
        expected = expect_operation if expect_operation is not None else operation.name

        try:
            uri = operation.video_uri
            if uri is None:
                if operation.error is not None:
                    message = operation.error.message or UNKNOWN_FAILURE
                    raise GenerationFailed(f"Video generation failed: {message}")
                if operation.response is not None:
                    raise GenerationFailed(NO_VIDEO_LINK)
                raise GenerationFailed(f"Video generation failed: {UNKNOWN_FAILURE}")

            payload = await self.gateway.download_video_payload(uri)
            content = decode_bytes(payload)
        except Exception as e:
            self._fail(video, expected, e)
            return

        current = self.store.get_video(video.id)
        if current is None or current.status != VideoStatus.GENERATING:
            logger.info(f"[{self.session_id}] video {video.id} changed while downloading; discarded")
            return
        if (current.operation.name if current.operation else None) != expected:
            logger.info(f"[{self.session_id}] video {video.id} was re-requested; discarded")
            return

        blob_url = self.blobs.put(content, payload.mime_type)
        self.store.update_video(
            video.id,
            status=VideoStatus.COMPLETED,
            operation=operation,
            download_url=uri,
            blob_url=blob_url,
            error_message=None,
        )
        metrics.inc_counter("videos.completed")
        logger.info(f"[{self.session_id}] video {video.id} → COMPLETED ({len(content)} bytes)")

    def _fail(self, video: GeneratedVideo, operation_name: Optional[str], error: Exception):
        message = str(error) or POLL_FAILURE
        if isinstance(error, StudioError):
            logger.warning(f"[{self.session_id}] video {video.id} failed: {message}")
        else:
            logger.error(f"[{self.session_id}] video {video.id} poll crashed: {error}", exc_info=True)

        failed = self.store.update_video(
            video.id,
            expect_status=VideoStatus.GENERATING,
            expect_operation=operation_name,
            status=VideoStatus.FAILED,
            error_message=message,
        )
        if failed is not None:
            metrics.inc_counter("videos.failed")
