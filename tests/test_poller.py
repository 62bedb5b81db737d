"""
Tests for the video poller.

Tests for studio/pipeline/animate.py
"""

import pytest

from conftest import VIDEO_BYTES, VIDEO_URI, wait_for
from studio import metrics
from studio.pipeline.animate import (
    NO_VIDEO_LINK,
    VideoPoller,
    normalize_video_aspect_ratio,
)
from studio.pipeline.errors import TransportError
from studio.pipeline.models import (
    AspectRatio,
    OperationError,
    VideoOperation,
    VideoResult,
    VideoStatus,
)
from studio.pipeline.storage import BlobStore
from studio.pipeline.stores import StudioStore


@pytest.fixture
def store() -> StudioStore:
    return StudioStore()


@pytest.fixture
def blobs() -> BlobStore:
    return BlobStore("test")


@pytest.fixture
def poller(gateway, store, blobs) -> VideoPoller:
    return VideoPoller(gateway, store, blobs, interval=0.01, session_id="test")


def _pending(store: StudioStore, image_id: str = "img-1", name: str = "operations/clip-1"):
    return store.upsert_video(image_id, operation=VideoOperation(name=name, done=False))


class TestAspectRatio:

    def test_square_becomes_portrait(self):
        assert normalize_video_aspect_ratio(AspectRatio.SQUARE) == AspectRatio.PORTRAIT

    def test_other_ratios_are_kept(self):
        assert normalize_video_aspect_ratio(AspectRatio.LANDSCAPE) == AspectRatio.LANDSCAPE
        assert normalize_video_aspect_ratio(AspectRatio.PORTRAIT) == AspectRatio.PORTRAIT


class TestPollOne:

    @pytest.mark.asyncio
    async def test_not_done_refreshes_handle(self, poller, store, gateway):
        video = _pending(store)
        gateway.poll_video_operation.return_value = VideoOperation(
            name="operations/clip-1", done=False, raw={"name": "operations/clip-1", "metadata": {"progress": 40}}
        )

        await poller.poll_one(video)

        current = store.get_video(video.id)
        assert current.status == VideoStatus.GENERATING
        assert current.operation.raw["metadata"] == {"progress": 40}
        gateway.download_video_payload.assert_not_called()

    @pytest.mark.asyncio
    async def test_done_with_uri_completes(self, poller, store, blobs, gateway):
        video = _pending(store)

        await poller.poll_one(video)

        current = store.get_video(video.id)
        assert current.status == VideoStatus.COMPLETED
        assert current.download_url == VIDEO_URI
        assert current.operation.done is True
        assert len(blobs) == 1
        assert blobs.get(current.blob_url.rsplit("/", 1)[-1]).data == VIDEO_BYTES
        gateway.download_video_payload.assert_awaited_once_with(VIDEO_URI)
        assert metrics.get_snapshot()["counters"]["videos.completed"] == 1

    @pytest.mark.asyncio
    async def test_done_with_operation_error_fails(self, poller, store, gateway, blobs):
        video = _pending(store)
        gateway.poll_video_operation.return_value = VideoOperation(
            name="operations/clip-1", done=True, error=OperationError(message="Prompt blocked", code=3)
        )

        await poller.poll_one(video)

        current = store.get_video(video.id)
        assert current.status == VideoStatus.FAILED
        assert current.error_message == "Video generation failed: Prompt blocked"
        assert metrics.get_snapshot()["counters"]["videos.failed"] == 1
        assert len(blobs) == 0

    @pytest.mark.asyncio
    async def test_done_without_response_fails_with_default(self, poller, store, gateway):
        video = _pending(store)
        gateway.poll_video_operation.return_value = VideoOperation(name="operations/clip-1", done=True)

        await poller.poll_one(video)

        current = store.get_video(video.id)
        assert current.status == VideoStatus.FAILED
        assert "Unknown error" in current.error_message

    @pytest.mark.asyncio
    async def test_done_with_empty_response_fails(self, poller, store, gateway):
        video = _pending(store)
        gateway.poll_video_operation.return_value = VideoOperation(
            name="operations/clip-1", done=True, response=VideoResult(video_uris=[])
        )

        await poller.poll_one(video)

        assert store.get_video(video.id).error_message == NO_VIDEO_LINK

    @pytest.mark.asyncio
    async def test_poll_exception_fails_video(self, poller, store, gateway):
        video = _pending(store)
        gateway.poll_video_operation.side_effect = TransportError("Backend unreachable")

        await poller.poll_one(video)

        current = store.get_video(video.id)
        assert current.status == VideoStatus.FAILED
        assert current.error_message == "Backend unreachable"

    @pytest.mark.asyncio
    async def test_done_handle_is_not_polled(self, poller, store, gateway):
        video = store.upsert_video("img-1", operation=VideoOperation(name="operations/clip-1", done=True))

        await poller.poll_one(video)
        await poller.tick()

        gateway.poll_video_operation.assert_not_called()
        assert store.get_video(video.id) == video

    @pytest.mark.asyncio
    async def test_result_for_rerequested_video_is_discarded(self, poller, store, blobs, gateway):
        video = _pending(store)

        async def rerequest_then_finish(handle):
            store.upsert_video("img-1", operation=VideoOperation(name="operations/clip-2", done=False))
            return VideoOperation(
                name="operations/clip-1", done=True, response=VideoResult(video_uris=[VIDEO_URI])
            )

        gateway.poll_video_operation.side_effect = rerequest_then_finish

        await poller.poll_one(video)

        current = store.get_video(video.id)
        assert current.status == VideoStatus.GENERATING
        assert current.operation.name == "operations/clip-2"
        assert len(blobs) == 0


class TestLoop:

    @pytest.mark.asyncio
    async def test_nothing_to_poll_does_not_start(self, poller):
        assert poller.ensure_running() is False
        assert poller.running is False

    @pytest.mark.asyncio
    async def test_loop_runs_until_settled_then_exits(self, poller, store, blobs, gateway):
        video = _pending(store)
        gateway.poll_video_operation.side_effect = [
            VideoOperation(name="operations/clip-1", done=False),
            VideoOperation(name="operations/clip-1", done=True, response=VideoResult(video_uris=[VIDEO_URI])),
        ]

        assert poller.ensure_running() is True
        assert poller.ensure_running() is True  # idempotent while running
        await wait_for(lambda: not poller.running)

        current = store.get_video(video.id)
        assert current.status == VideoStatus.COMPLETED
        assert gateway.poll_video_operation.await_count == 2
        blob_id = current.blob_url.rsplit("/", 1)[-1]
        assert blobs.get(blob_id).data == VIDEO_BYTES

    @pytest.mark.asyncio
    async def test_stop_cancels_loop(self, poller, store):
        _pending(store)
        poller.interval = 60
        poller.ensure_running()

        await poller.stop()

        assert poller.running is False
