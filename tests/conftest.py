"""
Pytest Configuration and Fixtures

Shared fixtures for the studio tests: a mocked backend gateway with happy-path
answers, an orchestrator wired to it, and a driver that walks a session to a
given phase.
"""

import asyncio
import base64
from unittest.mock import AsyncMock

import pytest

from studio import metrics
from studio.pipeline.gateway import BackendGateway
from studio.pipeline.models import (
    FlowMode,
    ImageAnalysis,
    ImageData,
    ProductComponent,
    ReviewResult,
    ScriptScene,
    VideoOperation,
    VideoResult,
)
from studio.pipeline.orchestrator import StudioOrchestrator

PNG_BYTES = b"\x89PNG\r\n\x1a\nproduct-photo"
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42-clip"
VIDEO_URI = "https://generativelanguage.example/files/clip-1:download"


def make_image(tag: str) -> ImageData:
    return ImageData(data=base64.b64encode(tag.encode()).decode(), mime_type="image/png")


def make_scenes(count: int) -> list[ScriptScene]:
    return [
        ScriptScene(id=f"scene-{i}", scene_number=i, description=f"Pain point {i}", prompt=f"prompt {i}")
        for i in range(1, count + 1)
    ]


async def wait_for(predicate, timeout: float = 2.0):
    """Yield to the loop until predicate() holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture(autouse=True)
def clean_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def analysis() -> ImageAnalysis:
    return ImageAnalysis(
        product_name="Wireless Lapel Mic",
        description="A clip-on microphone kit for creators.",
        features=["Noise cancelling", "20h battery"],
        target_audience="Content creators",
        pain_points=["Muffled audio", "Tangled cables"],
        components=[
            ProductComponent(name="Transmitter", description="Clips onto the collar", scale="2cm"),
            ProductComponent(name="Receiver", description="Plugs into the phone", scale="3cm"),
        ],
    )


@pytest.fixture
def gateway(analysis):
    gw = AsyncMock(spec=BackendGateway)
    gw.analyze_image.return_value = analysis
    gw.generate_scene_plan.side_effect = lambda analysis, count, items, flow: make_scenes(count)
    gw.create_image.side_effect = lambda original, prompt, context: make_image(prompt)
    gw.review_image.return_value = ReviewResult(score=4, reason="Product is faithful")
    gw.regenerate_image.return_value = make_image("regenerated")
    gw.generate_single_scene.return_value = ScriptScene(
        id="scene-extra", scene_number=42, description="Unboxing", prompt="unboxing prompt"
    )
    gw.generate_video.return_value = VideoOperation(name="operations/clip-1", done=False)
    gw.poll_video_operation.return_value = VideoOperation(
        name="operations/clip-1",
        done=True,
        response=VideoResult(video_uris=[VIDEO_URI]),
    )
    gw.download_video_payload.return_value = ImageData(
        data=base64.b64encode(VIDEO_BYTES).decode(), mime_type="video/mp4"
    )
    return gw


@pytest.fixture
def studio(gateway) -> StudioOrchestrator:
    return StudioOrchestrator(gateway, poll_interval=0.01, session_id="test")


class Driver:
    """Walks a session forward through the happy path."""

    def __init__(self, studio: StudioOrchestrator):
        self.studio = studio

    async def to_context(self, mode: FlowMode = FlowMode.FULL):
        self.studio.select_mode(mode)
        await self.studio.upload_image(PNG_BYTES, "image/png")

    async def to_script(self, count: int = 3, **setup):
        await self.to_context(FlowMode.FULL)
        await self.studio.confirm_setup(scene_count=count, **setup)

    async def to_approval(self, count: int = 3, **setup):
        await self.to_script(count, **setup)
        await self.studio.confirm_script()

    async def to_photos(self, count: int = 3):
        await self.to_context(FlowMode.PHOTOS)
        await self.studio.confirm_setup(scene_count=count)


@pytest.fixture
def drive(studio) -> Driver:
    return Driver(studio)
