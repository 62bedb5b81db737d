"""
Tests for the presentation view-models.

Tests for studio/pipeline/views.py
"""

import pytest

from conftest import make_image, make_scenes
from studio.pipeline.models import (
    AspectRatio,
    FlowMode,
    GeneratedImage,
    GeneratedVideo,
    ImageStatus,
    ReviewResult,
    StudioSnapshot,
    VideoStatus,
    WorkflowPhase,
)
from studio.pipeline.views import (
    build_view,
    image_card,
    setup_options,
    step_indicator,
)


def _image(status: ImageStatus, **fields) -> GeneratedImage:
    return GeneratedImage(id="img-1", scene_id="scene-1", prompt="p", pain_point="Muffled audio", status=status, **fields)


class TestStepIndicator:

    def test_current_step_follows_phase(self):
        view = step_indicator(WorkflowPhase.SCRIPT_APPROVAL)

        assert view.current == 5
        assert [s.state for s in view.steps[:6]] == ["done", "done", "done", "done", "active", "pending"]
        assert view.visible is True

    @pytest.mark.parametrize("phase", [WorkflowPhase.IDLE, WorkflowPhase.COMPLETED, WorkflowPhase.ERROR])
    def test_hidden_outside_the_workflow(self, phase):
        assert step_indicator(phase).visible is False

    def test_current_is_capped_at_last_step(self):
        assert step_indicator(WorkflowPhase.COMPLETED).current == 8


class TestSetupOptions:

    def test_square_is_disabled_for_video(self):
        ratios = {o.value: o.enabled for o in setup_options(FlowMode.FULL).aspect_ratios}

        assert ratios[AspectRatio.SQUARE] is False
        assert ratios[AspectRatio.PORTRAIT] is True

    def test_photo_flow_allows_every_ratio(self):
        options = setup_options(FlowMode.PHOTOS)

        assert all(o.enabled for o in options.aspect_ratios)
        assert options.count_label == "Number of images to generate"
        assert (options.min_scenes, options.max_scenes, options.default_scenes) == (1, 6, 3)


class TestImageCard:

    @pytest.mark.parametrize("score,tone", [(3, "warning"), (2, "danger"), (1, "danger")])
    def test_rejected_tone_depends_on_score(self, score, tone):
        image = _image(ImageStatus.AI_REJECTED, image_data=make_image("x"), review=ReviewResult(score=score))

        assert image_card(image, None).tone == tone

    def test_ai_verdict_needs_review(self):
        card = image_card(_image(ImageStatus.AI_APPROVED, image_data=make_image("x"), review=ReviewResult(score=5)), None)

        assert card.needs_review is True
        assert card.tone == "accent"
        assert card.review_score == 5

    def test_in_flight_label(self):
        card = image_card(_image(ImageStatus.GENERATING), None)

        assert card.status_label == "Generating..."
        assert card.tone == "neutral"

    def test_failed_card_offers_retry(self):
        card = image_card(_image(ImageStatus.FAILED, error_message="quota"), None)

        assert card.can_retry is True
        assert card.badge == "Generation failed"
        assert card.error_message == "quota"

    def test_rejected_with_image_offers_regenerate(self):
        card = image_card(_image(ImageStatus.USER_REJECTED, image_data=make_image("x")), None)

        assert card.can_regenerate is True
        assert card.badge == "Rejected"

    def test_approved_image_offers_video(self):
        image = _image(ImageStatus.USER_APPROVED, image_data=make_image("x"))

        assert image_card(image, None).can_request_video is True
        assert image_card(_image(ImageStatus.AI_APPROVED), None).can_request_video is False

    def test_photo_flow_offers_video(self):
        image = _image(ImageStatus.USER_APPROVED, image_data=make_image("x"))
        snapshot = StudioSnapshot(mode=FlowMode.PHOTOS, phase=WorkflowPhase.USER_APPROVAL, images=[image])

        assert build_view(snapshot).images[0].can_request_video is True

    def test_ready_video(self):
        image = _image(ImageStatus.USER_APPROVED, image_data=make_image("x"))
        video = GeneratedVideo(id="vid-img-1", image_id="img-1", status=VideoStatus.COMPLETED, blob_url="blob:s/abc")

        card = image_card(image, video)

        assert card.video_ready is True
        assert card.video_url == "blob:s/abc"
        assert card.badge == "Video ready"
        assert card.can_request_video is False

    def test_failed_video_can_be_requested_again(self):
        image = _image(ImageStatus.USER_APPROVED, image_data=make_image("x"))
        video = GeneratedVideo(id="vid-img-1", image_id="img-1", status=VideoStatus.FAILED, error_message="blocked")

        card = image_card(image, video)

        assert card.video_error == "blocked"
        assert card.can_request_video is True


class TestBuildView:

    def test_landing(self):
        view = build_view(StudioSnapshot(mode=FlowMode.LANDING, phase=WorkflowPhase.IDLE))

        assert view.show_landing is True
        assert [o.mode for o in view.landing] == [FlowMode.FULL, FlowMode.PHOTOS]
        assert view.can_go_back is False

    def test_script_approval_shows_ordered_script(self):
        scenes = make_scenes(3)
        snapshot = StudioSnapshot(
            mode=FlowMode.FULL,
            phase=WorkflowPhase.SCRIPT_APPROVAL,
            script=[scenes[1], scenes[2], scenes[0]],
        )

        view = build_view(snapshot)

        assert [s.scene_number for s in view.script.scenes] == [1, 2, 3]
        assert view.script.can_confirm is True
        assert view.setup is None

    def test_context_phase_shows_setup(self):
        view = build_view(StudioSnapshot(mode=FlowMode.FULL, phase=WorkflowPhase.DEFINING_CONTEXT))

        assert view.setup is not None
        assert view.script is None

    def test_user_approval_actions(self):
        snapshot = StudioSnapshot(mode=FlowMode.FULL, phase=WorkflowPhase.USER_APPROVAL, is_adding_scene=True)

        view = build_view(snapshot)

        assert view.can_finish is True
        assert view.can_add_scene is False
        assert view.is_adding_scene is True

    def test_error_phase_can_go_back(self):
        view = build_view(StudioSnapshot(mode=FlowMode.PHOTOS, phase=WorkflowPhase.ERROR, error="boom"))

        assert view.can_go_back is True
        assert view.error == "boom"
        assert view.phase == "ERROR"

    def test_serializes_camel_case(self):
        view = build_view(StudioSnapshot(mode=FlowMode.FULL, phase=WorkflowPhase.USER_APPROVAL))

        dumped = view.model_dump(by_alias=True)

        assert "canGoBack" in dumped
        assert "stepIndicator" in dumped
