"""
Presentation view-models built from a StudioSnapshot.

Pure functions: no I/O, no orchestrator access. The routes serialize these
next to the raw snapshot so a client can render without re-deriving rules.
"""

from typing import Optional

from .models import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_SCENES,
    MAX_SCENES,
    MIN_SCENES,
    AspectRatio,
    FlowMode,
    GeneratedImage,
    GeneratedVideo,
    ImageStatus,
    ScriptScene,
    StudioSnapshot,
    VideoStatus,
    WireModel,
    WorkflowPhase,
)

STEP_LABELS = [
    "Upload",
    "Analysis",
    "Context",
    "Script",
    "Approval",
    "Generation",
    "Review",
    "Finish",
]

ASPECT_RATIO_LABELS = {
    AspectRatio.SQUARE: "1:1 (Square)",
    AspectRatio.PORTRAIT: "9:16 (Vertical)",
    AspectRatio.LANDSCAPE: "16:9 (Horizontal)",
}

STATUS_LABELS = {
    ImageStatus.PENDING: "Queued...",
    ImageStatus.GENERATING: "Generating...",
    ImageStatus.REVIEWING: "Reviewing...",
}


# ── View Models ──────────────────────────────────────────────────────────────

class FlowOption(WireModel):
    mode: FlowMode
    title: str
    description: str


class Step(WireModel):
    number: int
    label: str
    state: str  # done | active | pending


class StepIndicatorView(WireModel):
    visible: bool
    current: int
    steps: list[Step]


class AspectRatioOption(WireModel):
    value: AspectRatio
    label: str
    enabled: bool


class SetupOptions(WireModel):
    count_label: str
    min_scenes: int = MIN_SCENES
    max_scenes: int = MAX_SCENES
    default_scenes: int = DEFAULT_SCENES
    aspect_ratios: list[AspectRatioOption]
    default_aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO


class ScriptView(WireModel):
    scenes: list[ScriptScene]
    can_confirm: bool


class ImageCard(WireModel):
    image_id: str
    scene_id: str
    scene_description: str
    status: ImageStatus
    status_label: Optional[str] = None
    review_score: Optional[int] = None
    review_reason: Optional[str] = None
    error_message: Optional[str] = None
    regeneration_count: int = 0
    needs_review: bool
    can_retry: bool
    can_regenerate: bool
    can_request_video: bool
    video_status: Optional[VideoStatus] = None
    video_generating: bool = False
    video_ready: bool = False
    video_url: Optional[str] = None
    video_error: Optional[str] = None
    badge: Optional[str] = None
    tone: str


class StudioView(WireModel):
    mode: FlowMode
    phase: str
    error: Optional[str] = None
    show_landing: bool
    landing: list[FlowOption]
    can_go_back: bool
    step_indicator: StepIndicatorView
    setup: Optional[SetupOptions] = None
    script: Optional[ScriptView] = None
    images: list[ImageCard]
    can_add_scene: bool
    is_adding_scene: bool
    can_finish: bool


# ── Builders ─────────────────────────────────────────────────────────────────

def landing_options() -> list[FlowOption]:
    return [
        FlowOption(
            mode=FlowMode.FULL,
            title="Full Video Flow",
            description="Start from a product photo and get a script, a storyboard and short video clips.",
        ),
        FlowOption(
            mode=FlowMode.PHOTOS,
            title="Image Generator",
            description="Create high-quality product images for marketing and listings.",
        ),
    ]


def can_go_back(phase: WorkflowPhase) -> bool:
    return WorkflowPhase.IDLE < phase < WorkflowPhase.COMPLETED


def step_indicator(phase: WorkflowPhase) -> StepIndicatorView:
    """Eight labelled steps; the current one is phase + 1, capped at the last."""
    current = min(int(phase) + 1, len(STEP_LABELS))
    steps = []
    for number, label in enumerate(STEP_LABELS, start=1):
        if number < current:
            state = "done"
        elif number == current:
            state = "active"
        else:
            state = "pending"
        steps.append(Step(number=number, label=label, state=state))
    return StepIndicatorView(visible=can_go_back(phase), current=current, steps=steps)


def setup_options(mode: FlowMode) -> SetupOptions:
    full = mode == FlowMode.FULL
    return SetupOptions(
        count_label="Number of scenes for the video" if full else "Number of images to generate",
        aspect_ratios=[
            AspectRatioOption(
                value=ratio,
                label=ASPECT_RATIO_LABELS[ratio],
                # video output has no square format
                enabled=not (full and ratio == AspectRatio.SQUARE),
            )
            for ratio in AspectRatio
        ],
    )


def script_view(snapshot: StudioSnapshot) -> ScriptView:
    scenes = sorted(snapshot.script, key=lambda scene: scene.scene_number)
    return ScriptView(scenes=scenes, can_confirm=bool(scenes))


def _tone(image: GeneratedImage) -> str:
    if image.status == ImageStatus.USER_APPROVED:
        return "success"
    if image.status in (ImageStatus.USER_REJECTED, ImageStatus.FAILED):
        return "danger"
    if image.status == ImageStatus.AI_APPROVED:
        return "accent"
    if image.status == ImageStatus.AI_REJECTED:
        # borderline: one point under the approval threshold
        if image.review is not None and image.review.score == 3:
            return "warning"
        return "danger"
    return "neutral"


def _badge(image: GeneratedImage, video_ready: bool) -> Optional[str]:
    if video_ready:
        return "Video ready"
    if image.status == ImageStatus.USER_APPROVED:
        return "Approved"
    if image.status == ImageStatus.USER_REJECTED:
        return "Rejected"
    if image.status == ImageStatus.FAILED:
        return "Generation failed"
    return None


def image_card(image: GeneratedImage, video: Optional[GeneratedVideo]) -> ImageCard:
    video_generating = video is not None and video.status == VideoStatus.GENERATING
    video_ready = video is not None and video.status == VideoStatus.COMPLETED and bool(video.blob_url)

    return ImageCard(
        image_id=image.id,
        scene_id=image.scene_id,
        scene_description=image.pain_point,
        status=image.status,
        status_label=STATUS_LABELS.get(image.status),
        review_score=image.review.score if image.review else None,
        review_reason=image.review.reason if image.review else None,
        error_message=image.error_message,
        regeneration_count=image.regeneration_count,
        needs_review=image.status in (ImageStatus.AI_APPROVED, ImageStatus.AI_REJECTED),
        can_retry=image.status == ImageStatus.FAILED,
        can_regenerate=image.status == ImageStatus.USER_REJECTED and image.image_data is not None,
        can_request_video=(
            image.status == ImageStatus.USER_APPROVED
            and not video_generating
            and not video_ready
        ),
        video_status=video.status if video else None,
        video_generating=video_generating,
        video_ready=video_ready,
        video_url=video.blob_url if video_ready else None,
        video_error=video.error_message if video and video.status == VideoStatus.FAILED else None,
        badge=_badge(image, video_ready),
        tone=_tone(image),
    )


def image_cards(snapshot: StudioSnapshot) -> list[ImageCard]:
    videos = {video.image_id: video for video in snapshot.videos}
    return [image_card(image, videos.get(image.id)) for image in snapshot.images]


def build_view(snapshot: StudioSnapshot) -> StudioView:
    phase = snapshot.phase
    approving = phase == WorkflowPhase.USER_APPROVAL
    return StudioView(
        mode=snapshot.mode,
        phase=phase.name,
        error=snapshot.error,
        show_landing=snapshot.mode == FlowMode.LANDING,
        landing=landing_options(),
        can_go_back=can_go_back(phase) or phase == WorkflowPhase.ERROR,
        step_indicator=step_indicator(phase),
        setup=setup_options(snapshot.mode) if phase == WorkflowPhase.DEFINING_CONTEXT else None,
        script=script_view(snapshot) if phase == WorkflowPhase.SCRIPT_APPROVAL else None,
        images=image_cards(snapshot),
        can_add_scene=approving and not snapshot.is_adding_scene,
        is_adding_scene=snapshot.is_adding_scene,
        can_finish=approving,
    )
