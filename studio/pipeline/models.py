"""
Pydantic models and enums for the content studio workflow.

Wire payloads use camelCase aliases (the backend contract); Python code uses
the snake_case attribute names. Every model accepts either form on input.
"""

from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Workflow Phase ───────────────────────────────────────────────────────────

class WorkflowPhase(IntEnum):
    """Ordered phases; the ordering decides which view and intents are valid."""

    IDLE = 0
    ANALYZING = 1
    DEFINING_CONTEXT = 2
    GENERATING_SCRIPT = 3
    SCRIPT_APPROVAL = 4
    GENERATING_IMAGES = 5
    REVIEWING_IMAGES = 6
    USER_APPROVAL = 7
    COMPLETED = 8
    ERROR = 9


class FlowMode(str, Enum):
    LANDING = "landing"
    FULL = "full"      # video flow: script approval gate + clips
    PHOTOS = "photos"  # photo flow: straight from plan to images


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    PORTRAIT = "9:16"
    LANDSCAPE = "16:9"


DEFAULT_ASPECT_RATIO = AspectRatio.PORTRAIT


# ── Media ────────────────────────────────────────────────────────────────────

class ImageData(WireModel):
    """Opaque encoded payload. Compared by value, never mutated."""

    model_config = ConfigDict(frozen=True)

    data: str = Field(alias="base64")
    mime_type: str


# ── Analysis & Context ───────────────────────────────────────────────────────

class ProductComponent(WireModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    scale: str = ""


class ContextType(str, Enum):
    COMPONENT = "component"
    USAGE_REFERENCE = "usage_reference"
    SCALE_REFERENCE = "scale_reference"
    DETAIL_REFERENCE = "detail_reference"


class UserContextItem(WireModel):
    id: str
    image_data: Optional[ImageData] = None
    type: ContextType = ContextType.USAGE_REFERENCE
    description: str = ""
    name: Optional[str] = None


class ImageAnalysis(WireModel):
    model_config = ConfigDict(frozen=True)

    product_name: str
    description: str
    features: list[str] = Field(default_factory=list)
    target_audience: str = ""
    pain_points: list[str] = Field(default_factory=list)
    components: Optional[list[ProductComponent]] = None


# ── Script ───────────────────────────────────────────────────────────────────

class ScriptScene(WireModel):
    id: str
    scene_number: int
    description: str
    prompt: str


# ── Review ───────────────────────────────────────────────────────────────────

APPROVAL_THRESHOLD = 3


class ReviewResult(WireModel):
    score: int = Field(..., ge=1, le=5)
    reason: str = ""

    @property
    def approved(self) -> bool:
        return self.score >= APPROVAL_THRESHOLD


# ── Generated Images ─────────────────────────────────────────────────────────

class ImageStatus(str, Enum):
    PENDING = "PENDING"
    GENERATING = "GENERATING"
    REVIEWING = "REVIEWING"
    AI_APPROVED = "AI_APPROVED"
    AI_REJECTED = "AI_REJECTED"
    USER_APPROVED = "USER_APPROVED"
    USER_REJECTED = "USER_REJECTED"
    FAILED = "FAILED"


# Statuses in which image_data must be present
IMAGE_BEARING_STATUSES = frozenset({
    ImageStatus.REVIEWING,
    ImageStatus.AI_APPROVED,
    ImageStatus.AI_REJECTED,
    ImageStatus.USER_APPROVED,
})


class GeneratedImage(WireModel):
    id: str
    scene_id: str
    prompt: str
    pain_point: str = ""  # scene description snapshot
    status: ImageStatus = ImageStatus.PENDING
    image_data: Optional[ImageData] = None
    review: Optional[ReviewResult] = None
    previous_image_data: Optional[ImageData] = None
    feedback: Optional[str] = None
    regeneration_count: int = 0
    error_message: Optional[str] = None
    attempt: int = 0  # bumped whenever a new generate pipeline starts


# ── Videos ───────────────────────────────────────────────────────────────────

class VideoStatus(str, Enum):
    PENDING = "PENDING"
    GENERATING = "GENERATING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class OperationError(WireModel):
    message: str = ""
    code: Optional[int] = None


class VideoResult(WireModel):
    video_uris: list[str] = Field(default_factory=list)


class VideoOperation(WireModel):
    """Long-running video job handle. `response` is only set once `done`."""

    name: str = ""
    done: bool = False
    response: Optional[VideoResult] = None
    error: Optional[OperationError] = None
    raw: dict = Field(default_factory=dict, exclude=True)

    @property
    def video_uri(self) -> Optional[str]:
        if self.response and self.response.video_uris:
            return self.response.video_uris[0]
        return None


class GeneratedVideo(WireModel):
    id: str
    image_id: str
    status: VideoStatus = VideoStatus.PENDING
    operation: Optional[VideoOperation] = None
    download_url: Optional[str] = None
    blob_url: Optional[str] = None
    error_message: Optional[str] = None


# ── Snapshot ─────────────────────────────────────────────────────────────────

class StudioSnapshot(WireModel):
    """Read-only copy of every store, handed to presentation adapters."""

    mode: FlowMode
    phase: WorkflowPhase
    error: Optional[str] = None
    original_image: Optional[ImageData] = None
    analysis: Optional[ImageAnalysis] = None
    context_items: list[UserContextItem] = Field(default_factory=list)
    aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO
    script: list[ScriptScene] = Field(default_factory=list)
    images: list[GeneratedImage] = Field(default_factory=list)
    videos: list[GeneratedVideo] = Field(default_factory=list)
    is_adding_scene: bool = False


# ── API Request Models ───────────────────────────────────────────────────────

MIN_SCENES = 1
MAX_SCENES = 6
DEFAULT_SCENES = 3


class SessionCreateRequest(WireModel):
    mode: Optional[FlowMode] = None


class ModeSelectRequest(WireModel):
    mode: FlowMode


class ContextItemUpdateRequest(WireModel):
    type: Optional[ContextType] = None
    description: Optional[str] = None
    name: Optional[str] = None


class SetupConfirmRequest(WireModel):
    scene_count: int = Field(DEFAULT_SCENES, ge=MIN_SCENES, le=MAX_SCENES)
    aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO
    context_items: Optional[list[UserContextItem]] = Field(
        None, description="Confirmed context items; omit to use the session draft"
    )


class SceneEditRequest(WireModel):
    description: Optional[str] = None
    prompt: Optional[str] = None


class FeedbackRequest(WireModel):
    feedback: str = Field(..., min_length=1)
