"""
Backend Gateway — typed boundary to the generative-AI / storage service.

The backend is a single action-dispatched endpoint (a Supabase edge function):
  request:  { "action": str, "payload": {...} }
  response: the result object, or { "error": str } with a non-2xx status

One coroutine per capability. Every call resolves to a parsed value or raises
a classified StudioError; nothing is retried here (retries are orchestrator
policy).
"""

import os
import json
import time
import logging
from typing import Any, Optional, Protocol

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError
from supabase import AsyncClient, FunctionsHttpError, FunctionsRelayError, acreate_client

from .. import metrics
from .errors import (
    BackendError,
    GenerationFailed,
    InvalidResponseFormat,
    StudioError,
    TransportError,
)
from .models import (
    AspectRatio,
    FlowMode,
    ImageAnalysis,
    ImageData,
    OperationError,
    ProductComponent,
    ReviewResult,
    ScriptScene,
    UserContextItem,
    VideoOperation,
    VideoResult,
)

logger = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
FUNCTION_NAME = os.getenv("STUDIO_FUNCTION_NAME", "gemini-service")
BACKEND_URL = os.getenv("STUDIO_BACKEND_URL", "")
GATEWAY_TIMEOUT = float(os.getenv("STUDIO_GATEWAY_TIMEOUT", "120"))

DEFAULT_VIDEO_MIME = "video/mp4"

_SCENE_LIST = TypeAdapter(list[ScriptScene])


# ═════════════════════════════════════════════════════════════════════════════
# Transports
# ═════════════════════════════════════════════════════════════════════════════

class Transport(Protocol):
    async def invoke(self, action: str, payload: dict) -> Any: ...

    async def aclose(self) -> None: ...


def _decode_body(data: Any) -> Any:
    """Function bodies arrive as bytes/str from some clients; parse them as JSON."""
    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8")
    if isinstance(data, str):
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            raise InvalidResponseFormat(f"Backend returned non-JSON body: {data[:200]}") from e
    return data


class SupabaseFunctionTransport:
    """Invoke the edge function through the Supabase async client."""

    def __init__(
        self,
        url: str = SUPABASE_URL,
        key: str = SUPABASE_ANON_KEY,
        function_name: str = FUNCTION_NAME,
    ):
        self.url = url
        self.key = key
        self.function_name = function_name
        self._client: Optional[AsyncClient] = None

    async def _get_client(self) -> AsyncClient:
        """Lazy-init the Supabase client on first call."""
        if self._client is None:
            if not self.url or not self.key:
                raise TransportError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
            self._client = await acreate_client(self.url, self.key)
        return self._client

    async def invoke(self, action: str, payload: dict) -> Any:
        client = await self._get_client()
        try:
            data = await client.functions.invoke(
                self.function_name,
                invoke_options={"body": {"action": action, "payload": payload}},
            )
        except FunctionsHttpError as e:
            raise BackendError(str(e)) from e
        except FunctionsRelayError as e:
            raise TransportError(f"Edge function relay error: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Edge function unreachable: {e}") from e
        return _decode_body(data)

    async def aclose(self) -> None:
        self._client = None


class HttpFunctionTransport:
    """POST directly to a function URL with httpx."""

    def __init__(
        self,
        url: str,
        api_key: str = SUPABASE_ANON_KEY,
        timeout: float = GATEWAY_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def invoke(self, action: str, payload: dict) -> Any:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            resp = await self._client.post(
                self.url,
                json={"action": action, "payload": payload},
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Backend unreachable: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code >= 400:
            if isinstance(body, dict) and body.get("error"):
                raise BackendError(str(body["error"]))
            raise TransportError(f"Backend HTTP {resp.status_code}: {resp.text[:300]}")

        if body is None:
            raise InvalidResponseFormat(f"Backend returned non-JSON body: {resp.text[:200]}")
        return body

    async def aclose(self) -> None:
        await self._client.aclose()


# ═════════════════════════════════════════════════════════════════════════════
# Wire helpers
# ═════════════════════════════════════════════════════════════════════════════

def _wire(model: Optional[BaseModel]) -> Optional[dict]:
    if model is None:
        return None
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _wire_images(images: list[Optional[ImageData]]) -> list[dict]:
    return [_wire(img) for img in images if img is not None]


def _parse(model: type[BaseModel], data: Any, action: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error(f"Backend {action} payload failed validation: {e}")
        raise InvalidResponseFormat(f"{action} returned an invalid response format.") from e


def _image_from_wire(data: Any, action: str) -> ImageData:
    if not isinstance(data, dict):
        raise InvalidResponseFormat(f"{action} returned an invalid response format.")
    if not data.get("base64"):
        raise GenerationFailed(f"{action} failed: the backend returned no image.")
    return ImageData(data=data["base64"], mime_type=data.get("mimeType") or "image/png")


def _operation_from_wire(data: Any) -> VideoOperation:
    """Parse a Veo operation JSON into the tagged VideoOperation handle."""
    if not isinstance(data, dict):
        raise InvalidResponseFormat("Video operation is not an object.")

    result = None
    response = data.get("response")
    if isinstance(response, dict):
        uris = []
        for entry in response.get("generatedVideos") or response.get("generated_videos") or []:
            video = (entry or {}).get("video") or {}
            if video.get("uri"):
                uris.append(video["uri"])
        result = VideoResult(video_uris=uris)

    error = data.get("error")
    if isinstance(error, str):
        error = {"message": error}

    try:
        return VideoOperation(
            name=str(data.get("name") or ""),
            done=bool(data.get("done")),
            response=result,
            error=OperationError.model_validate(error) if isinstance(error, dict) else None,
            raw=data,
        )
    except ValidationError as e:
        raise InvalidResponseFormat(f"Video operation has an invalid format: {e}") from e


# ═════════════════════════════════════════════════════════════════════════════
# Gateway
# ═════════════════════════════════════════════════════════════════════════════

class BackendGateway:
    """
    One coroutine per backend capability.

    Usage:
        gateway = BackendGateway(SupabaseFunctionTransport())
        analysis = await gateway.analyze_image(image)
    """

    def __init__(self, transport: Transport):
        self.transport = transport

    async def _call(self, action: str, payload: dict) -> Any:
        started = time.perf_counter()
        error: Optional[Exception] = None
        try:
            result = await self.transport.invoke(action, payload)
            # An error string in a 2xx body is still a logical failure
            if isinstance(result, dict) and isinstance(result.get("error"), str):
                raise BackendError(result["error"])
            return result
        except StudioError as e:
            error = e
            raise
        except Exception as e:
            error = TransportError(f"{action} failed: {e}")
            raise error from e
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            metrics.record_call(action, elapsed_ms, error)
            if error is None:
                logger.info(f"Backend {action} ok ({elapsed_ms:.0f}ms)")
            else:
                logger.warning(f"Backend {action} failed after {elapsed_ms:.0f}ms: {error}")

    # ── Analysis & Planning ──────────────────────────────────────────────

    async def analyze_image(self, image: ImageData) -> ImageAnalysis:
        data = await self._call("analyzeImage", {"imageData": _wire(image)})
        return _parse(ImageAnalysis, data, "analyzeImage")

    async def generate_scene_plan(
        self,
        analysis: ImageAnalysis,
        scene_count: int,
        context_items: list[UserContextItem],
        flow: FlowMode = FlowMode.FULL,
    ) -> list[ScriptScene]:
        """Plan scenes (video flow) or photo ideas (photo flow). Count is advisory."""
        data = await self._call("generatePrompts", {
            "analysis": _wire(analysis),
            "numberOfScenes": scene_count,
            "contextImages": [_wire(item) for item in context_items],
            "flow": flow.value,
        })
        try:
            return _SCENE_LIST.validate_python(data)
        except ValidationError as e:
            logger.error(f"Backend generatePrompts payload failed validation: {e}")
            raise InvalidResponseFormat("generatePrompts returned an invalid response format.") from e

    async def generate_single_scene(
        self,
        analysis: ImageAnalysis,
        existing_scenes: list[ScriptScene],
        context_items: list[UserContextItem],
    ) -> ScriptScene:
        data = await self._call("generateSingleScene", {
            "analysis": _wire(analysis),
            "script": [_wire(scene) for scene in existing_scenes],
            "userContextItems": [_wire(item) for item in context_items],
        })
        return _parse(ScriptScene, data, "generateSingleScene")

    # ── Images ───────────────────────────────────────────────────────────

    async def create_image(
        self,
        original_image: ImageData,
        prompt: str,
        context_images: list[Optional[ImageData]],
    ) -> ImageData:
        data = await self._call("createImage", {
            "originalImage": _wire(original_image),
            "prompt": prompt,
            "contextImages": _wire_images(context_images),
        })
        return _image_from_wire(data, "createImage")

    async def review_image(
        self,
        original_image: ImageData,
        candidate_image: ImageData,
        components: Optional[list[ProductComponent]],
        context_images: list[Optional[ImageData]],
    ) -> ReviewResult:
        data = await self._call("reviewImage", {
            "originalImage": _wire(original_image),
            "generatedImage": _wire(candidate_image),
            "components": [_wire(c) for c in components or []],
            "contextImages": _wire_images(context_images),
        })
        return _parse(ReviewResult, data, "reviewImage")

    async def regenerate_image(
        self,
        original_image: ImageData,
        previous_image: ImageData,
        prompt: str,
        feedback: str,
        context_images: list[Optional[ImageData]],
    ) -> ImageData:
        data = await self._call("regenerateImage", {
            "originalImage": _wire(original_image),
            "previousImage": _wire(previous_image),
            "prompt": prompt,
            "feedback": feedback,
            "contextImages": _wire_images(context_images),
        })
        return _image_from_wire(data, "regenerateImage")

    # ── Video ────────────────────────────────────────────────────────────

    async def generate_video(
        self,
        prompt: str,
        image: Optional[ImageData],
        aspect_ratio: AspectRatio,
    ) -> VideoOperation:
        """Start a video job. Returns immediately with a (usually not-done) handle."""
        payload: dict = {"prompt": prompt, "aspectRatio": aspect_ratio.value}
        if image is not None:
            payload["imageData"] = _wire(image)
        data = await self._call("generateVideo", payload)
        return _operation_from_wire(data)

    async def poll_video_operation(self, handle: VideoOperation) -> VideoOperation:
        operation = handle.raw or {"name": handle.name}
        data = await self._call("getVideosOperation", {"operation": operation})
        return _operation_from_wire(data)

    async def download_video_payload(self, uri: str) -> ImageData:
        data = await self._call("downloadVideo", {"url": uri})
        if not isinstance(data, dict) or not data.get("base64"):
            raise InvalidResponseFormat("downloadVideo returned no video payload.")
        return ImageData(data=data["base64"], mime_type=data.get("mimeType") or DEFAULT_VIDEO_MIME)

    async def aclose(self) -> None:
        await self.transport.aclose()


def create_gateway() -> BackendGateway:
    """Build the gateway from environment config."""
    if BACKEND_URL:
        logger.info(f"Backend gateway → {BACKEND_URL} (direct)")
        return BackendGateway(HttpFunctionTransport(BACKEND_URL))
    logger.info(f"Backend gateway → Supabase function '{FUNCTION_NAME}'")
    return BackendGateway(SupabaseFunctionTransport())
