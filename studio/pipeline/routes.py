"""
FastAPI routes for the content studio.

Session Endpoints (prefix /studio):
  POST   /sessions                                 — Create session (optional flow)
  GET    /sessions/{sid}                           — Snapshot + view-models
  DELETE /sessions/{sid}                           — Close session
  POST   /sessions/{sid}/mode                      — Pick the video or photo flow
  POST   /sessions/{sid}/upload                    — Upload product photo (starts analysis)
  POST   /sessions/{sid}/context-items             — Add context item
  PATCH  /sessions/{sid}/context-items/{id}        — Edit context item
  PUT    /sessions/{sid}/context-items/{id}/image  — Attach reference image
  DELETE /sessions/{sid}/context-items/{id}        — Remove context item
  POST   /sessions/{sid}/setup                     — Confirm setup (starts planning)
  PATCH  /sessions/{sid}/script/{scene_id}         — Edit scene
  POST   /sessions/{sid}/script/confirm            — Confirm script (starts images)
  POST   /sessions/{sid}/images/{id}/approve       — Approve image
  POST   /sessions/{sid}/images/{id}/reject        — Reject image
  POST   /sessions/{sid}/images/{id}/feedback      — Regenerate with feedback
  POST   /sessions/{sid}/images/{id}/retry         — Retry failed image
  POST   /sessions/{sid}/images/{id}/video         — Generate video for image
  POST   /sessions/{sid}/scenes                    — Add one more scene
  POST   /sessions/{sid}/back                      — Navigate back
  POST   /sessions/{sid}/reset                     — Reset to landing
  POST   /sessions/{sid}/finish                    — Finish the session
  POST   /sessions/{sid}/error/dismiss             — Dismiss error message
  GET    /sessions/{sid}/blobs/{blob_id}           — Download a stored video

Intents that call the backend run in the background: the route answers 202
with the current snapshot and the client polls GET /sessions/{sid}.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile

from .errors import MissingPrecondition
from .media import file_extension, is_image_content_type
from .models import (
    ContextItemUpdateRequest,
    FeedbackRequest,
    ModeSelectRequest,
    SceneEditRequest,
    SessionCreateRequest,
    SetupConfirmRequest,
    StudioSnapshot,
    WireModel,
)
from .orchestrator import StudioOrchestrator
from .sessions import SessionRegistry
from .views import StudioView, build_view

logger = logging.getLogger(__name__)


class SessionResponse(WireModel):
    session_id: str
    snapshot: StudioSnapshot
    view: StudioView


# ═════════════════════════════════════════════════════════════════════════════
# Dependencies
# ═════════════════════════════════════════════════════════════════════════════

# Process-wide registry; tests swap it through dependency_overrides
_registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    return _registry


def _studio(session_id: str, registry: SessionRegistry) -> StudioOrchestrator:
    studio = registry.get(session_id)
    if studio is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return studio


def _apply(intent, *args, **kwargs):
    """Run an intent, mapping precondition failures to 409 and bad input to 400."""
    try:
        return intent(*args, **kwargs)
    except MissingPrecondition as e:
        raise HTTPException(status_code=409, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _respond(studio: StudioOrchestrator) -> SessionResponse:
    snapshot = studio.snapshot()
    return SessionResponse(session_id=studio.session_id, snapshot=snapshot, view=build_view(snapshot))


def _require_image_upload(file: UploadFile):
    if not is_image_content_type(file.content_type or ""):
        raise HTTPException(status_code=415, detail=f"Not an image: {file.content_type}")


studio_router = APIRouter(prefix="/studio", tags=["studio"])


# ── A. Sessions ──────────────────────────────────────────────────────────────

@studio_router.post("/sessions", response_model=SessionResponse, status_code=201)
async def create_session(
    request: Optional[SessionCreateRequest] = None,
    registry: SessionRegistry = Depends(get_registry),
):
    studio = registry.create(mode=request.mode if request else None)
    return _respond(studio)


@studio_router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Current snapshot. Poll this while a background intent is running."""
    return _respond(_studio(session_id, registry))


@studio_router.delete("/sessions/{session_id}", status_code=204)
async def close_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    if not await registry.close(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=204)


@studio_router.post("/sessions/{session_id}/mode", response_model=SessionResponse)
async def select_mode(
    session_id: str,
    request: ModeSelectRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    studio = _studio(session_id, registry)
    _apply(studio.select_mode, request.mode)
    return _respond(studio)


@studio_router.post("/sessions/{session_id}/upload", response_model=SessionResponse, status_code=202)
async def upload_image(
    session_id: str,
    file: UploadFile = File(...),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Upload the product photo and start its analysis.

    Errors:
      - 415: Not an image (nothing changes)
      - 409: No flow selected, or an image is already being processed
    """
    studio = _studio(session_id, registry)
    _require_image_upload(file)
    content = await file.read()
    _apply(studio.upload_image, content, file.content_type)
    return _respond(studio)


# ── B. Context Items ─────────────────────────────────────────────────────────

@studio_router.post("/sessions/{session_id}/context-items", response_model=SessionResponse, status_code=201)
async def add_context_item(
    session_id: str,
    request: Optional[ContextItemUpdateRequest] = None,
    registry: SessionRegistry = Depends(get_registry),
):
    studio = _studio(session_id, registry)
    fields = request.model_dump(exclude_none=True) if request else {}
    _apply(studio.add_context_item, **fields)
    return _respond(studio)


@studio_router.patch("/sessions/{session_id}/context-items/{item_id}", response_model=SessionResponse)
async def update_context_item(
    session_id: str,
    item_id: str,
    request: ContextItemUpdateRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    studio = _studio(session_id, registry)
    _apply(
        studio.update_context_item, item_id,
        type=request.type, description=request.description, name=request.name,
    )
    return _respond(studio)


@studio_router.put("/sessions/{session_id}/context-items/{item_id}/image", response_model=SessionResponse)
async def set_context_item_image(
    session_id: str,
    item_id: str,
    file: UploadFile = File(...),
    registry: SessionRegistry = Depends(get_registry),
):
    studio = _studio(session_id, registry)
    _require_image_upload(file)
    content = await file.read()
    _apply(studio.set_context_item_image, item_id, content, file.content_type)
    return _respond(studio)


@studio_router.delete("/sessions/{session_id}/context-items/{item_id}", response_model=SessionResponse)
async def remove_context_item(
    session_id: str,
    item_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    studio = _studio(session_id, registry)
    _apply(studio.remove_context_item, item_id)
    return _respond(studio)


# ── C. Setup & Script ────────────────────────────────────────────────────────

@studio_router.post("/sessions/{session_id}/setup", response_model=SessionResponse, status_code=202)
async def confirm_setup(
    session_id: str,
    request: SetupConfirmRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    """Video flow: plan the script. Photo flow: plan and generate the images."""
    studio = _studio(session_id, registry)
    _apply(
        studio.confirm_setup,
        context_items=request.context_items,
        scene_count=request.scene_count,
        aspect_ratio=request.aspect_ratio,
    )
    return _respond(studio)


@studio_router.patch("/sessions/{session_id}/script/{scene_id}", response_model=SessionResponse)
async def edit_scene(
    session_id: str,
    scene_id: str,
    request: SceneEditRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    studio = _studio(session_id, registry)
    _apply(studio.edit_scene, scene_id, description=request.description, prompt=request.prompt)
    return _respond(studio)


@studio_router.post("/sessions/{session_id}/script/confirm", response_model=SessionResponse, status_code=202)
async def confirm_script(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    studio = _studio(session_id, registry)
    _apply(studio.confirm_script)
    return _respond(studio)


# ── D. Images ────────────────────────────────────────────────────────────────

@studio_router.post("/sessions/{session_id}/images/{image_id}/approve", response_model=SessionResponse)
async def approve_image(session_id: str, image_id: str, registry: SessionRegistry = Depends(get_registry)):
    studio = _studio(session_id, registry)
    _apply(studio.approve, image_id)
    return _respond(studio)


@studio_router.post("/sessions/{session_id}/images/{image_id}/reject", response_model=SessionResponse)
async def reject_image(session_id: str, image_id: str, registry: SessionRegistry = Depends(get_registry)):
    studio = _studio(session_id, registry)
    _apply(studio.reject, image_id)
    return _respond(studio)


@studio_router.post(
    "/sessions/{session_id}/images/{image_id}/feedback",
    response_model=SessionResponse,
    status_code=202,
)
async def submit_feedback(
    session_id: str,
    image_id: str,
    request: FeedbackRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    studio = _studio(session_id, registry)
    _apply(studio.submit_feedback, image_id, request.feedback)
    return _respond(studio)


@studio_router.post("/sessions/{session_id}/images/{image_id}/retry", response_model=SessionResponse, status_code=202)
async def retry_image(session_id: str, image_id: str, registry: SessionRegistry = Depends(get_registry)):
    studio = _studio(session_id, registry)
    _apply(studio.retry, image_id)
    return _respond(studio)


@studio_router.post("/sessions/{session_id}/images/{image_id}/video", response_model=SessionResponse, status_code=202)
async def request_video(session_id: str, image_id: str, registry: SessionRegistry = Depends(get_registry)):
    studio = _studio(session_id, registry)
    _apply(studio.request_video, image_id)
    return _respond(studio)


@studio_router.post("/sessions/{session_id}/scenes", response_model=SessionResponse, status_code=202)
async def add_scene(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    studio = _studio(session_id, registry)
    _apply(studio.add_scene)
    return _respond(studio)


# ── E. Navigation ────────────────────────────────────────────────────────────

@studio_router.post("/sessions/{session_id}/back", response_model=SessionResponse)
async def go_back(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    studio = _studio(session_id, registry)
    _apply(studio.go_back)
    return _respond(studio)


@studio_router.post("/sessions/{session_id}/reset", response_model=SessionResponse)
async def reset_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    studio = _studio(session_id, registry)
    studio.reset()
    return _respond(studio)


@studio_router.post("/sessions/{session_id}/finish", response_model=SessionResponse)
async def finish_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    studio = _studio(session_id, registry)
    _apply(studio.finish)
    return _respond(studio)


@studio_router.post("/sessions/{session_id}/error/dismiss", response_model=SessionResponse)
async def dismiss_error(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    studio = _studio(session_id, registry)
    studio.dismiss_error()
    return _respond(studio)


# ── F. Blobs ─────────────────────────────────────────────────────────────────

@studio_router.get("/sessions/{session_id}/blobs/{blob_id}")
async def get_blob(session_id: str, blob_id: str, registry: SessionRegistry = Depends(get_registry)):
    studio = _studio(session_id, registry)
    blob = studio.blobs.get(blob_id)
    if blob is None:
        raise HTTPException(status_code=404, detail="Blob not found")
    return Response(
        content=blob.data,
        media_type=blob.mime_type,
        headers={"Content-Disposition": f'inline; filename="video-{blob_id}.{file_extension(blob.mime_type)}"'},
    )
