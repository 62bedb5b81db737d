"""
Content Studio Pipeline

Workflow orchestration for AI product-content generation:
  Analyze → Plan (script / photo ideas) → Generate images → Review
  → User approval (regenerate, retry, add scene) → Animate (video jobs)
Sessions — one orchestrator per session, driven over HTTP
"""

from .orchestrator import StudioOrchestrator
from .routes import studio_router
from .models import FlowMode, WorkflowPhase, ImageStatus, VideoStatus

__all__ = [
    "StudioOrchestrator",
    "studio_router",
    "FlowMode",
    "WorkflowPhase",
    "ImageStatus",
    "VideoStatus",
]
