"""
In-memory blob storage for downloaded video clips.

Each stored payload is addressed by a `blob:` handle:
  blob:{session_id}/{blob_id}

Handles are served over HTTP by the session routes and revoked when the
session resets or closes.
"""

import logging
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

BLOB_SCHEME = "blob:"


class Blob(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str


# ── Helpers ──────────────────────────────────────────────────────────────────

def blob_id_from_url(url: str) -> Optional[str]:
    """Extract the blob id from a `blob:` handle, or None if it is not one."""
    if not url or not url.startswith(BLOB_SCHEME):
        return None
    return url[len(BLOB_SCHEME):].rsplit("/", 1)[-1] or None


class BlobStore:
    """
    Holds raw bytes per session.

    Usage:
        store = BlobStore("sess-1")
        url = store.put(video_bytes, "video/mp4")   # "blob:sess-1/3f2a..."
        blob = store.get(blob_id_from_url(url))
    """

    def __init__(self, namespace: str = "local"):
        self.namespace = namespace
        self._blobs: dict[str, Blob] = {}

    def __len__(self) -> int:
        return len(self._blobs)

    def put(self, data: bytes, mime_type: str) -> str:
        blob_id = uuid4().hex
        self._blobs[blob_id] = Blob(data=data, mime_type=mime_type)
        logger.info(f"[{self.namespace}] stored blob {blob_id} ({len(data)} bytes, {mime_type})")
        return f"{BLOB_SCHEME}{self.namespace}/{blob_id}"

    def get(self, blob_id: str) -> Optional[Blob]:
        return self._blobs.get(blob_id)

    def revoke(self, url: str) -> bool:
        blob_id = blob_id_from_url(url)
        if blob_id is None:
            return False
        return self._blobs.pop(blob_id, None) is not None

    def revoke_all(self) -> int:
        count = len(self._blobs)
        self._blobs.clear()
        if count:
            logger.info(f"[{self.namespace}] revoked {count} blob(s)")
        return count
