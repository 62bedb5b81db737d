"""
Media codec helpers.

Converts uploaded binary files to the transport-safe ImageData form
(base64 text + media type) used on the backend wire, and back again:
  - Upload intake:   raw bytes + declared content type → ImageData
  - Video payloads:  ImageData-shaped blob → raw bytes
"""

import base64
import binascii
import logging

from .errors import InvalidResponseFormat
from .models import ImageData

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = "image/jpeg"


def normalize_content_type(content_type: str | None) -> str:
    """Strip parameters (charset etc.) and lowercase a declared content type."""
    if not content_type:
        return ""
    return content_type.split(";")[0].strip().lower()


def is_image_content_type(content_type: str | None) -> bool:
    return normalize_content_type(content_type).startswith("image/")


def encode_bytes(content: bytes, content_type: str) -> ImageData:
    """Encode raw bytes into an ImageData payload."""
    mime = normalize_content_type(content_type) or DEFAULT_IMAGE_MIME
    return ImageData(data=base64.b64encode(content).decode("utf-8"), mime_type=mime)


def decode_bytes(payload: ImageData) -> bytes:
    """
    Decode an ImageData payload back to raw bytes.

    Raises:
        InvalidResponseFormat: if the payload is not valid base64.
    """
    try:
        return base64.b64decode(payload.data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidResponseFormat(f"Payload is not valid base64: {e}") from e


def file_extension(mime_type: str) -> str:
    """Best-effort file extension for a media type ("image/png" → "png")."""
    subtype = normalize_content_type(mime_type).split("/")[-1]
    if subtype in ("jpeg", "pjpeg"):
        return "jpg"
    return subtype or "bin"
