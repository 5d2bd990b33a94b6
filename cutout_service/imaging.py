"""
Image loading and encoding helpers.

Images travel between steps as references: ``data:`` URLs produced by the
compositor, ``blob:`` object URLs for uploads, or remote ``http(s)`` URLs
returned by the inference service. Everything is decoded to RGBA so that
drawing follows source-over semantics.
"""

from __future__ import annotations

import base64
import binascii
from io import BytesIO
import logging
from typing import Optional, Tuple

from PIL import Image, ImageColor, ImageOps, UnidentifiedImageError
import requests

from .exceptions import ImageLoadError
from .object_urls import BLOB_SCHEME, ObjectUrlRegistry

logger = logging.getLogger(__name__)

PNG_MIME = "image/png"
DEFAULT_FILL = (0, 0, 0, 255)


def load_image(image_bytes: bytes, source: Optional[str] = None) -> Image.Image:
    """Decode bytes into a fully loaded RGBA image, upright per its EXIF orientation."""
    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
        image = ImageOps.exif_transpose(image)
    except Image.DecompressionBombError as exc:
        raise ImageLoadError("Image is too large to decode", source=source) from exc
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageLoadError("Invalid image data", source=source) from exc
    return image.convert("RGBA")


def encode_png(image: Image.Image) -> bytes:
    buf = BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def to_data_url(data: bytes, mime_type: str = PNG_MIME) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def image_to_data_url(image: Image.Image) -> str:
    """Equivalent of ``canvas.toDataURL("image/png")``."""
    return to_data_url(encode_png(image), PNG_MIME)


def decode_data_url(url: str) -> Tuple[str, bytes]:
    """Split a base64 ``data:`` URL into (mime type, payload)."""
    if not url.startswith("data:") or "," not in url:
        raise ImageLoadError("Not a data URL", source=url[:32])
    header, payload = url[5:].split(",", 1)
    params = header.split(";")
    mime_type = params[0] or "text/plain"
    if "base64" not in params[1:]:
        raise ImageLoadError("Only base64 data URLs are supported", source=url[:32])
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageLoadError("Malformed data URL payload", source=url[:32]) from exc


def parse_color(value: Optional[str]) -> Optional[Tuple[int, int, int, int]]:
    """Parse a CSS-style color (hex or name) into RGBA, or None if unusable."""
    if not value:
        return None
    try:
        return ImageColor.getcolor(value.strip(), "RGBA")
    except ValueError:
        return None


def download_image_bytes(
    url: str, session: Optional[requests.Session] = None, timeout_seconds: int = 30
) -> bytes:
    http = session or requests
    try:
        resp = http.get(url, timeout=(5, timeout_seconds))
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise ImageLoadError("Could not download image", source=url) from exc
    return resp.content


def read_image_reference(
    ref: object,
    registry: ObjectUrlRegistry,
    session: Optional[requests.Session] = None,
    timeout_seconds: int = 30,
) -> bytes:
    """Fetch the raw bytes behind any supported image reference."""
    if not isinstance(ref, str):
        raise ImageLoadError(f"Unsupported image reference of type {type(ref).__name__}")
    if ref.startswith("data:"):
        return decode_data_url(ref)[1]
    if ref.startswith(BLOB_SCHEME):
        return registry.resolve(ref)
    if ref.startswith(("http://", "https://")):
        logger.debug("downloading image reference %s", ref)
        return download_image_bytes(ref, session=session, timeout_seconds=timeout_seconds)
    raise ImageLoadError("Unsupported image reference", source=ref[:64])


def load_image_reference(
    ref: object,
    registry: ObjectUrlRegistry,
    session: Optional[requests.Session] = None,
    timeout_seconds: int = 30,
) -> Image.Image:
    """Resolve a reference and decode it, like assigning ``img.src`` and awaiting onload."""
    data = read_image_reference(ref, registry, session=session, timeout_seconds=timeout_seconds)
    return load_image(data, source=ref[:64] if isinstance(ref, str) else None)
