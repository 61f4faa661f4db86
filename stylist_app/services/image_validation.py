"""
Image validation utilities for uploads and remote image URLs.
"""

from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, Optional, Tuple
import hashlib

import httpx
from PIL import Image, UnidentifiedImageError

from stylist_app.config import settings
from stylist_app.errors import UpstreamError
from stylist_app.observability.logger import append_log, redact_url

FETCH_TIMEOUT = 20.0  # seconds


@dataclass
class ImageValidationResult:
    valid: bool
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    # Downloaded bytes, kept so callers don't fetch the image twice
    content: Optional[bytes] = field(default=None, repr=False)


def read_image_info(data: bytes) -> Optional[Tuple[int, int, Optional[str]]]:
    """Return (width, height, format) or None when data is not a readable image"""
    if not data:
        return None
    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
            return width, height, img.format
    except (UnidentifiedImageError, OSError):
        return None


def _check_dimensions(width: int, height: int) -> Optional[str]:
    minimum = settings.min_image_dimension
    maximum = settings.max_image_dimension
    if width < minimum or height < minimum:
        return f"Image too small: {width}x{height} (minimum {minimum}px per side)"
    if width > maximum or height > maximum:
        return f"Image too large: {width}x{height} (maximum {maximum}px per side)"
    return None


def validate_uploaded_file(data: bytes, content_type: Optional[str]) -> ImageValidationResult:
    """
    Validate an uploaded file: size, declared type, readability, dimensions.
    """
    max_bytes = settings.max_image_size_mb * 1024 * 1024
    if len(data) > max_bytes:
        return ImageValidationResult(
            valid=False,
            error=f"File size exceeds {settings.max_image_size_mb:g}MB limit",
            details={"sizeBytes": len(data)},
        )

    mime = (content_type or "").split(";")[0].strip().lower()
    if mime not in settings.allowed_mime_types:
        return ImageValidationResult(
            valid=False,
            error=f"Invalid file type: {mime or 'unknown'}. Allowed: {', '.join(settings.allowed_mime_types)}",
        )

    info = read_image_info(data)
    if info is None:
        return ImageValidationResult(valid=False, error="Image file appears to be corrupted or empty")

    width, height, fmt = info
    problem = _check_dimensions(width, height)
    details = {"width": width, "height": height, "format": fmt, "sizeBytes": len(data)}
    if problem:
        return ImageValidationResult(valid=False, error=problem, details=details)

    return ImageValidationResult(valid=True, details=details, content=data)


async def validate_image_url(
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ImageValidationResult:
    """
    Download an image URL and validate content type and dimensions.

    Never raises: every failure is reported in the result.
    """
    try:
        async with httpx.AsyncClient(timeout=FETCH_TIMEOUT, transport=transport, follow_redirects=True) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        await append_log("validation.fetch_error", imageUrl=redact_url(url), error=str(e))
        return ImageValidationResult(valid=False, error=f"Failed to validate image URL: {e}")

    if not response.is_success:
        return ImageValidationResult(
            valid=False,
            error=f"Failed to fetch image (HTTP {response.status_code})",
            details={"status": response.status_code},
        )

    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type and content_type not in settings.allowed_mime_types:
        return ImageValidationResult(
            valid=False,
            error=f"Invalid content type: {content_type}",
            details={"contentType": content_type},
        )

    data = response.content
    info = read_image_info(data)
    if info is None:
        return ImageValidationResult(valid=False, error="Image could not be decoded (corrupted or unsupported)")

    width, height, fmt = info
    details = {
        "width": width,
        "height": height,
        "format": fmt,
        "contentType": content_type or None,
        "sizeBytes": len(data),
    }
    problem = _check_dimensions(width, height)
    if problem:
        return ImageValidationResult(valid=False, error=problem, details=details)

    return ImageValidationResult(valid=True, details=details, content=data)


async def get_image_buffer(
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bytes:
    """
    Download image bytes.

    Raises:
        UpstreamError: on network failure or a non-2xx answer
    """
    try:
        async with httpx.AsyncClient(timeout=FETCH_TIMEOUT, transport=transport, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise UpstreamError(f"Failed to fetch image: {e}") from e
    return response.content


def calculate_image_hash(data: bytes) -> str:
    """Stable sha256 hex digest of image bytes"""
    return hashlib.sha256(data).hexdigest()
