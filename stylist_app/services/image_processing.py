"""
Image metadata and resizing for the slider view.
"""

from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional
import hashlib

from PIL import Image

from stylist_app.errors import ValidationError
from stylist_app.services.image_validation import read_image_info

MAX_UPSCALE = 1.5  # never enlarge more than 1.5x
JPEG_QUALITY = 90


def get_image_metadata(data: bytes) -> Dict[str, Any]:
    info = read_image_info(data)
    if info is None:
        raise ValidationError("Image could not be decoded")
    width, height, fmt = info
    return {"width": width, "height": height, "format": fmt}


def resize_cache_key(source: str, target_width: int, target_height: int) -> str:
    return hashlib.sha256(f"{source}|{target_width}x{target_height}".encode("utf-8")).hexdigest()


def _cache_path(cache_dir: str, source: str, target_width: int, target_height: int) -> Path:
    return Path(cache_dir) / f"{resize_cache_key(source, target_width, target_height)}.jpg"


def read_resize_cache(cache_dir: str, source: str, target_width: int, target_height: int) -> Optional[bytes]:
    """Previously resized bytes for source at WxH, if cached on disk"""
    path = _cache_path(cache_dir, source, target_width, target_height)
    if path.exists() and path.stat().st_size > 0:
        return path.read_bytes()
    return None


def resize_image(
    data: bytes,
    target_width: int,
    target_height: int,
    cache_dir: Optional[str] = None,
    source: Optional[str] = None,
) -> bytes:
    """
    Scale an image so it covers target_width x target_height, capped at
    MAX_UPSCALE, and encode it as JPEG.

    When cache_dir and source are given the result is cached on disk
    under sha256(source|WxH).jpg and reused on later calls.
    """
    cache_path = None
    if cache_dir and source:
        cached = read_resize_cache(cache_dir, source, target_width, target_height)
        if cached is not None:
            return cached
        cache_path = _cache_path(cache_dir, source, target_width, target_height)

    try:
        img = Image.open(BytesIO(data))
        img.load()
    except OSError as e:
        raise ValidationError(f"Image could not be decoded: {e}") from e

    orig_w, orig_h = img.size
    scale = max(target_width / orig_w, target_height / orig_h)
    scale = min(scale, MAX_UPSCALE)
    final_w = max(1, round(orig_w * scale))
    final_h = max(1, round(orig_h * scale))

    resized = img.convert("RGB").resize((final_w, final_h), Image.LANCZOS)
    out = BytesIO()
    resized.save(out, format="JPEG", quality=JPEG_QUALITY)
    result = out.getvalue()

    if cache_path is not None:
        try:
            cache_path.parent.mkdir(parents=True, exist_ok=True)
            cache_path.write_bytes(result)
        except OSError as e:
            print(f"⚠️  Resize cache write failed: {e}")

    return result
