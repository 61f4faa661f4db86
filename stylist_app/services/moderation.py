"""
Pre-edit moderation backed by Google Cloud Vision.

Blocks explicit content, photos without exactly one face and photos
that look like they show a minor. When Vision is not configured or
fails, only checks that the image is reachable.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import base64

import httpx

from stylist_app.config import settings
from stylist_app.observability.logger import append_log, redact_url

VISION_ANNOTATE_URL = "https://vision.googleapis.com/v1/images:annotate"
VISION_TIMEOUT = 20.0  # seconds

BLOCKING_LIKELIHOODS = ("LIKELY", "VERY_LIKELY")
MINOR_LABELS = ("child", "kid", "baby", "toddler", "infant", "minor", "teen")
MINOR_LABEL_THRESHOLD = 0.7


@dataclass
class ModerationResult:
    ok: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ok": self.ok}
        if self.reason:
            data["reason"] = self.reason
        return data


def evaluate_annotations(annotation: Dict[str, Any]) -> Optional[str]:
    """
    Return the block reason for one Vision response, or None when it passes.

    Reasons: nsfw, no_face, multi_face, minor.
    """
    safe = annotation.get("safeSearchAnnotation") or {}
    if safe.get("adult") in BLOCKING_LIKELIHOODS or safe.get("violence") in BLOCKING_LIKELIHOODS:
        return "nsfw"
    if safe.get("racy") == "VERY_LIKELY":
        return "nsfw"

    faces = annotation.get("faceAnnotations") or []
    if len(faces) == 0:
        return "no_face"
    if len(faces) > 1:
        return "multi_face"

    for label in annotation.get("labelAnnotations") or []:
        description = str(label.get("description", "")).lower()
        score = label.get("score") or 0
        if score >= MINOR_LABEL_THRESHOLD and any(word in description for word in MINOR_LABELS):
            return "minor"

    return None


async def _fallback_fetch(url: str, transport: Optional[httpx.AsyncBaseTransport]) -> ModerationResult:
    """Reachability check used when Vision cannot moderate"""
    try:
        async with httpx.AsyncClient(timeout=VISION_TIMEOUT, transport=transport, follow_redirects=True) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        await append_log("moderation.fallback_failed", imageUrl=redact_url(url), error=str(e))
        return ModerationResult(ok=False, reason="unreachable")

    if not response.is_success:
        await append_log("moderation.fallback_failed", imageUrl=redact_url(url), status=response.status_code)
        return ModerationResult(ok=False, reason="unreachable")

    await append_log("moderation.fallback_passed", imageUrl=redact_url(url))
    return ModerationResult(ok=True)


async def moderate_image(
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ModerationResult:
    """
    Moderate an image URL.

    Args:
        url: Public image URL
        transport: Optional httpx transport (tests inject a MockTransport)

    Returns:
        ModerationResult with ok=False and a reason when blocked
    """
    api_key = settings.vision_api_key
    if not api_key:
        await append_log("moderation.no_access_token", imageUrl=redact_url(url))
        return await _fallback_fetch(url, transport)

    try:
        async with httpx.AsyncClient(timeout=VISION_TIMEOUT, transport=transport, follow_redirects=True) as client:
            image = await client.get(url)
            image.raise_for_status()

            body = {
                "requests": [
                    {
                        "image": {"content": base64.b64encode(image.content).decode("ascii")},
                        "features": [
                            {"type": "SAFE_SEARCH_DETECTION"},
                            {"type": "FACE_DETECTION", "maxResults": 5},
                            {"type": "LABEL_DETECTION", "maxResults": 20},
                        ],
                    }
                ]
            }
            response = await client.post(VISION_ANNOTATE_URL, params={"key": api_key}, json=body)
            response.raise_for_status()
            payload = response.json()

        annotation = (payload.get("responses") or [{}])[0]
        if "error" in annotation:
            raise ValueError(annotation["error"].get("message", "Vision returned an error"))
    except (httpx.HTTPError, ValueError) as e:
        await append_log("moderation.error", imageUrl=redact_url(url), error=str(e))
        return await _fallback_fetch(url, transport)

    reason = evaluate_annotations(annotation)
    if reason:
        await append_log("moderation.blocked", imageUrl=redact_url(url), reason=reason)
        return ModerationResult(ok=False, reason=reason)

    await append_log("moderation.passed", imageUrl=redact_url(url))
    return ModerationResult(ok=True)
