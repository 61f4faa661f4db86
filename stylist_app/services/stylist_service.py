from typing import Any, Dict, Optional
from urllib.parse import urljoin
import time
import uuid

import httpx
from fastapi.concurrency import run_in_threadpool

from stylist_app.cache.service import CacheService, analysis_cache_key, generation_cache_key
from stylist_app.config import settings
from stylist_app.credits.service import CreditService
from stylist_app.errors import (
    AITimeoutError,
    AppError,
    ModerationError,
    ServiceUnavailableError,
    UpstreamError,
    ValidationError,
)
from stylist_app.observability.logger import append_log, redact_url
from stylist_app.observability.metrics import track_event
from stylist_app.ratelimit import enforce_rate_limit
from stylist_app.ratelimit.strategies import RateLimiterStrategy
from stylist_app.schemas.api import IterateRequest
from stylist_app.schemas.intent import EditIntent
from stylist_app.services.gemini import VisionAnalyzer
from stylist_app.services.image_processing import get_image_metadata, read_resize_cache, resize_image
from stylist_app.services.image_validation import (
    ImageValidationResult,
    calculate_image_hash,
    get_image_buffer,
    validate_image_url,
    validate_uploaded_file,
)
from stylist_app.services.intent import map_user_text_to_intent
from stylist_app.services.moderation import ModerationResult, moderate_image
from stylist_app.services.nanobanana import EditOutput, ImageEditorClient
from stylist_app.services.watermark import apply_watermark
from stylist_app.storage.registry import GeneratedImageRegistry, RegistryRecord, now_ms
from stylist_app.storage.strategies import ImageStorageStrategy, UploadResult, sanitize_filename


def resolve_url(url: str) -> str:
    """Make app-relative URLs (local storage) absolute so they can be fetched"""
    if url.startswith("/"):
        return urljoin(settings.base_url.rstrip("/") + "/", url.lstrip("/"))
    return url


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class StylistService:
    """
    Orchestrates the upload -> analyze -> iterate/edit flow.

    Every collaborator is injected (see stylist_app.dependencies), so
    tests swap in in-memory strategies and fake vendor clients.
    """

    def __init__(
        self,
        storage: ImageStorageStrategy,
        cache: CacheService,
        limiter: RateLimiterStrategy,
        credits: CreditService,
        registry: GeneratedImageRegistry,
        analyzer: VisionAnalyzer,
        editor: ImageEditorClient,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            storage: Image store for uploads and edited results
            cache: Analysis / generation result cache
            limiter: Per-session rate limiter
            credits: Credit ledger
            registry: Generated image registry
            analyzer: Vision analysis client
            editor: Generative image editor client
            transport: httpx transport for image downloads (tests)
        """
        self.storage = storage
        self.cache = cache
        self.limiter = limiter
        self.credits = credits
        self.registry = registry
        self.analyzer = analyzer
        self.editor = editor
        self.transport = transport

    async def _validated(self, image_url: str) -> ImageValidationResult:
        validation = await validate_image_url(resolve_url(image_url), transport=self.transport)
        if not validation.valid:
            raise ValidationError(validation.error or "Invalid image", details={"details": validation.details})
        return validation

    async def upload(
        self,
        data: bytes,
        filename: Optional[str],
        content_type: Optional[str],
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Validate and store a user photo; opens a session when none is given"""
        validation = validate_uploaded_file(data, content_type)
        if not validation.valid:
            raise ValidationError(validation.error or "Invalid image", details={"details": validation.details})

        session_id = session_id or uuid.uuid4().hex
        name = sanitize_filename(filename or "photo.jpg")
        uploaded = await self.storage.upload(data, f"upload_{now_ms()}_{name}")

        await append_log(
            "api.upload.stored",
            sessionId=session_id,
            publicId=uploaded.public_id,
            imageUrl=redact_url(uploaded.url),
            sizeBytes=len(data),
        )
        return {
            "imageUrl": uploaded.url,
            "publicId": uploaded.public_id,
            "canonicalUrl": self.storage.canonical_url(uploaded.public_id),
            "sessionId": session_id,
            "width": uploaded.width or validation.details.get("width"),
            "height": uploaded.height or validation.details.get("height"),
        }

    async def analyze(self, image_url: Optional[str], locale: Optional[str], session_id: str) -> Dict[str, Any]:
        """
        Analyze a photo, serving repeated requests for the same image from cache.

        Credits are only checked and charged on cache misses.
        """
        if not image_url:
            raise ValidationError("imageUrl is required", code="MISSING_IMAGE_URL")

        start = time.monotonic()
        locale = locale if locale in ("es", "en") else settings.default_locale
        await append_log("api.analyze.received", imageUrl=redact_url(image_url), locale=locale, sessionId=session_id)

        await enforce_rate_limit(self.limiter, session_id)
        validation = await self._validated(image_url)

        image_hash = calculate_image_hash(validation.content or b"")
        cache_key = analysis_cache_key(image_hash, locale)
        cached = await self.cache.get_cached(cache_key)
        if cached:
            await append_log(
                "api.analyze.cache_hit",
                imageHash=image_hash[:16],
                durationMs=_elapsed_ms(start),
            )
            return {"analysis": cached, "workingUrl": image_url, "cached": True}

        await self.credits.enforce_credits(session_id, "analyze")

        analysis = await self.analyzer.analyze_image(resolve_url(image_url), locale)
        result = analysis.model_dump(by_alias=True)

        cost = self.credits.get_action_cost("analyze")
        if cost > 0:
            await self.credits.consume_credits(session_id, cost, "analyze")

        await self.cache.set_cached(cache_key, result)
        await append_log(
            "api.analyze.result",
            imageUrl=redact_url(image_url),
            success=True,
            durationMs=_elapsed_ms(start),
        )
        return {"analysis": result, "workingUrl": image_url, "cached": False}

    async def _store_edited(self, output: EditOutput, filename: str, watermark: bool = True) -> UploadResult:
        """Download the editor result, watermark it and upload it under filename"""
        try:
            data = await get_image_buffer(resolve_url(output.edited_url), transport=self.transport)
            if watermark and settings.watermark_enabled:
                data = await run_in_threadpool(apply_watermark, data, settings.watermark_text)
            return await self.storage.upload(data, filename)
        except Exception as e:
            await append_log("api.edited.fetch_failed", error=str(e), editedUrl=redact_url(output.edited_url))
            raise UpstreamError(
                "Failed to fetch edited image",
                code="failed_to_fetch_edited_image",
                details={"detail": str(e)},
            ) from e

    async def _delete_previous(self, prev_public_id: str) -> None:
        """Best-effort removal of the image the new edit replaces"""
        candidates = [prev_public_id]
        sanitized = "_".join(prev_public_id.split())
        if sanitized != prev_public_id:
            candidates.append(sanitized)
        for public_id in candidates:
            try:
                await self.storage.delete(public_id)
            except Exception as e:
                await append_log("api.iterate.delete_prev_failed", publicId=public_id, error=str(e))

    async def iterate(self, payload: IterateRequest, session_id: str) -> Dict[str, Any]:
        """
        Run one edit iteration on the original photo.

        The instruction is analysis.suggestedText when present, otherwise
        the user's text.
        """
        start = time.monotonic()
        suggested = (payload.analysis or {}).get("suggestedText")
        effective_text = str(suggested) if suggested else payload.user_text
        image_url = payload.original_image_url

        if not image_url or not effective_text:
            raise ValidationError(
                "originalImageUrl and userText (or analysis.suggestedText) are required",
                code="MISSING_PARAMETERS",
            )

        await append_log(
            "api.iterate.received",
            sessionId=session_id,
            originalImageUrl=redact_url(image_url),
            instruction=effective_text[:100] + "...",
        )

        await enforce_rate_limit(self.limiter, session_id)
        validation = await self._validated(image_url)

        if settings.moderation_enabled:
            moderation = await moderate_image(resolve_url(image_url), transport=self.transport)
            if not moderation.ok:
                raise ModerationError("Image blocked by moderation", moderation.reason)

        image_hash = calculate_image_hash(validation.content or b"")
        cache_key = generation_cache_key(image_hash, effective_text)
        cached = await self.cache.get_cached(cache_key)
        if cached:
            await append_log(
                "api.iterate.cache_hit",
                sessionId=session_id,
                imageHash=image_hash[:16],
                durationMs=_elapsed_ms(start),
            )
            return {**cached, "cached": True}

        await self.credits.enforce_credits(session_id, "generate")

        intent = map_user_text_to_intent(effective_text, settings.default_locale)
        await append_log(
            "api.iterate.intent",
            sessionId=session_id,
            intent=intent.model_dump(by_alias=True),
        )

        # ServiceUnavailableError (503) propagates to the client as is
        output = await self.editor.edit_with_nanobanana(resolve_url(image_url), intent)
        await append_log(
            "api.iterate.nanobanana_result",
            sessionId=session_id,
            editedUrl=redact_url(output.edited_url),
        )

        uploaded = await self._store_edited(output, f"edited_iter_{now_ms()}.jpg", intent.watermark)

        cost = self.credits.get_action_cost("generate")
        if cost > 0:
            await self.credits.consume_credits(session_id, cost, "generate")

        result = {
            "editedUrl": uploaded.url,
            "publicId": uploaded.public_id,
            "note": output.note,
            "instruction": intent.instruction,
        }
        await self.cache.set_cached(cache_key, result, ttl=settings.generation_cache_ttl)

        await self.registry.append(
            RegistryRecord(public_id=uploaded.public_id, url=uploaded.url, session_id=session_id)
        )

        if payload.prev_public_id:
            await self._delete_previous(payload.prev_public_id)

        await append_log("api.iterate.success", sessionId=session_id, durationMs=_elapsed_ms(start))
        return {**result, "cached": False}

    async def edit(self, image_url: str, intent: EditIntent, session_id: str) -> Dict[str, Any]:
        """
        Apply a structured intent directly.

        Credits are debited up front; the debit is not refunded when the
        edit fails afterwards.
        """
        consumed = await self.credits.consume_credits(
            session_id, self.credits.get_action_cost("edit"), "edit"
        )
        if not consumed.ok:
            raise AppError(
                "Insufficient credits",
                code="insufficient_credits",
                status_code=402,
                details={"remaining": consumed.remaining},
            )

        if settings.moderation_enabled:
            moderation = await moderate_image(resolve_url(image_url), transport=self.transport)
            if not moderation.ok:
                raise AppError(
                    "Image blocked by moderation",
                    code="moderation_blocked",
                    status_code=403,
                    details={"reason": moderation.reason},
                )

        try:
            output = await self.editor.edit_with_nanobanana(resolve_url(image_url), intent)
        except (ServiceUnavailableError, UpstreamError, AITimeoutError) as e:
            await append_log("api.edit.failed", sessionId=session_id, error=str(e))
            raise AppError("Image edit failed", code="edit_failed", status_code=500, details={"note": str(e)}) from e

        uploaded = await self._store_edited(output, f"edited_{now_ms()}.jpg", intent.watermark)

        await self.registry.append(
            RegistryRecord(public_id=uploaded.public_id, url=uploaded.url, session_id=session_id)
        )
        await track_event(
            "edit.done",
            {"sessionId": session_id, "source": redact_url(image_url), "output": redact_url(uploaded.url)},
        )
        return {
            "editedUrl": uploaded.url,
            "note": output.note,
            "publicId": uploaded.public_id,
            "credits": consumed.remaining,
        }

    async def moderate(self, image_url: str) -> ModerationResult:
        return await moderate_image(resolve_url(image_url), transport=self.transport)

    async def image_metadata(self, image_url: str) -> Dict[str, Any]:
        """Width/height of a remote image; UpstreamError (502) when it can't be fetched"""
        data = await get_image_buffer(resolve_url(image_url), transport=self.transport)
        return get_image_metadata(data)

    async def resize(self, image_url: str, target_width: int, target_height: int) -> bytes:
        """JPEG of image_url scaled for the before/after slider, cached on disk"""
        cached = read_resize_cache(settings.resize_cache_dir, image_url, target_width, target_height)
        if cached is not None:
            return cached
        data = await get_image_buffer(resolve_url(image_url), transport=self.transport)
        return await run_in_threadpool(
            resize_image,
            data,
            target_width,
            target_height,
            settings.resize_cache_dir,
            image_url,
        )

    async def cleanup(self, public_id: Optional[str]) -> bool:
        """Delete a stored image (and its registry entry) the UI no longer shows"""
        if not public_id:
            return True
        ok = await self.storage.delete(public_id)
        self.registry.remove(public_id)
        return ok
