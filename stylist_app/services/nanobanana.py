"""
Generative image editor client.

Editors are tried in order:
1. NanoBanana HTTP endpoint (settings.nanobanana_url)
2. Gemini REST proxy (settings.gemini_rest_url)
3. Gemini image model through google-genai (settings.gemini_api_key)

Transient failures (429/503, timeouts) are retried with exponential
backoff before moving on to the next editor.
"""

import asyncio
import base64
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import httpx
from fastapi.concurrency import run_in_threadpool
from google import genai

from stylist_app.config import settings
from stylist_app.errors import AITimeoutError, ServiceUnavailableError, UpstreamError
from stylist_app.observability.logger import append_log, redact_url
from stylist_app.schemas.intent import EditIntent
from stylist_app.services.image_validation import get_image_buffer
from stylist_app.services.retry import is_retryable, retry_async
from stylist_app.storage.registry import now_ms
from stylist_app.storage.strategies import ImageStorageStrategy

UNAVAILABLE_MESSAGE = "AI image service unavailable. Please try again later."

CHANGE_LABELS = {
    "hair_length": "hair length",
    "hair_style": "haircut style",
    "hair_color": "hair color",
    "beard_style": "beard style",
    "clothing_item": "garment",
    "clothing_color": "garment color",
    "clothing_fit": "garment fit",
}


@dataclass
class EditOutput:
    edited_url: str
    note: Optional[str] = None
    public_id: Optional[str] = None


def build_edit_prompt(intent: EditIntent) -> str:
    """Render an EditIntent as an instruction for the image editor"""
    lines = ["Edit this photo of a person."]
    if intent.change:
        requested = "; ".join(f"{CHANGE_LABELS.get(c.type, c.type)}: {c.value}" for c in intent.change)
        lines.append(f"Apply these changes: {requested}.")
    if intent.instruction:
        lines.append(f'User request ({intent.locale}): "{intent.instruction.strip()}"')
    if intent.preserve_identity:
        lines.append(
            "Keep the same person: face, skin tone, expression, body shape and background must not change."
        )
    lines.append(f"Return a single photorealistic image, about {intent.output_size}px on the long side.")
    return "\n".join(lines)


def extract_image_bytes(response: Any) -> Optional[bytes]:
    """First inline image found in a google-genai response"""
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            data = getattr(inline, "data", None) if inline is not None else None
            if not data:
                continue
            if isinstance(data, (bytes, bytearray)):
                return bytes(data)
            return base64.b64decode(data)
    return None


class ImageEditorClient:
    """
    Edit images with the first editor that succeeds.

    Args:
        storage: Where base64 / inline results are uploaded to obtain a URL
        client: google-genai client; built from settings.gemini_api_key when omitted
        transport: httpx transport for editor endpoints and image downloads
        sleep: Awaitable sleep used between retries (tests pass a no-op)
    """

    def __init__(
        self,
        storage: ImageStorageStrategy,
        client: Any = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.storage = storage
        self._client = client
        self.transport = transport
        self.sleep = sleep

    @property
    def client(self) -> Any:
        if self._client is None and settings.gemini_api_key:
            self._client = genai.Client(api_key=settings.gemini_api_key)
        return self._client

    def _editors(self) -> List[Tuple[str, Callable[[str, EditIntent, str], Awaitable[EditOutput]]]]:
        editors = []
        if settings.nanobanana_url:
            editors.append(("nanobanana", self._edit_with_nanobanana))
        if settings.gemini_rest_url:
            editors.append(("gemini_rest", self._edit_with_gemini_rest))
        if self.client is not None:
            editors.append(("gemini_sdk", self._edit_with_gemini_sdk))
        return editors

    async def edit_with_nanobanana(self, image_url: str, intent: EditIntent) -> EditOutput:
        """
        Produce an edited version of image_url.

        Raises:
            ServiceUnavailableError: no editor configured, or the last editor was unavailable
            UpstreamError: every editor failed for another reason
        """
        editors = self._editors()
        if not editors:
            await append_log("nanobanana.no_editor")
            raise ServiceUnavailableError(UNAVAILABLE_MESSAGE)

        prompt = build_edit_prompt(intent)
        last_error: Optional[Exception] = None

        for name, editor in editors:
            await append_log("nanobanana.request", editor=name, imageUrl=redact_url(image_url))
            try:
                output = await retry_async(
                    lambda: editor(image_url, intent, prompt),
                    max_retries=settings.ai_max_retries,
                    initial_delay=settings.ai_retry_initial_delay,
                    operation=f"edit.{name}",
                    sleep=self.sleep,
                )
            except (httpx.HTTPError, ValueError, KeyError, AITimeoutError, UpstreamError, ServiceUnavailableError) as e:
                last_error = e
                await append_log("nanobanana.editor_failed", editor=name, error=str(e))
                continue

            await append_log("nanobanana.done", editor=name, editedUrl=redact_url(output.edited_url))
            return output

        if last_error is None or is_retryable(last_error):
            raise ServiceUnavailableError(UNAVAILABLE_MESSAGE)
        raise UpstreamError(f"AI image edit failed: {last_error}")

    async def _from_payload(self, data: Any, editor: str) -> EditOutput:
        """Turn an editor JSON answer into an EditOutput, uploading base64 images"""
        if not isinstance(data, dict):
            raise ValueError(f"{editor} returned an unexpected payload")

        note = data.get("note")
        url = data.get("editedUrl") or data.get("url")
        if url:
            return EditOutput(edited_url=url, note=note, public_id=data.get("publicId"))

        encoded = data.get("image_base64") or data.get("imageBase64")
        if encoded:
            result = await self.storage.upload(base64.b64decode(encoded), f"edited_{editor}_{now_ms()}.png")
            return EditOutput(edited_url=result.url, note=note, public_id=result.public_id)

        raise ValueError(f"{editor} response has no image")

    async def _post_json(self, url: str, payload: dict, headers: Optional[dict] = None) -> Any:
        try:
            async with httpx.AsyncClient(timeout=settings.ai_generation_timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            raise AITimeoutError(f"Image editor timeout after {settings.ai_generation_timeout:g}s") from e

    async def _edit_with_nanobanana(self, image_url: str, intent: EditIntent, prompt: str) -> EditOutput:
        headers = {}
        if settings.nanobanana_api_key:
            headers["Authorization"] = f"Bearer {settings.nanobanana_api_key}"
        payload = {
            "imageUrl": image_url,
            "prompt": prompt,
            "intent": intent.model_dump(by_alias=True),
        }
        data = await self._post_json(settings.nanobanana_url, payload, headers)
        return await self._from_payload(data, "nanobanana")

    async def _edit_with_gemini_rest(self, image_url: str, intent: EditIntent, prompt: str) -> EditOutput:
        payload = {
            "imageUrl": image_url,
            "prompt": prompt,
            "intent": intent.model_dump(by_alias=True),
        }
        data = await self._post_json(settings.gemini_rest_url, payload)
        return await self._from_payload(data, "gemini_rest")

    async def _edit_with_gemini_sdk(self, image_url: str, intent: EditIntent, prompt: str) -> EditOutput:
        data = await get_image_buffer(image_url, transport=self.transport)
        contents = {
            "parts": [
                {"text": prompt},
                {"inline_data": {"mime_type": "image/jpeg", "data": base64.b64encode(data).decode("utf-8")}},
            ]
        }
        try:
            response = await asyncio.wait_for(
                run_in_threadpool(
                    self.client.models.generate_content,
                    model=settings.gemini_image_model,
                    contents=contents,
                ),
                timeout=settings.ai_generation_timeout,
            )
        except asyncio.TimeoutError as e:
            raise AITimeoutError(f"Gemini image timeout after {settings.ai_generation_timeout:g}s") from e
        except Exception as e:
            # SDK errors carry the HTTP status in the message
            if is_retryable(e):
                raise ServiceUnavailableError(str(e)) from e
            raise UpstreamError(f"Gemini image edit failed: {e}") from e

        image = extract_image_bytes(response)
        if not image:
            raise UpstreamError("Gemini returned no image")

        result = await self.storage.upload(image, f"edited_gemini_{now_ms()}.png")
        return EditOutput(edited_url=result.url, note=getattr(response, "text", None), public_id=result.public_id)
