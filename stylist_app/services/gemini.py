"""
Photo analysis with Gemini, falling back to Google Cloud Vision.

Two analysis modes are supported:
- face: hair, beard and pose of a portrait (FaceAnalysis)
- body: body type, proportions and clothing of a full-body photo (BodyAnalysis)

Gemini is asked for a JSON-only answer. When Gemini is not configured
or fails, a coarse analysis is derived from Vision face detection,
safe search and dominant colours, optionally enriched by a Gemini REST
proxy, and finally completed with a localized default advisory.
"""

import asyncio
import base64
import json
from typing import Any, Dict, List, Optional

import httpx
import pydantic
from fastapi.concurrency import run_in_threadpool
from google import genai

from stylist_app.config import settings
from stylist_app.errors import AITimeoutError
from stylist_app.observability.logger import append_log, redact_url
from stylist_app.schemas.analysis import (
    Analysis,
    BodyAnalysis,
    ClothingInfo,
    FaceAnalysis,
    Proportions,
    RecommendedItem,
)
from stylist_app.services.image_validation import get_image_buffer, read_image_info

VISION_ANNOTATE_URL = "https://vision.googleapis.com/v1/images:annotate"
HTTP_TIMEOUT = 30.0  # seconds

FACE_PROMPTS = {
    "es": """Analiza esta imagen de una persona y responde SOLO con JSON válido. Evalúa:
- faceOk: true si hay una cara frontal clara de una sola persona adulta
- pose: "frontal" o "ladeado"
- hair: {length: "corto"|"medio"|"largo", color: descripción, density: "baja"|"media"|"alta"}
- beard: {present: boolean, style: descripción si existe, density: "baja"|"media"|"alta"}
- lighting: "buena"|"regular"|"pobre"
- suggestedActionText: recomendación corta en español
- haircutRecommendation: párrafo detallado sobre corte de cabello
- beardRecommendation: párrafo detallado sobre barba

IMPORTANTE: Responde SOLO con JSON, sin texto adicional.""",
    "en": """Analyze this image of a person and respond ONLY with valid JSON. Evaluate:
- faceOk: true if there's a clear frontal face of one adult person
- pose: "frontal" or "side"
- hair: {length: "short"|"medium"|"long", color: description, density: "low"|"medium"|"high"}
- beard: {present: boolean, style: description if exists, density: "low"|"medium"|"high"}
- lighting: "good"|"fair"|"poor"
- suggestedActionText: short recommendation in English
- haircutRecommendation: detailed paragraph about haircut
- beardRecommendation: detailed paragraph about beard

IMPORTANT: Respond ONLY with JSON, no additional text.""",
}

BODY_PROMPTS = {
    "es": """Analiza esta foto de cuerpo entero de una persona y responde SOLO con JSON válido. Evalúa:
- bodyOk: true si se ve el cuerpo completo de una sola persona adulta
- pose: "frontal"|"lateral"|"parcial"|"incompleto"
- bodyType: tipo de cuerpo (por ejemplo rectángulo, triángulo invertido, reloj de arena)
- proportions: {shoulders, waist, hips} descripciones cortas
- heightHint: estimación de altura o distancia de cámara
- clothing: {top, bottom, outer, fit, colors: [colores]}
- skinTone: tono y subtono de piel
- lighting: "buena"|"regular"|"pobre"
- suggestedActionText: recomendación corta de vestuario en español
- outfitRecommendation: párrafo detallado sobre prendas y cortes
- colorRecommendation: párrafo detallado sobre la paleta de colores
- recommended: lista de {category: "top"|"bottom"|"outer"|"shoes"|"accessory", recommendation, colors, reason}

IMPORTANTE: Responde SOLO con JSON, sin texto adicional.""",
    "en": """Analyze this full-body photo of a person and respond ONLY with valid JSON. Evaluate:
- bodyOk: true if the full body of one adult person is visible
- pose: "frontal"|"side"|"partial"|"incomplete"
- bodyType: body type (e.g. rectangle, inverted triangle, hourglass)
- proportions: {shoulders, waist, hips} short descriptions
- heightHint: height or camera distance estimate
- clothing: {top, bottom, outer, fit, colors: [colors]}
- skinTone: skin tone and undertone
- lighting: "good"|"fair"|"poor"
- suggestedActionText: short outfit recommendation in English
- outfitRecommendation: detailed paragraph about garments and cuts
- colorRecommendation: detailed paragraph about the color palette
- recommended: list of {category: "top"|"bottom"|"outer"|"shoes"|"accessory", recommendation, colors, reason}

IMPORTANT: Respond ONLY with JSON, no additional text.""",
}

REST_ADVISORY_PROMPT = (
    "Evalúa la imagen y responde JSON estructurado. Verifica: frontalidad, una sola persona, "
    "sin menores ni desnudos. Si OK, describe forma de cara, corte recomendado, estilo y "
    "densidad de barba, accesorios y una recomendación profesional en {locale}. "
    "Incluye campos: advisoryText, cut, beard, accessories, confidence."
)

MESSAGES = {
    "es": {
        "blocked": "Imagen bloqueada por contenido no apropiado.",
        "no_face": "No se detectó una cara frontal clara.",
        "multi": "Se detectaron varias personas en la imagen.",
        "face_initial": "Prueba una barba stubble para más definición.",
        "face_vision": (
            "Análisis automático: la imagen parece adecuada. Recomendamos un corte medio con "
            "laterales más cortos y barba tipo stubble para enfatizar la mandíbula. "
            "Evita accesorios voluminosos."
        ),
        "face_default": (
            "¡Perfecto! He analizado tu foto.\n\n"
            "RECOMENDACIONES:\n"
            "Para el cabello, te recomiendo un corte medio con laterales degradados (fade) para un look moderno.\n"
            "Para la barba, una barba tipo stubble (de 2-3mm) definiría mejor tu mandíbula."
        ),
        "face_default_action": "Aplicar corte con fade y barba stubble.",
        "body_initial": "Prueba una chaqueta estructurada en tonos neutros.",
        "body_default": (
            "¡Perfecto! He analizado tu foto.\n\n"
            "RECOMENDACIONES:\n"
            "Una chaqueta estructurada en una paleta neutra equilibra los hombros y da un aspecto cuidado.\n"
            "Un pantalón recto alarga la silueta y combina con casi cualquier calzado."
        ),
        "body_default_action": "Probar una chaqueta estructurada en tonos neutros con pantalón recto.",
    },
    "en": {
        "blocked": "Blocked for inappropriate content.",
        "no_face": "No clear face detected.",
        "multi": "Multiple people detected.",
        "face_initial": "Try a stubble beard for more definition.",
        "face_vision": (
            "Automatic analysis: image looks OK. We recommend a medium cut with shorter sides "
            "and a stubble beard to emphasize the jawline. Avoid bulky accessories."
        ),
        "face_default": (
            "Perfect! I've analyzed your photo.\n\n"
            "RECOMMENDATIONS:\n"
            "For your hair, I recommend a medium cut with faded sides for a modern look.\n"
            "For your beard, a stubble beard (2-3mm) would better define your jawline."
        ),
        "face_default_action": "Apply fade cut with stubble beard.",
        "body_initial": "Try a structured jacket in neutral tones.",
        "body_default": (
            "Perfect! I've analyzed your photo.\n\n"
            "RECOMMENDATIONS:\n"
            "A structured jacket in a neutral palette balances the shoulders and looks polished.\n"
            "Straight trousers lengthen the silhouette and pair with almost any shoes."
        ),
        "body_default_action": "Try a structured jacket in neutral tones with straight trousers.",
    },
}

_LENGTHS = {"corto": "short", "short": "short", "medio": "medium", "medium": "medium"}
_DENSITIES = {"baja": "low", "low": "low", "media": "medium", "medium": "medium"}
_LIGHTING = {
    "buena": "good",
    "good": "good",
    "regular": "fair",
    "fair": "fair",
    "pobre": "poor",
    "poor": "poor",
}
_BODY_POSES = {
    "frontal": "frontal",
    "lateral": "side",
    "side": "side",
    "parcial": "partial",
    "partial": "partial",
    "incompleto": "incomplete",
    "incomplete": "incomplete",
}


def normalize_length(value: Optional[str]) -> str:
    return _LENGTHS.get(str(value or "").lower(), "long")


def normalize_density(value: Optional[str]) -> str:
    return _DENSITIES.get(str(value or "").lower(), "high")


def normalize_lighting(value: Optional[str]) -> str:
    return _LIGHTING.get(str(value or "").lower(), "good")


def hair_color_from_rgb(red: float, green: float, blue: float) -> str:
    """Rough hair colour guess from the dominant image colour"""
    if red > 150 and green < 110 and blue < 110:
        return "rojo/rojizo"
    if red > 140 and green > 120 and blue < 100:
        return "rubio"
    if red < 80 and green < 80 and blue < 80:
        return "negro/oscuro"
    return "castaño"


def guess_mime_type(data: bytes) -> str:
    info = read_image_info(data)
    if info and info[2]:
        return f"image/{info[2].lower()}"
    return "image/jpeg"


def face_analysis_from_gemini(parsed: Dict[str, Any]) -> FaceAnalysis:
    """Map Gemini's raw face JSON (Spanish or English enums) to FaceAnalysis"""
    hair = parsed.get("hair") or {}
    beard = parsed.get("beard") or {}
    advisory = "\n\n".join(
        text for text in (parsed.get("haircutRecommendation"), parsed.get("beardRecommendation")) if text
    )
    return FaceAnalysis(
        face_ok=parsed.get("faceOk", True),
        pose=parsed.get("pose") or "frontal",
        hair={
            "length": normalize_length(hair.get("length")),
            "color": hair.get("color") or "castaño",
            "density": normalize_density(hair.get("density")),
        },
        beard={
            "present": bool(beard.get("present", False)),
            "style": beard.get("style"),
            "density": normalize_density(beard.get("density")),
        },
        accessories={},
        lighting=normalize_lighting(parsed.get("lighting")),
        suggested_text=parsed.get("suggestedActionText") or advisory,
        advisory_text=advisory,
    )


def parse_recommended(items: Any) -> List[RecommendedItem]:
    """Keep the well-formed recommendation items, dropping the rest"""
    recommended = []
    for item in items if isinstance(items, list) else []:
        if not (isinstance(item, dict) and item.get("category") and item.get("recommendation")):
            continue
        try:
            recommended.append(RecommendedItem.model_validate(item))
        except pydantic.ValidationError:
            continue
    return recommended


def body_analysis_from_gemini(parsed: Dict[str, Any]) -> BodyAnalysis:
    """Map Gemini's raw body JSON to BodyAnalysis"""
    advisory = "\n\n".join(
        text for text in (parsed.get("outfitRecommendation"), parsed.get("colorRecommendation")) if text
    )
    recommended = parse_recommended(parsed.get("recommended"))
    clothing = parsed.get("clothing")
    proportions = parsed.get("proportions")
    accessories = parsed.get("accessories")
    return BodyAnalysis(
        body_ok=parsed.get("bodyOk", True),
        pose=_BODY_POSES.get(str(parsed.get("pose") or "frontal").lower(), "frontal"),
        body_type=parsed.get("bodyType"),
        proportions=Proportions.model_validate(proportions) if isinstance(proportions, dict) else None,
        height_hint=parsed.get("heightHint"),
        clothing=ClothingInfo.model_validate(clothing) if isinstance(clothing, dict) else None,
        skin_tone=parsed.get("skinTone"),
        accessories={k: bool(v) for k, v in accessories.items()} if isinstance(accessories, dict) else {},
        lighting=normalize_lighting(parsed.get("lighting")),
        suggested_text=parsed.get("suggestedActionText") or advisory,
        advisory_text=advisory,
        recommended=recommended,
    )


class VisionAnalyzer:
    """
    Analyze photos with Gemini, Vision and an optional REST advisory proxy.

    Args:
        client: google-genai client; built from settings.gemini_api_key when omitted
        transport: httpx transport for Vision / REST / image downloads
    """

    def __init__(self, client: Any = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client = client
        self.transport = transport

    @property
    def client(self) -> Any:
        if self._client is None and settings.gemini_api_key:
            self._client = genai.Client(api_key=settings.gemini_api_key)
        return self._client

    async def analyze_image(
        self,
        image_url: str,
        locale: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> Analysis:
        """
        Analyze a photo.

        Args:
            image_url: Public image URL
            locale: "es" or "en" (defaults to settings.default_locale)
            mode: "face" or "body" (defaults to settings.analysis_mode)

        Returns:
            FaceAnalysis or BodyAnalysis; never raises for vendor failures
        """
        locale = locale if locale in ("es", "en") else settings.default_locale
        mode = mode if mode in ("face", "body") else settings.analysis_mode
        await append_log("gemini.analyze.start", imageUrl=redact_url(image_url), locale=locale, mode=mode)

        if self.client is not None:
            try:
                return await self._analyze_with_gemini(image_url, locale, mode)
            except Exception as e:
                # Any SDK / parsing failure falls through to the Vision path
                await append_log("gemini.analyze.error", error=str(e), errorType=type(e).__name__)

        vision_info = await self._call_vision(image_url)
        if mode == "body":
            analysis = self._body_from_vision(vision_info, locale)
        else:
            analysis = self._face_from_vision(vision_info, locale)

        if settings.gemini_rest_url:
            analysis = await self._merge_rest_advisory(analysis, image_url, locale, vision_info)

        return self._with_default_advisory(analysis, locale)

    async def _analyze_with_gemini(self, image_url: str, locale: str, mode: str) -> Analysis:
        data = await get_image_buffer(image_url, transport=self.transport)
        prompts = BODY_PROMPTS if mode == "body" else FACE_PROMPTS
        contents = {
            "parts": [
                {"text": prompts[locale]},
                {
                    "inline_data": {
                        "mime_type": guess_mime_type(data),
                        "data": base64.b64encode(data).decode("utf-8"),
                    }
                },
            ]
        }

        await append_log("gemini.analyze.calling_sdk", model=settings.gemini_model)
        try:
            response = await asyncio.wait_for(
                run_in_threadpool(
                    self.client.models.generate_content,
                    model=settings.gemini_model,
                    contents=contents,
                    config={"response_mime_type": "application/json"},
                ),
                timeout=settings.ai_analysis_timeout,
            )
        except asyncio.TimeoutError as e:
            raise AITimeoutError(f"Gemini analysis timeout after {settings.ai_analysis_timeout:g}s") from e

        text = response.text or ""
        await append_log("gemini.analyze.response", rawText=text[:500])
        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise ValueError("Gemini returned non-object JSON")

        if mode == "body":
            return body_analysis_from_gemini(parsed)
        return face_analysis_from_gemini(parsed)

    async def _call_vision(self, image_url: str) -> Optional[Dict[str, Any]]:
        api_key = settings.vision_api_key
        if not api_key:
            return None

        body = {
            "requests": [
                {
                    "image": {"source": {"imageUri": image_url}},
                    "features": [
                        {"type": "FACE_DETECTION", "maxResults": 5},
                        {"type": "SAFE_SEARCH_DETECTION"},
                        {"type": "IMAGE_PROPERTIES"},
                    ],
                }
            ]
        }
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=self.transport) as client:
                response = await client.post(VISION_ANNOTATE_URL, params={"key": api_key}, json=body)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            await append_log("vision.error", imageUrl=redact_url(image_url), error=str(e))
            return None

        await append_log("vision.response", imageUrl=redact_url(image_url))
        responses = payload.get("responses") or []
        return responses[0] if responses else None

    def _face_from_vision(self, vision: Optional[Dict[str, Any]], locale: str) -> FaceAnalysis:
        messages = MESSAGES[locale]
        analysis = FaceAnalysis(suggested_text=messages["face_initial"])
        if vision is None:
            return analysis

        safe = vision.get("safeSearchAnnotation") or {}
        if safe.get("adult") in ("POSSIBLE", "LIKELY", "VERY_LIKELY"):
            return analysis.model_copy(update={"face_ok": False, "advisory_text": messages["blocked"]})

        faces = vision.get("faceAnnotations") or []
        if not faces:
            return analysis.model_copy(update={"face_ok": False, "advisory_text": messages["no_face"]})
        if len(faces) > 1:
            return analysis.model_copy(update={"face_ok": False, "advisory_text": messages["multi"]})

        face = faces[0] or {}
        pan = face.get("panAngle") or face.get("yaw") or 0
        roll = face.get("rollAngle") or face.get("roll") or 0
        analysis.pose = "frontal" if abs(pan) < 15 and abs(roll) < 12 else "ladeado"

        colors = ((vision.get("imagePropertiesAnnotation") or {}).get("dominantColors") or {}).get("colors") or []
        if colors:
            color = colors[0].get("color") or {}
            analysis.hair.color = hair_color_from_rgb(
                color.get("red", 0), color.get("green", 0), color.get("blue", 0)
            )

        analysis.advisory_text = messages["face_vision"]
        return analysis

    def _body_from_vision(self, vision: Optional[Dict[str, Any]], locale: str) -> BodyAnalysis:
        messages = MESSAGES[locale]
        analysis = BodyAnalysis(suggested_text=messages["body_initial"])
        if vision is None:
            return analysis

        safe = vision.get("safeSearchAnnotation") or {}
        if safe.get("adult") in ("POSSIBLE", "LIKELY", "VERY_LIKELY"):
            return analysis.model_copy(update={"body_ok": False, "advisory_text": messages["blocked"]})

        faces = vision.get("faceAnnotations") or []
        if len(faces) > 1:
            return analysis.model_copy(update={"body_ok": False, "advisory_text": messages["multi"]})
        if not faces:
            # Full-body shots can hide the face; mark the framing as partial
            analysis.pose = "partial"
        return analysis

    async def _merge_rest_advisory(
        self,
        analysis: Analysis,
        image_url: str,
        locale: str,
        vision_info: Optional[Dict[str, Any]],
    ) -> Analysis:
        payload = {
            "imageUrl": image_url,
            "prompt": REST_ADVISORY_PROMPT.format(locale=locale),
            "visionSummary": vision_info,
        }
        try:
            await append_log("gemini.call", imageUrl=redact_url(image_url))
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=self.transport) as client:
                response = await client.post(settings.gemini_rest_url, json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            await append_log("gemini.call.error", error=str(e))
            return analysis

        await append_log("gemini.response", keys=sorted(data.keys()) if isinstance(data, dict) else None)
        if not isinstance(data, dict):
            return analysis

        updates: Dict[str, Any] = {}
        if data.get("advisoryText"):
            updates["advisory_text"] = data["advisoryText"]
        if isinstance(analysis, FaceAnalysis):
            cut = data.get("cut")
            if isinstance(cut, dict) and cut.get("length"):
                updates["hair"] = {**analysis.hair.model_dump(), "length": normalize_length(cut["length"])}
            beard = data.get("beard")
            if isinstance(beard, dict):
                updates["beard"] = {
                    "present": bool(beard.get("present", True)),
                    "style": beard.get("style"),
                    "density": normalize_density(beard.get("density")),
                }
            if isinstance(data.get("accessories"), dict):
                updates["accessories"] = {
                    k: v for k, v in data["accessories"].items() if isinstance(v, (bool, str))
                }
        elif isinstance(data.get("recommended"), list):
            updates["recommended"] = parse_recommended(data["recommended"])

        try:
            return type(analysis).model_validate({**analysis.model_dump(), **updates})
        except pydantic.ValidationError as e:
            await append_log("gemini.response.invalid", error=str(e))
            return analysis

    @staticmethod
    def _with_default_advisory(analysis: Analysis, locale: str) -> Analysis:
        if analysis.advisory_text:
            return analysis
        messages = MESSAGES[locale]
        prefix = "body" if isinstance(analysis, BodyAnalysis) else "face"
        return analysis.model_copy(
            update={
                "advisory_text": messages[f"{prefix}_default"],
                "suggested_text": messages[f"{prefix}_default_action"],
            }
        )
