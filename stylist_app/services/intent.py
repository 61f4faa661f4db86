"""
Map free-form user text (Spanish or English) to a structured EditIntent.

Keyword based. Matching is done on the lower-cased text, so both the
short requests typed by users and the long advisory texts produced by
the analysis step are understood.
"""

import re
from typing import List, Optional, Tuple

from stylist_app.schemas.intent import EditChange, EditIntent

HAIR_COLOR_PATTERN = re.compile(r"\b(?:casta[nñ]o|brown|negro|black|rubio|blond|pelirrojo|red)\b")
ADVISORY_MARKERS = ("recomendaciones", "recommendations", "corte texturizado")

# (keywords, normalized value), first match wins per keyword group
CLOTHING_ITEMS: List[Tuple[Tuple[str, ...], str]] = [
    (("chaqueta", "jacket", "blazer", "americana"), "chaqueta"),
    (("abrigo", "coat", "gabardina", "trench"), "abrigo"),
    (("pantalón", "pantalon", "pantalones", "trousers", "pants", "jeans", "vaqueros"), "pantalón"),
    (("camisa", "shirt"), "camisa"),
    (("camiseta", "t-shirt", "tee"), "camiseta"),
    (("jersey", "suéter", "sueter", "sweater"), "jersey"),
    (("vestido", "dress"), "vestido"),
    (("falda", "skirt"), "falda"),
    (("zapatos", "zapatillas", "shoes", "sneakers", "botas", "boots"), "zapatos"),
]

CLOTHING_COLORS: List[Tuple[Tuple[str, ...], str]] = [
    (("neutro", "neutra", "neutral"), "neutro"),
    (("azul", "blue", "navy", "marino"), "azul"),
    (("blanco", "blanca", "white"), "blanco"),
    (("gris", "grey", "gray"), "gris"),
    (("beige", "camel", "arena"), "beige"),
    (("verde", "green", "oliva", "olive"), "verde"),
    (("burdeos", "granate", "burgundy"), "burdeos"),
]

CLOTHING_FITS: List[Tuple[Tuple[str, ...], str]] = [
    (("recto", "recta", "straight"), "recto"),
    (("ajustado", "ajustada", "slim", "entallado"), "ajustado"),
    (("holgado", "holgada", "oversize", "loose", "relaxed"), "holgado"),
    (("estructurado", "estructurada", "structured"), "estructurado"),
]

# Words that signal the user is talking about clothes, not hair
CLOTHING_HINTS = ("ropa", "outfit", "vestir", "wear", "clothes", "clothing", "prenda", "diferente", "different")
FACE_HINTS = ("pelo", "cabello", "hair", "barba", "beard", "corte", "haircut", "bigote")


def _contains(text: str, keyword: str) -> bool:
    # Whole-word match (plurals allowed) so that "tee" does not match "teen"
    return re.search(rf"(?<!\w){re.escape(keyword)}(?:s|es)?(?!\w)", text) is not None


def _match_all(text: str, table: List[Tuple[Tuple[str, ...], str]]) -> List[str]:
    return [value for keywords, value in table if any(_contains(text, k) for k in keywords)]


def _hair_length(text: str) -> Optional[str]:
    if "corto" in text or "short" in text:
        return "short"
    if "largo" in text or "long" in text:
        return "long"
    if "medio" in text or "medium" in text:
        return "medium"
    return None


def _beard_style(text: str) -> Optional[str]:
    if "stubble" in text:
        return "stubble"
    if "barba completa" in text or "full beard" in text:
        return "full"
    return None


def map_user_text_to_intent(user_text: str, locale: str = "es") -> EditIntent:
    """
    Extract edit changes from user_text.

    Recognised change types: hair_length, beard_style, hair_color,
    hair_style, clothing_item, clothing_color, clothing_fit.

    Args:
        user_text: Free text typed by the user or produced by the analysis
        locale: "es" or "en"

    Returns:
        EditIntent with at least one change; the original text is kept as
        the instruction
    """
    text = (user_text or "").lower()
    changes: List[EditChange] = []

    def add(change_type: str, value: str) -> None:
        changes.append(EditChange(type=change_type, value=value))

    clothing_items = _match_all(text, CLOTHING_ITEMS)
    clothing_colors = _match_all(text, CLOTHING_COLORS)
    clothing_fits = _match_all(text, CLOTHING_FITS)
    talks_about_clothes = bool(clothing_items) or any(h in text for h in CLOTHING_HINTS)

    length = _hair_length(text)
    if length:
        add("hair_length", length)

    beard = _beard_style(text)
    if beard:
        add("beard_style", beard)

    # Colours next to a garment describe the garment, not the hair
    if not clothing_items:
        color_match = HAIR_COLOR_PATTERN.search(text)
        if color_match:
            add("hair_color", color_match.group(0))

    if "fade" in text or "degradado" in text:
        add("hair_style", "fade")

    for item in clothing_items:
        add("clothing_item", item)
    for color in clothing_colors:
        add("clothing_color", color)
    for fit in clothing_fits:
        add("clothing_fit", fit)

    is_advisory = any(marker in text for marker in ADVISORY_MARKERS)
    if is_advisory:
        mentions_face = any(h in text for h in FACE_HINTS) or bool(length or beard)
        if mentions_face or not talks_about_clothes:
            if not any(c.type == "hair_style" for c in changes):
                add("hair_style", "fade medio con textura")
            if not any(c.type == "beard_style" for c in changes):
                add("beard_style", "stubble")
        if talks_about_clothes:
            if not any(c.type == "clothing_item" for c in changes):
                add("clothing_item", "chaqueta")
            if not any(c.type == "clothing_fit" for c in changes):
                add("clothing_fit", "estructurado")

    if not changes:
        mentions_face = any(h in text for h in FACE_HINTS)
        if mentions_face or not talks_about_clothes:
            add("beard_style", "stubble")
            add("hair_style", "fade medio")
        if talks_about_clothes or not mentions_face:
            add("clothing_item", "chaqueta")
            add("clothing_fit", "estructurado")

    return EditIntent(
        locale=locale if locale in ("es", "en") else "es",
        change=changes,
        instruction=user_text or "",
        preserve_identity=True,
        output_size=1024,
        watermark=True,
    )
