"""
Text watermark for AI-edited previews.
"""

from io import BytesIO

from PIL import Image, ImageDraw, ImageFont

FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
]
BASE_FONT_SIZE = 28  # for a 1024px-wide image
OPACITY = 0.6
PADDING = 20


def _load_font(size: int):
    for path in FONT_PATHS:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def apply_watermark(data: bytes, text: str = "AI preview") -> bytes:
    """
    Draw `text` in the bottom-right corner with a contrasting shadow.

    Returns JPEG bytes. Bytes Pillow cannot read are returned unchanged.
    """
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except OSError as e:
        print(f"⚠️  Watermark skipped, unreadable image: {e}")
        return data

    img = img.convert("RGBA")
    layer = Image.new("RGBA", img.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)

    font_size = max(int(BASE_FONT_SIZE * img.width / 1024.0), 12)
    font = _load_font(font_size)
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    text_w, text_h = right - left, bottom - top

    x = max(img.width - text_w - PADDING, 0)
    y = max(img.height - text_h - PADDING, 0)
    alpha = int(255 * OPACITY)
    shadow_offset = max(2, font_size // 20)

    draw.text((x + shadow_offset, y + shadow_offset), text, font=font, fill=(0, 0, 0, min(alpha, 180)))
    draw.text((x, y), text, font=font, fill=(255, 255, 255, alpha))

    composed = Image.alpha_composite(img, layer).convert("RGB")
    out = BytesIO()
    composed.save(out, format="JPEG", quality=92)
    return out.getvalue()
