"""Raster drawing primitives for field content.

Surfaces are Pillow ``RGBA`` images. Layout helpers take a ``measure``
callable returning the rendered width of a string, so the same packing and
truncation rules apply to Pillow fonts and to PDF font metrics.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Callable
from functools import lru_cache
from io import BytesIO
import math

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from formfill.model.geometry import Rect

Measure = Callable[[str], float]
Color = tuple[int, int, int, int]

ELLIPSIS = "..."
TEXT_COLOR: Color = (26, 26, 26, 255)
CHECK_COLOR: Color = (0, 0, 0, 255)
TRANSPARENT: Color = (0, 0, 0, 0)
LINE_HEIGHT = 1.2


class ImageDecodeError(RuntimeError):
    """Raised when signature image data cannot be decoded."""


# ---------------------------------------------------------------------------
# Font sizing
# ---------------------------------------------------------------------------

def fit_font_size(
    width: float,
    height: float,
    base: float,
    minimum: float = 12.0,
    maximum: float = 48.0,
) -> float:
    """Clamp ``base`` so glyphs fit short or narrow fields."""
    return max(minimum, min(maximum, min(height * 0.6, width * 0.1, base)))


def fit_font_size_by_aspect(width: float, height: float, base: float) -> float:
    """Scale ``base`` by field shape, then keep it within ``[8, height*0.6]``."""
    ratio = width / height if height > 0 else math.inf
    size = base
    if ratio > 3:
        size = base * 0.7
    elif ratio > 2:
        size = base * 0.8
    elif ratio < 0.5:
        size = base * 1.2
    return max(8.0, min(size, height * 0.6))


@lru_cache(maxsize=64)
def get_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    return ImageFont.load_default(size=max(1, size))


# ---------------------------------------------------------------------------
# Text layout
# ---------------------------------------------------------------------------

def wrap_lines(text: str, max_width: float, measure: Measure) -> list[str]:
    """Greedily pack words into lines no wider than ``max_width``.

    A single word wider than ``max_width`` occupies a line of its own.
    """
    lines: list[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if current and measure(candidate) > max_width:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


def truncate_text(text: str, max_width: float, measure: Measure) -> str:
    """Drop trailing characters until ``text`` fits, marking the cut with an ellipsis."""
    display = text
    while measure(display) > max_width and len(display) > 1:
        display = display[:-1]
    if display != text and len(display) > 3:
        display = display[:-3] + ELLIPSIS
    return display


def truncate_with_ellipsis(text: str, max_width: float, measure: Measure) -> str:
    """Shorten ``text`` so that it plus a trailing ellipsis fits ``max_width``.

    Returns an empty string when not even the ellipsis fits.
    """
    if measure(text) <= max_width:
        return text
    display = text
    while display and measure(display + ELLIPSIS) > max_width:
        display = display[:-1]
    display = display.rstrip() + ELLIPSIS
    if measure(display) > max_width:
        return ""
    return display


def is_field_in_bounds(rect: Rect, width: float, height: float) -> bool:
    """False only when ``rect`` lies entirely outside a ``width`` x ``height`` surface."""
    return not (
        rect.x < -rect.width or rect.y < -rect.height or rect.x > width or rect.y > height
    )


# ---------------------------------------------------------------------------
# Surfaces
# ---------------------------------------------------------------------------

def new_surface(width: float, height: float) -> Image.Image:
    return Image.new("RGBA", (max(1, math.ceil(width)), max(1, math.ceil(height))), TRANSPARENT)


def to_png(surface: Image.Image) -> bytes:
    buffer = BytesIO()
    surface.save(buffer, format="PNG")
    return buffer.getvalue()


def load_image(data: bytes | str) -> Image.Image:
    """Decode raw image bytes or a base64 ``data:`` URL into an RGBA image."""
    if isinstance(data, str):
        if not data.startswith("data:") or "," not in data:
            raise ImageDecodeError("Image data must be bytes or a data URL")
        _, encoded = data.split(",", 1)
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ImageDecodeError("Invalid base64 image data") from exc

    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageDecodeError("Unreadable image data") from exc
    return image.convert("RGBA")


def _composite(surface: Image.Image, layer: Image.Image, x: float, y: float) -> None:
    """Alpha-composite ``layer`` at ``(x, y)``, cropping whatever falls off the surface."""
    left, top = int(round(x)), int(round(y))
    crop_left, crop_top = max(0, -left), max(0, -top)
    crop_right = min(layer.width, surface.width - left)
    crop_bottom = min(layer.height, surface.height - top)
    if crop_right <= crop_left or crop_bottom <= crop_top:
        return
    visible = layer.crop((crop_left, crop_top, crop_right, crop_bottom))
    surface.alpha_composite(visible, dest=(left + crop_left, top + crop_top))


# ---------------------------------------------------------------------------
# Drawing
# ---------------------------------------------------------------------------

def draw_wrapped_text(
    surface: Image.Image,
    text: str,
    rect: Rect,
    font_size: float,
    fill: Color = TEXT_COLOR,
) -> list[str]:
    """Draw centered, word-wrapped text clipped to ``rect``; returns the lines."""
    if not text or not text.strip():
        return []

    font = get_font(int(round(font_size)))
    lines = wrap_lines(text, rect.width * 0.95, font.getlength)

    # Lines are drawn on a field-sized layer so overflow is clipped at the edges.
    layer = new_surface(rect.width, rect.height)
    draw = ImageDraw.Draw(layer)
    line_height = font_size * LINE_HEIGHT
    first_center = rect.height / 2.0 - len(lines) * line_height / 2.0 + line_height / 2.0
    for index, line in enumerate(lines):
        draw.text(
            (rect.width / 2.0, first_center + index * line_height),
            line,
            font=font,
            fill=fill,
            anchor="mm",
        )
    _composite(surface, layer, rect.x, rect.y)
    return lines


def draw_truncated_text(
    surface: Image.Image,
    text: str,
    rect: Rect,
    font_size: float,
    fill: Color = (0, 0, 0, 255),
) -> str:
    """Draw a single centered line, truncated to 90% of the field width."""
    if not text or not text.strip():
        return ""

    font = get_font(int(round(font_size)))
    display = truncate_text(text, rect.width * 0.9, font.getlength)
    draw = ImageDraw.Draw(surface)
    center_x, center_y = rect.center
    draw.text((center_x, center_y), display, font=font, fill=fill, anchor="mm")
    return display


def checkmark_points(rect: Rect) -> list[tuple[float, float]]:
    center_x, center_y = rect.center
    size = min(rect.width, rect.height) * 0.4
    return [
        (center_x - size / 2.0, center_y),
        (center_x - size / 6.0, center_y + size / 3.0),
        (center_x + size / 2.0, center_y - size / 3.0),
    ]


def draw_checkmark(
    surface: Image.Image,
    rect: Rect,
    font_size: float,
    fill: Color = CHECK_COLOR,
) -> None:
    """Stroke a three-point check mark centered in ``rect``."""
    stroke = max(1, int(round(font_size * 0.12)))
    points = checkmark_points(rect)
    draw = ImageDraw.Draw(surface)
    draw.line(points, fill=fill, width=stroke, joint="curve")
    radius = stroke / 2.0
    for px, py in (points[0], points[-1]):
        draw.ellipse((px - radius, py - radius, px + radius, py + radius), fill=fill)


def signature_scale(image_size: tuple[int, int], rect: Rect) -> float:
    image_width, image_height = image_size
    if image_width <= 0 or image_height <= 0:
        return 0.0
    return min(rect.width / image_width, rect.height / image_height, 1.0)


def composite_signature(surface: Image.Image, signature: Image.Image, rect: Rect) -> Rect:
    """Scale ``signature`` down to fit ``rect`` (never up) and center it there."""
    scale = signature_scale(signature.size, rect)
    width = max(1, int(round(signature.width * scale)))
    height = max(1, int(round(signature.height * scale)))
    scaled = signature.convert("RGBA")
    if (width, height) != signature.size:
        scaled = scaled.resize((width, height), Image.Resampling.LANCZOS)

    placed = Rect(
        rect.x + (rect.width - width) / 2.0,
        rect.y + (rect.height - height) / 2.0,
        width,
        height,
    )
    _composite(surface, scaled, placed.x, placed.y)
    return placed
