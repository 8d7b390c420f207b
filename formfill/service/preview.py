"""Raster previews of a page with submitted values drawn in place."""

from __future__ import annotations

from collections.abc import Mapping

import structlog
from PIL import Image

from formfill.model.document import PdfDocument
from formfill.model.field import FieldType, TemplateField
from formfill.model.geometry import Rect
from formfill.model.template import Template
from formfill.pdf.renderer import render_page
from formfill.render.primitives import (
    composite_signature,
    draw_checkmark,
    draw_truncated_text,
    draw_wrapped_text,
    fit_font_size,
    is_field_in_bounds,
    load_image,
    to_png,
)
from formfill.service.fill import is_checked, sanitize_value

logger = structlog.get_logger(component="service.preview")

BASE_FONT_SIZE = 16.0


def render_fill_preview(
    document: PdfDocument,
    template: Template,
    values: Mapping[str, str],
    page_number: int = 1,
    zoom: float = 1.5,
    device_pixel_ratio: float = 1.0,
) -> Image.Image:
    rendered = render_page(document, page_number, zoom=zoom, device_pixel_ratio=device_pixel_ratio)
    surface = rendered.image.convert("RGBA")
    factor = zoom * device_pixel_ratio

    for item in template.fields_on_page(page_number):
        rect = item.rect.scaled(surface.width, surface.height)
        if not is_field_in_bounds(rect, surface.width, surface.height):
            logger.debug("preview.field_off_page", field_id=item.id)
            continue
        raw = values.get(item.id) or ""
        try:
            _draw_value(surface, item, raw, rect, factor)
        except Exception as exc:
            logger.warning("preview.field_failed", field_id=item.id, error=str(exc))
    return surface


def render_fill_preview_png(
    document: PdfDocument,
    template: Template,
    values: Mapping[str, str],
    page_number: int = 1,
    zoom: float = 1.5,
) -> bytes:
    return to_png(render_fill_preview(document, template, values, page_number, zoom))


def _draw_value(surface: Image.Image, item: TemplateField, raw: str, rect: Rect, factor: float) -> None:
    if item.field_type is FieldType.SIGNATURE:
        if raw.strip():
            composite_signature(surface, load_image(raw.strip()), rect)
        return

    value = sanitize_value(raw)
    if not value:
        return

    if item.field_type is FieldType.CHECKBOX:
        if is_checked(value):
            draw_checkmark(surface, rect, min(rect.width, rect.height) * 0.6)
    elif item.field_type in (FieldType.DATE, FieldType.NUMBER):
        font_size = fit_font_size(rect.width, rect.height, BASE_FONT_SIZE * factor)
        draw_truncated_text(surface, value, rect, font_size)
    else:
        font_size = fit_font_size(rect.width, rect.height, BASE_FONT_SIZE * factor)
        draw_wrapped_text(surface, value, rect, font_size)
