"""Composite field values into a base PDF.

Each page pass draws its fields onto a reportlab overlay page, which pypdf then
merges onto the matching page of a clone of the input document. Field
rectangles arrive in PDF units with a top-left origin; :func:`pdf_rect` is the
one place where they are flipped into PDF's bottom-left coordinate system.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from io import BytesIO
from typing import assert_never

import structlog
from PIL import Image
from pypdf import PageObject, PdfReader, PdfWriter
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import getAscentDescent, stringWidth
from reportlab.pdfgen import canvas

from formfill.model.geometry import Rect
from formfill.render.primitives import (
    composite_signature,
    draw_checkmark,
    fit_font_size_by_aspect,
    load_image,
    new_surface,
    to_png,
    truncate_with_ellipsis,
)

logger = structlog.get_logger(component="pdf.compositor")

TEXT_FONT = "Helvetica-Bold"
LABEL_FONT = "Helvetica"
LABEL_COLOR = colors.HexColor("#666666")
BASE_FONT_SIZE = 12.0
TEXT_PADDING = 16.0
LABEL_INSET = 5.0
MIN_SURFACE = 50.0
RASTER_SCALE = 2.0


class CompositeError(RuntimeError):
    """Raised when a document cannot be loaded, composited or saved."""


@dataclass(frozen=True, slots=True)
class SignatureContent:
    image: bytes | str


@dataclass(frozen=True, slots=True)
class CheckmarkContent:
    pass


@dataclass(frozen=True, slots=True)
class TextContent:
    text: str
    instance_number: int | None = None


FieldContent = SignatureContent | CheckmarkContent | TextContent


@dataclass(frozen=True, slots=True)
class PlacedField:
    """A field positioned in PDF units, measured from the page's top-left corner."""

    id: str
    rect: Rect
    content: FieldContent


@dataclass(frozen=True, slots=True)
class PageBox:
    left: float
    bottom: float
    width: float
    height: float


def pdf_rect(rect: Rect, box: PageBox) -> Rect:
    """Map a top-left-origin rect onto the page; ``y`` becomes the bottom edge."""
    return Rect(
        box.left + rect.x,
        box.bottom + box.height - rect.y - rect.height,
        rect.width,
        rect.height,
    )


def page_boxes(pdf_bytes: bytes) -> list[PageBox]:
    reader = _read(pdf_bytes)
    return [_page_box(page) for page in reader.pages]


def composite_page(pdf_bytes: bytes, page_number: int, fields: Sequence[PlacedField]) -> bytes:
    """Return ``pdf_bytes`` with ``fields`` drawn onto the 1-based ``page_number``."""
    reader = _read(pdf_bytes)
    if page_number < 1 or page_number > len(reader.pages):
        raise CompositeError(f"Page {page_number} is outside the document ({len(reader.pages)} pages)")

    box = _page_box(reader.pages[page_number - 1])
    overlay, drawn = _build_overlay(fields, box)
    logger.debug("compositor.page_drawn", page=page_number, fields=len(fields), drawn=drawn)
    if not drawn:
        return pdf_bytes

    try:
        writer = PdfWriter(clone_from=reader)
        writer.pages[page_number - 1].merge_page(PdfReader(overlay).pages[0])
        output = BytesIO()
        writer.write(output)
    except Exception as exc:
        raise CompositeError(f"Failed to write composited page {page_number}") from exc
    return output.getvalue()


def composite_document(
    pdf_bytes: bytes,
    fields_by_page: Mapping[int, Sequence[PlacedField]],
) -> bytes:
    """Run one page pass per page, feeding each pass the previous pass's output."""
    page_count = len(_read(pdf_bytes).pages)
    result = pdf_bytes
    for page_number in sorted(fields_by_page):
        if page_number < 1 or page_number > page_count:
            logger.warning("compositor.page_missing", page=page_number, page_count=page_count)
            continue
        result = composite_page(result, page_number, fields_by_page[page_number])
    return result


def _read(pdf_bytes: bytes) -> PdfReader:
    try:
        return PdfReader(BytesIO(pdf_bytes))
    except Exception as exc:
        raise CompositeError("Failed to load PDF document") from exc


def _page_box(page: PageObject) -> PageBox:
    # Same box PyMuPDF renders; pypdf falls back to the media box.
    cropbox = page.cropbox
    return PageBox(
        left=float(cropbox.left),
        bottom=float(cropbox.bottom),
        width=float(cropbox.width),
        height=float(cropbox.height),
    )


def _build_overlay(fields: Sequence[PlacedField], box: PageBox) -> tuple[BytesIO, int]:
    buffer = BytesIO()
    report = canvas.Canvas(buffer, pagesize=(box.left + box.width, box.bottom + box.height))
    drawn = 0
    for placed in fields:
        report.saveState()
        try:
            if _draw_field(report, placed, pdf_rect(placed.rect, box)):
                drawn += 1
        except Exception as exc:
            logger.warning(
                "compositor.field_failed",
                field_id=placed.id,
                content=type(placed.content).__name__,
                error=str(exc),
            )
        finally:
            report.restoreState()
    report.showPage()
    report.save()
    buffer.seek(0)
    return buffer, drawn


def _draw_field(report: canvas.Canvas, placed: PlacedField, target: Rect) -> bool:
    content = placed.content
    if isinstance(content, SignatureContent):
        return _draw_signature(report, content, target)
    elif isinstance(content, CheckmarkContent):
        return _draw_checkmark(report, target)
    elif isinstance(content, TextContent):
        return _draw_text(report, content, target)
    else:
        assert_never(content)


def _raster_surface(target: Rect) -> Image.Image:
    width = max(target.width, MIN_SURFACE) * RASTER_SCALE
    height = max(target.height, MIN_SURFACE) * RASTER_SCALE
    return new_surface(width, height)


def _embed_png(report: canvas.Canvas, png: bytes, target: Rect) -> None:
    report.drawImage(
        ImageReader(BytesIO(png)),
        target.x,
        target.y,
        width=target.width,
        height=target.height,
        mask="auto",
    )


def _draw_signature(report: canvas.Canvas, content: SignatureContent, target: Rect) -> bool:
    if not content.image:
        return False
    signature = load_image(content.image)
    surface = _raster_surface(target)
    composite_signature(surface, signature, Rect(0.0, 0.0, surface.width, surface.height))
    _embed_png(report, to_png(surface), target)
    return True


def _draw_checkmark(report: canvas.Canvas, target: Rect) -> bool:
    surface = _raster_surface(target)
    font_size = min(surface.width, surface.height) * 0.6
    draw_checkmark(surface, Rect(0.0, 0.0, surface.width, surface.height), font_size)
    _embed_png(report, to_png(surface), target)
    return True


def _draw_text(report: canvas.Canvas, content: TextContent, target: Rect) -> bool:
    text = content.text.strip()
    if not text:
        return False

    font_size = fit_font_size_by_aspect(target.width, target.height, BASE_FONT_SIZE)
    usable = target.width - TEXT_PADDING

    label = None
    if content.instance_number is not None:
        label = f"#{content.instance_number}"
        label_size = font_size * 0.5
        label_width = stringWidth(label, LABEL_FONT, label_size)
        # Keep the centered text clear of the corner label on both sides.
        usable -= 2.0 * (label_width + LABEL_INSET)

    display = truncate_with_ellipsis(
        text,
        max(usable, 0.0),
        lambda value: stringWidth(value, TEXT_FONT, font_size),
    )
    if not display:
        logger.debug("compositor.text_too_narrow", width=target.width)
        return False

    center_x = target.x + target.width / 2.0
    center_y = target.y + target.height / 2.0
    ascent, descent = getAscentDescent(TEXT_FONT, font_size)
    report.setFillColor(colors.black)
    report.setFont(TEXT_FONT, font_size)
    report.drawCentredString(center_x, center_y - (ascent + descent) / 2.0, display)

    if label is not None:
        label_ascent, _ = getAscentDescent(LABEL_FONT, label_size)
        report.setFillColor(LABEL_COLOR)
        report.setFont(LABEL_FONT, label_size)
        report.drawRightString(
            target.x + target.width - LABEL_INSET,
            target.y + target.height - LABEL_INSET - label_ascent,
            label,
        )
    return True
