"""PDF rendering helpers using PyMuPDF."""

from __future__ import annotations

from dataclasses import dataclass

import fitz
import structlog
from PIL import Image

from formfill.model.document import PdfDocument

logger = structlog.get_logger(component="pdf.renderer")


class PdfRenderError(RuntimeError):
    """Raised when a page cannot be rendered."""


@dataclass(frozen=True, slots=True)
class Viewport:
    """Display geometry of a rendered page.

    ``width``/``height`` are display units (natural size times ``scale``); the
    backing image is larger by ``device_pixel_ratio``.
    """

    width: float
    height: float
    scale: float
    device_pixel_ratio: float = 1.0


@dataclass(frozen=True, slots=True)
class RenderedPage:
    page_number: int
    image: Image.Image
    viewport: Viewport


def render_page(
    document: PdfDocument,
    page_number: int,
    zoom: float = 1.5,
    device_pixel_ratio: float = 1.0,
) -> RenderedPage:
    if page_number < 1 or page_number > document.page_count:
        raise PdfRenderError(f"Page number out of range: {page_number}")
    if zoom <= 0 or device_pixel_ratio <= 0:
        raise PdfRenderError(f"Invalid render scale: zoom={zoom} ratio={device_pixel_ratio}")

    try:
        page = document.handle.load_page(page_number - 1)
        factor = zoom * device_pixel_ratio
        # Opaque pixmaps start out white, so transparent page regions stay white.
        pix = page.get_pixmap(matrix=fitz.Matrix(factor, factor), alpha=False, annots=False)
        image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
    except Exception as exc:
        logger.error("page.render_failed", page=page_number, error=str(exc))
        raise PdfRenderError(f"Failed to render page {page_number}") from exc

    viewport = Viewport(
        width=float(page.rect.width) * zoom,
        height=float(page.rect.height) * zoom,
        scale=zoom,
        device_pixel_ratio=device_pixel_ratio,
    )
    return RenderedPage(page_number=page_number, image=image, viewport=viewport)
