"""Conversion between display pixels and normalized document coordinates.

Display coordinates are pixels on the authoring canvas as currently shown.
Natural coordinates are pixels of the document at its intrinsic size, and
normalized coordinates are natural coordinates divided by the natural size.
None of these functions raise: missing inputs produce documented fallbacks.
"""

from __future__ import annotations

from dataclasses import dataclass

from formfill.model.geometry import Rect, Size

FALLBACK_DISPLAY_RECT = Rect(50.0, 50.0, 150.0, 40.0)
EMPTY_RECT = Rect(0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True, slots=True)
class CanvasBounds:
    scale_x: float
    scale_y: float
    display_width: float
    display_height: float


UNMOUNTED_BOUNDS = CanvasBounds(1.0, 1.0, 0.0, 0.0)


def _mounted(canvas: Size | None) -> bool:
    return canvas is not None and not canvas.is_empty


def _usable(natural: Size | None) -> bool:
    return natural is not None and not natural.is_empty


def bounds_of(canvas: Size | None, natural: Size | None) -> CanvasBounds:
    if not _mounted(canvas):
        return UNMOUNTED_BOUNDS

    natural_width = natural.width if natural and natural.width > 0 else canvas.width
    natural_height = natural.height if natural and natural.height > 0 else canvas.height
    return CanvasBounds(
        scale_x=natural_width / canvas.width,
        scale_y=natural_height / canvas.height,
        display_width=canvas.width,
        display_height=canvas.height,
    )


def to_normalized(
    x: float,
    y: float,
    width: float,
    height: float,
    canvas: Size | None,
    natural: Size | None,
) -> Rect:
    if not _mounted(canvas) or not _usable(natural):
        return EMPTY_RECT

    bounds = bounds_of(canvas, natural)
    natural_rect = Rect(x, y, width, height).scaled(bounds.scale_x, bounds.scale_y)
    return natural_rect.scaled(1.0 / natural.width, 1.0 / natural.height)


def to_display(
    nx: float,
    ny: float,
    nwidth: float,
    nheight: float,
    canvas: Size | None,
    natural: Size | None,
) -> Rect:
    if not _mounted(canvas) or not _usable(natural):
        return FALLBACK_DISPLAY_RECT

    bounds = bounds_of(canvas, natural)
    natural_rect = Rect(nx, ny, nwidth, nheight).scaled(natural.width, natural.height)
    return natural_rect.scaled(1.0 / bounds.scale_x, 1.0 / bounds.scale_y)


@dataclass(slots=True)
class CoordinateSpace:
    """The current canvas size paired with the document's natural size."""

    canvas: Size | None = None
    natural: Size | None = None

    @property
    def is_ready(self) -> bool:
        return _mounted(self.canvas) and _usable(self.natural)

    def bounds(self) -> CanvasBounds:
        return bounds_of(self.canvas, self.natural)

    def normalize(self, rect: Rect) -> Rect:
        return to_normalized(rect.x, rect.y, rect.width, rect.height, self.canvas, self.natural)

    def display(self, rect: Rect) -> Rect:
        return to_display(rect.x, rect.y, rect.width, rect.height, self.canvas, self.natural)
