"""Interactive placement state: selection and the single drag/resize session."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum

import structlog

from formfill.model.field import FieldType, TemplateField
from formfill.model.geometry import Rect, Size
from formfill.model.template import Template
from formfill.viewer.coordinates import FALLBACK_DISPLAY_RECT, CoordinateSpace

MIN_WIDTH = 50.0
MIN_HEIGHT = 30.0
DUPLICATE_OFFSET = 12.0
HANDLE_SIZE = 10.0


class InteractionError(RuntimeError):
    """Raised when a drag or resize cannot start."""


class ResizeHandle(str, Enum):
    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"


@dataclass(slots=True)
class DragSession:
    field_id: str
    start_x: float
    start_y: float
    initial: Rect


@dataclass(slots=True)
class ResizeSession:
    field_id: str
    handle: ResizeHandle
    start_x: float
    start_y: float
    initial: Rect


InteractionSession = DragSession | ResizeSession


def drag_rect(initial: Rect, dx: float, dy: float) -> Rect:
    return Rect(max(0.0, initial.x + dx), max(0.0, initial.y + dy), initial.width, initial.height)


def resize_rect(initial: Rect, handle: ResizeHandle, dx: float, dy: float) -> Rect:
    """Resize from ``handle`` keeping the opposite corner fixed."""
    west = handle in (ResizeHandle.NW, ResizeHandle.SW)
    north = handle in (ResizeHandle.NW, ResizeHandle.NE)

    width = max(MIN_WIDTH, initial.width - dx if west else initial.width + dx)
    height = max(MIN_HEIGHT, initial.height - dy if north else initial.height + dy)
    x = initial.x + (initial.width - width) if west else initial.x
    y = initial.y + (initial.height - height) if north else initial.y
    return Rect(x, y, width, height)


class PlacementModel:
    """Field placement for one template, in display pixels of the current canvas.

    Fields keep normalized rects; every display rect is derived through
    ``space`` and every edit is written back through it.
    """

    def __init__(self, template: Template, space: CoordinateSpace | None = None) -> None:
        self.template = template
        self.space = space or CoordinateSpace(natural=template.natural_size)
        self.current_page = 1
        self.selected_field_id: str | None = None
        self._session: InteractionSession | None = None
        self._counter = _highest_counter(template.fields)
        self._logger = structlog.get_logger().bind(component="PlacementModel")

    @property
    def fields(self) -> list[TemplateField]:
        return self.template.fields

    @property
    def active_session(self) -> InteractionSession | None:
        return self._session

    @property
    def selected_field(self) -> TemplateField | None:
        if self.selected_field_id is None:
            return None
        return self.template.get_field(self.selected_field_id)

    def set_canvas(self, canvas: Size | None) -> None:
        self.space.canvas = canvas

    def set_page(self, page: int) -> None:
        if page < 1 or page > self.template.page_count:
            raise InteractionError(f"Page {page} is outside the template")
        self.end_session()
        self.current_page = page
        self.selected_field_id = None

    def current_page_fields(self) -> list[TemplateField]:
        return self.template.fields_on_page(self.current_page)

    def display_rect(self, field_id: str) -> Rect:
        return self.space.display(self._require(field_id).rect)

    def field_at(self, x: float, y: float) -> TemplateField | None:
        for item in reversed(self.current_page_fields()):
            if self.space.display(item.rect).contains(x, y):
                return item
        return None

    def handle_at(self, field_id: str, x: float, y: float) -> ResizeHandle | None:
        rect = self.display_rect(field_id)
        corners = {
            ResizeHandle.NW: (rect.x, rect.y),
            ResizeHandle.NE: (rect.right, rect.y),
            ResizeHandle.SW: (rect.x, rect.bottom),
            ResizeHandle.SE: (rect.right, rect.bottom),
        }
        half = HANDLE_SIZE / 2.0
        for handle, (cx, cy) in corners.items():
            if abs(x - cx) <= half and abs(y - cy) <= half:
                return handle
        return None

    def hit_test(self, x: float, y: float) -> tuple[TemplateField | None, ResizeHandle | None]:
        """Resolve a press to a field and, when on one of its corners, a resize handle.

        Handles straddle the field edge, so the selected field's handles are
        checked before falling back to the topmost field under the point.
        """
        selected = self.selected_field
        if selected is not None and selected.page == self.current_page:
            handle = self.handle_at(selected.id, x, y)
            if handle is not None:
                return selected, handle

        clicked = self.field_at(x, y)
        if clicked is None:
            return None, None
        return clicked, self.handle_at(clicked.id, x, y)

    # -- editing -----------------------------------------------------------

    def add_field(self, field_type: FieldType) -> TemplateField | None:
        if not self.space.is_ready:
            self._logger.warning("placement.add_skipped", reason="canvas not mounted")
            return None

        self._counter += 1
        new_field = TemplateField(
            id=f"field_{self._counter}",
            name=f"{field_type.label} {self._counter}",
            field_type=field_type,
            page=self.current_page,
            rect=self.space.normalize(FALLBACK_DISPLAY_RECT),
        )
        self.template.add_field(new_field)
        self.selected_field_id = new_field.id
        return new_field

    def select(self, field_id: str | None) -> None:
        if field_id is not None:
            self._require(field_id)
        self.selected_field_id = field_id

    def delete(self, field_id: str) -> bool:
        if self._session is not None and self._session.field_id == field_id:
            self.end_session()
        removed = self.template.remove_field(field_id)
        if removed and self.selected_field_id == field_id:
            self.selected_field_id = None
        return removed

    def delete_selected(self) -> bool:
        if self.selected_field_id is None:
            return False
        return self.delete(self.selected_field_id)

    def duplicate_selected(self) -> TemplateField | None:
        """Copy the selected field as the next instance of its repeated group."""
        source = self.selected_field
        if source is None or not self.space.is_ready:
            return None

        if source.instance_number is None:
            source.group = source.group or source.id
            source.instance_number = 1
        siblings = [item for item in self.fields if item.group == source.group]
        next_instance = max(item.instance_number or 0 for item in siblings) + 1

        self._counter += 1
        display = self.space.display(source.rect).translated(DUPLICATE_OFFSET, DUPLICATE_OFFSET)
        duplicate = replace(
            source,
            id=f"field_{self._counter}",
            rect=self.space.normalize(display),
            instance_number=next_instance,
        )
        self.template.add_field(duplicate)
        self.selected_field_id = duplicate.id
        return duplicate

    # -- drag / resize sessions ---------------------------------------------

    def begin_drag(self, field_id: str, x: float, y: float) -> DragSession:
        initial = self._start(field_id)
        session = DragSession(field_id, x, y, initial)
        self._session = session
        return session

    def begin_resize(self, field_id: str, handle: ResizeHandle, x: float, y: float) -> ResizeSession:
        initial = self._start(field_id)
        session = ResizeSession(field_id, ResizeHandle(handle), x, y, initial)
        self._session = session
        return session

    def move_to(self, x: float, y: float) -> Rect | None:
        """Apply the cursor position to the active session; returns the new display rect."""
        session = self._session
        if session is None:
            return None
        target = self.template.get_field(session.field_id)
        if target is None:
            self.end_session()
            return None

        dx = x - session.start_x
        dy = y - session.start_y
        if isinstance(session, DragSession):
            rect = drag_rect(session.initial, dx, dy)
        else:
            rect = resize_rect(session.initial, session.handle, dx, dy)
        target.rect = self.space.normalize(rect)
        return rect

    def end_session(self) -> None:
        self._session = None

    @contextmanager
    def dragging(self, field_id: str, x: float, y: float) -> Iterator[DragSession]:
        session = self.begin_drag(field_id, x, y)
        try:
            yield session
        finally:
            self.end_session()

    @contextmanager
    def resizing(
        self, field_id: str, handle: ResizeHandle, x: float, y: float
    ) -> Iterator[ResizeSession]:
        session = self.begin_resize(field_id, handle, x, y)
        try:
            yield session
        finally:
            self.end_session()

    def _start(self, field_id: str) -> Rect:
        if self._session is not None:
            raise InteractionError(
                f"Field {self._session.field_id} is already being dragged or resized"
            )
        if not self.space.is_ready:
            raise InteractionError("Canvas is not mounted")
        target = self._require(field_id)
        self.selected_field_id = field_id
        return self.space.display(target.rect)

    def _require(self, field_id: str) -> TemplateField:
        target = self.template.get_field(field_id)
        if target is None:
            raise InteractionError(f"Unknown field: {field_id}")
        return target


def _highest_counter(fields: list[TemplateField]) -> int:
    highest = 0
    for item in fields:
        parts = item.id.rsplit("_", maxsplit=1)
        if len(parts) != 2:
            continue
        try:
            value = int(parts[1])
        except ValueError:
            continue
        highest = max(highest, value)
    return highest
