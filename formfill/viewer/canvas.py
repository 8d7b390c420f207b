"""Interactive PDF page canvas for field placement, dragging and resizing."""

from __future__ import annotations

from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QColor, QFont, QImage, QPainter, QPen, QPixmap
from PySide6.QtWidgets import QWidget

from formfill.model.field import FieldType
from formfill.model.geometry import Rect, Size
from formfill.pdf.renderer import RenderedPage
from formfill.state.placement import HANDLE_SIZE, InteractionError, PlacementModel

FIELD_COLORS = {
    FieldType.TEXT: QColor("#1565c0"),
    FieldType.SIGNATURE: QColor("#6a1b9a"),
    FieldType.DATE: QColor("#00897b"),
    FieldType.CHECKBOX: QColor("#ef6c00"),
    FieldType.NUMBER: QColor("#5d4037"),
}
SELECTED_COLOR = QColor("#c62828")


def pixmap_from_page(rendered: RenderedPage) -> QPixmap:
    image = rendered.image
    qimage = QImage(image.tobytes(), image.width, image.height, image.width * 3, QImage.Format.Format_RGB888)
    pixmap = QPixmap.fromImage(qimage.copy())
    pixmap.setDevicePixelRatio(rendered.viewport.device_pixel_ratio)
    return pixmap


def _qrect(rect: Rect) -> QRectF:
    return QRectF(rect.x, rect.y, rect.width, rect.height)


class PdfCanvas(QWidget):
    field_selection_changed = Signal(object)
    fields_changed = Signal()
    field_created = Signal()

    def __init__(self) -> None:
        super().__init__()
        self._pixmap: QPixmap | None = None
        self._model: PlacementModel | None = None
        self._placement_type: FieldType | None = None

        self.setMouseTracking(True)
        self.setMinimumSize(500, 600)

    def set_page(self, rendered: RenderedPage, model: PlacementModel) -> None:
        self._pixmap = pixmap_from_page(rendered)
        self._model = model
        model.end_session()
        model.set_canvas(Size(rendered.viewport.width, rendered.viewport.height))
        self.field_selection_changed.emit(model.selected_field)
        self.resize(int(round(rendered.viewport.width)), int(round(rendered.viewport.height)))
        self.update()

    @property
    def has_page(self) -> bool:
        return self._pixmap is not None

    def clear_page(self) -> None:
        if self._model is not None:
            self._model.end_session()
            self._model.set_canvas(None)
        self._pixmap = None
        self._model = None
        self.resize(500, 600)
        self.update()

    def set_placement_type(self, field_type: FieldType | None) -> None:
        self._placement_type = field_type

    def paintEvent(self, event) -> None:  # type: ignore[override]
        del event
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor("#e9eaee"))

        if self._pixmap is None or self._model is None:
            return

        painter.drawPixmap(0, 0, self._pixmap)
        painter.setFont(QFont("Sans Serif", 9))
        selected_id = self._model.selected_field_id
        for field in self._model.current_page_fields():
            rect = _qrect(self._model.display_rect(field.id))
            color = SELECTED_COLOR if field.id == selected_id else FIELD_COLORS[field.field_type]
            pen = QPen(color)
            pen.setWidth(2)
            painter.setPen(pen)
            painter.drawRect(rect)
            label = field.name if field.instance_number is None else f"{field.name} #{field.instance_number}"
            painter.drawText(rect.adjusted(4, 2, -4, -2), Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop, label)
            if field.id == selected_id:
                for corner in (rect.topLeft(), rect.topRight(), rect.bottomLeft(), rect.bottomRight()):
                    painter.fillRect(self._handle_rect(corner), SELECTED_COLOR)

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if self._pixmap is None or self._model is None:
            return

        if event.button() != Qt.MouseButton.LeftButton:
            return

        pos = event.position()
        if self._placement_type is not None:
            self._create_field_at(pos)
            return

        # A press always starts a fresh session.
        self._model.end_session()
        clicked, handle = self._model.hit_test(pos.x(), pos.y())
        self._model.select(clicked.id if clicked is not None else None)
        self.field_selection_changed.emit(clicked)

        if clicked is not None:
            try:
                if handle is not None:
                    self._model.begin_resize(clicked.id, handle, pos.x(), pos.y())
                else:
                    self._model.begin_drag(clicked.id, pos.x(), pos.y())
            except InteractionError:
                self._model.end_session()

        self.update()

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        if self._model is None:
            return
        pos = event.position()
        if self._model.move_to(pos.x(), pos.y()) is not None:
            self.fields_changed.emit()
            self.update()

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        del event
        if self._model is not None:
            self._model.end_session()

    def hideEvent(self, event) -> None:  # type: ignore[override]
        if self._model is not None:
            self._model.end_session()
        super().hideEvent(event)

    def delete_selected_field(self) -> bool:
        if self._model is None or not self._model.delete_selected():
            return False
        self.field_selection_changed.emit(None)
        self.fields_changed.emit()
        self.update()
        return True

    def duplicate_selected_field(self) -> bool:
        if self._model is None:
            return False
        duplicate = self._model.duplicate_selected()
        if duplicate is None:
            return False
        self.field_selection_changed.emit(duplicate)
        self.fields_changed.emit()
        self.update()
        return True

    def _create_field_at(self, pos: QPointF) -> None:
        if self._model is None or self._placement_type is None:
            return

        field = self._model.add_field(self._placement_type)
        if field is None:
            return
        start = self._model.display_rect(field.id)
        with self._model.dragging(field.id, start.x, start.y):
            self._model.move_to(pos.x(), pos.y())

        self.field_selection_changed.emit(field)
        self.fields_changed.emit()
        self.field_created.emit()
        self.update()

    def _handle_rect(self, corner: QPointF) -> QRectF:
        return QRectF(
            corner.x() - HANDLE_SIZE / 2.0,
            corner.y() - HANDLE_SIZE / 2.0,
            HANDLE_SIZE,
            HANDLE_SIZE,
        )
