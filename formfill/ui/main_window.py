"""Main application window for template authoring: preview, placement and save."""

from __future__ import annotations

from pathlib import Path

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QActionGroup, QKeySequence
from PySide6.QtWidgets import (
    QFileDialog,
    QInputDialog,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QScrollArea,
    QSplitter,
    QToolBar,
)

from formfill.config import Settings
from formfill.model.document import PdfDocument
from formfill.model.field import FieldType, TemplateError
from formfill.model.template import Template
from formfill.pdf.loader import PdfLoadError, load_pdf_bytes, read_document_bytes
from formfill.pdf.renderer import PdfRenderError, render_page
from formfill.state.placement import PlacementModel
from formfill.state.store import StoreError, TemplateStore
from formfill.viewer.canvas import PdfCanvas

ZOOM_STEP = 0.25
MIN_ZOOM = 0.5
MAX_ZOOM = 4.0


class MainWindow(QMainWindow):
    def __init__(self, settings: Settings) -> None:
        super().__init__()
        self.setWindowTitle("Form Template Builder")
        self.resize(1300, 850)

        self._settings = settings
        self._store = TemplateStore(settings.templates_dir, settings.uploads_dir)
        self._document: PdfDocument | None = None
        self._template: Template | None = None
        self._model: PlacementModel | None = None
        self._zoom = settings.zoom

        self.page_list = QListWidget()
        self.page_list.currentRowChanged.connect(self._on_page_selected)

        self.canvas = PdfCanvas()
        self.canvas.fields_changed.connect(self._on_canvas_fields_changed)
        self.canvas.field_created.connect(self._on_canvas_field_created)

        self.scroll_area = QScrollArea()
        self.scroll_area.setWidgetResizable(False)
        self.scroll_area.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.scroll_area.setWidget(self.canvas)

        splitter = QSplitter()
        splitter.addWidget(self.page_list)
        splitter.addWidget(self.scroll_area)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 4)
        self.setCentralWidget(splitter)

        self._build_toolbar()
        self.statusBar().showMessage("Ready")

    def _build_toolbar(self) -> None:
        toolbar = QToolBar("Main Toolbar")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        for label, slot in (
            ("New Template", self.new_template),
            ("Open Template", self.open_template),
            ("Save Template", self.save_template),
            ("Delete Field", self.delete_selected_field),
        ):
            action = QAction(label, self)
            action.triggered.connect(slot)
            toolbar.addAction(action)

        copy_action = QAction("Copy Field", self)
        copy_action.setShortcut("Ctrl+D")
        copy_action.triggered.connect(self.copy_selected_field)
        toolbar.addAction(copy_action)

        toolbar.addSeparator()

        for label, slot in (
            ("Previous", self.show_previous_page),
            ("Next", self.show_next_page),
            ("Zoom In", lambda: self.set_zoom(self._zoom + ZOOM_STEP)),
            ("Zoom Out", lambda: self.set_zoom(self._zoom - ZOOM_STEP)),
        ):
            action = QAction(label, self)
            action.triggered.connect(slot)
            toolbar.addAction(action)

        toolbar.addSeparator()

        mode_group = QActionGroup(self)
        mode_group.setExclusive(True)

        self._pointer_action = QAction("Pointer", self)
        self._pointer_action.setCheckable(True)
        self._pointer_action.setChecked(True)
        self._pointer_action.triggered.connect(lambda: self._set_mode(None))
        mode_group.addAction(self._pointer_action)
        toolbar.addAction(self._pointer_action)

        for field_type in FieldType:
            action = QAction(f"Add {field_type.label}", self)
            action.setCheckable(True)
            action.triggered.connect(lambda checked=False, kind=field_type: self._set_mode(kind))
            mode_group.addAction(action)
            toolbar.addAction(action)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._close_document()
        super().closeEvent(event)

    def new_template(self) -> None:
        file_path, _ = QFileDialog.getOpenFileName(
            self,
            "Open PDF",
            str(Path.home()),
            "PDF Files (*.pdf)",
        )
        if not file_path:
            return

        name, ok = QInputDialog.getText(self, "Template Name", "Name:", text=Path(file_path).stem)
        if not ok:
            return

        try:
            template = self._store.create_from_document(name, file_path)
        except (TemplateError, StoreError) as exc:
            QMessageBox.critical(self, "Open Failed", str(exc))
            return
        self._open(template)

    def open_template(self) -> None:
        templates = self._store.list()
        if not templates:
            QMessageBox.information(self, "No Templates", "Create a template first.")
            return

        labels = [f"{template.id}: {template.name}" for template in templates]
        choice, ok = QInputDialog.getItem(self, "Open Template", "Template:", labels, 0, False)
        if not ok:
            return
        self._open(templates[labels.index(choice)])

    def save_template(self) -> None:
        if self._template is None:
            QMessageBox.information(self, "No Template", "Open a template first.")
            return
        if not self._template.fields:
            QMessageBox.information(self, "No Fields", "Add at least one field before saving.")
            return

        try:
            self._store.save(self._template)
        except StoreError as exc:
            QMessageBox.critical(self, "Save Failed", str(exc))
            return

        outside = [field.name for field in self._template.fields if not field.is_in_bounds()]
        message = f"Saved template {self._template.id}: {self._template.name}"
        if outside:
            message += f" ({len(outside)} field(s) extend past the page)"
        self.statusBar().showMessage(message)

    def show_previous_page(self) -> None:
        if self._model is None or self._model.current_page <= 1:
            return
        self.page_list.setCurrentRow(self._model.current_page - 2)

    def show_next_page(self) -> None:
        if self._model is None or self._document is None:
            return
        if self._model.current_page >= self._document.page_count:
            return
        self.page_list.setCurrentRow(self._model.current_page)

    def set_zoom(self, zoom: float) -> None:
        self._zoom = max(MIN_ZOOM, min(MAX_ZOOM, zoom))
        self._render_current_page()

    def delete_selected_field(self) -> None:
        if self._model is None:
            return
        if self.canvas.delete_selected_field():
            count = len(self._model.current_page_fields())
            self.statusBar().showMessage(f"Deleted field. Page {self._model.current_page}: {count} field(s)")
        else:
            self.statusBar().showMessage("No selected field to delete.")

    def copy_selected_field(self) -> None:
        if self._model is None:
            return
        if self.canvas.duplicate_selected_field():
            count = len(self._model.current_page_fields())
            self.statusBar().showMessage(f"Copied field. Page {self._model.current_page}: {count} field(s)")
        else:
            self.statusBar().showMessage("No selected field to copy.")

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        if event.key() == Qt.Key.Key_Delete:
            self.delete_selected_field()
            event.accept()
            return
        if event.matches(QKeySequence.StandardKey.Copy):
            self.copy_selected_field()
            event.accept()
            return
        super().keyPressEvent(event)

    def _open(self, template: Template) -> None:
        self._close_document()
        try:
            data = read_document_bytes(template.document, timeout=self._settings.fetch_timeout)
            self._document = load_pdf_bytes(data, source=template.document)
        except PdfLoadError as exc:
            QMessageBox.critical(self, "Open Failed", str(exc))
            return

        self._template = template
        self._model = PlacementModel(template)
        self._populate_page_list()
        self.statusBar().showMessage(f"Loaded template: {template.name}")

    def _set_mode(self, mode: FieldType | None) -> None:
        self.canvas.set_placement_type(mode)
        label = "Pointer mode" if mode is None else f"Placement mode: {mode.label}"
        self.statusBar().showMessage(label)

    def _populate_page_list(self) -> None:
        self.page_list.clear()
        if self._document is None:
            return

        for page_number in range(1, self._document.page_count + 1):
            self.page_list.addItem(QListWidgetItem(f"Page {page_number}"))

        self.page_list.setCurrentRow(0)

    def _on_page_selected(self, row: int) -> None:
        if self._model is None or row < 0:
            return

        self._model.set_page(row + 1)
        self._render_current_page()

    def _on_canvas_fields_changed(self) -> None:
        if self._model is None:
            return
        count = len(self._model.current_page_fields())
        self.statusBar().showMessage(f"Page {self._model.current_page}: {count} field(s)")

    def _on_canvas_field_created(self) -> None:
        self._pointer_action.setChecked(True)
        self._set_mode(None)

    def _render_current_page(self) -> None:
        if self._document is None or self._model is None:
            self.canvas.clear_page()
            return

        try:
            rendered = render_page(
                self._document,
                self._model.current_page,
                zoom=self._zoom,
                device_pixel_ratio=self.devicePixelRatioF() or self._settings.device_pixel_ratio,
            )
        except PdfRenderError as exc:
            self.canvas.clear_page()
            QMessageBox.critical(self, "Render Failed", str(exc))
            return

        self.canvas.set_page(rendered, self._model)
        self.statusBar().showMessage(f"Page {self._model.current_page}/{self._document.page_count}")

    def _close_document(self) -> None:
        if self._document is not None:
            self._document.close()
            self._document = None
        self._template = None
        self._model = None
        self.page_list.clear()
        self.canvas.clear_page()
