"""Generate filled PDFs for requests."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
import re

import structlog

from formfill.config import Settings
from formfill.model.field import FieldType
from formfill.model.request import Request
from formfill.model.template import Template
from formfill.pdf.compositor import (
    CheckmarkContent,
    CompositeError,
    FieldContent,
    PageBox,
    PlacedField,
    SignatureContent,
    TextContent,
    composite_document,
    page_boxes,
)
from formfill.pdf.loader import PdfLoadError, read_document_bytes
from formfill.state.store import RequestStore, StoreError, TemplateStore

logger = structlog.get_logger(component="service.fill")

_UNCHECKED = {"", "false", "0", "off", "no"}
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)
_SCRIPT_SCHEME = re.compile(r"javascript:", re.IGNORECASE)


class FillError(RuntimeError):
    """Raised when a filled document cannot be produced."""


def sanitize_value(value: str) -> str:
    """Strip markup characters and script fragments from a submitted value."""
    if not isinstance(value, str):
        return ""
    value = value.replace("<", "").replace(">", "")
    value = _SCRIPT_SCHEME.sub("", value)
    value = _EVENT_HANDLER.sub("", value)
    return value.strip()


def is_checked(value: str) -> bool:
    return value.strip().lower() not in _UNCHECKED


def _content_for(field_type: FieldType, value: str, instance_number: int | None) -> FieldContent | None:
    if field_type is FieldType.SIGNATURE:
        return SignatureContent(value)
    if field_type is FieldType.CHECKBOX:
        return CheckmarkContent() if is_checked(value) else None
    return TextContent(value, instance_number)


def build_placed_fields(
    template: Template,
    values: Mapping[str, str],
    boxes: list[PageBox],
) -> dict[int, list[PlacedField]]:
    """Project the template's fields onto the document's pages, grouped by page.

    Fields without a value are left out; order within a page follows the
    template's field order.
    """
    by_page: dict[int, list[PlacedField]] = {}
    for item in template.fields:
        raw = values.get(item.id) or ""
        # Signature data URLs are decoded as images, never drawn as text.
        value = raw.strip() if item.field_type is FieldType.SIGNATURE else sanitize_value(raw)
        if not value:
            continue
        if item.page > len(boxes):
            logger.warning("fill.field_page_missing", field_id=item.id, page=item.page, pages=len(boxes))
            continue

        content = _content_for(item.field_type, value, item.instance_number)
        if content is None:
            continue

        box = boxes[item.page - 1]
        by_page.setdefault(item.page, []).append(
            PlacedField(id=item.id, rect=item.rect.scaled(box.width, box.height), content=content)
        )
    return by_page


def fill_document(template: Template, values: Mapping[str, str], pdf_bytes: bytes) -> bytes:
    try:
        placed = build_placed_fields(template, values, page_boxes(pdf_bytes))
        return composite_document(pdf_bytes, placed)
    except CompositeError as exc:
        raise FillError(f"Failed to generate filled PDF for template {template.name!r}: {exc}") from exc


def filled_document_name(request_id: int) -> str:
    return f"request-{request_id}-filled.pdf"


class FillService:
    def __init__(self, settings: Settings, templates: TemplateStore, requests: RequestStore) -> None:
        self._settings = settings
        self._templates = templates
        self._requests = requests
        self._logger = structlog.get_logger().bind(component="FillService")

    @classmethod
    def from_settings(cls, settings: Settings) -> FillService:
        return cls(
            settings,
            TemplateStore(settings.templates_dir, settings.uploads_dir),
            RequestStore(settings.requests_dir),
        )

    def generate(self, request_id: int) -> Path:
        """Write the filled PDF for ``request_id`` and record its location."""
        try:
            request = self._requests.get(request_id)
            template = self._templates.get(request.template_id)
        except StoreError as exc:
            raise FillError(str(exc)) from exc

        try:
            pdf_bytes = read_document_bytes(template.document, timeout=self._settings.fetch_timeout)
        except PdfLoadError as exc:
            raise FillError(f"Failed to fetch template PDF: {template.document}") from exc

        filled = fill_document(template, request.values, pdf_bytes)
        target = self._settings.output_dir / filled_document_name(request_id)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(filled)
        except OSError as exc:
            raise FillError(f"Failed to save filled PDF: {target}") from exc

        self._record(request, target)
        self._logger.info("fill.generated", request_id=request_id, path=str(target))
        return target

    def _record(self, request: Request, target: Path) -> None:
        request.attach_filled_document(str(target))
        try:
            self._requests.save(request)
        except StoreError as exc:
            raise FillError(f"Failed to record filled PDF for request {request.id}") from exc
