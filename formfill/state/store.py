"""JSON file stores for templates and requests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import json
import os
from pathlib import Path
import secrets
import shutil
import tempfile
from typing import Any, Generic, TypeVar

import structlog

from formfill.model.field import TemplateError
from formfill.model.geometry import Size
from formfill.model.request import Request
from formfill.model.template import Template
from formfill.pdf.loader import PDF_MAGIC, PdfLoadError, load_pdf

RecordT = TypeVar("RecordT", Template, Request)

TOKEN_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"


class StoreError(RuntimeError):
    """Raised when a stored record is missing or cannot be read or written."""


def generate_token(length: int = 32) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}_", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=2)
        Path(temp_path).replace(path)
    except Exception:
        if Path(temp_path).exists():
            Path(temp_path).unlink()
        raise


class _JsonStore(Generic[RecordT]):
    kind = "record"

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._logger = structlog.get_logger().bind(component=type(self).__name__)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, record_id: int) -> Path:
        return self._root / f"{self.kind}-{record_id}.json"

    def _encode(self, record: RecordT) -> dict[str, Any]:
        raise NotImplementedError

    def _decode(self, data: dict[str, Any]) -> RecordT:
        raise NotImplementedError

    def _ids(self) -> list[int]:
        if not self._root.is_dir():
            return []
        ids = []
        for path in self._root.glob(f"{self.kind}-*.json"):
            suffix = path.stem.rsplit("-", maxsplit=1)[-1]
            if suffix.isdigit():
                ids.append(int(suffix))
        return sorted(ids)

    def save(self, record: RecordT) -> RecordT:
        if record.id is None:
            ids = self._ids()
            record.id = (ids[-1] + 1) if ids else 1
        try:
            atomic_write_json(self._path(record.id), self._encode(record))
        except OSError as exc:
            raise StoreError(f"Failed to save {self.kind} {record.id}") from exc
        self._logger.debug("store.saved", kind=self.kind, record_id=record.id)
        return record

    def get(self, record_id: int) -> RecordT:
        path = self._path(record_id)
        if not path.exists():
            raise StoreError(f"{self.kind.capitalize()} not found: {record_id}")
        try:
            with path.open(encoding="utf-8") as handle:
                return self._decode(json.load(handle))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise StoreError(f"Failed to read {self.kind} {record_id}") from exc

    def list(self) -> list[RecordT]:
        records: list[RecordT] = []
        for record_id in self._ids():
            try:
                records.append(self.get(record_id))
            except StoreError as exc:
                self._logger.warning("store.skip_unreadable", kind=self.kind, record_id=record_id, error=str(exc))
        return records

    def delete(self, record_id: int) -> bool:
        path = self._path(record_id)
        if not path.exists():
            return False
        path.unlink()
        return True


@dataclass(frozen=True, slots=True)
class UploadedDocument:
    path: Path
    natural_size: Size
    page_count: int


class TemplateStore(_JsonStore[Template]):
    kind = "template"

    def __init__(self, root: str | Path, uploads_dir: str | Path | None = None) -> None:
        super().__init__(root)
        self._uploads_dir = Path(uploads_dir) if uploads_dir else self._root / "uploads"

    def _encode(self, record: Template) -> dict[str, Any]:
        return record.to_dict()

    def _decode(self, data: dict[str, Any]) -> Template:
        return Template.from_dict(data)

    def active(self) -> list[Template]:
        return [template for template in self.list() if template.is_active]

    def import_document(self, source: str | Path) -> UploadedDocument:
        """Copy a base PDF into the uploads directory and read its geometry."""
        source_path = Path(source)
        if not source_path.is_file():
            raise TemplateError(f"No file uploaded: {source_path}")
        with source_path.open("rb") as handle:
            if handle.read(len(PDF_MAGIC)) != PDF_MAGIC:
                raise TemplateError(f"Not a PDF file: {source_path.name}")

        try:
            with load_pdf(source_path) as document:
                natural = document.page_size(1)
                page_count = document.page_count
        except PdfLoadError as exc:
            raise TemplateError(f"Unreadable PDF: {source_path.name}") from exc

        stamp = datetime.now().strftime("%Y%m%d%H%M%S")
        target = self._uploads_dir / f"template_{stamp}_{generate_token(7).lower()}.pdf"
        try:
            self._uploads_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source_path, target)
        except OSError as exc:
            raise StoreError(f"Failed to upload {source_path.name}") from exc

        self._logger.info("template.document_uploaded", path=str(target), pages=page_count)
        return UploadedDocument(path=target, natural_size=natural, page_count=page_count)

    def create_from_document(self, name: str, source: str | Path) -> Template:
        uploaded = self.import_document(source)
        template = Template(
            name=name or "Untitled Form",
            document=str(uploaded.path),
            natural_size=uploaded.natural_size,
            page_count=uploaded.page_count,
        )
        return self.save(template)


class RequestStore(_JsonStore[Request]):
    kind = "request"

    def _encode(self, record: Request) -> dict[str, Any]:
        return record.to_dict()

    def _decode(self, data: dict[str, Any]) -> Request:
        return Request.from_dict(data)

    def create(self, template_id: int) -> Request:
        return self.save(Request(template_id=template_id))

    def for_template(self, template_id: int) -> list[Request]:
        return [request for request in self.list() if request.template_id == template_id]
