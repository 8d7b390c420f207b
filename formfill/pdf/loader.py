"""PDF loading helpers for local files, byte buffers and remote documents."""

from __future__ import annotations

from pathlib import Path

import fitz
import requests
import structlog

from formfill.model.document import PdfDocument

logger = structlog.get_logger(component="pdf.loader")

PDF_MAGIC = b"%PDF-"


class PdfLoadError(RuntimeError):
    """Raised when a PDF cannot be opened or fetched."""


def is_remote(reference: str) -> bool:
    return reference.startswith(("http://", "https://"))


def load_pdf(path: str | Path) -> PdfDocument:
    source_path = Path(path)
    if not source_path.exists():
        raise PdfLoadError(f"File not found: {source_path}")

    try:
        handle = fitz.open(source_path)
    except Exception as exc:  # pragma: no cover - defensive for PyMuPDF errors
        raise PdfLoadError(f"Failed to open PDF: {source_path}") from exc

    return PdfDocument(source=str(source_path), handle=handle)


def load_pdf_bytes(data: bytes, source: str = "<memory>") -> PdfDocument:
    if not data.startswith(PDF_MAGIC):
        raise PdfLoadError(f"Not a PDF document: {source}")

    try:
        handle = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise PdfLoadError(f"Failed to open PDF: {source}") from exc

    return PdfDocument(source=source, handle=handle)


def fetch_pdf_bytes(url: str, timeout: float = 30.0) -> bytes:
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.error("pdf.fetch_failed", url=url, error=str(exc))
        raise PdfLoadError(f"Failed to fetch PDF: {url}") from exc

    data = response.content
    if not data.startswith(PDF_MAGIC):
        raise PdfLoadError(f"Fetched content is not a PDF: {url}")
    logger.debug("pdf.fetched", url=url, size=len(data))
    return data


def read_document_bytes(reference: str | Path, timeout: float = 30.0) -> bytes:
    """Read a base document given a local path or an http(s) URL."""
    reference = str(reference)
    if is_remote(reference):
        return fetch_pdf_bytes(reference, timeout=timeout)

    path = Path(reference)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise PdfLoadError(f"File not found: {path}") from exc
    if not data.startswith(PDF_MAGIC):
        raise PdfLoadError(f"Not a PDF document: {path}")
    return data
