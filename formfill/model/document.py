"""Document model for a loaded base PDF and its PyMuPDF handle."""

from __future__ import annotations

from dataclasses import dataclass

import fitz

from formfill.model.geometry import Size


@dataclass(slots=True)
class PdfDocument:
    source: str
    handle: fitz.Document

    @property
    def page_count(self) -> int:
        return self.handle.page_count

    @property
    def is_closed(self) -> bool:
        return self.handle.is_closed

    def page_size(self, page_number: int) -> Size:
        """Natural size in points of a 1-based page."""
        rect = self.handle.load_page(page_number - 1).rect
        return Size(float(rect.width), float(rect.height))

    def to_bytes(self) -> bytes:
        return self.handle.tobytes()

    def close(self) -> None:
        if not self.handle.is_closed:
            self.handle.close()

    def __enter__(self) -> PdfDocument:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
