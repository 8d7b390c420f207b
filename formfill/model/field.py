"""Template field model definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from formfill.model.geometry import Rect, Size


class TemplateError(ValueError):
    """Raised when a template or field definition is malformed."""


class FieldType(str, Enum):
    TEXT = "text"
    SIGNATURE = "signature"
    DATE = "date"
    CHECKBOX = "checkbox"
    NUMBER = "number"

    @property
    def label(self) -> str:
        return _FIELD_LABELS[self]


_FIELD_LABELS = {
    FieldType.TEXT: "Text Field",
    FieldType.SIGNATURE: "Signature",
    FieldType.DATE: "Date",
    FieldType.CHECKBOX: "Checkbox",
    FieldType.NUMBER: "Number",
}


@dataclass(slots=True)
class TemplateField:
    """A field placed on one page of a template.

    ``rect`` holds normalized coordinates: fractions of the natural page width
    and height. Pixel rectangles are always derived from it for a given canvas.
    """

    id: str
    name: str
    field_type: FieldType
    page: int
    rect: Rect
    group: str | None = None
    instance_number: int | None = None

    @property
    def is_grouped(self) -> bool:
        return self.instance_number is not None

    def is_in_bounds(self) -> bool:
        return (
            self.rect.x >= 0.0
            and self.rect.y >= 0.0
            and self.rect.right <= 1.0
            and self.rect.bottom <= 1.0
        )

    def pixel_rect(self, canvas: Size) -> Rect:
        return self.rect.scaled(canvas.width, canvas.height)

    def to_dict(self, canvas: Size) -> dict[str, Any]:
        """Serialize with pixel and percent values derived for ``canvas``."""
        pixels = self.pixel_rect(canvas)
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.field_type.value,
            "page": self.page,
            "x": pixels.x,
            "y": pixels.y,
            "width": pixels.width,
            "height": pixels.height,
            "position": {
                "x": pixels.x,
                "y": pixels.y,
                "xPercent": _percent(self.rect.x),
                "yPercent": _percent(self.rect.y),
            },
            "size": {
                "width": pixels.width,
                "height": pixels.height,
                "widthPercent": _percent(self.rect.width),
                "heightPercent": _percent(self.rect.height),
            },
            "normalized": {
                "x": self.rect.x,
                "y": self.rect.y,
                "width": self.rect.width,
                "height": self.rect.height,
            },
        }
        if self.group is not None:
            data["group"] = self.group
        if self.instance_number is not None:
            data["instanceNumber"] = self.instance_number
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], canvas: Size | None = None) -> TemplateField:
        field_id = str(data.get("id") or "").strip()
        if not field_id:
            raise TemplateError("Field is missing an id")

        raw_type = data.get("type")
        try:
            field_type = FieldType(raw_type)
        except ValueError as exc:
            raise TemplateError(f"Unknown field type for {field_id}: {raw_type!r}") from exc

        try:
            page = int(data.get("page", 1))
        except (TypeError, ValueError) as exc:
            raise TemplateError(f"Invalid page for {field_id}: {data.get('page')!r}") from exc
        if page < 1:
            raise TemplateError(f"Invalid page for {field_id}: {page}")

        instance = data.get("instanceNumber")
        return cls(
            id=field_id,
            name=str(data.get("name") or field_id),
            field_type=field_type,
            page=page,
            rect=_normalized_rect(field_id, data, canvas),
            group=data.get("group"),
            instance_number=int(instance) if instance is not None else None,
        )


def _percent(value: float) -> float:
    return round(value * 100.0, 2)


def _normalized_rect(field_id: str, data: dict[str, Any], canvas: Size | None) -> Rect:
    normalized = data.get("normalized")
    if normalized:
        try:
            return Rect(
                float(normalized["x"]),
                float(normalized["y"]),
                float(normalized["width"]),
                float(normalized["height"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TemplateError(f"Invalid coordinates for field {field_id}") from exc

    position = data.get("position") or {}
    size = data.get("size") or {}
    percents = (
        position.get("xPercent"),
        position.get("yPercent"),
        size.get("widthPercent"),
        size.get("heightPercent"),
    )
    try:
        if all(value is not None for value in percents):
            x, y, w, h = (float(value) / 100.0 for value in percents)
            return Rect(x, y, w, h)

        if canvas is not None and not canvas.is_empty:
            return Rect(
                float(data["x"]) / canvas.width,
                float(data["y"]) / canvas.height,
                float(data["width"]) / canvas.width,
                float(data["height"]) / canvas.height,
            )
    except (KeyError, TypeError, ValueError) as exc:
        raise TemplateError(f"Invalid coordinates for field {field_id}") from exc

    raise TemplateError(f"Field {field_id} has no normalized coordinates")
