"""Template model: an ordered field list bound to one base document."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from formfill.model.field import TemplateError, TemplateField
from formfill.model.geometry import Size


@dataclass(slots=True)
class Template:
    name: str
    document: str
    natural_size: Size
    page_count: int = 1
    fields: list[TemplateField] = field(default_factory=list)
    id: int | None = None
    description: str = ""
    category: str = ""
    version: str = "1"
    is_active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def fields_on_page(self, page: int) -> list[TemplateField]:
        return [item for item in self.fields if item.page == page]

    def get_field(self, field_id: str) -> TemplateField | None:
        for item in self.fields:
            if item.id == field_id:
                return item
        return None

    def add_field(self, template_field: TemplateField) -> None:
        if self.get_field(template_field.id) is not None:
            raise TemplateError(f"Duplicate field id: {template_field.id}")
        self.fields.append(template_field)

    def remove_field(self, field_id: str) -> bool:
        for index, item in enumerate(self.fields):
            if item.id == field_id:
                del self.fields[index]
                return True
        return False

    def out_of_range_fields(self) -> list[TemplateField]:
        return [item for item in self.fields if item.page > self.page_count]

    def to_dict(self, canvas: Size | None = None) -> dict[str, Any]:
        """Serialize the template; pixel values are derived for ``canvas``.

        Without a canvas the natural document size is used, i.e. the canvas of
        an unzoomed render.
        """
        canvas = canvas or self.natural_size
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "version": self.version,
            "isActive": self.is_active,
            "document": self.document,
            "documentWidth": self.natural_size.width,
            "documentHeight": self.natural_size.height,
            "pageCount": self.page_count,
            "canvasWidth": canvas.width,
            "canvasHeight": canvas.height,
            "fields": [item.to_dict(canvas) for item in self.fields],
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Template:
        try:
            natural = Size(float(data["documentWidth"]), float(data["documentHeight"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise TemplateError("Template is missing its document dimensions") from exc
        if natural.is_empty:
            raise TemplateError("Template document dimensions must be positive")

        document = data.get("document")
        if not document:
            raise TemplateError("Template has no base document")

        canvas = None
        if data.get("canvasWidth") and data.get("canvasHeight"):
            canvas = Size(float(data["canvasWidth"]), float(data["canvasHeight"]))

        template = cls(
            name=data.get("name") or "Untitled Form",
            document=str(document),
            natural_size=natural,
            page_count=int(data.get("pageCount") or 1),
            id=data.get("id"),
            description=data.get("description") or "",
            category=data.get("category") or "",
            version=str(data.get("version") or "1"),
            is_active=bool(data.get("isActive", True)),
        )
        if data.get("createdAt"):
            try:
                template.created_at = datetime.fromisoformat(str(data["createdAt"]))
            except ValueError as exc:
                raise TemplateError(f"Invalid createdAt: {data['createdAt']!r}") from exc
        for raw_field in data.get("fields") or []:
            template.add_field(TemplateField.from_dict(raw_field, canvas))
        return template
