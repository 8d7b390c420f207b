"""Request model: a template instantiation carrying submitted values."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class RequestStateError(RuntimeError):
    """Raised when a request is mutated outside its lifecycle."""


class RequestStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.APPROVED, RequestStatus.REJECTED)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Request:
    template_id: int
    id: int | None = None
    status: RequestStatus = RequestStatus.DRAFT
    values: dict[str, str] = field(default_factory=dict)
    filled_document: str | None = None
    created_at: datetime = field(default_factory=_utc_now)
    submitted_at: datetime | None = None

    def set_value(self, field_id: str, value: str) -> str:
        """Upsert one value; returns ``"created"`` or ``"updated"``."""
        self._ensure_open()
        if not field_id:
            raise ValueError("field id is required")
        action = "updated" if field_id in self.values else "created"
        self.values[field_id] = value
        if self.status is RequestStatus.DRAFT:
            self.status = RequestStatus.IN_PROGRESS
        return action

    def set_values(self, values: dict[str, str]) -> dict[str, str]:
        self._ensure_open()
        if any(not field_id for field_id in values):
            raise ValueError("field id is required")
        return {field_id: self.set_value(field_id, value) for field_id, value in values.items()}

    def submit(self) -> None:
        self._ensure_open()
        self.status = RequestStatus.IN_PROGRESS
        self.submitted_at = _utc_now()

    def approve(self) -> None:
        self._ensure_open()
        self.status = RequestStatus.APPROVED

    def reject(self) -> None:
        self._ensure_open()
        self.status = RequestStatus.REJECTED

    def attach_filled_document(self, location: str) -> None:
        self.filled_document = location

    def _ensure_open(self) -> None:
        if self.status.is_terminal:
            raise RequestStateError(f"Request {self.id} is {self.status.value}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "templateId": self.template_id,
            "status": self.status.value,
            "values": dict(self.values),
            "filledDocument": self.filled_document,
            "createdAt": self.created_at.isoformat(),
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Request:
        request = cls(
            template_id=int(data["templateId"]),
            id=data.get("id"),
            status=RequestStatus(data.get("status") or RequestStatus.DRAFT.value),
            values={str(key): str(value) for key, value in (data.get("values") or {}).items()},
            filled_document=data.get("filledDocument"),
        )
        if data.get("createdAt"):
            request.created_at = datetime.fromisoformat(data["createdAt"])
        if data.get("submittedAt"):
            request.submitted_at = datetime.fromisoformat(data["submittedAt"])
        return request
