"""Domain entity — a customer tracked by the business, with embedded history."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4


class ClientStatus(str, Enum):
    NEW = "New"
    QUOTE = "Quote"
    ACTIVE = "Active"
    COMPLETED = "Completed"
    INACTIVE = "Inactive"


class ClientPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Client:
    """Core domain entity for a customer and their notes, services and documents.

    Sub-records are plain dicts (each with its own ``id``) because they are
    stored embedded in the client, the way the document store kept them.
    """

    name: str
    email: str
    phone: str | None = None
    address: str | None = None
    service_needs: str | None = None
    location_details: str | None = None
    status: ClientStatus = ClientStatus.NEW
    priority: ClientPriority = ClientPriority.MEDIUM
    inquiry_date: datetime = field(default_factory=_now)
    notes: list[dict[str, Any]] = field(default_factory=list)
    services: list[dict[str, Any]] = field(default_factory=list)
    documents: list[dict[str, Any]] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def update(self, changes: dict[str, Any]) -> None:
        """Apply field changes and refresh the updated_at timestamp."""
        for key, value in changes.items():
            if key in ("id", "created_at", "updated_at", "notes", "services", "documents"):
                continue
            if key == "status" and value is not None:
                value = ClientStatus(value)
            if key == "priority" and value is not None:
                value = ClientPriority(value)
            setattr(self, key, value)
        self.updated_at = _now()

    def add_note(self, content: str) -> dict[str, Any]:
        note = {"id": str(uuid4()), "content": content, "created_at": _now().isoformat()}
        self.notes = [*self.notes, note]
        self.updated_at = _now()
        return note

    def add_service(self, service: dict[str, Any]) -> dict[str, Any]:
        entry = {"id": str(uuid4()), "status": "Scheduled", **service}
        self.services = [*self.services, entry]
        self.updated_at = _now()
        return entry

    def add_document(self, document: dict[str, Any]) -> dict[str, Any]:
        entry = {"id": str(uuid4()), "uploaded_at": _now().isoformat(), **document}
        self.documents = [*self.documents, entry]
        self.updated_at = _now()
        return entry
