"""Domain entity for a write that is waiting to be delivered to the backend."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4


class OperationKind(str, Enum):
    """Kinds of mutation the offline queue can hold."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPEND = "append"

    @property
    def http_method(self) -> str:
        return _HTTP_METHODS[self]


_HTTP_METHODS = {
    OperationKind.CREATE: "POST",
    OperationKind.UPDATE: "PATCH",
    OperationKind.DELETE: "DELETE",
    OperationKind.APPEND: "POST",
}


@dataclass
class QueuedOperation:
    """One pending mutation against a backend resource.

    ``target_id`` is the mirror id the operation applies to. For a create
    made offline it is the temporary id of the provisional record, which is
    what the confirmed record replaces once the create goes through.
    """

    kind: OperationKind
    resource: str
    entity_key: str
    target_id: str | None = None
    payload: dict[str, Any] | None = None
    collection: str | None = None  # sub-record collection, append only
    id: str = field(default_factory=lambda: str(uuid4()))
    enqueued_at: float = field(default_factory=time.time)

    @property
    def method(self) -> str:
        return self.kind.http_method

    @property
    def record_resource(self) -> str:
        """Path of the record this operation touches (e.g. ``/clients/42``)."""
        if self.kind is OperationKind.CREATE:
            return f"{self.resource.rstrip('/')}/{self.target_id}"
        if self.kind is OperationKind.APPEND:
            return self.resource.rsplit("/", 1)[0]
        return self.resource

    def retarget(self, old_id: str, new_id: str) -> bool:
        """Rewrite references to ``old_id``; returns True if anything changed."""
        changed = False
        if self.target_id == old_id:
            self.target_id = new_id
            changed = True
        segments = self.resource.split("/")
        if old_id in segments:
            self.resource = "/".join(new_id if s == old_id else s for s in segments)
            changed = True
        return changed

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "method": self.method,
            "resource": self.resource,
            "entity_key": self.entity_key,
            "target_id": self.target_id,
            "payload": self.payload,
            "collection": self.collection,
            "enqueued_at": self.enqueued_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueuedOperation":
        return cls(
            id=data["id"],
            kind=OperationKind(data["kind"]),
            resource=data["resource"],
            entity_key=data["entity_key"],
            target_id=data.get("target_id"),
            payload=data.get("payload"),
            collection=data.get("collection"),
            enqueued_at=float(data.get("enqueued_at", 0.0)),
        )
