"""Domain entity for the locally mirrored copy of a client."""

import copy
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

TEMP_ID_PREFIX = "temp_"
SUB_COLLECTIONS = ("notes", "services", "documents")

_RESERVED_KEYS = frozenset({"id", "created_at", "updated_at", "provisional", *SUB_COLLECTIONS})

_temp_id_lock = threading.Lock()
_last_temp_stamp = 0


def new_temp_id() -> str:
    """Return a session-unique temporary identifier derived from the clock."""
    global _last_temp_stamp
    with _temp_id_lock:
        stamp = time.time_ns()
        if stamp <= _last_temp_stamp:
            stamp = _last_temp_stamp + 1
        _last_temp_stamp = stamp
    return f"{TEMP_ID_PREFIX}{stamp}"


def is_temp_id(record_id: str | None) -> bool:
    return bool(record_id) and record_id.startswith(TEMP_ID_PREFIX)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TrackedRecord:
    """A client as last known on this device, confirmed or provisional.

    ``fields`` holds the business attributes (name, email, status, ...);
    the embedded sub-records keep their server order. A record built from a
    server response is never provisional.
    """

    id: str
    fields: dict[str, Any] = field(default_factory=dict)
    notes: list[dict[str, Any]] = field(default_factory=list)
    services: list[dict[str, Any]] = field(default_factory=list)
    documents: list[dict[str, Any]] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
    provisional: bool = False

    @property
    def is_temporary(self) -> bool:
        return is_temp_id(self.id)

    def sub_records(self, collection: str) -> list[dict[str, Any]]:
        if collection not in SUB_COLLECTIONS:
            raise ValueError(f"Unknown sub-record collection: {collection}")
        return getattr(self, collection)

    def copy(self) -> "TrackedRecord":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            **self.fields,
            "notes": copy.deepcopy(self.notes),
            "services": copy.deepcopy(self.services),
            "documents": copy.deepcopy(self.documents),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "provisional": self.provisional,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackedRecord":
        """Rebuild a record from its persisted form (keeps the provisional flag)."""
        return cls(
            id=str(data["id"]),
            fields={k: v for k, v in data.items() if k not in _RESERVED_KEYS},
            notes=list(data.get("notes") or []),
            services=list(data.get("services") or []),
            documents=list(data.get("documents") or []),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            provisional=bool(data.get("provisional", False)),
        )

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TrackedRecord":
        """Build a confirmed record from a server payload."""
        record = cls.from_dict(data)
        record.provisional = False
        return record
