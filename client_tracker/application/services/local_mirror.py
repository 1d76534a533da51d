"""Local mirror — persisted cache of client records, confirmed or provisional."""

import logging
from typing import Any

from client_tracker.application.interfaces import LocalStore
from client_tracker.application.services.change_notifier import ChangeNotifier
from client_tracker.domain.entities import TrackedRecord, new_temp_id
from client_tracker.domain.entities.tracked_record import utc_now_iso

logger = logging.getLogger(__name__)


class LocalMirror:
    """In-memory map of records, written through to the LocalStore.

    Every mutating call persists the full mirror before returning and then
    publishes a snapshot through the ChangeNotifier. Callers always get
    copies; the stored records are never handed out.
    """

    STORAGE_KEY = "cached_clients"

    def __init__(
        self,
        store: LocalStore,
        notifier: ChangeNotifier,
        storage_key: str = STORAGE_KEY,
    ):
        self._store = store
        self._notifier = notifier
        self._key = storage_key
        self._records: dict[str, TrackedRecord] = {}

    def load(self) -> int:
        """Restore records from the store and publish them once."""
        raw = self._store.read(self._key) or {}
        records: dict[str, TrackedRecord] = {}
        for record_id, data in raw.items():
            try:
                record = TrackedRecord.from_dict({**data, "id": record_id})
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Dropping unreadable cached record %s: %s", record_id, exc)
                continue
            records[record.id] = record
        self._records = records
        if records:
            self._notifier.publish(self.snapshot())
        return len(records)

    # ── Reads ───────────────────────────────────────────────────────

    def get(self, record_id: str) -> TrackedRecord | None:
        record = self._records.get(record_id)
        return record.copy() if record else None

    def snapshot(self) -> list[TrackedRecord]:
        return [record.copy() for record in self._records.values()]

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    # ── Writes ──────────────────────────────────────────────────────

    def upsert(self, record: TrackedRecord) -> TrackedRecord:
        records = dict(self._records)
        records[record.id] = record.copy()
        self._commit(records)
        return record.copy()

    def remove(self, record_id: str) -> bool:
        if record_id not in self._records:
            return False
        records = dict(self._records)
        del records[record_id]
        self._commit(records)
        return True

    def replace(self, original_id: str, record: TrackedRecord) -> TrackedRecord:
        """Swap the entry stored under ``original_id`` for ``record``.

        Keeps the entry's position so a confirmed record takes the place of
        the provisional one it supersedes.
        """
        records: dict[str, TrackedRecord] = {}
        placed = False
        for record_id, existing in self._records.items():
            if record_id == original_id:
                records[record.id] = record.copy()
                placed = True
            elif record_id != record.id:
                records[record_id] = existing
        if not placed:
            records[record.id] = record.copy()
        self._commit(records)
        return record.copy()

    def replace_all(
        self, records: list[TrackedRecord], keep_ids: set[str] | None = None
    ) -> list[TrackedRecord]:
        """Replace the mirror with ``records``, retaining entries in ``keep_ids``.

        Retained entries (records with unsynced local changes) win over the
        server copy of the same id.
        """
        rebuilt = {record.id: record.copy() for record in records}
        for record_id in keep_ids or ():
            if record_id in self._records:
                rebuilt[record_id] = self._records[record_id]
        self._commit(rebuilt)
        return self.snapshot()

    def apply_provisional(
        self,
        changes: dict[str, Any],
        *,
        record_id: str | None = None,
        collection: str | None = None,
        temp_id: str | None = None,
    ) -> TrackedRecord | None:
        """Apply a change that could not be confirmed by the server yet.

        * no ``record_id``: create a new record with a temporary id
          (``temp_id`` when given, otherwise a fresh one).
        * ``record_id`` only: merge ``changes`` into that record.
        * ``record_id`` and ``collection``: append ``changes`` as a new
          sub-record with a temporary id.

        The touched record is flagged provisional. Returns None when the
        target record is not in the mirror.
        """
        now = utc_now_iso()
        if record_id is None:
            record = TrackedRecord.from_dict({**changes, "id": temp_id or new_temp_id()})
            record.created_at = now
        elif record_id in self._records:
            record = self._records[record_id].copy()
            if collection is None:
                record.fields = TrackedRecord.from_dict(
                    {**record.to_dict(), **changes, "id": record.id}
                ).fields
            else:
                stamp_key = "uploaded_at" if collection == "documents" else "created_at"
                record.sub_records(collection).append(
                    {stamp_key: now, **changes, "id": new_temp_id(), "provisional": True}
                )
        else:
            return None

        record.updated_at = now
        record.provisional = True
        records = dict(self._records)
        records[record.id] = record
        self._commit(records)
        return record.copy()

    # ── Internals ───────────────────────────────────────────────────

    def _commit(self, records: dict[str, TrackedRecord]) -> None:
        """Persist ``records`` and only then make them the live state."""
        self._store.write(
            self._key,
            {record_id: record.to_dict() for record_id, record in records.items()},
        )
        self._records = records
        self._notifier.publish(self.snapshot())

    # Defined last: inside the class body the name shadows the builtin.
    def list(self, filters: dict[str, Any] | None = None) -> list[TrackedRecord]:
        """Return records whose fields equal every value in ``filters``.

        The ``provisional`` key filters on the provisional flag.
        """
        filters = dict(filters or {})
        provisional = filters.pop("provisional", None)
        matches = []
        for record in self._records.values():
            if provisional is not None and record.provisional != provisional:
                continue
            if any(record.fields.get(k) != v for k, v in filters.items()):
                continue
            matches.append(record.copy())
        return matches
