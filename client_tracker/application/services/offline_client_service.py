"""Application service — client CRUD for the UI, with offline support.

Reads go to the backend when it is reachable and fall back to the local
mirror otherwise. Every write goes through the SyncCoordinator, so callers
get back either a confirmed or a queued (provisional) result.
"""

import logging
from collections.abc import Callable
from typing import Any

from client_tracker.application.interfaces import RemoteClient
from client_tracker.application.services.sync_coordinator import SyncCoordinator
from client_tracker.domain.entities import (
    DrainReport,
    MutationResult,
    OperationKind,
    QueuedOperation,
    TrackedRecord,
    is_temp_id,
)
from client_tracker.domain.exceptions import ClientError, RemoteRequestError

logger = logging.getLogger(__name__)

Subscriber = Callable[[list[TrackedRecord]], Any]

# Query parameters that narrow a listing; anything else only pages or sorts it
_FILTER_PARAMS = ("status", "priority")


class OfflineClientService:
    """Orchestrates client reads and writes for one session.

    Usage:
        service = build_offline_client_service(settings)
        await service.init()
        result = await service.create({"name": "Oak St Job", "email": "a@b.com"})
        if result.is_queued:
            ...  # result.record is provisional until result.completion resolves
        await service.teardown()
    """

    RESOURCE = "/clients"
    ENTITY_KEY = "client"

    def __init__(self, coordinator: SyncCoordinator, remote: RemoteClient):
        self._coordinator = coordinator
        self._remote = remote

    # ── Lifecycle ───────────────────────────────────────────────────

    async def init(self) -> list[TrackedRecord]:
        """Restore cached state, flush queued work and load the client list."""
        await self._coordinator.init()
        try:
            return await self.get_all()
        except ClientError as exc:
            logger.warning("Initial client load rejected, using cache: %s", exc)
            return self._coordinator.mirror.snapshot()

    async def teardown(self) -> None:
        await self._coordinator.teardown()
        self._coordinator.notifier.clear()

    # ── Reads ───────────────────────────────────────────────────────

    async def get_all(self, params: dict[str, Any] | None = None) -> list[TrackedRecord]:
        """List clients, from the backend when reachable, else from the mirror.

        Records with queued changes keep their local version; records with a
        queued delete stay hidden.
        """
        params = {k: v for k, v in (params or {}).items() if v is not None}
        if self._coordinator.is_online:
            try:
                data = await self._remote.send(self.RESOURCE, params=params or None)
            except RemoteRequestError as exc:
                if not exc.transient:
                    raise
                logger.warning("Client list unavailable, serving cached copy: %s", exc)
                await self._coordinator.report_unreachable()
            else:
                records = [TrackedRecord.from_api(c) for c in data.get("clients") or []]
                return self._merge_listing(records, full=not params)

        filters = {k: params[k] for k in _FILTER_PARAMS if k in params}
        return self._coordinator.mirror.list(filters)

    async def get(self, client_id: str) -> TrackedRecord | None:
        """Return one client, preferring the cached copy."""
        mirror = self._coordinator.mirror
        cached = mirror.get(client_id)
        if cached is not None:
            return cached
        if is_temp_id(client_id) or not self._coordinator.is_online:
            return None

        try:
            data = await self._remote.send(f"{self.RESOURCE}/{client_id}")
        except ClientError as exc:
            if exc.status_code == 404:
                return None
            raise
        except RemoteRequestError as exc:
            logger.warning("Client %s unavailable: %s", client_id, exc)
            await self._coordinator.report_unreachable()
            return None

        payload = data.get(self.ENTITY_KEY)
        if not isinstance(payload, dict):
            return None
        return mirror.upsert(TrackedRecord.from_api(payload))

    # ── Writes ──────────────────────────────────────────────────────

    async def create(self, data: dict[str, Any]) -> MutationResult:
        return await self._coordinator.mutate(
            QueuedOperation(
                kind=OperationKind.CREATE,
                resource=self.RESOURCE,
                entity_key=self.ENTITY_KEY,
                payload=dict(data),
            )
        )

    async def update(self, client_id: str, changes: dict[str, Any]) -> MutationResult:
        return await self._coordinator.mutate(
            QueuedOperation(
                kind=OperationKind.UPDATE,
                resource=f"{self.RESOURCE}/{client_id}",
                entity_key=self.ENTITY_KEY,
                target_id=client_id,
                payload=dict(changes),
            )
        )

    async def delete(self, client_id: str) -> MutationResult:
        return await self._coordinator.mutate(
            QueuedOperation(
                kind=OperationKind.DELETE,
                resource=f"{self.RESOURCE}/{client_id}",
                entity_key=self.ENTITY_KEY,
                target_id=client_id,
            )
        )

    async def add_note(self, client_id: str, note: dict[str, Any]) -> MutationResult:
        return await self._append(client_id, "notes", note)

    async def add_service(self, client_id: str, service: dict[str, Any]) -> MutationResult:
        return await self._append(client_id, "services", service)

    async def add_document(self, client_id: str, document: dict[str, Any]) -> MutationResult:
        return await self._append(client_id, "documents", document)

    # ── Sync surface ────────────────────────────────────────────────

    def subscribe(self, subscriber: Subscriber) -> Subscriber:
        return self._coordinator.notifier.subscribe(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self._coordinator.notifier.unsubscribe(subscriber)

    def pending_operations(self) -> list[QueuedOperation]:
        return self._coordinator.queue.peek_all()

    async def sync_now(self) -> DrainReport:
        return await self._coordinator.sync_now()

    # ── Internals ───────────────────────────────────────────────────

    async def _append(
        self, client_id: str, collection: str, entry: dict[str, Any]
    ) -> MutationResult:
        return await self._coordinator.mutate(
            QueuedOperation(
                kind=OperationKind.APPEND,
                resource=f"{self.RESOURCE}/{client_id}/{collection}",
                entity_key=self.ENTITY_KEY,
                target_id=client_id,
                payload=dict(entry),
                collection=collection,
            )
        )

    def _merge_listing(self, records: list[TrackedRecord], *, full: bool) -> list[TrackedRecord]:
        mirror = self._coordinator.mirror
        pending = self._coordinator.queue.peek_all()
        local_ids = {op.target_id for op in pending if op.target_id is not None}
        deleting = {op.target_id for op in pending if op.kind is OperationKind.DELETE}
        records = [r for r in records if r.id not in deleting]

        if full:
            return mirror.replace_all(records, keep_ids=local_ids - deleting)

        merged = []
        for record in records:
            if record.id in local_ids and record.id in mirror:
                merged.append(mirror.get(record.id))
            else:
                merged.append(mirror.upsert(record))
        return merged
