"""Sync Coordinator — decides between live delivery and the offline queue.

Owns the LocalMirror, the OfflineQueue and the ChangeNotifier for one
session. Every mutation goes through ``mutate``:

    Attempting ─┬─ success ─────────────→ Confirmed (mirror updated)
                ├─ transient failure ───→ Queued    (provisional mirror entry)
                └─ definitive failure ──→ Rejected  (ClientError raised)

Queued operations are replayed by ``drain`` when connectivity returns.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Coroutine
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

from client_tracker.application.interfaces import (
    ConnectivityMonitor,
    LocalStore,
    RemoteClient,
)
from client_tracker.application.services.change_notifier import ChangeNotifier
from client_tracker.application.services.local_mirror import LocalMirror
from client_tracker.application.services.offline_queue import OfflineQueue
from client_tracker.domain.entities import (
    DrainOutcome,
    DrainOutcomeStatus,
    DrainReport,
    MutationResult,
    MutationStatus,
    OperationKind,
    QueuedOperation,
    TrackedRecord,
    is_temp_id,
    new_temp_id,
)
from client_tracker.domain.exceptions import (
    ClientError,
    LocalPersistenceError,
    RemoteRequestError,
)
from client_tracker.infrastructure.logging.colored_logger import SyncLogger, SyncStage

logger = logging.getLogger(__name__)
slog = SyncLogger("SyncCoordinator")

T = TypeVar("T")


def _consume_exception(future: asyncio.Future) -> None:
    # Rejections nobody awaits must not surface as "never retrieved" warnings
    if not future.cancelled():
        future.exception()


@dataclass(eq=False)
class _EntityLock:
    """Lock for one entity, dropped from the coordinator once nobody holds or awaits it."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0
    keys: set[str] = field(default_factory=set)
    aliases: set[str] = field(default_factory=set)  # temporary ids redirected while in use


class SyncCoordinator:
    """Session-scoped owner of the offline sync state.

    Construct once per session, call ``init()`` before use and
    ``teardown()`` when done. Mutations on the same entity are serialized;
    an entity with queued work keeps queueing until that work is delivered,
    so its operations reach the backend in the order they were issued.
    """

    def __init__(
        self,
        remote: RemoteClient,
        store: LocalStore,
        connectivity: ConnectivityMonitor,
        *,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self._remote = remote
        self._connectivity = connectivity
        self.notifier = notifier or ChangeNotifier()
        self.queue = OfflineQueue(store)
        self.mirror = LocalMirror(store, self.notifier)
        self._completions: dict[str, asyncio.Future[MutationResult]] = {}
        self._entity_locks: dict[str, _EntityLock] = {}
        self._aliases: dict[str, str] = {}  # confirmed temporary id → server id
        self._drain_task: asyncio.Task[DrainReport] | None = None
        self._tasks: set[asyncio.Task] = set()
        self._initialized = False

    # ── Lifecycle ───────────────────────────────────────────────────

    async def init(self) -> None:
        """Restore persisted state, start watching connectivity, flush backlog."""
        if self._initialized:
            return
        records = self.mirror.load()
        pending = self.queue.load()
        logger.info("Sync state restored: %d cached record(s), %d queued", records, pending)

        self._connectivity.add_listener(self._on_connectivity_change)
        await self._connectivity.start()
        self._initialized = True

        if self._connectivity.is_online and pending:
            await self.drain()

    async def teardown(self) -> None:
        """Stop watching connectivity and let in-flight work finish."""
        self._connectivity.remove_listener(self._on_connectivity_change)
        await self._connectivity.stop()

        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

        for future in self._completions.values():
            if not future.done():
                future.cancel()
        self._completions.clear()
        self._drain_task = None
        self._initialized = False

    @property
    def is_online(self) -> bool:
        return self._connectivity.is_online

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    # ── Mutations ───────────────────────────────────────────────────

    async def mutate(self, operation: QueuedOperation) -> MutationResult:
        """Deliver ``operation`` now if possible, otherwise queue it.

        Returns a confirmed or queued MutationResult. Raises ClientError when
        the backend rejects the operation; nothing is queued or cached then.
        Cancelling the caller does not abort a request already in flight.
        """
        return await self._shielded(self._attempt(operation))

    async def _attempt(self, operation: QueuedOperation) -> MutationResult:
        while True:
            self._follow_alias(operation)
            async with self._entity_lock(operation.target_id):
                if operation.target_id not in self._aliases:
                    return await self._attempt_locked(operation)
                # Confirmed while we waited: retry under the server id
                self._follow_alias(operation)

    async def _attempt_locked(self, operation: QueuedOperation) -> MutationResult:
        if not self._connectivity.is_online:
            return self._queue_operation(operation, reason="offline")
        if self.queue.has_pending_for(operation.target_id):
            return self._queue_operation(operation, reason="earlier changes still queued")

        try:
            data = await self._send(operation)
        except RemoteRequestError as exc:
            if not exc.transient:
                slog.step_error(
                    SyncStage.REMOTE,
                    f"{operation.method} {operation.resource} rejected",
                    error=exc,
                )
                raise
            result = self._queue_operation(operation, reason=str(exc))
            await self._connectivity.report_unreachable()
            return result

        record = self._apply_confirmed(operation, data)
        return MutationResult(MutationStatus.CONFIRMED, record=record, operation=operation)

    def _queue_operation(self, operation: QueuedOperation, reason: str) -> MutationResult:
        if operation.kind is OperationKind.CREATE and operation.target_id is None:
            operation.target_id = new_temp_id()

        self.queue.enqueue(operation)
        slog.step_start(
            SyncStage.QUEUE,
            f"{operation.method} {operation.resource} queued",
            reason=reason,
            pending=len(self.queue),
        )

        try:
            record = self._apply_optimistic(operation)
        except LocalPersistenceError:
            # The caller gets the error, so the operation must not replay later
            self._withdraw(operation)
            raise

        future: asyncio.Future[MutationResult] = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume_exception)
        self._completions[operation.id] = future
        return MutationResult(
            MutationStatus.QUEUED, record=record, operation=operation, completion=future
        )

    # ── Draining ────────────────────────────────────────────────────

    async def drain(self) -> DrainReport:
        """Replay the queue against the backend, one operation at a time.

        A call made while a drain is running joins that drain instead of
        starting another one. Draining an empty queue (or while offline)
        returns an empty report without touching the backend.
        """
        if self.is_draining:
            logger.debug("Drain already in progress — joining it")
        elif not self._start_drain():
            return DrainReport()
        return await asyncio.shield(self._drain_task)

    async def sync_now(self) -> DrainReport:
        """User-triggered sync: re-check connectivity, then drain."""
        await self._connectivity.check_now()
        return await self.drain()

    async def report_unreachable(self) -> None:
        await self._connectivity.report_unreachable()

    def _start_drain(self) -> bool:
        if self.is_draining:
            return True
        if not len(self.queue):
            return False
        if not self._connectivity.is_online:
            logger.info("Offline — %d operation(s) stay queued", len(self.queue))
            return False
        self._drain_task = self._track(self._run_drain())
        return True

    async def _run_drain(self) -> DrainReport:
        report = DrainReport()
        rollbacks: dict[str, QueuedOperation] = {}

        # Operations queued behind the batch (same entity, issued mid-drain)
        # get further passes until the queue is empty or something fails.
        while len(self.queue) and self._connectivity.is_online:
            retried_before = report.retried
            with slog.timed_step(
                SyncStage.DRAIN, f"Draining {len(self.queue)} queued operation(s)"
            ):
                async with aclosing(self.queue.drain(self._send_locked)) as outcomes:
                    async for outcome in outcomes:
                        # Settled synchronously, before any other task can touch the entity
                        report.record(outcome)
                        rollback = self._settle(outcome)
                        if rollback is not None:
                            rollbacks.setdefault(rollback.target_id, rollback)
            if report.retried > retried_before:
                break

        for operation in rollbacks.values():
            await self._refresh_record(operation)

        slog.stats(
            delivered=report.delivered,
            retried=report.retried,
            deferred=report.deferred,
            rejected=report.rejected,
            pending=len(self.queue),
        )
        if report.retried:
            await self._connectivity.report_unreachable()
        elif not len(self.queue):
            slog.step_complete(SyncStage.COMPLETE, "Offline queue is empty")
        return report

    def _settle(self, outcome: DrainOutcome) -> QueuedOperation | None:
        """Reconcile the mirror with one drain outcome.

        Returns the rejected operation when its record must be re-read from
        the backend to undo the optimistic change.
        """
        operation = outcome.operation

        if outcome.status is DrainOutcomeStatus.DELIVERED:
            record = self._apply_confirmed(operation, outcome.data or {})
            self._resolve(
                operation,
                MutationResult(MutationStatus.CONFIRMED, record=record, operation=operation),
            )
            return None

        if outcome.status is DrainOutcomeStatus.REJECTED:
            slog.step_error(
                SyncStage.ERROR,
                f"{operation.method} {operation.resource} rejected",
                error=outcome.error,
            )
            self._reject(operation, outcome.error)
            if operation.kind is OperationKind.CREATE or is_temp_id(operation.target_id):
                # Never reached the backend, nothing to restore
                self.mirror.remove(operation.target_id)
                return None
            return operation if operation.target_id is not None else None

        slog.detail(
            f"{operation.method} {operation.resource} stays queued",
            status=outcome.status.value,
        )
        return None

    async def _refresh_record(self, operation: QueuedOperation) -> None:
        """Roll a rejected optimistic change back to the backend's version."""
        record_id = operation.target_id
        if record_id is None or self.queue.has_pending_for(record_id):
            return
        async with self._entity_lock(record_id):
            try:
                data = await self._remote.send(operation.record_resource)
            except ClientError as exc:
                if exc.status_code == 404:
                    self.mirror.remove(record_id)
                else:
                    logger.warning("Could not refresh %s after rejection: %s", record_id, exc)
                return
            except RemoteRequestError as exc:
                logger.warning("Could not refresh %s after rejection: %s", record_id, exc)
                return
            payload = data.get(operation.entity_key)
            if isinstance(payload, dict):
                self.mirror.replace(record_id, TrackedRecord.from_api(payload))

    async def _on_connectivity_change(self, online: bool) -> None:
        if online:
            self._start_drain()

    # ── Mirror reconciliation ───────────────────────────────────────

    def _apply_optimistic(self, operation: QueuedOperation) -> TrackedRecord | None:
        changes = operation.payload or {}
        if operation.kind is OperationKind.CREATE:
            return self.mirror.apply_provisional(changes, temp_id=operation.target_id)
        if operation.kind is OperationKind.UPDATE:
            return self.mirror.apply_provisional(changes, record_id=operation.target_id)
        if operation.kind is OperationKind.APPEND:
            return self.mirror.apply_provisional(
                changes, record_id=operation.target_id, collection=operation.collection
            )
        self.mirror.remove(operation.target_id)
        return None

    def _apply_confirmed(
        self, operation: QueuedOperation, data: dict[str, Any]
    ) -> TrackedRecord | None:
        if operation.kind is OperationKind.DELETE:
            self.mirror.remove(operation.target_id)
            return None

        payload = data.get(operation.entity_key)
        if not isinstance(payload, dict):
            logger.warning(
                "%s %s succeeded without a '%s' in the response",
                operation.method,
                operation.resource,
                operation.entity_key,
            )
            return self.mirror.get(operation.target_id) if operation.target_id else None

        record = TrackedRecord.from_api(payload)
        if operation.target_id is None:
            self.mirror.upsert(record)
        else:
            # Replace by the id the operation was issued against: for an
            # offline create that is the temporary id, not the server's
            self.mirror.replace(operation.target_id, record)
            if operation.target_id != record.id:
                self.queue.remap_target(operation.target_id, record.id)
                self._redirect(operation.target_id, record.id)

        if self.queue.has_pending_for(record.id):
            return self._replay_pending(record.id)

        slog.step_complete(SyncStage.MIRROR, f"{operation.entity_key} {record.id} confirmed")
        return self.mirror.get(record.id)

    def _replay_pending(self, record_id: str) -> TrackedRecord | None:
        """Re-apply still-queued changes on top of a freshly confirmed record."""
        record = None
        for pending in self.queue.peek_all():
            if pending.target_id == record_id:
                record = self._apply_optimistic(pending)
        return record

    # ── Completion futures ──────────────────────────────────────────

    def _resolve(self, operation: QueuedOperation, result: MutationResult) -> None:
        future = self._completions.pop(operation.id, None)
        if future is not None and not future.done():
            future.set_result(result)

    def _reject(self, operation: QueuedOperation, error: Exception | None) -> None:
        future = self._completions.pop(operation.id, None)
        if future is not None and not future.done():
            future.set_exception(
                error or ClientError(400, "Rejected by the backend", operation.resource)
            )

    # ── Internals ───────────────────────────────────────────────────

    async def _send(self, operation: QueuedOperation) -> dict[str, Any]:
        slog.detail(f"{operation.method} {operation.resource}")
        return await self._remote.send(
            operation.resource,
            method=operation.method,
            payload=operation.payload,
        )

    async def _send_locked(self, operation: QueuedOperation) -> dict[str, Any]:
        async with self._entity_lock(operation.target_id):
            return await self._send(operation)

    def _follow_alias(self, operation: QueuedOperation) -> None:
        server_id = self._aliases.get(operation.target_id)
        if server_id is not None:
            operation.retarget(operation.target_id, server_id)

    @asynccontextmanager
    async def _entity_lock(self, key: str | None) -> AsyncIterator[None]:
        """Serialise work on one entity. Creates without an id run unlocked."""
        if key is None:
            yield
            return
        entry = self._entity_locks.get(key)
        if entry is None:
            entry = self._entity_locks[key] = _EntityLock(keys={key})
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if not entry.users:
                self._release(entry)

    def _release(self, entry: _EntityLock) -> None:
        for key in entry.keys:
            if self._entity_locks.get(key) is entry:
                del self._entity_locks[key]
        for alias in entry.aliases:
            self._aliases.pop(alias, None)

    def _redirect(self, temp_id: str, server_id: str) -> None:
        """Send callers still waiting on ``temp_id`` to the confirmed record."""
        entry = self._entity_locks.pop(temp_id, None)
        if entry is None:
            return
        entry.keys.discard(temp_id)
        entry.aliases.add(temp_id)
        self._aliases[temp_id] = server_id
        if server_id not in self._entity_locks:
            entry.keys.add(server_id)
            self._entity_locks[server_id] = entry

    def _withdraw(self, operation: QueuedOperation) -> None:
        try:
            self.queue.discard(operation)
        except LocalPersistenceError as exc:
            logger.error(
                "Could not withdraw %s %s from the stored queue: %s",
                operation.method,
                operation.resource,
                exc,
            )

    def _track(self, coro: Coroutine[Any, Any, T]) -> "asyncio.Task[T]":
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_consume_exception)
        return task

    async def _shielded(self, coro: Coroutine[Any, Any, T]) -> T:
        return await asyncio.shield(self._track(coro))
