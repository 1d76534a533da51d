"""Offline queue — durable FIFO of writes waiting for the backend to come back.

Every change to the queue is written through to the LocalStore before the
call returns, so pending work survives a restart. The stored list always
reflects the delivery order, including operations of a drain that is still
running.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from client_tracker.application.interfaces import LocalStore
from client_tracker.domain.entities import (
    DrainOutcome,
    DrainOutcomeStatus,
    OperationKind,
    QueuedOperation,
)
from client_tracker.domain.exceptions import (
    ClientError,
    LocalPersistenceError,
    RemoteRequestError,
)

logger = logging.getLogger(__name__)

Deliver = Callable[[QueuedOperation], Awaitable[dict[str, Any]]]


class OfflineQueue:
    """Ordered, persisted list of pending write operations.

    Usage:
        queue = OfflineQueue(store)
        queue.load()
        queue.enqueue(operation)

        async for outcome in queue.drain(deliver):
            ...  # reconcile local state with outcome

    ``drain`` moves the live queue into an in-flight batch, so operations
    enqueued while it runs are not part of that batch. Operations that fail
    transiently go back into the live queue ahead of those newer arrivals,
    keeping their original relative order.
    """

    STORAGE_KEY = "offline_queue"

    def __init__(self, store: LocalStore, storage_key: str = STORAGE_KEY):
        self._store = store
        self._key = storage_key
        self._items: list[QueuedOperation] = []
        self._in_flight: list[QueuedOperation] = []
        self._retry_insert_at = 0
        self._draining = False

    # ── State ───────────────────────────────────────────────────────

    def load(self) -> int:
        """Restore the queue from the store. Returns the number of operations."""
        raw = self._store.read(self._key) or []
        items: list[QueuedOperation] = []
        for entry in raw:
            try:
                items.append(QueuedOperation.from_dict(entry))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Dropping unreadable queued operation %r: %s", entry, exc)
        self._items = items
        self._in_flight = []
        self._retry_insert_at = 0
        if items:
            logger.info("Restored %d queued operation(s)", len(items))
        return len(items)

    def peek_all(self) -> list[QueuedOperation]:
        """All pending operations in delivery order (in-flight ones included)."""
        return self._pending_view()

    def __len__(self) -> int:
        return len(self._items) + len(self._in_flight)

    @property
    def is_draining(self) -> bool:
        return self._draining

    def has_pending_for(self, target_id: str | None) -> bool:
        if target_id is None:
            return False
        return any(op.target_id == target_id for op in self._pending_view())

    # ── Mutations ───────────────────────────────────────────────────

    def enqueue(self, operation: QueuedOperation) -> QueuedOperation:
        """Append ``operation`` and persist the whole queue immediately."""
        self._items.append(operation)
        try:
            self._persist()
        except LocalPersistenceError:
            self._items.remove(operation)
            raise
        logger.info(
            "Queued %s %s (%d pending)",
            operation.method,
            operation.resource,
            len(self),
        )
        return operation

    def discard(self, operation: QueuedOperation) -> bool:
        """Withdraw a not-yet-drained operation. Returns False if it is not queued."""
        for index, op in enumerate(self._items):
            if op.id == operation.id:
                break
        else:
            return False
        del self._items[index]
        if index < self._retry_insert_at:
            self._retry_insert_at -= 1
        self._persist()
        logger.info("Withdrew %s %s (%d pending)", op.method, op.resource, len(self))
        return True

    def remap_target(self, old_id: str, new_id: str) -> int:
        """Point pending operations at ``new_id`` instead of ``old_id``.

        Used once the backend has assigned a real id to a record created
        offline. Returns the number of operations rewritten.
        """
        changed = sum(1 for op in self._pending_view() if op.retarget(old_id, new_id))
        if changed:
            self._persist()
            logger.debug("Remapped %d queued operation(s) from %s to %s", changed, old_id, new_id)
        return changed

    async def drain(self, deliver: Deliver) -> AsyncIterator[DrainOutcome]:
        """Deliver the current queue contents one at a time, in order.

        ``deliver`` sends an operation and raises a RemoteRequestError on
        failure. Yields one DrainOutcome per snapshotted operation. Draining
        an empty queue yields nothing and never calls ``deliver``.

        If the store cannot record that an operation left the queue, the
        outcome for that operation is still yielded (it has already reached
        its final state on the backend), then the LocalPersistenceError is
        raised and the rest of the batch stays queued.
        """
        if self._draining:
            raise RuntimeError("A drain is already in progress")
        if not self._items:
            return

        self._draining = True
        self._in_flight = self._items
        self._items = []
        self._retry_insert_at = 0
        retrying: set[str] = set()
        rejected_creates: set[str] = set()
        failure: LocalPersistenceError | None = None
        logger.info("Draining %d queued operation(s)", len(self._in_flight))

        try:
            while self._in_flight and failure is None:
                op = self._in_flight[0]

                if op.target_id is not None and op.target_id in retrying:
                    self._requeue_head()
                    yield DrainOutcome(op, DrainOutcomeStatus.DEFERRED)
                    continue

                if op.target_id is not None and op.target_id in rejected_creates:
                    failure = self._drop_head()
                    error = ClientError(
                        404, "The record this change belongs to was rejected", op.resource
                    )
                    yield DrainOutcome(op, DrainOutcomeStatus.REJECTED, error=error)
                    continue

                try:
                    data = await deliver(op)
                except RemoteRequestError as exc:
                    if exc.transient:
                        self._requeue_head()
                        if op.target_id is not None:
                            retrying.add(op.target_id)
                        logger.warning("Re-queued %s %s: %s", op.method, op.resource, exc)
                        yield DrainOutcome(op, DrainOutcomeStatus.RETRY, error=exc)
                    else:
                        failure = self._drop_head()
                        if op.kind is OperationKind.CREATE and op.target_id is not None:
                            rejected_creates.add(op.target_id)
                        logger.error("Dropped %s %s: %s", op.method, op.resource, exc)
                        yield DrainOutcome(op, DrainOutcomeStatus.REJECTED, error=exc)
                    continue

                failure = self._drop_head()
                yield DrainOutcome(op, DrainOutcomeStatus.DELIVERED, data=data)

            if failure is not None:
                raise failure
        finally:
            # Unfinished work goes back in order; the pending view is unchanged
            self._items[self._retry_insert_at:self._retry_insert_at] = self._in_flight
            self._in_flight = []
            self._draining = False
            if failure is not None:
                self._persist_after_failure()

    # ── Internals ───────────────────────────────────────────────────

    def _pending_view(self) -> list[QueuedOperation]:
        head = self._items[: self._retry_insert_at]
        tail = self._items[self._retry_insert_at :]
        return [*head, *self._in_flight, *tail]

    def _requeue_head(self) -> None:
        # Same delivery order as before, so the stored list is already right
        op = self._in_flight.pop(0)
        self._items.insert(self._retry_insert_at, op)
        self._retry_insert_at += 1

    def _drop_head(self) -> LocalPersistenceError | None:
        """Remove the finished head operation; returns the store error, if any."""
        op = self._in_flight.pop(0)
        try:
            self._persist()
        except LocalPersistenceError as exc:
            logger.error("Could not record %s %s as finished: %s", op.method, op.resource, exc)
            return exc
        return None

    def _persist_after_failure(self) -> None:
        try:
            self._persist()
        except LocalPersistenceError as exc:
            logger.warning("Stored queue is stale until the next successful write: %s", exc)

    def _persist(self) -> None:
        self._store.write(self._key, [op.to_dict() for op in self._pending_view()])
