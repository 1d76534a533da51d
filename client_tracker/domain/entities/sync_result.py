"""Result types returned by the offline sync layer."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from .queued_operation import QueuedOperation
from .tracked_record import TrackedRecord


class MutationStatus(str, Enum):
    """How a mutation ended for the caller that issued it."""

    CONFIRMED = "confirmed"
    QUEUED = "queued"


@dataclass
class MutationResult:
    """Outcome of a create/update/delete/append issued through the sync layer.

    A queued result carries ``completion``, a future resolved once the queued
    operation reaches a final classification during a drain: it yields the
    confirmed MutationResult, or raises the ClientError that rejected it.
    """

    status: MutationStatus
    record: TrackedRecord | None = None
    operation: QueuedOperation | None = None
    completion: "asyncio.Future[MutationResult] | None" = None

    @property
    def is_confirmed(self) -> bool:
        return self.status is MutationStatus.CONFIRMED

    @property
    def is_queued(self) -> bool:
        return self.status is MutationStatus.QUEUED


class DrainOutcomeStatus(str, Enum):
    """Per-operation result of one drain pass."""

    DELIVERED = "delivered"
    RETRY = "retry"        # transient failure, back in the queue
    DEFERRED = "deferred"  # not attempted, an earlier op on the same entity is retrying
    REJECTED = "rejected"  # definitive failure, dropped from the queue


@dataclass
class DrainOutcome:
    operation: QueuedOperation
    status: DrainOutcomeStatus
    data: dict | None = None
    error: Exception | None = None


@dataclass
class DrainReport:
    """Counts of what a drain pass did with each snapshotted operation."""

    delivered: int = 0
    retried: int = 0
    deferred: int = 0
    rejected: int = 0
    outcomes: list[DrainOutcome] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.delivered + self.retried + self.rejected

    def record(self, outcome: DrainOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status is DrainOutcomeStatus.DELIVERED:
            self.delivered += 1
        elif outcome.status is DrainOutcomeStatus.RETRY:
            self.retried += 1
        elif outcome.status is DrainOutcomeStatus.DEFERRED:
            self.deferred += 1
        else:
            self.rejected += 1
