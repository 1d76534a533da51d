from .client import Client, ClientPriority, ClientStatus
from .queued_operation import OperationKind, QueuedOperation
from .sync_result import (
    DrainOutcome,
    DrainOutcomeStatus,
    DrainReport,
    MutationResult,
    MutationStatus,
)
from .tracked_record import (
    SUB_COLLECTIONS,
    TEMP_ID_PREFIX,
    TrackedRecord,
    is_temp_id,
    new_temp_id,
)

__all__ = [
    "Client",
    "ClientPriority",
    "ClientStatus",
    "OperationKind",
    "QueuedOperation",
    "DrainOutcome",
    "DrainOutcomeStatus",
    "DrainReport",
    "MutationResult",
    "MutationStatus",
    "SUB_COLLECTIONS",
    "TEMP_ID_PREFIX",
    "TrackedRecord",
    "is_temp_id",
    "new_temp_id",
]
