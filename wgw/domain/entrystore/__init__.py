"""Entry models, the pending-action queue and the persistence gateway."""

from .gateway import PersistenceGateway, build_local_entry
from .models import (
    AnalysisDraft,
    Entry,
    EntryDraft,
    PendingAction,
    PendingActionStatus,
    PendingActionType,
    SyncState,
    is_local_id,
    new_local_id,
)
from .pending_queue import (
    FlushReport,
    InMemoryPendingActionStore,
    PendingActionQueue,
    SqlPendingActionStore,
)

__all__ = [
    "AnalysisDraft",
    "Entry",
    "EntryDraft",
    "FlushReport",
    "InMemoryPendingActionStore",
    "PendingAction",
    "PendingActionQueue",
    "PendingActionStatus",
    "PendingActionType",
    "PersistenceGateway",
    "SqlPendingActionStore",
    "SyncState",
    "build_local_entry",
    "is_local_id",
    "new_local_id",
]
