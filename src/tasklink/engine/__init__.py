"""Engine-domain exports."""

from tasklink.engine.executor import BatchExecutor, BatchOperation, BatchSummary, Clock, SystemClock
from tasklink.engine.progress import NullSyncProgress, SyncProgress
from tasklink.engine.reconciler import ReconciliationEngine
from tasklink.engine.resolver import DuplicateResolver, Resolution, ResolutionAction
from tasklink.engine.session import RemoteContext, SessionState
from tasklink.engine.status import STATUS_TABLE, StatusSynchronizer, to_local_status, to_remote_status
from tasklink.engine.validation import ValidationGate

__all__ = [
    "STATUS_TABLE",
    "BatchExecutor",
    "BatchOperation",
    "BatchSummary",
    "Clock",
    "DuplicateResolver",
    "NullSyncProgress",
    "ReconciliationEngine",
    "RemoteContext",
    "Resolution",
    "ResolutionAction",
    "SessionState",
    "StatusSynchronizer",
    "SyncProgress",
    "SystemClock",
    "ValidationGate",
    "to_local_status",
    "to_remote_status",
]
