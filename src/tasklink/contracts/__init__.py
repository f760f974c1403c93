"""Contract exports."""

from tasklink.contracts.config import MatchThresholds, RateLimitConfig, RecoveryConfig, RetryPolicy, TaskLinkConfig
from tasklink.contracts.exceptions import (
    AuthenticationError,
    ConfigError,
    HierarchyError,
    MetadataStoreError,
    ProviderError,
    RateLimitedError,
    SyncError,
    TaskLinkError,
    TransientRemoteError,
    WorkItemNotFoundError,
    WorkItemStoreError,
)
from tasklink.contracts.remote import CreateObjectInput, IssueTracker, RemoteObject, RemoteStatus
from tasklink.contracts.sync import (
    DuplicateEvent,
    DuplicateResolution,
    ItemOutcome,
    ItemSyncState,
    ReconciliationReport,
    SyncRecord,
    SyncResult,
    ValidationReport,
    ValidationVerdict,
)
from tasklink.contracts.work_item import WorkItem, WorkItemStatus, WorkItemStore

__all__ = [
    "AuthenticationError",
    "ConfigError",
    "CreateObjectInput",
    "DuplicateEvent",
    "DuplicateResolution",
    "HierarchyError",
    "IssueTracker",
    "ItemOutcome",
    "ItemSyncState",
    "MatchThresholds",
    "MetadataStoreError",
    "ProviderError",
    "RateLimitConfig",
    "RateLimitedError",
    "ReconciliationReport",
    "RecoveryConfig",
    "RemoteObject",
    "RemoteStatus",
    "RetryPolicy",
    "SyncError",
    "SyncRecord",
    "SyncResult",
    "TaskLinkConfig",
    "TaskLinkError",
    "TransientRemoteError",
    "ValidationReport",
    "ValidationVerdict",
    "WorkItem",
    "WorkItemNotFoundError",
    "WorkItemStatus",
    "WorkItemStore",
    "WorkItemStoreError",
]
