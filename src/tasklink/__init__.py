"""Public API surface for tasklink."""

__version__ = "0.1.0"

from tasklink.config import load_config
from tasklink.contracts.config import TaskLinkConfig
from tasklink.contracts.exceptions import (
    AuthenticationError,
    ConfigError,
    HierarchyError,
    MetadataStoreError,
    ProviderError,
    SyncError,
    TaskLinkError,
    WorkItemNotFoundError,
    WorkItemStoreError,
)
from tasklink.contracts.remote import IssueTracker, RemoteObject, RemoteStatus
from tasklink.contracts.sync import ReconciliationReport, SyncRecord, SyncResult, ValidationReport
from tasklink.contracts.work_item import WorkItem, WorkItemStatus, WorkItemStore
from tasklink.engine.progress import SyncProgress
from tasklink.providers import create_tracker
from tasklink.sdk import TaskLink

__all__ = [
    "AuthenticationError",
    "ConfigError",
    "HierarchyError",
    "IssueTracker",
    "MetadataStoreError",
    "ProviderError",
    "ReconciliationReport",
    "RemoteObject",
    "RemoteStatus",
    "SyncError",
    "SyncProgress",
    "SyncRecord",
    "SyncResult",
    "TaskLink",
    "TaskLinkConfig",
    "TaskLinkError",
    "ValidationReport",
    "WorkItem",
    "WorkItemNotFoundError",
    "WorkItemStatus",
    "WorkItemStore",
    "WorkItemStoreError",
    "__version__",
    "create_tracker",
    "load_config",
]
