"""Exception hierarchy for tasklink."""

from __future__ import annotations


class TaskLinkError(Exception):
    """Base exception for all tasklink errors."""


class ConfigError(TaskLinkError):
    """Configuration loading or validation failure."""


class WorkItemStoreError(TaskLinkError):
    """Work-item store read/write failure."""


class WorkItemNotFoundError(WorkItemStoreError):
    """Requested work item does not exist in the store."""

    def __init__(self, work_item_id: str) -> None:
        super().__init__(f"Work item not found: {work_item_id}")
        self.work_item_id = work_item_id


class ProviderError(TaskLinkError):
    """Base issue-tracker operation failure."""


class AuthenticationError(ProviderError):
    """Authentication/authorization failure."""


class TransientRemoteError(ProviderError):
    """Remote failure that is expected to clear on its own (timeouts, 5xx)."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RateLimitedError(TransientRemoteError):
    """Issue tracker rejected the request because a quota was exceeded."""


class MetadataStoreError(TaskLinkError):
    """Sync records could not be persisted or loaded."""


class SyncError(TaskLinkError):
    """Engine-level synchronization failure."""


class HierarchyError(SyncError):
    """Work-item tree violates the two-level parent/subtask invariant."""
