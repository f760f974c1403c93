"""Sync record and report contracts."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from tasklink.contracts.remote import RemoteObject, RemoteStatus
from tasklink.contracts.work_item import WorkItemStatus


def utc_now() -> datetime:
    return datetime.now(UTC)


class SyncRecord(BaseModel):
    work_item_id: str
    remote_id: str
    remote_number: str
    remote_parent_id: str | None = None
    remote_container_id: str
    last_synced_at: datetime = Field(default_factory=utc_now)
    last_known_remote_status: RemoteStatus | None = None

    model_config = {"frozen": True}


def to_sync_record(work_item_id: str, remote: RemoteObject) -> SyncRecord:
    return SyncRecord(
        work_item_id=work_item_id,
        remote_id=remote.remote_id,
        remote_number=remote.remote_number,
        remote_parent_id=remote.parent_remote_id,
        remote_container_id=remote.container_id,
        last_known_remote_status=remote.status,
    )


class ValidationVerdict(StrEnum):
    VALID = "valid"
    INVALID_ORPHANED = "invalid_orphaned"
    INVALID_MISMATCH = "invalid_mismatch"
    UNLINKED = "unlinked"


class DuplicateResolution(StrEnum):
    LINKED = "linked"
    CREATED = "created"
    MANUAL_REVIEW = "manual_review"


class DuplicateEvent(BaseModel):
    work_item_id: str
    candidate: RemoteObject | None = None
    confidence: float = 0.0
    resolution: DuplicateResolution
    recorded_at: datetime = Field(default_factory=utc_now)


class ItemSyncState(StrEnum):
    UNSYNCED = "unsynced"
    RESOLVING = "resolving"
    WRITING = "writing"
    LINKED = "linked"
    FAILED = "failed"


class ItemOutcome(BaseModel):
    work_item_id: str
    state: ItemSyncState = ItemSyncState.UNSYNCED
    remote_id: str | None = None
    remote_number: str | None = None
    created: bool = False
    error: str | None = None


class ValidationReport(BaseModel):
    subtree_root: str
    expected: list[str] = Field(default_factory=list)
    unlinked: list[str] = Field(default_factory=list)
    orphaned: list[str] = Field(default_factory=list)
    mismatched: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    status_drift: list[str] = Field(default_factory=list)
    recovered: list[str] = Field(default_factory=list)
    hard_failures: list[str] = Field(default_factory=list)
    passes: int = 0

    @property
    def ok(self) -> bool:
        return not (self.unlinked or self.orphaned or self.mismatched or self.missing or self.hard_failures)


class ReconciliationReport(BaseModel):
    subtree_root: str
    outcomes: dict[str, ItemOutcome] = Field(default_factory=dict)
    duplicate_events: list[DuplicateEvent] = Field(default_factory=list)
    remote_writes: int = 0
    recovery: ValidationReport | None = None
    cancelled: bool = False

    @property
    def linked(self) -> list[str]:
        return sorted(key for key, outcome in self.outcomes.items() if outcome.state == ItemSyncState.LINKED)

    @property
    def failed(self) -> list[str]:
        return sorted(key for key, outcome in self.outcomes.items() if outcome.state == ItemSyncState.FAILED)

    @property
    def created(self) -> list[str]:
        return sorted(key for key, outcome in self.outcomes.items() if outcome.created)

    @property
    def flagged(self) -> list[str]:
        return [
            event.work_item_id
            for event in self.duplicate_events
            if event.resolution == DuplicateResolution.MANUAL_REVIEW
        ]


class SyncResult(BaseModel):
    work_item_id: str
    local_status: WorkItemStatus
    remote_status: RemoteStatus
    remote_id: str | None = None
    synced: bool = False
    error: str | None = None
