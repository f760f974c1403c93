"""Local ↔ remote status mirroring."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from tasklink.contracts.exceptions import ProviderError, TaskLinkError
from tasklink.contracts.remote import IssueTracker, RemoteStatus
from tasklink.contracts.sync import SyncRecord, SyncResult, utc_now
from tasklink.contracts.work_item import WorkItemStatus, WorkItemStore
from tasklink.engine.executor import BatchExecutor, BatchOperation
from tasklink.persistence.metadata_store import MetadataStore

if TYPE_CHECKING:
    from tasklink.engine.reconciler import ReconciliationEngine

_LOG = logging.getLogger(__name__)

STATUS_TABLE: tuple[tuple[WorkItemStatus, RemoteStatus], ...] = (
    (WorkItemStatus.PENDING, RemoteStatus.BACKLOG),
    (WorkItemStatus.ACTIVE, RemoteStatus.IN_PROGRESS),
    (WorkItemStatus.IN_REVIEW, RemoteStatus.IN_REVIEW),
    (WorkItemStatus.DONE, RemoteStatus.DONE),
    (WorkItemStatus.BLOCKED, RemoteStatus.BLOCKED),
    (WorkItemStatus.CANCELLED, RemoteStatus.CANCELLED),
)

_LOCAL_TO_REMOTE = dict(STATUS_TABLE)
_REMOTE_TO_LOCAL = {remote: local for local, remote in STATUS_TABLE}


def to_remote_status(status: WorkItemStatus) -> RemoteStatus:
    return _LOCAL_TO_REMOTE[status]


def to_local_status(status: RemoteStatus) -> WorkItemStatus:
    return _REMOTE_TO_LOCAL[status]


def status_update_operation(
    tracker: IssueTracker,
    metadata: MetadataStore,
    record: SyncRecord,
    remote_status: RemoteStatus,
    *,
    on_write: Callable[[], None] | None = None,
) -> BatchOperation:
    async def run() -> SyncRecord:
        await tracker.update_object_status(record.remote_id, remote_status)
        if on_write is not None:
            on_write()
        updated = record.model_copy(update={"last_known_remote_status": remote_status, "last_synced_at": utc_now()})
        await metadata.set(record.work_item_id, updated)
        return updated

    return BatchOperation(
        key=record.work_item_id,
        run=run,
        description=f"set {record.remote_number} to {remote_status.value}",
    )


class StatusSynchronizer:
    def __init__(
        self,
        store: WorkItemStore,
        tracker: IssueTracker,
        metadata: MetadataStore,
        engine: ReconciliationEngine,
        executor: BatchExecutor,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._metadata = metadata
        self._engine = engine
        self._executor = executor

    async def sync_status(self, work_item_id: str, new_status: WorkItemStatus) -> SyncResult:
        # The local change always lands first and is never rolled back.
        item = await self._store.get_work_item(work_item_id)
        if item.status != new_status:
            await self._store.set_status(work_item_id, new_status)

        remote_status = to_remote_status(new_status)
        result = SyncResult(work_item_id=work_item_id, local_status=new_status, remote_status=remote_status)

        record = await self._metadata.get(work_item_id)
        if record is None:
            try:
                await self._engine.reconcile(work_item_id)
            except ProviderError as exc:
                return await self._degrade(result, f"could not link work item: {exc}")
            record = await self._metadata.get(work_item_id)
            if record is None:
                return await self._degrade(result, "work item has no remote counterpart yet")
            if record.last_known_remote_status == remote_status:
                return result.model_copy(update={"remote_id": record.remote_id, "synced": True})

        summary = await self._executor.run(
            [status_update_operation(self._tracker, self._metadata, record, remote_status)]
        )
        failure = summary.failure_for(work_item_id)
        if failure is not None:
            return await self._degrade(result.model_copy(update={"remote_id": record.remote_id}), failure.message)
        if summary.skipped:
            return await self._degrade(result.model_copy(update={"remote_id": record.remote_id}), "cancelled")

        _LOG.info("Synced %s status %s -> %s", work_item_id, new_status.value, remote_status.value)
        return result.model_copy(update={"remote_id": record.remote_id, "synced": True})

    async def _degrade(self, result: SyncResult, reason: str) -> SyncResult:
        _LOG.warning("Status sync for %s deferred to next reconciliation: %s", result.work_item_id, reason)
        try:
            await self._store.append_note(
                result.work_item_id,
                f"[tasklink] status sync to {result.remote_status.value} failed, will retry on next reconcile: "
                f"{reason}",
            )
        except TaskLinkError as exc:
            _LOG.warning("Could not record note on %s: %s", result.work_item_id, exc)
        return result.model_copy(update={"synced": False, "error": reason})
