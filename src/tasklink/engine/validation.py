"""Post-batch consistency check and bounded recovery."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tasklink.contracts.config import RecoveryConfig
from tasklink.contracts.exceptions import ProviderError
from tasklink.contracts.remote import IssueTracker, RemoteObject
from tasklink.contracts.sync import ReconciliationReport, SyncRecord, ValidationReport, ValidationVerdict
from tasklink.contracts.work_item import WorkItem
from tasklink.engine.executor import Clock
from tasklink.engine.session import SessionState
from tasklink.engine.status import to_remote_status
from tasklink.persistence.metadata_store import MetadataStore

if TYPE_CHECKING:
    from tasklink.engine.reconciler import ReconciliationEngine

_LOG = logging.getLogger(__name__)


class ValidationGate:
    """Re-reads remote state after creations and re-queues what went missing.

    Batch creation under rate limiting can drop operations without an error,
    so every expected handle is checked against a fresh listing of the
    parent's children, falling back to a direct read for handles the listing
    has not indexed yet. Missing items get at most ``max_passes`` rounds of
    re-resolution and single-operation resubmission.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        tracker: IssueTracker,
        metadata: MetadataStore,
        session: SessionState,
        recovery: RecoveryConfig,
        *,
        clock: Clock,
    ) -> None:
        self._engine = engine
        self._tracker = tracker
        self._metadata = metadata
        self._session = session
        self._recovery = recovery
        self._clock = clock

    async def check(self, parent: WorkItem, subtasks: list[WorkItem], *, subtree_root: str) -> ValidationReport:
        """Read-only health check of a subtree."""
        items = [parent, *subtasks]
        report = ValidationReport(subtree_root=subtree_root, expected=[item.id for item in items])
        observed_ids = {
            remote.remote_id
            for remote in await self._tracker.list_objects(self._session.remote_context.container_id)
        }

        for item in items:
            check = await self._metadata.inspect(item.id)
            if check.verdict == ValidationVerdict.UNLINKED:
                report.unlinked.append(item.id)
                continue
            if check.verdict == ValidationVerdict.INVALID_ORPHANED:
                report.orphaned.append(item.id)
                continue
            if check.verdict == ValidationVerdict.INVALID_MISMATCH:
                report.mismatched.append(item.id)
                continue
            if check.record is None or check.remote is None:
                continue
            if check.record.remote_id not in observed_ids:
                report.missing.append(item.id)
            if check.remote.status != to_remote_status(item.status):
                report.status_drift.append(item.id)
        return report

    async def recover(
        self,
        parent_record: SyncRecord,
        queue: list[WorkItem],
        report: ReconciliationReport,
    ) -> ValidationReport:
        validation = ValidationReport(subtree_root=report.subtree_root, expected=[item.id for item in queue])
        pending = await self._missing(queue, parent_record)
        validation.missing = [item.id for item in pending]
        if not pending:
            return validation

        _LOG.warning("%d expected remote object(s) not observed after batch", len(pending))
        while pending:
            if self._recovery.reindex_wait_seconds > 0:
                await self._clock.sleep(self._recovery.reindex_wait_seconds)
            pending = await self._missing(pending, parent_record)
            if not pending or validation.passes >= self._recovery.max_passes:
                break
            validation.passes += 1
            await self._recovery_pass(pending, parent_record, report)

        pending_ids = {item.id for item in pending}
        validation.recovered = [item_id for item_id in validation.missing if item_id not in pending_ids]
        validation.hard_failures = sorted(pending_ids)
        for item in pending:
            reason = f"remote issue still missing after {validation.passes} recovery pass(es)"
            self._engine.mark_failed(report.outcomes[item.id], reason)
            _LOG.error("%s: %s; operator attention required", item.id, reason)
            await self._engine.note(item.id, f"[tasklink] {reason}; needs operator attention")
        return validation

    async def _recovery_pass(
        self,
        pending: list[WorkItem],
        parent_record: SyncRecord,
        report: ReconciliationReport,
    ) -> None:
        for item in pending:
            self._session.forget(item.id)
            resolution = await self._engine.resolve_item(item, parent_record.remote_id, report)
            if resolution is None or not resolution.needs_create:
                continue
            # One single-operation executor call per missing item.
            summary = await self._engine.executor.run(
                [self._engine.creation_operation(item, parent_record, report)]
            )
            await self._engine.apply_summary(summary, report)

    async def _missing(self, items: list[WorkItem], parent_record: SyncRecord) -> list[WorkItem]:
        try:
            observed = await self._tracker.list_objects(self._session.remote_context.container_id)
        except ProviderError as exc:
            _LOG.warning("Could not list remote objects for validation: %s", exc)
            return list(items)
        handles = self._observed_handles(observed, parent_record.remote_id)

        missing: list[WorkItem] = []
        for item in items:
            record = await self._metadata.get(item.id)
            if record is None:
                missing.append(item)
            elif record.remote_number not in handles and not await self._readable(item.id, parent_record):
                missing.append(item)
        return missing

    async def _readable(self, work_item_id: str, parent_record: SyncRecord) -> bool:
        """Direct read for a handle the listing has not indexed yet."""
        try:
            check = await self._metadata.inspect(work_item_id)
        except ProviderError as exc:
            _LOG.warning("Could not read remote object for %s: %s", work_item_id, exc)
            return False
        if check.verdict != ValidationVerdict.VALID or check.remote is None:
            return False
        if check.remote.parent_remote_id != parent_record.remote_id:
            return False
        _LOG.debug("%s validated by direct read; listing lags", work_item_id)
        return True

    @staticmethod
    def _observed_handles(observed: list[RemoteObject], parent_remote_id: str) -> set[str]:
        return {remote.remote_number for remote in observed if remote.parent_remote_id == parent_remote_id}
