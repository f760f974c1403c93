"""Top-level driver that links a work-item subtree to remote objects."""

from __future__ import annotations

import asyncio
import logging

from tasklink.contracts.config import TaskLinkConfig
from tasklink.contracts.exceptions import (
    HierarchyError,
    MetadataStoreError,
    ProviderError,
    SyncError,
    TaskLinkError,
    WorkItemNotFoundError,
)
from tasklink.contracts.remote import CreateObjectInput, IssueTracker, RemoteObject
from tasklink.contracts.sync import (
    ItemOutcome,
    ItemSyncState,
    ReconciliationReport,
    SyncRecord,
    to_sync_record,
)
from tasklink.contracts.work_item import WorkItem, WorkItemStore
from tasklink.engine.executor import BatchExecutor, BatchOperation, BatchSummary, Clock, SystemClock
from tasklink.engine.progress import NullSyncProgress, SyncProgress
from tasklink.engine.resolver import DuplicateResolver, Resolution, ResolutionAction
from tasklink.engine.session import SessionState
from tasklink.engine.status import StatusSynchronizer, status_update_operation, to_remote_status
from tasklink.engine.validation import ValidationGate
from tasklink.persistence.metadata_store import MetadataStore

_LOG = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: dict[ItemSyncState, frozenset[ItemSyncState]] = {
    ItemSyncState.UNSYNCED: frozenset({ItemSyncState.RESOLVING}),
    ItemSyncState.RESOLVING: frozenset({ItemSyncState.WRITING, ItemSyncState.LINKED, ItemSyncState.FAILED}),
    ItemSyncState.WRITING: frozenset({ItemSyncState.LINKED, ItemSyncState.FAILED}),
    # Recovery may re-open a failed or vanished item within the same run.
    ItemSyncState.LINKED: frozenset({ItemSyncState.RESOLVING, ItemSyncState.FAILED}),
    ItemSyncState.FAILED: frozenset({ItemSyncState.RESOLVING}),
}


def check_hierarchy(parent: WorkItem, subtasks: list[WorkItem]) -> None:
    if parent.parent_id is not None:
        raise HierarchyError(f"Work item {parent.id} is a subtask and cannot parent other items")
    seen: set[str] = set()
    for subtask in subtasks:
        if subtask.id in seen:
            raise HierarchyError(f"Duplicate work item id {subtask.id} under {parent.id}")
        seen.add(subtask.id)
        if subtask.parent_id != parent.id:
            raise HierarchyError(
                f"Work item {subtask.id} is nested under {subtask.parent_id}; only two levels are supported"
            )


class ReconciliationEngine:
    """Ensures every node of a subtree has a valid, linked remote counterpart.

    The parent is always reconciled first: subtask remote objects need the
    parent's ``remote_id``, so a parent that does not reach ``linked`` stops
    the subtree before any subtask write is scheduled.
    """

    def __init__(
        self,
        store: WorkItemStore,
        tracker: IssueTracker,
        metadata: MetadataStore,
        session: SessionState,
        config: TaskLinkConfig,
        *,
        executor: BatchExecutor | None = None,
        clock: Clock | None = None,
        progress: SyncProgress | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._metadata = metadata
        self._session = session
        self._config = config
        self._clock: Clock = clock or SystemClock()
        self._executor = executor or BatchExecutor(
            config.rate_limit,
            config.retry,
            clock=self._clock,
            cancel_event=cancel_event,
        )
        self._progress: SyncProgress = progress or NullSyncProgress()
        self._resolver = DuplicateResolver(tracker, metadata, session, config.matching)
        self._gate = ValidationGate(self, tracker, metadata, session, config.recovery, clock=self._clock)

    @property
    def resolver(self) -> DuplicateResolver:
        return self._resolver

    @property
    def executor(self) -> BatchExecutor:
        return self._executor

    @property
    def gate(self) -> ValidationGate:
        return self._gate

    def status_synchronizer(self) -> StatusSynchronizer:
        return StatusSynchronizer(self._store, self._tracker, self._metadata, self, self._executor)

    async def load_subtree(self, subtree_root: str) -> tuple[WorkItem, list[WorkItem]]:
        """Return ``(parent, subtasks)`` for *subtree_root*.

        A subtask root yields its parent plus only that subtask.
        """
        root = await self._store.get_work_item(subtree_root)
        if root.parent_id is not None:
            try:
                parent = await self._store.get_work_item(root.parent_id)
            except WorkItemNotFoundError as exc:
                raise HierarchyError(f"Parent {root.parent_id} of {root.id} does not exist") from exc
            subtasks = [root]
        else:
            parent = root
            subtasks = [item for item in await self._store.list_work_items(root.id) if item.id != root.id]
        check_hierarchy(parent, subtasks)
        return parent, subtasks

    async def reconcile(self, subtree_root: str) -> ReconciliationReport:
        parent, subtasks = await self.load_subtree(subtree_root)
        report = ReconciliationReport(subtree_root=subtree_root)
        for item in (parent, *subtasks):
            report.outcomes[item.id] = ItemOutcome(work_item_id=item.id)

        if self._executor.cancelled:
            report.cancelled = True
            return report

        parent_record = await self._reconcile_parent(parent, report)
        if parent_record is None:
            _LOG.warning("Parent %s is not linked; skipping %d subtask(s)", parent.id, len(subtasks))
            return report

        queue = await self._resolve_subtasks(subtasks, parent_record, report)
        if queue:
            if self._executor.cancelled:
                report.cancelled = True
                return report
            summary = await self._run_creations(queue, report, phase="Create")
            if summary.cancelled:
                report.cancelled = True
                return report
            report.recovery = await self._gate.recover(parent_record, [item for item, _ in queue], report)

        await self._push_statuses((parent, *subtasks), report)
        return report

    async def _reconcile_parent(self, parent: WorkItem, report: ReconciliationReport) -> SyncRecord | None:
        self._progress.phase_start("Parent", total=1)
        resolution = await self.resolve_item(parent, None, report)
        if resolution is None:
            self._progress.phase_done("Parent")
            return None
        if not resolution.needs_create:
            self._progress.phase_done("Parent")
            return resolution.record

        summary = await self._executor.run([self.creation_operation(parent, None, report)])
        await self.apply_summary(summary, report)
        self._progress.phase_done("Parent")
        result = summary.result_for(parent.id)
        if result is None:
            if summary.cancelled:
                report.cancelled = True
            return None
        return result.value

    async def _resolve_subtasks(
        self,
        subtasks: list[WorkItem],
        parent_record: SyncRecord,
        report: ReconciliationReport,
    ) -> list[tuple[WorkItem, Resolution]]:
        self._progress.phase_start("Resolve", total=len(subtasks))
        queue: list[tuple[WorkItem, Resolution]] = []
        for subtask in subtasks:
            resolution = await self.resolve_item(subtask, parent_record.remote_id, report)
            self._progress.item_done("Resolve")
            if resolution is not None and resolution.needs_create:
                queue.append((subtask, resolution))
        self._progress.phase_done("Resolve")
        return queue

    async def resolve_item(
        self,
        item: WorkItem,
        parent_remote_id: str | None,
        report: ReconciliationReport,
    ) -> Resolution | None:
        outcome = report.outcomes[item.id]
        self._transition(outcome, ItemSyncState.RESOLVING)
        try:
            async with self._session.claim(item.id):
                resolution = await self._resolver.resolve(item, parent_remote_id=parent_remote_id)
        except (ProviderError, MetadataStoreError) as exc:
            await self._fail(outcome, f"resolution failed: {exc}")
            return None

        if resolution.event is not None:
            report.duplicate_events.append(resolution.event)

        if resolution.action == ResolutionAction.ALREADY_LINKED and resolution.record is not None:
            self._link(outcome, resolution.record)
        elif resolution.action == ResolutionAction.AUTO_LINK and resolution.record is not None:
            self._link(outcome, resolution.record)
            await self.note(
                item.id,
                f"[tasklink] linked to existing {resolution.record.remote_number} "
                f"(title match {resolution.confidence:.2f})",
            )
        elif resolution.action == ResolutionAction.CREATE_FLAGGED and resolution.candidate is not None:
            await self.note(
                item.id,
                f"[tasklink] possible duplicate of {resolution.candidate.remote_number} "
                f"(title match {resolution.confidence:.2f}); created a new issue, please review",
            )
            await self._flag_candidate(item, resolution.candidate)
        return resolution

    async def _flag_candidate(self, item: WorkItem, candidate: RemoteObject) -> None:
        """Leave a review pointer on the near-match the new issue may duplicate."""
        try:
            await self._tracker.add_comment(
                candidate.remote_id,
                f"[tasklink] work item {item.id} ({item.title!r}) closely matches this issue "
                "and was created separately; please review for duplication",
            )
        except ProviderError as exc:
            _LOG.warning("Could not comment on duplicate candidate %s: %s", candidate.remote_number, exc)

    def creation_operation(
        self,
        item: WorkItem,
        parent_record: SyncRecord | None,
        report: ReconciliationReport,
    ) -> BatchOperation:
        """Build the idempotent create-and-persist closure for *item*."""
        context = self._session.remote_context
        create_input = CreateObjectInput(
            title=item.title,
            body=item.body,
            container_id=context.container_id,
            parent_remote_id=parent_record.remote_id if parent_record is not None else None,
            assignee_id=context.assignee_id,
        )

        async def run() -> SyncRecord:
            async with self._session.claim(item.id):
                if self._session.was_created(item.id):
                    existing = await self._metadata.get(item.id)
                    if existing is not None:
                        return existing
                outcome = report.outcomes[item.id]
                if outcome.state != ItemSyncState.WRITING:
                    self._transition(outcome, ItemSyncState.WRITING)
                remote = await self._tracker.create_object(create_input)
                report.remote_writes += 1
                record = to_sync_record(item.id, remote)
                # Persist before returning so a crash mid-batch loses at most in-flight work.
                await self._metadata.set(item.id, record)
                self._session.mark_created(item.id, remote.remote_id)
                return record

        return BatchOperation(key=item.id, run=run, description=f"create {item.title!r}")

    async def _run_creations(
        self,
        queue: list[tuple[WorkItem, Resolution]],
        report: ReconciliationReport,
        *,
        phase: str,
    ) -> BatchSummary:
        parent_record = None
        operations: list[BatchOperation] = []
        for item, _ in queue:
            if item.parent_id is not None:
                parent_record = await self._metadata.get(item.parent_id)
                if parent_record is None:
                    raise HierarchyError(f"Subtask {item.id} scheduled before parent {item.parent_id} was linked")
            operations.append(self.creation_operation(item, parent_record, report))

        self._progress.phase_start(phase, total=len(operations))
        try:
            summary = await self._executor.run(operations)
        except BaseException as exc:
            self._progress.phase_error(phase, exc)
            raise
        await self.apply_summary(summary, report)
        self._progress.phase_done(phase)
        return summary

    async def apply_summary(self, summary: BatchSummary, report: ReconciliationReport) -> None:
        for result in summary.succeeded:
            record: SyncRecord = result.value
            outcome = report.outcomes[result.key]
            self._link(outcome, record)
            outcome.created = True
            outcome.error = None
            self._progress.item_done("Create")
            await self.note(result.key, f"[tasklink] created remote issue {record.remote_number}")
        for failure in summary.failed:
            outcome = report.outcomes[failure.key]
            self.mark_failed(outcome, failure.message)
            await self.note(
                failure.key,
                f"[tasklink] remote issue creation failed after {failure.attempts} attempt(s): {failure.message}",
            )

    async def _push_statuses(self, items: tuple[WorkItem, ...], report: ReconciliationReport) -> None:
        def count_write() -> None:
            report.remote_writes += 1

        operations: list[BatchOperation] = []
        for item in items:
            if report.outcomes[item.id].state != ItemSyncState.LINKED:
                continue
            record = await self._metadata.get(item.id)
            desired = to_remote_status(item.status)
            if record is None or record.last_known_remote_status == desired:
                continue
            operations.append(
                status_update_operation(self._tracker, self._metadata, record, desired, on_write=count_write)
            )
        if not operations:
            return

        self._progress.phase_start("Status", total=len(operations))
        summary = await self._executor.run(operations)
        for _ in summary.succeeded:
            self._progress.item_done("Status")
        for failure in summary.failed:
            # Non-fatal: the next reconcile retries the push.
            await self.note(failure.key, f"[tasklink] status sync failed, will retry: {failure.message}")
        self._progress.phase_done("Status")

    async def note(self, work_item_id: str, text: str) -> None:
        try:
            await self._store.append_note(work_item_id, text)
        except TaskLinkError as exc:
            _LOG.warning("Could not record note on %s: %s", work_item_id, exc)

    def mark_failed(self, outcome: ItemOutcome, reason: str) -> None:
        if outcome.state != ItemSyncState.FAILED:
            self._transition(outcome, ItemSyncState.FAILED)
        outcome.error = reason

    async def _fail(self, outcome: ItemOutcome, reason: str) -> None:
        self.mark_failed(outcome, reason)
        _LOG.warning("%s: %s", outcome.work_item_id, reason)
        await self.note(outcome.work_item_id, f"[tasklink] {reason}")

    def _link(self, outcome: ItemOutcome, record: SyncRecord) -> None:
        if outcome.state != ItemSyncState.LINKED:
            if outcome.state == ItemSyncState.UNSYNCED:
                self._transition(outcome, ItemSyncState.RESOLVING)
            self._transition(outcome, ItemSyncState.LINKED)
        outcome.remote_id = record.remote_id
        outcome.remote_number = record.remote_number

    @staticmethod
    def _transition(outcome: ItemOutcome, state: ItemSyncState) -> None:
        allowed = _ALLOWED_TRANSITIONS[outcome.state]
        if state not in allowed:
            raise SyncError(f"Illegal sync state change for {outcome.work_item_id}: {outcome.state} -> {state}")
        _LOG.debug("%s: %s -> %s", outcome.work_item_id, outcome.state.value, state.value)
        outcome.state = state
