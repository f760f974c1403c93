"""SDK composition root for tasklink."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from tasklink.auth import create_token_resolver
from tasklink.contracts.config import TaskLinkConfig
from tasklink.contracts.exceptions import ProviderError
from tasklink.contracts.remote import IssueTracker
from tasklink.contracts.sync import ReconciliationReport, SyncResult, ValidationReport
from tasklink.contracts.work_item import WorkItemStatus, WorkItemStore
from tasklink.engine import Clock, ReconciliationEngine, RemoteContext, SessionState, SyncProgress
from tasklink.persistence import JsonFileBackend, MetadataStore, RecordBackend, output_metadata_path
from tasklink.providers import create_tracker
from tasklink.stores import TaskFileStore


class TaskLink:
    """tasklink SDK public API.

    One instance is one sync session: the session cache, the metadata store
    and the cancellation flag live for the lifetime of the object.
    """

    def __init__(
        self,
        *,
        store: WorkItemStore,
        tracker: IssueTracker | None,
        backend: RecordBackend,
        config: TaskLinkConfig,
        progress: SyncProgress | None = None,
        clock: Clock | None = None,
        dry_run: bool = False,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._backend = backend
        self._config = config
        self._progress = progress
        self._clock = clock
        self._dry_run = dry_run
        self._metadata: MetadataStore | None = None
        self._session: SessionState | None = None
        self._cancel_event = asyncio.Event()

    @classmethod
    async def from_config(
        cls,
        config: TaskLinkConfig,
        *,
        dry_run: bool = False,
        progress: SyncProgress | None = None,
    ) -> TaskLink:
        store = TaskFileStore(config.work_items_path, dry_run=dry_run)
        backend = JsonFileBackend(output_metadata_path(metadata_path=config.metadata_path, dry_run=dry_run))
        tracker = create_tracker(config, dry_run=True) if dry_run else None
        return cls(store=store, tracker=tracker, backend=backend, config=config, progress=progress, dry_run=dry_run)

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    @property
    def session(self) -> SessionState | None:
        return self._session

    def cancel(self) -> None:
        """Stop scheduling new batches; in-flight remote calls finish."""
        self._cancel_event.set()

    async def reconcile(self, subtree_root: str) -> ReconciliationReport:
        try:
            async with self._engine() as engine:
                return await engine.reconcile(subtree_root)
        except* ProviderError as provider_errors:
            raise provider_errors.exceptions[0] from None

    async def sync_status(self, work_item_id: str, new_status: WorkItemStatus) -> SyncResult:
        try:
            async with self._engine() as engine:
                return await engine.status_synchronizer().sync_status(work_item_id, new_status)
        except* ProviderError as provider_errors:
            raise provider_errors.exceptions[0] from None

    async def validate(self, subtree_root: str) -> ValidationReport:
        """Report the health of a subtree without mutating anything."""
        try:
            async with self._engine() as engine:
                parent, subtasks = await engine.load_subtree(subtree_root)
                return await engine.gate.check(parent, subtasks, subtree_root=subtree_root)
        except* ProviderError as provider_errors:
            raise provider_errors.exceptions[0] from None

    @asynccontextmanager
    async def _engine(self) -> AsyncIterator[ReconciliationEngine]:
        tracker = await self._resolve_tracker()
        async with tracker:
            if self._metadata is None:
                self._metadata = MetadataStore(self._backend, tracker)
            if self._session is None:
                self._session = await SessionState.warm_start(self._metadata, self._remote_context())
            yield ReconciliationEngine(
                self._store,
                tracker,
                self._metadata,
                self._session,
                self._config,
                clock=self._clock,
                progress=self._progress,
                cancel_event=self._cancel_event,
            )

    async def _resolve_tracker(self) -> IssueTracker:
        if self._tracker is not None:
            return self._tracker

        token: str | None = None
        if self._config.tracker != "memory":
            token = await create_token_resolver(self._config).resolve()
        self._tracker = create_tracker(self._config, token=token)
        return self._tracker

    def _remote_context(self) -> RemoteContext:
        return RemoteContext(
            container_id=self._config.container_id,
            assignee_id=self._config.assignee_id,
        )
