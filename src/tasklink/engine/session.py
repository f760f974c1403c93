"""Process-scoped memory of what one engine run has already done."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from tasklink.contracts.sync import DuplicateEvent
from tasklink.persistence.metadata_store import MetadataStore


@dataclass(frozen=True)
class RemoteContext:
    container_id: str
    assignee_id: str | None = None


@dataclass
class SessionState:
    """Per-run cache passed explicitly into the engine; never persisted.

    ``claim(work_item_id)`` hands out one lock per work item. Holding it across
    the duplicate check, the remote create, the metadata write and the
    ``mark_created`` call keeps a concurrent check from seeing "not yet
    created" in between.
    """

    remote_context: RemoteContext
    created_this_run: set[str] = field(default_factory=set)
    validated_this_run: set[str] = field(default_factory=set)
    duplicates_seen: list[DuplicateEvent] = field(default_factory=list)
    _claims: dict[str, asyncio.Lock] = field(default_factory=dict, repr=False)
    _reserved_remote_ids: dict[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    async def warm_start(cls, metadata: MetadataStore, remote_context: RemoteContext) -> SessionState:
        """Start a run with every persisted link already reserved for its owner."""
        records = await metadata.records()
        return cls(
            remote_context=remote_context,
            _reserved_remote_ids={record.remote_id: work_item_id for work_item_id, record in records.items()},
        )

    def claim(self, work_item_id: str) -> asyncio.Lock:
        lock = self._claims.get(work_item_id)
        if lock is None:
            lock = asyncio.Lock()
            self._claims[work_item_id] = lock
        return lock

    def was_created(self, work_item_id: str) -> bool:
        return work_item_id in self.created_this_run

    def is_validated(self, work_item_id: str) -> bool:
        return work_item_id in self.validated_this_run

    def mark_created(self, work_item_id: str, remote_id: str) -> None:
        self.created_this_run.add(work_item_id)
        self.mark_validated(work_item_id, remote_id)

    def mark_validated(self, work_item_id: str, remote_id: str) -> None:
        self.validated_this_run.add(work_item_id)
        self._reserved_remote_ids[remote_id] = work_item_id

    def forget(self, work_item_id: str) -> None:
        self.created_this_run.discard(work_item_id)
        self.validated_this_run.discard(work_item_id)
        for remote_id in [key for key, holder in self._reserved_remote_ids.items() if holder == work_item_id]:
            del self._reserved_remote_ids[remote_id]

    def reserve_remote(self, remote_id: str, work_item_id: str) -> bool:
        """Reserve *remote_id* for *work_item_id*; False if another item holds it."""
        holder = self._reserved_remote_ids.get(remote_id)
        if holder is not None and holder != work_item_id:
            return False
        self._reserved_remote_ids[remote_id] = work_item_id
        return True

    def remote_holder(self, remote_id: str) -> str | None:
        return self._reserved_remote_ids.get(remote_id)

    def record_duplicate(self, event: DuplicateEvent) -> None:
        self.duplicates_seen.append(event)
