"""Durable work-item → remote-object links."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from tasklink.contracts.exceptions import MetadataStoreError
from tasklink.contracts.remote import IssueTracker, RemoteObject
from tasklink.contracts.sync import SyncRecord, ValidationVerdict, utc_now

_LOG = logging.getLogger(__name__)

RECORD_FILE_VERSION = 1


class SyncRecordFile(BaseModel):
    version: int = RECORD_FILE_VERSION
    records: dict[str, SyncRecord] = Field(default_factory=dict)


class RecordBackend(ABC):
    """Persistence interface behind the metadata store."""

    @abstractmethod
    def load(self) -> dict[str, SyncRecord]: ...  # pragma: no cover

    @abstractmethod
    def save(self, records: dict[str, SyncRecord]) -> None: ...  # pragma: no cover


class InMemoryBackend(RecordBackend):
    def __init__(self, records: dict[str, SyncRecord] | None = None) -> None:
        self.records: dict[str, SyncRecord] = dict(records or {})
        self.save_count = 0

    def load(self) -> dict[str, SyncRecord]:
        return dict(self.records)

    def save(self, records: dict[str, SyncRecord]) -> None:
        self.save_count += 1
        self.records = dict(records)


class JsonFileBackend(RecordBackend):
    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> dict[str, SyncRecord]:
        if not self.path.exists():
            return {}
        try:
            payload: Any = json.loads(self.path.read_text(encoding="utf-8"))
            parsed = SyncRecordFile.model_validate(payload)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise MetadataStoreError(f"invalid sync record file: {self.path}") from exc
        return dict(parsed.records)

    def save(self, records: dict[str, SyncRecord]) -> None:
        document = SyncRecordFile(records=dict(sorted(records.items())))
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(document.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise MetadataStoreError(f"failed to persist sync records: {self.path}") from exc


@dataclass(frozen=True)
class RecordCheck:
    verdict: ValidationVerdict
    record: SyncRecord | None
    remote: RemoteObject | None


class MetadataStore:
    """Single source of truth for which work items are already mirrored.

    Writes are serialized per work-item key; the backend flush itself is
    serialized as well because file backends rewrite the whole document.
    """

    def __init__(self, backend: RecordBackend, tracker: IssueTracker, *, persist_attempts: int = 2) -> None:
        self._backend = backend
        self._tracker = tracker
        self._persist_attempts = max(1, persist_attempts)
        self._records: dict[str, SyncRecord] | None = None
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._flush_lock = asyncio.Lock()

    def _loaded(self) -> dict[str, SyncRecord]:
        if self._records is None:
            self._records = self._backend.load()
        return self._records

    def _key_lock(self, work_item_id: str) -> asyncio.Lock:
        lock = self._key_locks.get(work_item_id)
        if lock is None:
            lock = asyncio.Lock()
            self._key_locks[work_item_id] = lock
        return lock

    async def get(self, work_item_id: str) -> SyncRecord | None:
        return self._loaded().get(work_item_id)

    async def records(self) -> dict[str, SyncRecord]:
        return dict(self._loaded())

    async def linked_remote_ids(self) -> dict[str, str]:
        return {record.remote_id: work_item_id for work_item_id, record in self._loaded().items()}

    async def set(self, work_item_id: str, record: SyncRecord) -> None:
        if record.work_item_id != work_item_id:
            raise MetadataStoreError(
                f"record for {record.work_item_id!r} cannot be stored under key {work_item_id!r}"
            )
        async with self._key_lock(work_item_id):
            records = self._loaded()
            previous = records.get(work_item_id)
            records[work_item_id] = record
            try:
                await self._flush()
            except MetadataStoreError:
                if previous is None:
                    records.pop(work_item_id, None)
                else:
                    records[work_item_id] = previous
                raise

    async def _flush(self) -> None:
        async with self._flush_lock:
            snapshot = dict(self._loaded())
            for attempt in range(1, self._persist_attempts + 1):
                try:
                    self._backend.save(snapshot)
                    return
                except MetadataStoreError:
                    if attempt >= self._persist_attempts:
                        raise
                    _LOG.warning("Persisting sync records failed (attempt %d), retrying", attempt)

    async def inspect(self, work_item_id: str) -> RecordCheck:
        record = await self.get(work_item_id)
        if record is None:
            return RecordCheck(verdict=ValidationVerdict.UNLINKED, record=None, remote=None)

        remote = await self._tracker.get_object(record.remote_id)
        if remote is None:
            return RecordCheck(verdict=ValidationVerdict.INVALID_ORPHANED, record=record, remote=None)
        if remote.remote_number != record.remote_number:
            return RecordCheck(verdict=ValidationVerdict.INVALID_MISMATCH, record=record, remote=remote)
        return RecordCheck(verdict=ValidationVerdict.VALID, record=record, remote=remote)

    async def validate(self, work_item_id: str) -> ValidationVerdict:
        return (await self.inspect(work_item_id)).verdict

    async def refresh(self, work_item_id: str, remote: RemoteObject) -> SyncRecord:
        """Rewrite the stored handle after the remote object was renamed or moved."""
        current = await self.get(work_item_id)
        if current is None:
            raise MetadataStoreError(f"no sync record to refresh for {work_item_id}")
        refreshed = current.model_copy(
            update={
                "remote_number": remote.remote_number,
                "remote_parent_id": remote.parent_remote_id,
                "remote_container_id": remote.container_id,
                "last_known_remote_status": remote.status,
                "last_synced_at": utc_now(),
            }
        )
        await self.set(work_item_id, refreshed)
        return refreshed


def output_metadata_path(*, metadata_path: Path, dry_run: bool) -> Path:
    if not dry_run:
        return metadata_path
    return Path(f"{metadata_path}.dry-run")
