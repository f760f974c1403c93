"""Link-or-create decisions for work items without a valid sync record."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from tasklink.contracts.config import MatchThresholds
from tasklink.contracts.remote import IssueTracker, RemoteObject
from tasklink.contracts.sync import (
    DuplicateEvent,
    DuplicateResolution,
    SyncRecord,
    ValidationVerdict,
    to_sync_record,
)
from tasklink.contracts.work_item import WorkItem
from tasklink.engine.session import SessionState
from tasklink.matching.similarity import match_confidence
from tasklink.persistence.metadata_store import MetadataStore

_LOG = logging.getLogger(__name__)


class ResolutionAction(StrEnum):
    ALREADY_LINKED = "already_linked"
    AUTO_LINK = "auto_link"
    CREATE_FLAGGED = "create_flagged"
    CREATE = "create"


@dataclass(frozen=True)
class Resolution:
    action: ResolutionAction
    work_item_id: str
    record: SyncRecord | None = None
    candidate: RemoteObject | None = None
    confidence: float = 0.0
    event: DuplicateEvent | None = None
    orphaned: bool = False

    @property
    def needs_create(self) -> bool:
        return self.action in {ResolutionAction.CREATE, ResolutionAction.CREATE_FLAGGED}


class DuplicateResolver:
    def __init__(
        self,
        tracker: IssueTracker,
        metadata: MetadataStore,
        session: SessionState,
        thresholds: MatchThresholds | None = None,
    ) -> None:
        self._tracker = tracker
        self._metadata = metadata
        self._session = session
        self._thresholds = thresholds or MatchThresholds()

    async def resolve(self, item: WorkItem, *, parent_remote_id: str | None = None) -> Resolution:
        """Decide whether *item* is linked, should link to a candidate, or needs a new remote object.

        Subtasks must pass their parent's ``remote_id``; candidates are then
        restricted to that parent's children. Top-level items only consider
        parentless remote objects.
        """
        existing = await self._check_existing(item)
        if existing is not None:
            return existing
        orphaned = (await self._metadata.get(item.id)) is not None

        candidates = await self._candidates(item, parent_remote_id)
        best: RemoteObject | None = None
        best_score = 0.0
        for candidate in candidates:
            score = match_confidence(item.title, candidate.title)
            if best is None or score > best_score:
                best, best_score = candidate, score

        if best is not None and best_score >= self._thresholds.auto_link:
            return await self._auto_link(item, best, best_score, orphaned=orphaned)

        if best is not None and best_score >= self._thresholds.review:
            event = DuplicateEvent(
                work_item_id=item.id,
                candidate=best,
                confidence=best_score,
                resolution=DuplicateResolution.MANUAL_REVIEW,
            )
            self._session.record_duplicate(event)
            _LOG.warning(
                "Possible duplicate for %s: %s (%.2f); creating new object and flagging for review",
                item.id,
                best.remote_number,
                best_score,
            )
            return Resolution(
                action=ResolutionAction.CREATE_FLAGGED,
                work_item_id=item.id,
                candidate=best,
                confidence=best_score,
                event=event,
                orphaned=orphaned,
            )

        event = DuplicateEvent(
            work_item_id=item.id,
            candidate=best,
            confidence=best_score,
            resolution=DuplicateResolution.CREATED,
        )
        self._session.record_duplicate(event)
        return Resolution(
            action=ResolutionAction.CREATE,
            work_item_id=item.id,
            candidate=best,
            confidence=best_score,
            event=event,
            orphaned=orphaned,
        )

    async def _check_existing(self, item: WorkItem) -> Resolution | None:
        record = await self._metadata.get(item.id)
        if record is None:
            return None
        if self._session.is_validated(item.id):
            return Resolution(action=ResolutionAction.ALREADY_LINKED, work_item_id=item.id, record=record)

        check = await self._metadata.inspect(item.id)
        if check.verdict == ValidationVerdict.VALID:
            self._session.mark_validated(item.id, record.remote_id)
            return Resolution(action=ResolutionAction.ALREADY_LINKED, work_item_id=item.id, record=record)
        if check.verdict == ValidationVerdict.INVALID_MISMATCH and check.remote is not None:
            _LOG.warning(
                "Remote handle for %s changed from %s to %s; refreshing sync record",
                item.id,
                record.remote_number,
                check.remote.remote_number,
            )
            refreshed = await self._metadata.refresh(item.id, check.remote)
            self._session.mark_validated(item.id, refreshed.remote_id)
            return Resolution(action=ResolutionAction.ALREADY_LINKED, work_item_id=item.id, record=refreshed)

        _LOG.warning("Sync record for %s points at missing remote object %s", item.id, record.remote_id)
        return None

    async def _candidates(self, item: WorkItem, parent_remote_id: str | None) -> list[RemoteObject]:
        container_id = self._session.remote_context.container_id
        objects = await self._tracker.list_objects(container_id)
        linked = await self._metadata.linked_remote_ids()

        candidates: list[RemoteObject] = []
        for remote in objects:
            if remote.parent_remote_id != parent_remote_id:
                continue
            owner = linked.get(remote.remote_id)
            if owner is not None and owner != item.id:
                continue
            holder = self._session.remote_holder(remote.remote_id)
            if holder is not None and holder != item.id:
                continue
            candidates.append(remote)
        return candidates

    async def _auto_link(
        self, item: WorkItem, candidate: RemoteObject, score: float, *, orphaned: bool
    ) -> Resolution:
        self._session.reserve_remote(candidate.remote_id, item.id)
        record = to_sync_record(item.id, candidate)
        await self._metadata.set(item.id, record)
        self._session.mark_validated(item.id, record.remote_id)

        event = DuplicateEvent(
            work_item_id=item.id,
            candidate=candidate,
            confidence=score,
            resolution=DuplicateResolution.LINKED,
        )
        self._session.record_duplicate(event)
        _LOG.info("Linked %s to existing %s (%.2f)", item.id, candidate.remote_number, score)
        return Resolution(
            action=ResolutionAction.AUTO_LINK,
            work_item_id=item.id,
            record=record,
            candidate=candidate,
            confidence=score,
            event=event,
            orphaned=orphaned,
        )
