"""Work-item store backed by a Taskmaster ``tasks.json`` file.

Both layouts written by Taskmaster are accepted: the legacy
``{"tasks": [...]}`` document and the tagged ``{"<tag>": {"tasks": [...]}}``
document. Subtasks carry a local integer id; their work-item id is
``"<parent>.<local>"``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

from tasklink.contracts.exceptions import WorkItemNotFoundError, WorkItemStoreError
from tasklink.contracts.work_item import WorkItem, WorkItemStatus, WorkItemStore, subtask_id

_LOG = logging.getLogger(__name__)

_STATUS_ALIASES: dict[str, WorkItemStatus] = {
    "pending": WorkItemStatus.PENDING,
    "todo": WorkItemStatus.PENDING,
    "deferred": WorkItemStatus.PENDING,
    "in-progress": WorkItemStatus.ACTIVE,
    "in_progress": WorkItemStatus.ACTIVE,
    "active": WorkItemStatus.ACTIVE,
    "review": WorkItemStatus.IN_REVIEW,
    "in-review": WorkItemStatus.IN_REVIEW,
    "in_review": WorkItemStatus.IN_REVIEW,
    "blocked": WorkItemStatus.BLOCKED,
    "done": WorkItemStatus.DONE,
    "completed": WorkItemStatus.DONE,
    "cancelled": WorkItemStatus.CANCELLED,
    "canceled": WorkItemStatus.CANCELLED,
}

_STATUS_VALUES: dict[WorkItemStatus, str] = {
    WorkItemStatus.PENDING: "pending",
    WorkItemStatus.ACTIVE: "in-progress",
    WorkItemStatus.IN_REVIEW: "review",
    WorkItemStatus.BLOCKED: "blocked",
    WorkItemStatus.DONE: "done",
    WorkItemStatus.CANCELLED: "cancelled",
}


def parse_status(raw: Any) -> WorkItemStatus:
    status = _STATUS_ALIASES.get(str(raw or "pending").strip().casefold())
    if status is None:
        raise WorkItemStoreError(f"Unknown task status: {raw!r}")
    return status


def _body(entry: dict[str, Any]) -> str:
    parts = [str(entry.get(key) or "").strip() for key in ("description", "details")]
    return "\n\n".join(part for part in parts if part)


class TaskFileStore(WorkItemStore):
    """Reads and annotates a Taskmaster task file.

    With ``dry_run=True`` mutations are applied to the in-memory document only
    and never written back.
    """

    def __init__(self, path: Path, *, tag: str = "master", dry_run: bool = False) -> None:
        self.path = path
        self._tag = tag
        self._dry_run = dry_run
        self._document: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    async def get_work_item(self, work_item_id: str) -> WorkItem:
        entry, parent = self._find(work_item_id)
        return self._to_work_item(entry, parent)

    async def list_work_items(self, subtree_root: str | None = None) -> list[WorkItem]:
        items: list[WorkItem] = []
        for task in self._tasks():
            task_id = str(task["id"])
            if subtree_root is not None and subtree_root != task_id:
                continue
            items.append(self._to_work_item(task, None))
            items.extend(self._to_work_item(sub, task) for sub in task.get("subtasks") or [])
        if subtree_root is not None and not items:
            # A subtask root lists only itself.
            items.append(await self.get_work_item(subtree_root))
        return items

    async def set_status(self, work_item_id: str, status: WorkItemStatus) -> None:
        async with self._lock:
            entry, _ = self._find(work_item_id)
            entry["status"] = _STATUS_VALUES[status]
            self._save()

    async def append_note(self, work_item_id: str, text: str) -> None:
        async with self._lock:
            entry, _ = self._find(work_item_id)
            notes = entry.setdefault("notes", [])
            if not isinstance(notes, list):
                raise WorkItemStoreError(f"Task {work_item_id} has a non-list 'notes' field")
            notes.append(text)
            self._save()

    def _load(self) -> dict[str, Any]:
        if self._document is None:
            try:
                payload: Any = json.loads(self.path.read_text(encoding="utf-8"))
            except OSError as exc:
                raise WorkItemStoreError(f"failed reading task file: {self.path}") from exc
            except json.JSONDecodeError as exc:
                raise WorkItemStoreError(f"invalid JSON in task file: {self.path}") from exc
            if not isinstance(payload, dict):
                raise WorkItemStoreError(f"task file must contain a JSON object: {self.path}")
            self._document = payload
        return self._document

    def _tasks(self) -> list[dict[str, Any]]:
        document = self._load()
        container = document.get(self._tag) if "tasks" not in document else document
        if not isinstance(container, dict) or not isinstance(container.get("tasks"), list):
            raise WorkItemStoreError(f"task file has no task list for tag {self._tag!r}: {self.path}")
        return container["tasks"]

    def _find(self, work_item_id: str) -> tuple[dict[str, Any], dict[str, Any] | None]:
        parent_id, _, local = work_item_id.partition(".")
        for task in self._tasks():
            if str(task.get("id")) != parent_id:
                continue
            if not local:
                return task, None
            for sub in task.get("subtasks") or []:
                if str(sub.get("id")) == local:
                    return sub, task
        raise WorkItemNotFoundError(work_item_id)

    @staticmethod
    def _to_work_item(entry: dict[str, Any], parent: dict[str, Any] | None) -> WorkItem:
        try:
            title = str(entry["title"])
            raw_id = str(entry["id"])
        except KeyError as exc:
            raise WorkItemStoreError(f"task entry is missing field {exc}") from exc
        if parent is None:
            return WorkItem(id=raw_id, title=title, body=_body(entry), status=parse_status(entry.get("status")))
        parent_id = str(parent["id"])
        return WorkItem(
            id=subtask_id(parent_id, raw_id),
            title=title,
            body=_body(entry),
            status=parse_status(entry.get("status")),
            parent_id=parent_id,
        )

    def _save(self) -> None:
        if self._dry_run:
            _LOG.debug("Dry run: not writing %s", self.path)
            return
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            tmp_path.write_text(json.dumps(self._load(), indent=2) + "\n", encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise WorkItemStoreError(f"failed writing task file: {self.path}") from exc
