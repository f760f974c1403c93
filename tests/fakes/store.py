"""In-memory work-item store fake."""

from __future__ import annotations

from tasklink.contracts.exceptions import WorkItemNotFoundError, WorkItemStoreError
from tasklink.contracts.work_item import WorkItem, WorkItemStatus, WorkItemStore


class FakeStore(WorkItemStore):
    def __init__(self, items: list[WorkItem] | None = None) -> None:
        self.items: dict[str, WorkItem] = {}
        self.notes: dict[str, list[str]] = {}
        self.status_calls: list[tuple[str, WorkItemStatus]] = []
        self.fail_notes = False
        for item in items or []:
            self.add(item)

    def add(self, item: WorkItem) -> WorkItem:
        self.items[item.id] = item
        return item

    async def get_work_item(self, work_item_id: str) -> WorkItem:
        item = self.items.get(work_item_id)
        if item is None:
            raise WorkItemNotFoundError(work_item_id)
        return item

    async def list_work_items(self, subtree_root: str | None = None) -> list[WorkItem]:
        if subtree_root is None:
            return list(self.items.values())
        return [
            item for item in self.items.values() if item.id == subtree_root or item.parent_id == subtree_root
        ]

    async def set_status(self, work_item_id: str, status: WorkItemStatus) -> None:
        item = await self.get_work_item(work_item_id)
        self.status_calls.append((work_item_id, status))
        self.items[work_item_id] = item.model_copy(update={"status": status})

    async def append_note(self, work_item_id: str, text: str) -> None:
        if self.fail_notes:
            raise WorkItemStoreError("notes are read-only")
        await self.get_work_item(work_item_id)
        self.notes.setdefault(work_item_id, []).append(text)
