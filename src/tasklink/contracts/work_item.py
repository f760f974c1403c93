"""Work-item contracts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum

from pydantic import BaseModel


class WorkItemStatus(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    BLOCKED = "blocked"
    IN_REVIEW = "in_review"
    DONE = "done"
    CANCELLED = "cancelled"


class WorkItem(BaseModel):
    id: str
    title: str
    body: str = ""
    status: WorkItemStatus = WorkItemStatus.PENDING
    parent_id: str | None = None

    model_config = {"frozen": True}

    @property
    def is_subtask(self) -> bool:
        return self.parent_id is not None

    @property
    def local_index(self) -> str | None:
        """Trailing component of a subtask id (``"3"`` for ``"12.3"``)."""
        if self.parent_id is None:
            return None
        prefix = f"{self.parent_id}."
        if self.id.startswith(prefix):
            return self.id[len(prefix) :]
        return None


def subtask_id(parent_id: str, local_index: int | str) -> str:
    return f"{parent_id}.{local_index}"


class WorkItemStore(ABC):
    """Local task store the engine reads from and annotates."""

    @abstractmethod
    async def get_work_item(self, work_item_id: str) -> WorkItem: ...  # pragma: no cover

    @abstractmethod
    async def list_work_items(self, subtree_root: str | None = None) -> list[WorkItem]: ...  # pragma: no cover

    @abstractmethod
    async def set_status(self, work_item_id: str, status: WorkItemStatus) -> None: ...  # pragma: no cover

    @abstractmethod
    async def append_note(self, work_item_id: str, text: str) -> None: ...  # pragma: no cover
