"""Issue-tracker contracts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from types import TracebackType

from pydantic import BaseModel


class RemoteStatus(StrEnum):
    BACKLOG = "backlog"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class RemoteObject(BaseModel):
    remote_id: str
    remote_number: str
    title: str
    body: str = ""
    container_id: str
    parent_remote_id: str | None = None
    status: RemoteStatus = RemoteStatus.BACKLOG
    url: str | None = None


class CreateObjectInput(BaseModel):
    title: str
    body: str = ""
    container_id: str
    parent_remote_id: str | None = None
    assignee_id: str | None = None


class IssueTracker(ABC):
    @abstractmethod
    async def __aenter__(self) -> IssueTracker: ...  # pragma: no cover

    @abstractmethod
    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...  # pragma: no cover

    @abstractmethod
    async def create_object(self, input: CreateObjectInput) -> RemoteObject: ...  # pragma: no cover

    @abstractmethod
    async def update_object_status(self, remote_id: str, status: RemoteStatus) -> RemoteObject: ...  # pragma: no cover

    @abstractmethod
    async def get_object(self, remote_id: str) -> RemoteObject | None:
        """Return the remote object, or ``None`` when it no longer exists."""
        ...  # pragma: no cover

    @abstractmethod
    async def list_objects(
        self, container_id: str, title_query: str | None = None
    ) -> list[RemoteObject]: ...  # pragma: no cover

    @abstractmethod
    async def add_comment(self, remote_id: str, text: str) -> None: ...  # pragma: no cover
