"""In-memory issue tracker used for dry runs."""

from __future__ import annotations

from types import TracebackType

from tasklink.contracts.exceptions import ProviderError
from tasklink.contracts.remote import CreateObjectInput, IssueTracker, RemoteObject, RemoteStatus


class InMemoryTracker(IssueTracker):
    """Tracker that keeps remote objects in a dict and logs every mutation.

    Handles are deterministic (``MEM-1``, ``MEM-2``, ...) so dry-run output is
    stable across runs.
    """

    def __init__(self, objects: list[RemoteObject] | None = None, *, prefix: str = "MEM") -> None:
        self._prefix = prefix
        self._counter = 0
        self.objects: dict[str, RemoteObject] = {}
        self.comments: dict[str, list[str]] = {}
        self.operations: list[tuple[str, str]] = []
        for remote in objects or []:
            self.objects[remote.remote_id] = remote

    async def __aenter__(self) -> InMemoryTracker:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        return None

    async def create_object(self, input: CreateObjectInput) -> RemoteObject:
        if input.parent_remote_id is not None and input.parent_remote_id not in self.objects:
            raise ProviderError(f"Parent object not found: {input.parent_remote_id}")
        self._counter += 1
        remote = RemoteObject(
            remote_id=f"{self._prefix.lower()}-{self._counter}",
            remote_number=f"{self._prefix}-{self._counter}",
            title=input.title,
            body=input.body,
            container_id=input.container_id,
            parent_remote_id=input.parent_remote_id,
        )
        self.objects[remote.remote_id] = remote
        self.operations.append(("create", remote.remote_id))
        return remote

    async def update_object_status(self, remote_id: str, status: RemoteStatus) -> RemoteObject:
        remote = self.objects.get(remote_id)
        if remote is None:
            raise ProviderError(f"Object not found: {remote_id}")
        updated = remote.model_copy(update={"status": status})
        self.objects[remote_id] = updated
        self.operations.append(("update_status", remote_id))
        return updated

    async def get_object(self, remote_id: str) -> RemoteObject | None:
        return self.objects.get(remote_id)

    async def list_objects(self, container_id: str, title_query: str | None = None) -> list[RemoteObject]:
        needle = title_query.casefold() if title_query else None
        return [
            remote
            for remote in self.objects.values()
            if remote.container_id == container_id and (needle is None or needle in remote.title.casefold())
        ]

    async def add_comment(self, remote_id: str, text: str) -> None:
        if remote_id not in self.objects:
            raise ProviderError(f"Object not found: {remote_id}")
        self.comments.setdefault(remote_id, []).append(text)
        self.operations.append(("comment", remote_id))
