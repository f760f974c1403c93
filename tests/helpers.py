"""Builders shared by the tasklink test modules."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from tasklink.contracts.config import TaskLinkConfig
from tasklink.contracts.work_item import WorkItem, WorkItemStatus, subtask_id
from tasklink.engine.reconciler import ReconciliationEngine
from tasklink.engine.session import SessionState
from tasklink.persistence.metadata_store import InMemoryBackend, MetadataStore
from tests.fakes.clock import FakeClock
from tests.fakes.store import FakeStore
from tests.fakes.tracker import FakeTracker

CONTAINER_ID = "team-1"

SUBTASK_TITLES = [
    "Design token schema",
    "Wire database pool",
    "Expose health endpoint",
    "Document rollout plan",
    "Tune cache eviction",
    "Record audit events",
    "Harden input parsing",
    "Profile cold start",
    "Publish client package",
]


def make_config(**overrides: Any) -> TaskLinkConfig:
    payload: dict[str, Any] = {"tracker": "memory", "container_id": CONTAINER_ID}
    payload.update(overrides)
    return TaskLinkConfig(**payload)


def make_tree(
    store: FakeStore,
    *,
    parent_id: str = "12",
    parent_title: str = "Build auth service",
    subtask_titles: list[str] | None = None,
    status: WorkItemStatus = WorkItemStatus.PENDING,
) -> tuple[WorkItem, list[WorkItem]]:
    parent = store.add(WorkItem(id=parent_id, title=parent_title, status=status))
    titles = subtask_titles if subtask_titles is not None else SUBTASK_TITLES[:3]
    subtasks = [
        store.add(WorkItem(id=subtask_id(parent_id, index), title=title, parent_id=parent_id, status=status))
        for index, title in enumerate(titles, start=1)
    ]
    return parent, subtasks


@dataclass
class Harness:
    store: FakeStore
    tracker: FakeTracker
    clock: FakeClock
    backend: InMemoryBackend
    metadata: MetadataStore
    session: SessionState
    engine: ReconciliationEngine
    config: TaskLinkConfig


HarnessFactory = Callable[..., Awaitable[Harness]]
