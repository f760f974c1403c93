"""Shared test fixtures for tasklink tests."""

from __future__ import annotations

import pytest

from tasklink.contracts.config import TaskLinkConfig
from tasklink.engine.reconciler import ReconciliationEngine
from tasklink.engine.session import RemoteContext, SessionState
from tasklink.persistence.metadata_store import InMemoryBackend, MetadataStore
from tests.fakes.clock import FakeClock
from tests.fakes.store import FakeStore
from tests.fakes.tracker import FakeTracker
from tests.helpers import Harness, HarnessFactory, make_config


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tracker(clock: FakeClock) -> FakeTracker:
    return FakeTracker(clock=clock)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def build_harness(store: FakeStore, tracker: FakeTracker, clock: FakeClock) -> HarnessFactory:
    """Wire an engine around the shared fakes; pass ``backend`` to simulate a restart."""

    async def _build(
        *,
        config: TaskLinkConfig | None = None,
        backend: InMemoryBackend | None = None,
    ) -> Harness:
        resolved_config = config or make_config()
        resolved_backend = backend if backend is not None else InMemoryBackend()
        metadata = MetadataStore(resolved_backend, tracker)
        session = await SessionState.warm_start(metadata, RemoteContext(container_id=resolved_config.container_id))
        engine = ReconciliationEngine(store, tracker, metadata, session, resolved_config, clock=clock)
        return Harness(
            store=store,
            tracker=tracker,
            clock=clock,
            backend=resolved_backend,
            metadata=metadata,
            session=session,
            engine=engine,
            config=resolved_config,
        )

    return _build
