import pytest

from tasklink.contracts.config import RecoveryConfig
from tasklink.contracts.exceptions import ProviderError
from tasklink.contracts.sync import ItemSyncState
from tasklink.contracts.work_item import WorkItemStatus
from tests.helpers import SUBTASK_TITLES, HarnessFactory, make_config, make_tree


@pytest.mark.asyncio
async def test_two_dropped_creates_out_of_nine_converge(build_harness: HarnessFactory) -> None:
    h = await build_harness()
    make_tree(h.store, subtask_titles=SUBTASK_TITLES)
    h.tracker.drop_titles = {SUBTASK_TITLES[2], SUBTASK_TITLES[6]}

    report = await h.engine.reconcile("12")

    parent_record = await h.metadata.get("12")
    assert parent_record is not None
    children = h.tracker.children_of(parent_record.remote_id)
    assert sorted(remote.title for remote in children) == sorted(SUBTASK_TITLES)
    assert len(children) == 9
    assert report.failed == []
    assert report.recovery is not None
    assert report.recovery.recovered == ["12.3", "12.7"]
    assert report.recovery.passes == 1
    assert report.recovery.hard_failures == []
    for subtask_index in range(1, 10):
        record = await h.metadata.get(f"12.{subtask_index}")
        assert record is not None
        assert record.remote_id in h.tracker.objects


@pytest.mark.asyncio
async def test_recovery_waits_before_relisting(build_harness: HarnessFactory) -> None:
    h = await build_harness(config=make_config(recovery=RecoveryConfig(max_passes=2, reindex_wait_seconds=2.0)))
    make_tree(h.store)
    h.tracker.drop_titles = {SUBTASK_TITLES[0]}

    await h.engine.reconcile("12")

    assert h.clock.sleeps.count(2.0) == 2


@pytest.mark.asyncio
async def test_recovery_gives_up_after_max_passes(build_harness: HarnessFactory) -> None:
    h = await build_harness(config=make_config(recovery=RecoveryConfig(max_passes=1, reindex_wait_seconds=0.0)))
    make_tree(h.store)
    h.tracker.drop_titles = {SUBTASK_TITLES[0]}

    original_create = h.tracker.create_object

    async def always_drop(input):  # type: ignore[no-untyped-def]
        h.tracker.drop_titles.add(SUBTASK_TITLES[0])
        return await original_create(input)

    h.tracker.create_object = always_drop  # type: ignore[method-assign]

    report = await h.engine.reconcile("12")

    assert report.recovery is not None
    assert report.recovery.passes == 1
    assert report.recovery.hard_failures == ["12.1"]
    assert report.outcomes["12.1"].state == ItemSyncState.FAILED


@pytest.mark.asyncio
async def test_no_recovery_when_everything_is_observed(build_harness: HarnessFactory) -> None:
    h = await build_harness()
    make_tree(h.store)

    report = await h.engine.reconcile("12")

    assert report.recovery is not None
    assert report.recovery.missing == []
    assert report.recovery.passes == 0
    assert 2.0 not in h.clock.sleeps


@pytest.mark.asyncio
async def test_check_is_read_only_and_reports_health(build_harness: HarnessFactory) -> None:
    h = await build_harness()
    parent, subtasks = make_tree(h.store)
    await h.engine.reconcile("12")
    writes = h.tracker.write_count
    parent_record = await h.metadata.get("12")
    assert parent_record is not None

    first_record = await h.metadata.get("12.1")
    assert first_record is not None
    del h.tracker.objects[first_record.remote_id]
    second_record = await h.metadata.get("12.2")
    assert second_record is not None
    h.tracker.objects[second_record.remote_id] = h.tracker.objects[second_record.remote_id].model_copy(
        update={"remote_number": "ENG-404"}
    )
    await h.store.set_status("12.3", WorkItemStatus.DONE)
    refreshed_subtasks = [await h.store.get_work_item(item.id) for item in subtasks]

    report = await h.engine.gate.check(parent, refreshed_subtasks, subtree_root="12")

    assert h.tracker.write_count == writes
    assert report.orphaned == ["12.1"]
    assert report.mismatched == ["12.2"]
    assert report.status_drift == ["12.3"]
    assert report.unlinked == []
    assert not report.ok


@pytest.mark.asyncio
async def test_check_reports_unlinked_items(build_harness: HarnessFactory) -> None:
    h = await build_harness()
    parent, subtasks = make_tree(h.store)

    report = await h.engine.gate.check(parent, subtasks, subtree_root="12")

    assert report.unlinked == ["12", "12.1", "12.2", "12.3"]
    assert report.expected == ["12", "12.1", "12.2", "12.3"]
    assert not report.ok


@pytest.mark.asyncio
async def test_check_on_healthy_subtree_is_ok(build_harness: HarnessFactory) -> None:
    h = await build_harness()
    parent, subtasks = make_tree(h.store)
    await h.engine.reconcile("12")

    report = await h.engine.gate.check(parent, subtasks, subtree_root="12")

    assert report.ok
    assert report.status_drift == []


@pytest.mark.asyncio
async def test_listing_failure_treats_items_as_missing(build_harness: HarnessFactory) -> None:
    h = await build_harness(config=make_config(recovery=RecoveryConfig(max_passes=0, reindex_wait_seconds=0.0)))
    make_tree(h.store, subtask_titles=SUBTASK_TITLES[:1])
    original_list = h.tracker.list_objects
    calls = {"count": 0}

    async def flaky_list(container_id, title_query=None):  # type: ignore[no-untyped-def]
        calls["count"] += 1
        # Parent and subtask resolution list first; the gate's listing fails.
        if calls["count"] > 2:
            raise ProviderError("search index unavailable")
        return await original_list(container_id, title_query)

    h.tracker.list_objects = flaky_list  # type: ignore[method-assign]

    report = await h.engine.reconcile("12")

    assert report.recovery is not None
    assert report.recovery.hard_failures == ["12.1"]
    assert len(h.tracker.create_calls) == 2


@pytest.mark.asyncio
async def test_object_missing_from_lagging_listing_is_validated_by_direct_read(
    build_harness: HarnessFactory,
) -> None:
    h = await build_harness()
    make_tree(h.store)
    h.tracker.unlisted_titles = {SUBTASK_TITLES[0]}

    report = await h.engine.reconcile("12")

    assert report.failed == []
    assert report.outcomes["12.1"].state == ItemSyncState.LINKED
    assert report.recovery is not None
    assert report.recovery.missing == []
    assert report.recovery.hard_failures == []
    assert [create.title for create in h.tracker.create_calls].count(SUBTASK_TITLES[0]) == 1
    record = await h.metadata.get("12.1")
    assert record is not None
    assert record.remote_id in h.tracker.get_calls
