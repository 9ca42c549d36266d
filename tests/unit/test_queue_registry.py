import pytest

from inbox_core.scheduling import ActiveQueueRegistry


@pytest.mark.unit
def test_register_and_lookup():
    registry = ActiveQueueRegistry()
    registry.register("c-1", current_index=4, sent=3, failed=1)

    queue = registry.get_active_queue("c-1")

    assert queue.status == "running"
    assert queue.progress.current_index == 4
    assert queue.progress.stats.sent == 3
    assert queue.progress.stats.failed == 1
    assert registry.get_active_queue("c-2") is None
    assert len(registry) == 1


@pytest.mark.unit
def test_update_and_remove():
    registry = ActiveQueueRegistry()
    registry.register("c-1")

    registry.update("c-1", status="paused", sent=10)
    assert registry.get_active_queue("c-1").status == "paused"
    assert registry.get_active_queue("c-1").progress.stats.sent == 10

    registry.remove("c-1")
    registry.remove("c-1")
    assert registry.get_active_queues() == []


@pytest.mark.unit
def test_update_unknown_campaign_raises():
    registry = ActiveQueueRegistry()

    with pytest.raises(KeyError):
        registry.update("missing", status="paused")


@pytest.mark.unit
def test_snapshots_are_copies():
    registry = ActiveQueueRegistry()
    registry.register("c-1", current_index=1)

    snapshot = registry.get_active_queues()[0]
    snapshot.progress.current_index = 99

    assert registry.get_active_queue("c-1").progress.current_index == 1
