import anyio
import pytest

from app.realtime import sse


@pytest.fixture
def queues():
    north = sse.subscribe(1)
    south = sse.subscribe(2)
    homeless = sse.subscribe(None)
    yield north, south, homeless
    for q in (north, south, homeless):
        sse.unsubscribe(q)


def test_broadcast_reaches_targeted_households_only(queues):
    north, south, homeless = queues

    anyio.run(sse.broadcast, "GROUP_INVENTORY_CHANGED", {"group_id": 7}, [1])

    assert north.get_nowait() == {"event": "GROUP_INVENTORY_CHANGED", "data": {"group_id": 7}}
    assert south.empty()
    assert homeless.empty()


def test_broadcast_without_targets_reaches_everyone(queues):
    anyio.run(sse.broadcast, "PING", {})

    assert all(q.qsize() == 1 for q in queues)


def test_notify_outside_worker_thread_is_dropped(queues):
    sse.notify("PING", {})

    assert all(q.empty() for q in queues)
