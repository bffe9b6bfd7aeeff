# tests/test_sync.py

"""
Tests for the event bus and the poll scheduler.
"""

import asyncio

import pytest

from app.core.errors import TransientNetworkError, ValidationError
from app.models import ReviewAction, SyncEvent, SyncEventName
from app.sync.bus import EventBus
from app.sync.scheduler import PollScheduler


def _event(name=SyncEventName.RESIDENT_DATA_UPDATED, resident_id="res-1"):
    return SyncEvent(name=name, resident_id=resident_id, action=ReviewAction.APPROVED)


# ============== EventBus ==============

@pytest.mark.asyncio
async def test_publish_reaches_sync_and_async_handlers():
    bus = EventBus()
    seen = []

    async def async_handler(event):
        seen.append(("async", event.resident_id))

    bus.subscribe(SyncEventName.RESIDENT_DATA_UPDATED, lambda e: seen.append(("sync", e.resident_id)))
    bus.subscribe(SyncEventName.RESIDENT_DATA_UPDATED, async_handler)

    delivered = await bus.publish(_event())

    assert delivered == 2
    assert seen == [("sync", "res-1"), ("async", "res-1")]


@pytest.mark.asyncio
async def test_publish_only_reaches_matching_name():
    bus = EventBus()
    seen = []
    bus.subscribe(SyncEventName.ADMIN_DATA_REFRESH, seen.append)

    delivered = await bus.publish(_event())

    assert delivered == 0
    assert seen == []


@pytest.mark.asyncio
async def test_publish_accepts_camel_case_payload():
    bus = EventBus()
    seen = []
    bus.subscribe("residentDataUpdated", seen.append)

    await bus.publish({
        "name": "residentDataUpdated",
        "residentId": "res-1",
        "updatedData": {"firstName": "Juana"},
        "action": "approved",
    })

    assert seen[0].updated_data == {"firstName": "Juana"}


@pytest.mark.asyncio
async def test_publish_rejects_malformed_payload():
    bus = EventBus()

    with pytest.raises(ValidationError):
        await bus.publish({"name": "residentDataUpdated"})


@pytest.mark.asyncio
async def test_failing_handler_does_not_block_others():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(SyncEventName.RESIDENT_DATA_UPDATED, broken)
    bus.subscribe(SyncEventName.RESIDENT_DATA_UPDATED, seen.append)

    delivered = await bus.publish(_event())

    assert delivered == 1
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_unsubscribe():
    bus = EventBus()
    seen = []
    unsubscribe = bus.subscribe(SyncEventName.RESIDENT_DATA_UPDATED, seen.append)

    unsubscribe()
    await bus.publish(_event())

    assert seen == []
    assert bus.handler_count(SyncEventName.RESIDENT_DATA_UPDATED) == 0


# ============== PollScheduler ==============

class Poller:
    def __init__(self, error=None):
        self.calls = 0
        self.error = error

    async def __call__(self):
        self.calls += 1
        if self.error:
            raise self.error


def test_interval_follows_visibility():
    scheduler = PollScheduler(Poller(), visible_interval=15, hidden_interval=60)

    assert scheduler.interval == 15
    scheduler.set_visibility(False)
    assert scheduler.interval == 60
    scheduler.set_visibility(True)
    assert scheduler.interval == 15


@pytest.mark.asyncio
async def test_poll_now_counts_successes():
    poller = Poller()
    scheduler = PollScheduler(poller)

    assert await scheduler.poll_now() is True
    assert scheduler.poll_count == 1
    assert poller.calls == 1


@pytest.mark.asyncio
async def test_transient_failure_is_retried_next_tick():
    poller = Poller(TransientNetworkError("timed out"))
    scheduler = PollScheduler(poller)

    assert await scheduler.poll_now() is False
    assert isinstance(scheduler.last_error, TransientNetworkError)

    poller.error = None
    assert await scheduler.poll_now() is True
    assert scheduler.last_error is None


@pytest.mark.asyncio
async def test_unexpected_failure_does_not_raise():
    scheduler = PollScheduler(Poller(RuntimeError("bad payload")))

    assert await scheduler.poll_now() is False


@pytest.mark.asyncio
async def test_ticks_on_interval():
    poller = Poller()
    scheduler = PollScheduler(poller, visible_interval=0.01, hidden_interval=1)

    scheduler.start()
    await asyncio.sleep(0.1)
    await scheduler.stop()

    assert poller.calls >= 3
    assert scheduler.running is False


@pytest.mark.asyncio
async def test_becoming_visible_polls_immediately():
    poller = Poller()
    scheduler = PollScheduler(poller, visible_interval=30, hidden_interval=30)
    scheduler.set_visibility(False)

    scheduler.start(poll_first=False)
    await asyncio.sleep(0.02)
    assert poller.calls == 0

    scheduler.set_visibility(True)
    await asyncio.sleep(0.02)
    await scheduler.stop()

    assert poller.calls == 1


@pytest.mark.asyncio
async def test_trigger_and_focus_poll_immediately():
    poller = Poller()
    scheduler = PollScheduler(poller, visible_interval=30, hidden_interval=30)

    scheduler.start(poll_first=False)
    scheduler.trigger()
    await asyncio.sleep(0.02)
    scheduler.focus()
    await asyncio.sleep(0.02)
    await scheduler.stop()

    assert poller.calls == 2


@pytest.mark.asyncio
async def test_stop_without_start():
    scheduler = PollScheduler(Poller())

    await scheduler.stop()

    assert scheduler.running is False
