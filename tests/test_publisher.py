import asyncio

import pytest

from app.core.errors import InvalidCredential, LocationUnavailable, TerminalStateViolation
from app.services.tracking.publisher import SESSION_EXPIRED_MESSAGE, LocationPublisher, Position

INTERVAL = 0.02


class FakeSource:
    """Walks north a little on every fix; can be told to fail."""

    def __init__(self, fail_current=False, fail_watch=False, watch_error=None, crash_after=None):
        self.fail_current = fail_current
        self.fail_watch = fail_watch
        self.watch_error = watch_error
        self.crash_after = crash_after
        self.fixes = 0

    async def current_position(self):
        if self.fail_current:
            raise LocationUnavailable("Location permission denied")
        if self.crash_after is not None and self.fixes >= self.crash_after:
            raise OSError("position provider crashed")
        self.fixes += 1
        return Position(latitude=29.0 + self.fixes / 1000, longitude=48.0)

    async def watch(self):
        if self.fail_watch:
            raise LocationUnavailable("GPS signal lost")
        if self.watch_error is not None:
            raise self.watch_error
        while True:
            yield Position(latitude=29.5, longitude=48.5)
            await asyncio.sleep(INTERVAL / 2)


class FakeClient:
    def __init__(self, reject_after=None, rejection=None):
        self.started = []
        self.pushed = []
        self.delivered = []
        self.reject_after = reject_after
        self.rejection = rejection or TerminalStateViolation("delivered")

    async def start_delivery(self, position):
        self.started.append(position)

    async def push_location(self, position):
        if self.reject_after is not None and len(self.pushed) >= self.reject_after:
            raise self.rejection
        self.pushed.append(position)

    async def mark_delivered(self, position):
        self.delivered.append(position)


async def test_start_writes_initial_fix_then_interval_writes():
    client = FakeClient()
    async with LocationPublisher(FakeSource(), client, interval=INTERVAL) as publisher:
        await publisher.start()
        assert client.started[0].latitude == pytest.approx(29.001)
        await asyncio.sleep(INTERVAL * 5)
        assert publisher.is_tracking

    assert not publisher.is_tracking
    assert len(client.pushed) >= 2
    assert publisher.writes == 1 + len(client.pushed)


async def test_watch_updates_the_displayed_position():
    seen = []
    client = FakeClient()
    async with LocationPublisher(FakeSource(), client, interval=10, on_position=seen.append) as publisher:
        await publisher.start()
        await asyncio.sleep(INTERVAL)
        assert publisher.last_position == Position(latitude=29.5, longitude=48.5)
    assert len(seen) >= 2
    # Interval of 10s: only the start write reached the server
    assert client.pushed == []


async def test_mark_delivered_stops_everything():
    client = FakeClient()
    publisher = LocationPublisher(FakeSource(), client, interval=INTERVAL)
    await publisher.start()
    await asyncio.sleep(INTERVAL * 3)

    await publisher.mark_delivered()
    pushed = len(client.pushed)
    await asyncio.sleep(INTERVAL * 3)

    assert publisher.delivered
    assert not publisher.is_tracking
    assert len(client.pushed) == pushed
    assert client.delivered == [publisher.last_position]


async def test_stop_twice_is_a_no_op():
    publisher = LocationPublisher(FakeSource(), FakeClient(), interval=INTERVAL)
    await publisher.start()
    await publisher.stop()
    await publisher.stop()
    assert not publisher.is_tracking


async def test_start_twice_keeps_one_set_of_jobs():
    client = FakeClient()
    async with LocationPublisher(FakeSource(), client, interval=INTERVAL) as publisher:
        await publisher.start()
        await publisher.start()
    assert len(client.started) == 1


async def test_denied_location_is_a_banner_not_a_crash():
    client = FakeClient()
    async with LocationPublisher(FakeSource(fail_current=True), client, interval=INTERVAL) as publisher:
        await publisher.start()
        await asyncio.sleep(INTERVAL * 3)
        assert publisher.error == "Location permission denied"
        assert publisher.is_tracking

    assert client.started == [None]
    assert client.pushed == []
    assert publisher.writes == 0


async def test_watch_failure_does_not_stop_interval_writes():
    client = FakeClient()
    async with LocationPublisher(FakeSource(fail_watch=True), client, interval=INTERVAL) as publisher:
        await publisher.start()
        await asyncio.sleep(INTERVAL * 4)
        assert publisher.error == "GPS signal lost"
    assert len(client.pushed) >= 1


async def test_order_closed_elsewhere_stops_publishing():
    client = FakeClient(reject_after=1)
    publisher = LocationPublisher(FakeSource(), client, interval=INTERVAL)
    await publisher.start()
    await asyncio.sleep(INTERVAL * 6)

    assert publisher.delivered
    assert not publisher.is_tracking
    assert len(client.pushed) == 1
    await publisher.stop()


async def test_teardown_on_exception_cancels_jobs():
    publisher = LocationPublisher(FakeSource(), FakeClient(), interval=INTERVAL)
    with pytest.raises(RuntimeError):
        async with publisher:
            await publisher.start()
            raise RuntimeError("page closed")
    assert not publisher.is_tracking


async def test_crashed_watch_leaves_a_banner_and_stops_cleanly():
    client = FakeClient()
    publisher = LocationPublisher(
        FakeSource(watch_error=OSError("gps driver crashed")), client, interval=INTERVAL
    )
    await publisher.start()
    await asyncio.sleep(INTERVAL * 3)
    assert publisher.error

    await publisher.mark_delivered()
    await publisher.stop()
    assert publisher.delivered
    assert not publisher.is_tracking
    assert len(client.delivered) == 1


async def test_crashed_interval_job_does_not_break_teardown():
    client = FakeClient()
    async with LocationPublisher(FakeSource(crash_after=1), client, interval=INTERVAL) as publisher:
        await publisher.start()
        await asyncio.sleep(INTERVAL * 3)
    assert not publisher.is_tracking
    assert client.pushed == []


async def test_rejected_session_stops_publishing_with_a_banner():
    client = FakeClient(reject_after=1, rejection=InvalidCredential("rejected_by_server"))
    publisher = LocationPublisher(FakeSource(), client, interval=INTERVAL)
    await publisher.start()
    await asyncio.sleep(INTERVAL * 6)

    assert publisher.error == SESSION_EXPIRED_MESSAGE
    assert not publisher.is_tracking
    assert not publisher.delivered
    assert len(client.pushed) == 1
    await publisher.stop()
