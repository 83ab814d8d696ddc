"""
Tests for MetricReader - background poller of one node.

These tests verify the reader:
- Serves None before its first successful refresh
- Publishes a new snapshot per successful refresh
- Keeps the last good snapshot when a refresh fails
- Refreshes periodically once started
- Moves CREATED -> RUNNING -> STOPPED and closes its transport once
- Does not hang on close while a refresh is stuck
- Runs on a loop owned by another thread and closes from any loop
"""

import asyncio
import time

import pytest

from dispatch_core.background import BackgroundLoop
from dispatch_core.reader import MetricReader, ReaderState
from dispatch_protocols import MetricsTransportProtocol, Node

NODE = Node(id=1, host="kafka-1")


class FakeTransport:
    """Transport returning queued results; exceptions in the queue are raised."""

    def __init__(self, results: list | None = None):
        self.results = list(results or [])
        self.fetch_calls: list[tuple[str, ...]] = []
        self.close_count = 0

    async def fetch(self, names):
        self.fetch_calls.append(tuple(names))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return dict(result)

    async def aclose(self) -> None:
        self.close_count += 1


class HangingTransport:
    """Transport whose fetch never completes."""

    def __init__(self):
        self.close_count = 0
        self.started = asyncio.Event()

    async def fetch(self, names):
        self.started.set()
        await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.close_count += 1


def make_reader(transport, interval: float = 60.0, grace: float = 0.05) -> MetricReader:
    return MetricReader(
        node=NODE,
        transport=transport,
        metric_names=["bytes_in", "bytes_out"],
        interval_seconds=interval,
        shutdown_grace_seconds=grace,
    )


def test_fake_transports_satisfy_protocol():
    assert isinstance(FakeTransport([{}]), MetricsTransportProtocol)
    assert isinstance(HangingTransport(), MetricsTransportProtocol)


def test_new_reader_has_no_snapshot():
    reader = make_reader(FakeTransport([{}]))

    assert reader.state is ReaderState.CREATED
    assert reader.current() is None


@pytest.mark.asyncio
async def test_refresh_publishes_snapshot():
    transport = FakeTransport([{"bytes_in": 10.0, "bytes_out": 5.0}])
    reader = make_reader(transport)

    assert await reader.refresh() is True

    snapshot = reader.current()
    assert snapshot.node_id == 1
    assert snapshot.get("bytes_in") == 10.0
    assert transport.fetch_calls == [("bytes_in", "bytes_out")]


@pytest.mark.asyncio
async def test_refresh_replaces_previous_snapshot():
    reader = make_reader(FakeTransport([{"bytes_in": 1.0}, {"bytes_in": 2.0}]))

    await reader.refresh()
    first = reader.current()
    await reader.refresh()

    assert reader.current() is not first
    assert reader.current().get("bytes_in") == 2.0


@pytest.mark.asyncio
async def test_failed_refresh_keeps_last_good_snapshot():
    reader = make_reader(
        FakeTransport([{"bytes_in": 1.0}, ConnectionError("refused"), {"bytes_in": 3.0}])
    )

    await reader.refresh()
    good = reader.current()

    assert await reader.refresh() is False
    assert reader.current() is good
    assert reader.failure_count == 1
    assert isinstance(reader.last_error, ConnectionError)


@pytest.mark.asyncio
async def test_failed_first_refresh_stays_empty():
    reader = make_reader(FakeTransport([ValueError("bad exposition")]))

    assert await reader.refresh() is False
    assert reader.current() is None


@pytest.mark.asyncio
async def test_start_polls_periodically():
    transport = FakeTransport([{"bytes_in": 1.0}])
    reader = make_reader(transport, interval=0.01)

    reader.start()
    assert reader.state is ReaderState.RUNNING
    await asyncio.sleep(0.1)
    await reader.close()

    assert len(transport.fetch_calls) >= 2
    assert reader.current() is not None


@pytest.mark.asyncio
async def test_loop_survives_failures():
    """A failing node keeps being polled on schedule."""
    transport = FakeTransport([ConnectionError("down")])
    reader = make_reader(transport, interval=0.01)

    reader.start()
    await asyncio.sleep(0.1)
    await reader.close()

    assert reader.failure_count >= 2
    assert reader.current() is None


@pytest.mark.asyncio
async def test_start_twice_starts_one_task():
    transport = FakeTransport([{}])
    reader = make_reader(transport)

    reader.start()
    task = reader._task
    reader.start()

    assert reader._task is task
    await reader.close()


@pytest.mark.asyncio
async def test_close_stops_and_releases_once():
    transport = FakeTransport([{}])
    reader = make_reader(transport)
    reader.start()

    await reader.close()
    await reader.close()

    assert reader.state is ReaderState.STOPPED
    assert reader._task.done()
    assert transport.close_count == 1


@pytest.mark.asyncio
async def test_close_interrupts_interval_wait():
    """Close does not wait for the next poll interval."""
    reader = make_reader(FakeTransport([{}]), interval=60.0, grace=5.0)
    reader.start()
    await asyncio.sleep(0.01)

    await asyncio.wait_for(reader.close(), timeout=1.0)

    assert reader._task.done()


@pytest.mark.asyncio
async def test_close_abandons_stuck_refresh():
    transport = HangingTransport()
    reader = make_reader(transport, grace=0.05)
    reader.start()
    await transport.started.wait()

    await asyncio.wait_for(reader.close(), timeout=1.0)

    assert reader._task.done()
    assert transport.close_count == 1


@pytest.mark.asyncio
async def test_close_without_start_releases_transport():
    transport = FakeTransport([{}])
    reader = make_reader(transport)

    await reader.close()

    assert reader.state is ReaderState.STOPPED
    assert transport.close_count == 1


@pytest.mark.asyncio
async def test_current_does_not_wait_for_refresh():
    """current() returns immediately even while a refresh is stuck."""
    transport = HangingTransport()
    reader = make_reader(transport)
    reader.start()
    await transport.started.wait()

    assert reader.current() is None

    await reader.close()


def test_start_without_event_loop_raises():
    reader = make_reader(FakeTransport([{}]))

    with pytest.raises(RuntimeError, match="No event loop"):
        reader.start()

    assert reader.state is ReaderState.CREATED


def test_start_on_loop_owned_by_another_thread():
    background = BackgroundLoop()
    transport = FakeTransport([{"bytes_in": 1.0}])
    reader = make_reader(transport, interval=0.01)

    reader.start(background.get())
    deadline = time.monotonic() + 2.0
    while reader.current() is None and time.monotonic() < deadline:
        time.sleep(0.01)

    # Closed from a different loop than the one the reader runs on
    asyncio.run(reader.close())
    asyncio.run(background.stop())

    assert reader.current().get("bytes_in") == 1.0
    assert reader.state is ReaderState.STOPPED
    assert reader._task.done()
    assert transport.close_count == 1
