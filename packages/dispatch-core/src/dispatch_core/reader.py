"""
Background metric reader for a single node.

This module implements the per-node poller that:
- Refreshes the node's metrics at a fixed interval on its own asyncio task
- Publishes each result as a new immutable MetricSnapshot
- Keeps the last good snapshot when a refresh fails
- Serves current() without any I/O

Lifecycle: CREATED -> RUNNING -> STOPPED. STOPPED is terminal.

The cached snapshot has a single writer (the reader's own task) and any number
of readers. Publishing is a single reference assignment, so callers see either
the previous snapshot or the new one, never a partial one.

Shutdown uses an asyncio.Event so that the interval wait ends immediately.
A refresh still in flight gets the grace period to finish, then is cancelled.

A reader runs on exactly one event loop: the caller's running loop, or a loop
handed to start() that may live on another thread. Its task, stop event and
transport are only touched from that loop; close() hops over when needed.
"""

import asyncio
import logging
from enum import Enum
from typing import Sequence

from dispatch_core.metrics import record_poll
from dispatch_protocols import MetricSnapshot, MetricsTransportProtocol, Node

logger = logging.getLogger(__name__)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class ReaderState(str, Enum):
    """Valid reader states."""

    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class MetricReader:
    """
    Long-lived poller of one node's metrics.

    Example:
        reader = MetricReader(
            node=Node(id=1, host="kafka-1"),
            transport=create_exporter_client("kafka-1", 12345),
            metric_names=["kafka_server_brokertopicmetrics_bytesinpersec_oneminuterate"],
            interval_seconds=4.0,
        )
        reader.start()        # on the running loop, or start(loop) for another
        reader.current()      # None until the first refresh succeeds
        await reader.close()
    """

    def __init__(
        self,
        node: Node,
        transport: MetricsTransportProtocol,
        metric_names: Sequence[str],
        interval_seconds: float = 4.0,
        shutdown_grace_seconds: float = 1.0,
    ) -> None:
        """
        Initialize reader.

        Args:
            node: Node to poll
            transport: Transport bound to the node's metrics endpoint; owned
                by this reader and closed with it
            metric_names: Metrics to request on every refresh
            interval_seconds: Seconds between refresh cycles (default 4)
            shutdown_grace_seconds: How long close() lets an in-flight
                refresh finish before cancelling it
        """
        self.node = node
        self.transport = transport
        self.metric_names = tuple(metric_names)
        self.interval = interval_seconds
        self.shutdown_grace = shutdown_grace_seconds

        self.state = ReaderState.CREATED
        self._snapshot: MetricSnapshot | None = None
        self._shutdown = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

        # Stats
        self.refresh_count = 0
        self.failure_count = 0
        self.last_error: BaseException | None = None

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """
        Start the refresh loop.

        Has no effect unless the reader is in the CREATED state.

        Args:
            loop: Loop to run on. Defaults to the running loop. A loop owned
                by another thread is scheduled on thread-safely.

        Raises:
            RuntimeError: If no loop is given and none is running.
        """
        if self.state is not ReaderState.CREATED:
            return
        running = _running_loop()
        if loop is None:
            if running is None:
                raise RuntimeError(f"No event loop to run the reader for node {self.node.id} on")
            loop = running

        if loop is running:
            self._task = loop.create_task(self._run(), name=f"metric-reader-{self.node.id}")
        else:
            loop.call_soon_threadsafe(self._spawn)
        self._loop = loop
        self.state = ReaderState.RUNNING

    def _spawn(self) -> None:
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"metric-reader-{self.node.id}"
        )

    def current(self) -> MetricSnapshot | None:
        """Return the latest snapshot, or None if no refresh has succeeded yet."""
        return self._snapshot

    async def refresh(self) -> bool:
        """
        Run one refresh cycle.

        Failures are logged and recorded; the previous snapshot is kept.

        Returns:
            True if a new snapshot was published.
        """
        self.refresh_count += 1
        try:
            values = await self.transport.fetch(self.metric_names)
        except Exception as e:
            self.failure_count += 1
            self.last_error = e
            record_poll(ok=False)
            logger.warning(f"Metric refresh failed for node {self.node.id} ({self.node.host}): {e}")
            return False

        self._snapshot = MetricSnapshot(node_id=self.node.id, values=values)
        record_poll(ok=True)
        return True

    async def _run(self) -> None:
        """Refresh at the configured interval until shutdown."""
        logger.debug(f"Reader for node {self.node.id} started (interval: {self.interval}s)")

        while not self._shutdown.is_set():
            await self.refresh()

            # Wait for interval or shutdown signal
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass  # Normal timeout, continue loop

        logger.debug(f"Reader for node {self.node.id} stopped")

    async def close(self) -> None:
        """
        Stop the refresh loop and close the transport.

        Idempotent. The transport is closed even if stopping the task fails.
        May be awaited from any loop; the work runs on the reader's own.

        Raises:
            Exception: Whatever the transport raises while closing.
        """
        if self.state is ReaderState.STOPPED:
            return
        self.state = ReaderState.STOPPED

        if self._loop is None or self._loop is _running_loop():
            await self._stop()
        else:
            await asyncio.wrap_future(asyncio.run_coroutine_threadsafe(self._stop(), self._loop))

    async def _stop(self) -> None:
        self._shutdown.set()

        try:
            if self._task is not None and not self._task.done():
                try:
                    await asyncio.wait_for(self._task, timeout=self.shutdown_grace)
                except asyncio.TimeoutError:
                    logger.debug(f"Abandoned in-flight refresh for node {self.node.id}")
                except asyncio.CancelledError:
                    # Task was cancelled underneath us; only re-raise if we were
                    if asyncio.current_task().cancelling():
                        raise
        finally:
            await self.transport.aclose()
