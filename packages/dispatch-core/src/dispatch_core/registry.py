"""
Registry of per-node metric readers.

The registry owns exactly one reader per node for its whole life. Readers are
created lazily the first time a node is seen and are only released by
shutdown(); nodes are assumed to be long-lived.

Creation is an atomic get-or-create under a lock, so concurrent first use of
the same node from several threads or tasks never starts a second reader.

Readers requested from inside a running event loop run on that loop. Callers
without one (producer threads, executor workers) get their readers started on
a background loop thread owned by the registry and stopped by shutdown().
"""

import asyncio
import logging
import threading
from typing import Callable, Protocol

from dispatch_core.background import BackgroundLoop
from dispatch_core.exceptions import PollerShutdownError, RegistryClosedError
from dispatch_core.metrics import set_registered_pollers
from dispatch_protocols import MetricSnapshot, Node, NodeId

logger = logging.getLogger(__name__)

# Seconds to wait for a poller that failed to start to release its resources
DISCARD_TIMEOUT = 5.0


class Poller(Protocol):
    """What the registry needs from a reader."""

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None: ...

    def current(self) -> MetricSnapshot | None: ...

    async def close(self) -> None: ...


class PollerRegistry:
    """
    Owns one background poller per node.

    Example:
        registry = PollerRegistry(factory=dispatcher_reader_factory)
        registry.ensure_poller(Node(id=1, host="kafka-1"))
        registry.snapshot_all()   # {1: None} until the first refresh lands
        await registry.shutdown()
    """

    def __init__(self, factory: Callable[[Node], Poller]) -> None:
        """
        Initialize registry.

        Args:
            factory: Builds an unstarted poller for a node. May raise (for
                example NoEndpointConfiguredError); nothing is registered then.
        """
        self.factory = factory
        self.background = BackgroundLoop()
        self._pollers: dict[NodeId, Poller] = {}
        self._lock = threading.Lock()
        self._closed = False

    def ensure_poller(self, node: Node) -> Poller:
        """
        Get the poller for a node, creating and starting it if absent.

        Safe to call from any thread, with or without a running event loop.

        Raises:
            RegistryClosedError: If the registry has been shut down.
            Exception: Whatever the factory raises for an unresolvable node,
                or whatever starting the poller raises (the poller is
                closed again before the error propagates).
        """
        with self._lock:
            poller = self._pollers.get(node.id)
            if poller is not None:
                return poller
            if self._closed:
                raise RegistryClosedError(node.id)

            poller = self.factory(node)
            try:
                poller.start(self._loop_for_caller())
            except Exception:
                self._discard(node, poller)
                raise
            self._pollers[node.id] = poller
            count = len(self._pollers)

        set_registered_pollers(count)
        logger.info(f"Registered metric poller for node {node.id} ({node.host})")
        return poller

    def _loop_for_caller(self) -> asyncio.AbstractEventLoop:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return self.background.get()

    def _discard(self, node: Node, poller: Poller) -> None:
        """Close a poller that never got registered."""
        future = asyncio.run_coroutine_threadsafe(poller.close(), self.background.get())
        try:
            future.result(timeout=DISCARD_TIMEOUT)
        except Exception as e:
            logger.error(f"Failed to release unstarted poller for node {node.id}: {e}")

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._pollers

    def __len__(self) -> int:
        return len(self._pollers)

    def node_ids(self) -> list[NodeId]:
        """Ids of all registered nodes in ascending order."""
        with self._lock:
            return sorted(self._pollers)

    def snapshot_all(self) -> dict[NodeId, MetricSnapshot | None]:
        """
        Latest snapshot of every registered node, in ascending node id order.

        Only cached values are read; no network I/O happens here.
        """
        with self._lock:
            pollers = sorted(self._pollers.items())
        return {node_id: poller.current() for node_id, poller in pollers}

    async def shutdown(self) -> None:
        """
        Close every poller, then stop the background loop.

        Idempotent. A failing close does not stop the remaining ones.

        Raises:
            PollerShutdownError: After all closes were attempted, if any failed.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pollers = sorted(self._pollers.items())
            self._pollers.clear()

        failures: dict[NodeId, BaseException] = {}
        for node_id, poller in pollers:
            try:
                await poller.close()
            except Exception as e:
                logger.error(f"Failed to close metric poller for node {node_id}: {e}")
                failures[node_id] = e

        await self.background.stop()
        set_registered_pollers(0)
        logger.info(f"Closed {len(pollers) - len(failures)}/{len(pollers)} metric poller(s)")

        if failures:
            raise PollerShutdownError(failures)
