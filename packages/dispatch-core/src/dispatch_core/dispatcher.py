"""
Metric-driven partition dispatcher.

StrictCostDispatcher scores nodes with one or more cost functions, each
evaluating nodes by different metrics. The default function ranks nodes by
throughput, so the least busy leader receives the next record.

The required configuration is the metrics port. Usually every broker uses
the same one and ``jmx.port=12345`` is enough. A broker on a different port
is overridden with ``broker.1000.jmx.port=11111`` (``1000`` being the broker
id).

The send path never waits on the network: partition() only reads snapshots
cached by the background readers, which may be up to one poll interval old.
partition() may be called from any thread; readers first needed outside an
event loop run on the registry's background loop thread.
"""

import logging
import math
from typing import Callable, Iterable, Sequence

from dispatch_core.config import (
    COST_FUNCTIONS,
    METRICS_INTERVAL,
    Configuration,
    DispatcherSettings,
)
from dispatch_core.cost import ThroughputCost, load_cost_functions
from dispatch_core.endpoints import PortResolver
from dispatch_core.metrics import record_selection
from dispatch_core.reader import MetricReader
from dispatch_core.registry import PollerRegistry
from dispatch_core.topology import ClusterSnapshot
from dispatch_core.transport import create_exporter_client
from dispatch_protocols import (
    ClusterInfoProtocol,
    CostFunctionProtocol,
    CostMap,
    MetricsTransportProtocol,
    Node,
    NodeId,
    PartitionInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_PARTITION = 0

TransportFactory = Callable[[str, int], MetricsTransportProtocol]


class StrictCostDispatcher:
    """
    Picks, on every send, the partition whose leader has the lowest total cost.

    Example:
        dispatcher = StrictCostDispatcher()
        dispatcher.configure(Configuration.from_mapping({"jmx.port": 12345}))
        async with dispatcher:
            partition = dispatcher.partition("orders", key, value, cluster)

        # From producer threads without an event loop:
        partition = dispatcher.partition("orders", key, value, cluster)
        asyncio.run(dispatcher.close())
    """

    def __init__(
        self,
        functions: Iterable[CostFunctionProtocol] | None = None,
        settings: DispatcherSettings | None = None,
        ports: PortResolver | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            functions: Cost functions to sum. Defaults to [ThroughputCost()].
            settings: Poll interval, scrape and shutdown tuning.
            ports: Metrics port resolver. Without one, configure() must be
                called before any node can be polled.
            transport_factory: Builds the metrics transport for (host, port).
                Defaults to an exporter scrape client.
        """
        self.functions: tuple[CostFunctionProtocol, ...] = (
            tuple(functions) if functions is not None else (ThroughputCost(),)
        )
        self.settings = settings or DispatcherSettings()
        self.ports = ports or PortResolver()
        self.interval = self.settings.poll_interval_seconds
        self.transport_factory = transport_factory or self._default_transport
        self.registry = PollerRegistry(factory=self._create_reader)

    @classmethod
    def from_configuration(
        cls,
        config: Configuration,
        settings: DispatcherSettings | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> "StrictCostDispatcher":
        """Create and configure a dispatcher in one step."""
        dispatcher = cls(settings=settings, transport_factory=transport_factory)
        dispatcher.configure(config)
        return dispatcher

    def configure(self, config: Configuration) -> None:
        """
        Apply client configuration.

        Reads ``jmx.port``, ``broker.<id>.jmx.port``, and optionally
        ``cost.functions`` and ``metrics.interval.seconds``. Only pollers
        created afterwards see the new ports and interval.

        Raises:
            InvalidConfigurationError: On malformed entries.
        """
        self.ports = PortResolver.from_configuration(config)

        interval = config.number(METRICS_INTERVAL)
        if interval is not None:
            self.interval = interval

        functions = config.string(COST_FUNCTIONS)
        if functions is not None:
            self.functions = tuple(load_cost_functions(functions))

        logger.info(
            f"Dispatcher configured: {len(self.functions)} cost function(s), "
            f"interval {self.interval}s, {len(self.ports.overrides)} port override(s)"
        )

    def metric_names(self) -> list[str]:
        """Union of the metrics declared by every cost function, first-seen order."""
        return list(dict.fromkeys(name for f in self.functions for name in f.metric_names()))

    def _default_transport(self, host: str, port: int) -> MetricsTransportProtocol:
        return create_exporter_client(host, port, self.settings)

    def _create_reader(self, node: Node) -> MetricReader:
        """Build the reader for a node. Raises NoEndpointConfiguredError."""
        port = self.ports.resolve_port(node.id)
        return MetricReader(
            node=node,
            transport=self.transport_factory(node.host, port),
            metric_names=self.metric_names(),
            interval_seconds=self.interval,
            shutdown_grace_seconds=self.settings.shutdown_grace_seconds,
        )

    def partition(
        self,
        topic: str,
        key: bytes | None,
        value: bytes | None,
        cluster: ClusterInfoProtocol,
    ) -> int:
        """
        Choose the partition of ``topic`` for one record.

        Key and value are opaque here; built-in cost functions ignore them.

        Raises:
            NoEndpointConfiguredError: If a new leader has no metrics port.
        """
        return self.select(topic, cluster.available_partitions(topic), cluster)

    def select(
        self,
        topic: str,
        partitions: Sequence[PartitionInfo],
        cluster: ClusterInfoProtocol | None = None,
    ) -> int:
        """
        Choose among ``partitions`` the one whose leader costs least.

        Args:
            topic: Topic being written (routing context only)
            partitions: Candidate partitions, in their natural order
            cluster: Topology handed to cost functions. Defaults to a view
                made of the candidates alone.

        Returns:
            Partition index of the first minimum-cost candidate, or 0 when
            there is no candidate or no cost could be computed.

        Raises:
            NoEndpointConfiguredError: If a new leader has no metrics port.
        """
        # just return first partition if there is no available partitions
        if not partitions:
            record_selection("fallback")
            return DEFAULT_PARTITION

        if cluster is None:
            cluster = ClusterSnapshot.from_partitions(list(partitions))

        # add new pollers for new leaders
        for p in partitions:
            if p.leader is not None and p.leader.id not in self.registry:
                self.registry.ensure_poller(p.leader)

        scores = self._score(cluster)

        best: PartitionInfo | None = None
        best_cost = math.inf
        for p in partitions:
            if p.leader is None:
                continue
            total = math.fsum(s.get(p.leader.id, 0.0) for s in scores)
            if math.isnan(total):
                continue
            if best is None or total < best_cost:
                best, best_cost = p, total

        if best is None:
            record_selection("fallback")
            return DEFAULT_PARTITION

        record_selection("scored")
        return best.partition

    def _score(self, cluster: ClusterInfoProtocol) -> list[CostMap]:
        """Run every cost function against one consistent set of snapshots."""
        snapshots = self.registry.snapshot_all()
        return [f.cost(snapshots, cluster) for f in self.functions]

    def node_costs(self, cluster: ClusterInfoProtocol) -> dict[NodeId, float]:
        """
        Total cost of every polled node.

        Same aggregation as select(), without choosing. Used for display.
        """
        scores = self._score(cluster)
        return {
            node_id: math.fsum(s.get(node_id, 0.0) for s in scores)
            for node_id in self.registry.node_ids()
        }

    async def close(self) -> None:
        """
        Stop and release every poller and the background loop thread.

        Raises:
            PollerShutdownError: If some pollers failed to close (all were attempted).
        """
        await self.registry.shutdown()

    async def __aenter__(self) -> "StrictCostDispatcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
