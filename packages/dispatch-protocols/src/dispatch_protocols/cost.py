"""
Cost function protocol.

A cost function scores cluster nodes from their latest metric snapshots. The
dispatcher sums the votes of every configured function and routes to the
partition whose leader has the lowest total.
"""

from typing import Mapping, Protocol, Sequence, runtime_checkable

from dispatch_protocols.cluster import ClusterInfoProtocol
from dispatch_protocols.types import CostMap, MetricSnapshot, NodeId


@runtime_checkable
class CostFunctionProtocol(Protocol):
    """
    Protocol for node cost functions.

    Implementations may hold configuration but must not mutate any state
    while computing costs: the same instance is shared by every concurrent
    dispatch call.

    Example cost functions:
    - throughput: busier nodes cost more
    - latency: slower nodes cost more
    """

    def metric_names(self) -> Sequence[str]:
        """
        Metric names this function reads from snapshots.

        The dispatcher polls every node for the union of the names declared
        by all of its functions.
        """
        ...

    def cost(
        self,
        snapshots: Mapping[NodeId, MetricSnapshot | None],
        cluster: ClusterInfoProtocol,
    ) -> CostMap:
        """
        Compute the cost of each node.

        Args:
            snapshots: Latest snapshot per known node. A value of None means
                the node has not been polled successfully yet.
            cluster: Current view of the cluster topology.

        Returns:
            Mapping of node id to cost. Nodes left out contribute 0.
        """
        ...
