"""
Protocol definitions for metric-driven partition dispatch.

This package provides generic Protocol definitions that can be implemented
by any cost function, topology source or metrics transport. It has zero
dependencies on other dispatch-* packages.

Key protocols:
- CostFunctionProtocol: Interface for node cost functions
- ClusterInfoProtocol: Interface for cluster topology views
- MetricsTransportProtocol: Interface for per-node metric readers

Key types:
- Node, NodeId: Cluster node and its identifier
- PartitionInfo: Topic partition and its leader
- MetricSnapshot: Point-in-time metric readings of a node
- CostMap: Per-node cost
"""

from dispatch_protocols.cluster import ClusterInfoProtocol
from dispatch_protocols.cost import CostFunctionProtocol
from dispatch_protocols.transport import MetricsTransportProtocol
from dispatch_protocols.types import CostMap, MetricSnapshot, Node, NodeId, PartitionInfo

__all__ = [
    # Protocols
    "ClusterInfoProtocol",
    "CostFunctionProtocol",
    "MetricsTransportProtocol",
    # Data types
    "CostMap",
    "MetricSnapshot",
    "Node",
    "NodeId",
    "PartitionInfo",
]
