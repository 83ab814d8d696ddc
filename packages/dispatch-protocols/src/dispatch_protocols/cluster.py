"""
Cluster topology protocol.

The ClusterInfoProtocol is the dispatcher's view of cluster membership: which
nodes exist and which partitions of a topic can currently accept writes.
Implementations range from a static snapshot to a client of a metadata
service.
"""

from typing import Protocol, runtime_checkable

from dispatch_protocols.types import Node, PartitionInfo


@runtime_checkable
class ClusterInfoProtocol(Protocol):
    """
    Protocol for cluster topology views.

    A view may change between dispatch calls; the dispatcher tolerates nodes
    appearing and disappearing.
    """

    def available_partitions(self, topic: str) -> list[PartitionInfo]:
        """
        Get the partitions of ``topic`` that currently have a leader.

        Returns:
            Partitions in their natural order. Empty if the topic is unknown
            or has no available partition.
        """
        ...

    def nodes(self) -> list[Node]:
        """Get every node known to the cluster."""
        ...
