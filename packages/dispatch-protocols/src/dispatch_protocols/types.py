"""
Generic types for the dispatch protocol system.

This module defines the data structures shared by the dispatcher, its cost
functions and its collaborators (topology, metrics transport):

- NodeId: identifier of a cluster node
- Node: a node and the host its metrics are served from
- PartitionInfo: one addressable partition of a topic and its leader
- MetricSnapshot: point-in-time metric readings of one node
- CostMap: per-node cost produced by a cost function

All types are frozen dataclasses. Snapshots and partitions are observed from
the outside world and never mutated afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping


# Type aliases for common patterns
NodeId = int
"""Unique, totally ordered identifier of a cluster node (broker id)."""

CostMap = dict[NodeId, float]
"""Mapping of node id to cost. Lower cost means more preferred."""


@dataclass(frozen=True, order=True)
class Node:
    """
    Represents a node in the cluster.

    Attributes:
        id: Unique node identifier assigned by the cluster.
        host: Host name or address the node's metrics endpoint listens on.
    """

    id: NodeId
    host: str


@dataclass(frozen=True)
class PartitionInfo:
    """
    Represents one partition of a topic.

    Attributes:
        topic: Name of the topic the partition belongs to.
        partition: Partition index within the topic.
        leader: Node currently leading the partition, or None while the
            partition has no elected leader (and is therefore unavailable).
    """

    topic: str
    partition: int
    leader: Node | None

    @property
    def available(self) -> bool:
        """True if the partition has a leader that can accept writes."""
        return self.leader is not None


@dataclass(frozen=True)
class MetricSnapshot:
    """
    Immutable metric readings taken from a single node in one poll cycle.

    Attributes:
        node_id: The node these readings belong to.
        values: Metric name to value. Wrapped read-only on construction.
        taken_at: When the readings were retrieved (UTC).
    """

    node_id: NodeId
    values: Mapping[str, float] = field(default_factory=dict)
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, name: str, default: float | None = None) -> float | None:
        """Return the reading for ``name`` or ``default`` if it was not retrieved."""
        return self.values.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self.values
