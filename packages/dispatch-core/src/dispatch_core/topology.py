"""
Cluster topology adapters.

This module provides two sources for the ClusterInfoProtocol view the
dispatcher consumes:

- ClusterSnapshot: an immutable in-memory view, loadable from a YAML file
- TopologyClient: reads the view from a cluster metadata HTTP API

Pydantic models validate external data (YAML files, API responses); the
dispatcher itself only sees the dataclasses from dispatch_protocols.

Topology file format:

    nodes:
      - {id: 1, host: kafka-1}
      - {id: 2, host: kafka-2}
    topics:
      orders:
        - {partition: 0, leader: 1}
        - {partition: 1, leader: 2}
        - {partition: 2, leader: null}   # offline, never selected
"""

from dataclasses import dataclass, field
from pathlib import Path

import httpx
import yaml
from pydantic import BaseModel, Field

from dispatch_protocols import Node, NodeId, PartitionInfo


# =============================================================================
# Wire / file types
# =============================================================================


class NodeModel(BaseModel):
    """Node entry as found in topology files and API responses."""

    id: int
    host: str


class PartitionModel(BaseModel):
    """Partition entry. ``leader`` is a node id, or null while leaderless."""

    partition: int
    leader: int | None = None


class TopologyFile(BaseModel):
    """Top-level structure of a topology YAML file."""

    nodes: list[NodeModel] = Field(default_factory=list)
    topics: dict[str, list[PartitionModel]] = Field(default_factory=dict)


class NodesResponse(BaseModel):
    """
    Response from GET /api/v1/nodes.

    Example response:
    {"nodes": [{"id": 1, "host": "kafka-1"}]}
    """

    nodes: list[NodeModel]


class PartitionsResponse(BaseModel):
    """
    Response from GET /api/v1/topics/{topic}/partitions.

    Example response:
    {"topic": "orders", "partitions": [{"partition": 0, "leader": 1}]}
    """

    topic: str
    partitions: list[PartitionModel]


# =============================================================================
# ClusterSnapshot
# =============================================================================


@dataclass(frozen=True)
class ClusterSnapshot:
    """
    Immutable cluster view implementing ClusterInfoProtocol.

    Attributes:
        node_list: Every known node.
        partitions: Every known partition of every topic, available or not.
    """

    node_list: tuple[Node, ...] = ()
    partitions: tuple[PartitionInfo, ...] = field(default_factory=tuple)

    def available_partitions(self, topic: str) -> list[PartitionInfo]:
        """Partitions of ``topic`` that have a leader, ordered by partition index."""
        return sorted(
            (p for p in self.partitions if p.topic == topic and p.available),
            key=lambda p: p.partition,
        )

    def nodes(self) -> list[Node]:
        """Every known node, ordered by id."""
        return sorted(self.node_list)

    def node(self, node_id: NodeId) -> Node | None:
        """Look up a node by id."""
        for node in self.node_list:
            if node.id == node_id:
                return node
        return None

    @classmethod
    def from_partitions(cls, partitions: list[PartitionInfo]) -> "ClusterSnapshot":
        """Build a view containing exactly the given partitions and their leaders."""
        leaders = {p.leader for p in partitions if p.leader is not None}
        return cls(node_list=tuple(sorted(leaders)), partitions=tuple(partitions))

    @classmethod
    def from_models(
        cls,
        nodes: list[NodeModel],
        topics: dict[str, list[PartitionModel]],
    ) -> "ClusterSnapshot":
        """
        Build a view from validated wire models.

        Raises:
            ValueError: If a partition names a leader that is not a known node.
        """
        by_id = {n.id: Node(id=n.id, host=n.host) for n in nodes}

        partitions = []
        for topic, entries in topics.items():
            for entry in entries:
                leader = None
                if entry.leader is not None:
                    leader = by_id.get(entry.leader)
                    if leader is None:
                        raise ValueError(
                            f"Partition {topic}-{entry.partition} has unknown leader {entry.leader}"
                        )
                partitions.append(
                    PartitionInfo(topic=topic, partition=entry.partition, leader=leader)
                )

        return cls(node_list=tuple(by_id.values()), partitions=tuple(partitions))

    @classmethod
    def load(cls, path: Path) -> "ClusterSnapshot":
        """
        Load a view from a topology YAML file.

        Raises:
            pydantic.ValidationError: On malformed file content.
            ValueError: If a partition names an unknown leader.
        """
        data = TopologyFile.model_validate(yaml.safe_load(path.read_text()) or {})
        return cls.from_models(data.nodes, data.topics)


# =============================================================================
# TopologyClient
# =============================================================================


@dataclass
class TopologyClient:
    """
    Cluster metadata API client with injected httpx client.

    Example:
        async with httpx.AsyncClient(base_url="http://metadata:8080") as http:
            client = TopologyClient(http=http)
            cluster = await client.get_cluster(["orders"])
            cluster.available_partitions("orders")
    """

    http: httpx.AsyncClient

    async def get_nodes(self) -> list[NodeModel]:
        """
        Calls GET /api/v1/nodes.

        Raises:
            httpx.HTTPStatusError: On HTTP errors (4xx, 5xx responses).
            pydantic.ValidationError: On malformed response data.
        """
        response = await self.http.get("/api/v1/nodes")
        response.raise_for_status()
        return NodesResponse.model_validate(response.json()).nodes

    async def get_partitions(self, topic: str) -> list[PartitionModel]:
        """
        Calls GET /api/v1/topics/{topic}/partitions.

        Raises:
            httpx.HTTPStatusError: On HTTP errors (4xx, 5xx responses).
            pydantic.ValidationError: On malformed response data.
        """
        response = await self.http.get(f"/api/v1/topics/{topic}/partitions")
        response.raise_for_status()
        return PartitionsResponse.model_validate(response.json()).partitions

    async def get_cluster(self, topics: list[str]) -> ClusterSnapshot:
        """Fetch nodes and the partitions of ``topics`` as one ClusterSnapshot."""
        nodes = await self.get_nodes()
        partitions = {topic: await self.get_partitions(topic) for topic in topics}
        return ClusterSnapshot.from_models(nodes, partitions)
