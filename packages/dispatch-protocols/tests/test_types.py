"""
Tests for dispatch protocol types.

Tests cover:
- MetricSnapshot is immutable and read-only
- Node ordering follows node id
- PartitionInfo availability follows leader presence
"""

import dataclasses

import pytest

from dispatch_protocols import MetricSnapshot, Node, PartitionInfo


class TestMetricSnapshot:
    """Tests for MetricSnapshot."""

    def test_values_are_read_only(self):
        """Snapshot values cannot be modified after construction."""
        snapshot = MetricSnapshot(node_id=1, values={"bytes_in": 10.0})

        with pytest.raises(TypeError):
            snapshot.values["bytes_in"] = 20.0

    def test_snapshot_copies_source_mapping(self):
        """Mutating the source dict does not leak into the snapshot."""
        source = {"bytes_in": 10.0}
        snapshot = MetricSnapshot(node_id=1, values=source)

        source["bytes_in"] = 99.0

        assert snapshot.get("bytes_in") == 10.0

    def test_fields_are_frozen(self):
        """Snapshot fields cannot be reassigned."""
        snapshot = MetricSnapshot(node_id=1)

        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.node_id = 2

    def test_get_missing_returns_default(self):
        """get() falls back to the default for unknown names."""
        snapshot = MetricSnapshot(node_id=1, values={"a": 1.0})

        assert snapshot.get("b") is None
        assert snapshot.get("b", 0.0) == 0.0
        assert "a" in snapshot
        assert "b" not in snapshot

    def test_taken_at_is_timezone_aware(self):
        """Snapshots are timestamped in UTC."""
        snapshot = MetricSnapshot(node_id=1)

        assert snapshot.taken_at.tzinfo is not None


class TestNodeAndPartition:
    """Tests for Node and PartitionInfo."""

    def test_nodes_sort_by_id(self):
        """Nodes order by id first."""
        nodes = [Node(id=3, host="c"), Node(id=1, host="z"), Node(id=2, host="a")]

        assert [n.id for n in sorted(nodes)] == [1, 2, 3]

    def test_partition_with_leader_is_available(self):
        partition = PartitionInfo(topic="orders", partition=0, leader=Node(id=1, host="a"))
        assert partition.available

    def test_partition_without_leader_is_unavailable(self):
        partition = PartitionInfo(topic="orders", partition=0, leader=None)
        assert not partition.available
