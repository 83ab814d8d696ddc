"""
Built-in cost functions and cost-function loading.

This module provides:
- ThroughputCost: the default function; busier nodes cost more
- LatencyCost: slower nodes cost more
- load_cost_functions: resolve the ``cost.functions`` configuration entry

Both built-in functions normalize a per-node reading into [0, 1] by dividing
by the largest reading among polled nodes. A node without a snapshot, or
without the metric in its snapshot, costs 0 so that a brand-new node is
immediately eligible.
"""

import importlib
from dataclasses import dataclass
from typing import Mapping, Sequence

from dispatch_core.exceptions import InvalidConfigurationError
from dispatch_protocols import (
    ClusterInfoProtocol,
    CostFunctionProtocol,
    CostMap,
    MetricSnapshot,
    NodeId,
)

# Exporter names of the broker throughput meters (one-minute moving rates)
BYTES_IN_RATE = "kafka_server_brokertopicmetrics_bytesinpersec_oneminuterate"
BYTES_OUT_RATE = "kafka_server_brokertopicmetrics_bytesoutpersec_oneminuterate"

# 99th percentile of total produce request time
PRODUCE_LATENCY_P99 = "kafka_network_requestmetrics_totaltimems_produce_99thpercentile"


def _normalized(readings: Mapping[NodeId, float]) -> CostMap:
    """Scale readings by the largest one; all zeros when nothing is positive."""
    peak = max(readings.values(), default=0.0)
    if peak <= 0:
        return {node_id: 0.0 for node_id in readings}
    return {node_id: max(value, 0.0) / peak for node_id, value in readings.items()}


@dataclass(frozen=True)
class ThroughputCost:
    """
    Ranks nodes by their recent byte throughput.

    Cost of a node = (sum of its throughput metrics) / (highest such sum).
    The least busy node costs least, steering new work to idle brokers.

    Attributes:
        metrics: Rate metrics summed into a node's throughput.
    """

    metrics: tuple[str, ...] = (BYTES_IN_RATE, BYTES_OUT_RATE)

    def metric_names(self) -> Sequence[str]:
        return self.metrics

    def cost(
        self,
        snapshots: Mapping[NodeId, MetricSnapshot | None],
        cluster: ClusterInfoProtocol,
    ) -> CostMap:
        readings: dict[NodeId, float] = {}
        for node_id, snapshot in snapshots.items():
            if snapshot is None:
                readings[node_id] = 0.0
                continue
            readings[node_id] = sum(snapshot.get(name, 0.0) for name in self.metrics)
        return _normalized(readings)


@dataclass(frozen=True)
class LatencyCost:
    """
    Ranks nodes by request latency.

    Cost of a node = its latency reading / highest latency reading.

    Attributes:
        metric: Latency metric to read.
    """

    metric: str = PRODUCE_LATENCY_P99

    def metric_names(self) -> Sequence[str]:
        return (self.metric,)

    def cost(
        self,
        snapshots: Mapping[NodeId, MetricSnapshot | None],
        cluster: ClusterInfoProtocol,
    ) -> CostMap:
        readings = {
            node_id: snapshot.get(self.metric, 0.0) if snapshot is not None else 0.0
            for node_id, snapshot in snapshots.items()
        }
        return _normalized(readings)


BUILTIN_COST_FUNCTIONS = {
    "throughput": ThroughputCost,
    "latency": LatencyCost,
}


def _import_cost_function(path: str) -> CostFunctionProtocol:
    """Import ``module:attribute``; classes are instantiated without arguments."""
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise InvalidConfigurationError(
            "cost.functions", path, "expected a built-in name or module:attribute"
        )
    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise InvalidConfigurationError("cost.functions", path, str(e)) from e

    return target() if isinstance(target, type) else target


def load_cost_functions(value: str) -> list[CostFunctionProtocol]:
    """
    Resolve a comma-separated list of cost functions.

    Each entry is either a built-in name (``throughput``, ``latency``) or an
    import path ``package.module:Attribute`` naming a class (instantiated
    with no arguments) or a ready instance.

    Raises:
        InvalidConfigurationError: If an entry is unknown, cannot be imported,
            or does not implement CostFunctionProtocol, or the list is empty.
    """
    functions: list[CostFunctionProtocol] = []
    for entry in (part.strip() for part in value.split(",")):
        if not entry:
            continue
        if entry in BUILTIN_COST_FUNCTIONS:
            function = BUILTIN_COST_FUNCTIONS[entry]()
        else:
            function = _import_cost_function(entry)

        if not isinstance(function, CostFunctionProtocol):
            raise InvalidConfigurationError(
                "cost.functions", entry, "does not implement metric_names() and cost()"
            )
        functions.append(function)

    if not functions:
        raise InvalidConfigurationError("cost.functions", value, "no cost function listed")
    return functions
