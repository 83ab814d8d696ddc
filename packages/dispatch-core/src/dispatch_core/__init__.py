"""
Dispatch Core Library

Metric-driven partition selection for message producers. This package
provides:

- StrictCostDispatcher: picks the partition whose leader costs least
- PollerRegistry / MetricReader: background per-node metric polling
- PortResolver: default and per-node metrics port lookup
- Cost functions: ThroughputCost (default), LatencyCost
- Topology adapters: ClusterSnapshot, TopologyClient
- CLI infrastructure: Typer-based command structure
"""

__version__ = "0.1.0"

from dispatch_core.config import Configuration, DispatcherSettings
from dispatch_core.cost import LatencyCost, ThroughputCost, load_cost_functions
from dispatch_core.dispatcher import DEFAULT_PARTITION, StrictCostDispatcher
from dispatch_core.endpoints import PortResolver
from dispatch_core.exceptions import (
    InvalidConfigurationError,
    NoEndpointConfiguredError,
    PollerShutdownError,
    RegistryClosedError,
)
from dispatch_core.reader import MetricReader, ReaderState
from dispatch_core.registry import PollerRegistry
from dispatch_core.topology import ClusterSnapshot, TopologyClient
from dispatch_core.transport import ExporterClient, create_exporter_client

__all__ = [
    "__version__",
    # Dispatcher
    "StrictCostDispatcher",
    "DEFAULT_PARTITION",
    # Configuration
    "Configuration",
    "DispatcherSettings",
    "PortResolver",
    # Polling
    "MetricReader",
    "ReaderState",
    "PollerRegistry",
    "ExporterClient",
    "create_exporter_client",
    # Cost functions
    "ThroughputCost",
    "LatencyCost",
    "load_cost_functions",
    # Topology
    "ClusterSnapshot",
    "TopologyClient",
    # Errors
    "InvalidConfigurationError",
    "NoEndpointConfiguredError",
    "PollerShutdownError",
    "RegistryClosedError",
]
