"""
Metrics transport protocol.

A transport is bound to one node's metrics endpoint and yields point-in-time
readings of named metrics. It is owned by exactly one background reader.
"""

from typing import Iterable, Protocol, runtime_checkable


@runtime_checkable
class MetricsTransportProtocol(Protocol):
    """
    Protocol for per-node metrics transports.

    Implementations may raise on connectivity or protocol errors. Callers
    treat any such error as one failed refresh, never as fatal.
    """

    async def fetch(self, names: Iterable[str]) -> dict[str, float]:
        """
        Read the current value of each requested metric.

        Args:
            names: Metric names to read.

        Returns:
            Metric name to value. Names the node does not expose are omitted.
        """
        ...

    async def aclose(self) -> None:
        """Release the connection to the node."""
        ...
