"""
Exception classes for the dispatcher.

- NoEndpointConfiguredError: a node has no resolvable metrics port
- InvalidConfigurationError: a configuration value cannot be used
- PollerShutdownError: one or more pollers failed to close
- RegistryClosedError: a poller was requested after shutdown

Configuration errors are raised synchronously to the caller that needs the
value. Transient metric failures never become exceptions outside a reader.
"""

from dispatch_protocols import NodeId


class NoEndpointConfiguredError(LookupError):
    """
    Raised when a node resolves to no metrics port.

    Neither a per-node override (``broker.<id>.jmx.port``) nor a default
    (``jmx.port``) was configured for the node.

    Attributes:
        node_id: The node that could not be resolved
    """

    def __init__(self, node_id: NodeId) -> None:
        self.node_id = node_id
        super().__init__(f"broker: {node_id} does not have jmx port")


class InvalidConfigurationError(ValueError):
    """
    Raised when a configuration entry is malformed.

    Attributes:
        key: The offending configuration key
        value: The raw value found under that key (None if the key itself is bad)
    """

    def __init__(self, key: str, value: str | None, reason: str) -> None:
        self.key = key
        self.value = value
        detail = f"{key}={value!r}" if value is not None else key
        super().__init__(f"Invalid configuration {detail}: {reason}")


class PollerShutdownError(Exception):
    """
    Raised after shutdown when one or more pollers failed to close.

    Every poller has been attempted by the time this is raised.

    Attributes:
        failures: Node id to the exception its poller raised on close
    """

    def __init__(self, failures: dict[NodeId, BaseException]) -> None:
        self.failures = failures
        nodes = ", ".join(str(node_id) for node_id in sorted(failures))
        super().__init__(f"Failed to close {len(failures)} poller(s) for nodes: {nodes}")


class RegistryClosedError(RuntimeError):
    """Raised when a poller is requested from a registry that has been shut down."""

    def __init__(self, node_id: NodeId) -> None:
        self.node_id = node_id
        super().__init__(f"Cannot register poller for node {node_id}: registry is shut down")
