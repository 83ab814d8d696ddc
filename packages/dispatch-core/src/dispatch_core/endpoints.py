"""
Metrics endpoint resolution.

Most clusters expose metrics on the same port on every broker, so a single
``jmx.port=12345`` is enough. A broker that differs is overridden with
``broker.<id>.jmx.port=11111``. The override always wins; a node with neither
is a configuration error raised when its poller is created.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from dispatch_core.config import JMX_PORT, Configuration
from dispatch_core.exceptions import InvalidConfigurationError, NoEndpointConfiguredError
from dispatch_protocols import NodeId

_BROKER_PORT_KEY = re.compile(r"^broker\.(?P<node_id>-?\d+)\.jmx\.port$")


@dataclass(frozen=True)
class PortResolver:
    """
    Two-tier port lookup: per-node overrides, then an optional default.

    Attributes:
        default: Port used for any node without an override.
        overrides: Node id to port.

    Example:
        resolver = PortResolver(default=12345, overrides={1000: 11111})
        resolver.resolve_port(1000)  # 11111
        resolver.resolve_port(2000)  # 12345
    """

    default: int | None = None
    overrides: Mapping[NodeId, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "overrides", MappingProxyType(dict(self.overrides)))

    @classmethod
    def from_configuration(cls, config: Configuration) -> "PortResolver":
        """
        Build a resolver from ``jmx.port`` and ``broker.<id>.jmx.port`` entries.

        Raises:
            InvalidConfigurationError: If a port is not an integer, or a
                ``broker.*.jmx.port`` key does not carry a numeric node id.
        """
        overrides: dict[NodeId, int] = {}
        for key, _ in config.items():
            if not (key.startswith("broker.") and key.endswith(JMX_PORT)):
                continue
            match = _BROKER_PORT_KEY.match(key)
            if match is None:
                raise InvalidConfigurationError(key, None, "expected broker.<id>.jmx.port")
            overrides[int(match.group("node_id"))] = config.integer(key)

        return cls(default=config.integer(JMX_PORT), overrides=overrides)

    def resolve_port(self, node_id: NodeId) -> int:
        """
        Get the metrics port for a node.

        Raises:
            NoEndpointConfiguredError: If neither an override nor a default exists.
        """
        port = self.overrides.get(node_id)
        if port is not None:
            return port
        if self.default is None:
            raise NoEndpointConfiguredError(node_id)
        return self.default
