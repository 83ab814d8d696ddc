"""
Configuration for the dispatcher.

Two layers of configuration exist:

- DispatcherSettings: process-level tuning read from the environment with the
  DISPATCH_ prefix (poll interval, scrape timeout, metrics path).
- Configuration: the flat key-value store handed to a dispatcher by its
  embedding client (``jmx.port``, ``broker.<id>.jmx.port``, ...). It can be
  loaded from a ``key=value`` properties file or a flat YAML mapping.

Values in a Configuration are kept as strings and converted by the typed
getters, which raise InvalidConfigurationError on malformed values.
"""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping

import yaml
from pydantic_settings import BaseSettings

from dispatch_core.exceptions import InvalidConfigurationError

# Well-known configuration keys
JMX_PORT = "jmx.port"
COST_FUNCTIONS = "cost.functions"
METRICS_INTERVAL = "metrics.interval.seconds"


class DispatcherSettings(BaseSettings):
    """Dispatcher process configuration.

    All settings can be overridden via environment variables with
    DISPATCH_ prefix. For example:
        DISPATCH_POLL_INTERVAL_SECONDS=2
        DISPATCH_METRICS_PATH=/prometheus
    """

    # Background polling
    poll_interval_seconds: float = 4.0
    shutdown_grace_seconds: float = 1.0

    # Metrics endpoint
    scrape_timeout_seconds: float = 3.0
    metrics_scheme: str = "http"
    metrics_path: str = "/metrics"

    model_config = {"env_prefix": "DISPATCH_"}


@dataclass(frozen=True)
class Configuration:
    """
    Immutable flat key-value configuration.

    Attributes:
        entries: Raw configuration entries. Values are stored as strings.

    Example:
        config = Configuration.from_mapping({"jmx.port": 12345})
        config.integer("jmx.port")  # 12345
    """

    entries: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "entries",
            MappingProxyType({str(k): str(v) for k, v in self.entries.items()}),
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Configuration":
        """Build a configuration from any mapping, stringifying its values."""
        return cls(entries={k: v for k, v in mapping.items() if v is not None})

    @classmethod
    def load(cls, path: Path) -> "Configuration":
        """
        Load configuration from a file.

        Files ending in .yaml or .yml must hold a flat mapping. Any other
        file is read as ``key=value`` lines; blank lines and lines starting
        with ``#`` or ``!`` are ignored.

        Raises:
            InvalidConfigurationError: If the file content is not flat key-value data.
            OSError: If the file cannot be read.
        """
        text = path.read_text()

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
            if not isinstance(data, dict):
                raise InvalidConfigurationError(str(path), None, "expected a mapping")
            for key, value in data.items():
                if isinstance(value, (dict, list)):
                    raise InvalidConfigurationError(str(key), None, "nested values are not supported")
            return cls.from_mapping(data)

        entries: dict[str, str] = {}
        for line_no, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith(("#", "!")):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                raise InvalidConfigurationError(
                    f"{path}:{line_no}", None, "expected key=value"
                )
            entries[key.strip()] = value.strip()
        return cls(entries=entries)

    def string(self, key: str) -> str | None:
        """Get a raw value, or None if the key is absent."""
        return self.entries.get(key)

    def integer(self, key: str) -> int | None:
        """
        Get an integer value.

        Raises:
            InvalidConfigurationError: If the value is not an integer.
        """
        value = self.entries.get(key)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            raise InvalidConfigurationError(key, value, "expected an integer") from None

    def number(self, key: str) -> float | None:
        """
        Get a float value.

        Raises:
            InvalidConfigurationError: If the value is not a number.
        """
        value = self.entries.get(key)
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            raise InvalidConfigurationError(key, value, "expected a number") from None

    def items(self) -> Iterator[tuple[str, str]]:
        """Iterate over all entries."""
        return iter(self.entries.items())

    def __contains__(self, key: object) -> bool:
        return key in self.entries
