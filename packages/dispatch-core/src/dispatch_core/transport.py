"""
Metrics transport reading a node's Prometheus exposition endpoint.

Brokers publish their management beans through an exporter agent, one per
node, on the node's metrics port. This module provides the ExporterClient,
which scrapes that endpoint and returns the requested metrics.

Key design decisions:
- Uses injected httpx.AsyncClient, pre-configured with the node's base_url
- Parses the text exposition format with prometheus_client's parser
- Sums samples sharing a name across label sets (per-topic, per-listener)
- Fails loudly on HTTP and parse errors; the reader decides what a failure means
"""

from dataclasses import dataclass
from typing import Iterable

import httpx
from prometheus_client.parser import text_string_to_metric_families

from dispatch_core.config import DispatcherSettings


@dataclass
class ExporterClient:
    """
    Exporter scrape client with injected httpx client.

    The httpx.AsyncClient should be pre-configured with the node's metrics
    base_url (e.g., http://kafka-1:12345).

    Example:
        async with httpx.AsyncClient(base_url="http://kafka-1:12345") as http:
            client = ExporterClient(http=http)
            values = await client.fetch(["kafka_server_brokertopicmetrics_bytesinpersec_oneminuterate"])
    """

    http: httpx.AsyncClient
    metrics_path: str = "/metrics"

    async def scrape(self) -> str:
        """
        Fetch the raw exposition text.

        Raises:
            httpx.HTTPStatusError: On HTTP errors (4xx, 5xx)
            httpx.TransportError: If the node cannot be reached
        """
        response = await self.http.get(self.metrics_path)
        response.raise_for_status()
        return response.text

    async def fetch(self, names: Iterable[str]) -> dict[str, float]:
        """
        Read the current value of each requested metric.

        Args:
            names: Sample names to extract (including any _total/_sum suffix)

        Returns:
            Name to value, summed across label sets. Names absent from the
            exposition are omitted.

        Raises:
            httpx.HTTPStatusError: On HTTP errors (4xx, 5xx)
            ValueError: On malformed exposition text
        """
        wanted = set(names)
        if not wanted:
            return {}

        text = await self.scrape()

        values: dict[str, float] = {}
        for family in text_string_to_metric_families(text):
            for sample in family.samples:
                if sample.name in wanted:
                    values[sample.name] = values.get(sample.name, 0.0) + float(sample.value)
        return values

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.http.aclose()


def create_exporter_client(
    host: str,
    port: int,
    settings: DispatcherSettings | None = None,
) -> ExporterClient:
    """
    Create an ExporterClient for one node.

    Args:
        host: Node host name
        port: Node metrics port
        settings: Scheme, path and timeout to use. Defaults to DispatcherSettings().

    Returns:
        ExporterClient owning a new httpx.AsyncClient.
    """
    settings = settings or DispatcherSettings()
    http = httpx.AsyncClient(
        base_url=f"{settings.metrics_scheme}://{host}:{port}",
        timeout=settings.scrape_timeout_seconds,
    )
    return ExporterClient(http=http, metrics_path=settings.metrics_path)
