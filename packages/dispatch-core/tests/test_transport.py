"""
Tests for ExporterClient - scrape client for a node's metrics endpoint.

Tests cover:
- fetch returns requested gauges and counters
- samples of one name are summed across label sets
- names missing from the exposition are omitted
- HTTP errors raise httpx.HTTPStatusError
- malformed values raise ValueError
- create_exporter_client builds the base URL from settings
"""

import httpx
import pytest

from dispatch_core.config import DispatcherSettings
from dispatch_core.transport import ExporterClient, create_exporter_client

EXPOSITION = """\
# HELP kafka_server_brokertopicmetrics_bytesinpersec_oneminuterate Attribute exposed for management
# TYPE kafka_server_brokertopicmetrics_bytesinpersec_oneminuterate gauge
kafka_server_brokertopicmetrics_bytesinpersec_oneminuterate{topic="orders"} 100.0
kafka_server_brokertopicmetrics_bytesinpersec_oneminuterate{topic="payments"} 50.5
# HELP kafka_server_brokertopicmetrics_bytesoutpersec_oneminuterate Attribute exposed for management
# TYPE kafka_server_brokertopicmetrics_bytesoutpersec_oneminuterate gauge
kafka_server_brokertopicmetrics_bytesoutpersec_oneminuterate 20.0
# HELP kafka_requests Total requests
# TYPE kafka_requests counter
kafka_requests_total 7.0
"""


class MockResponse:
    """Mock httpx response for testing."""

    def __init__(self, text: str, status_code: int = 200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPStatusError(
                f"HTTP {self.status_code}",
                request=httpx.Request("GET", "http://test"),
                response=self,
            )


class MockAsyncClient:
    """Mock httpx.AsyncClient serving a fixed exposition."""

    def __init__(self, response: MockResponse):
        self.response = response
        self.requests: list[str] = []
        self.closed = False

    async def get(self, path: str) -> MockResponse:
        self.requests.append(path)
        return self.response

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_fetch_sums_samples_across_labels():
    """Per-topic samples of one metric are summed into a node total."""
    client = ExporterClient(http=MockAsyncClient(MockResponse(EXPOSITION)))

    values = await client.fetch(["kafka_server_brokertopicmetrics_bytesinpersec_oneminuterate"])

    assert values == {"kafka_server_brokertopicmetrics_bytesinpersec_oneminuterate": 150.5}


@pytest.mark.asyncio
async def test_fetch_returns_only_requested_names():
    client = ExporterClient(http=MockAsyncClient(MockResponse(EXPOSITION)))

    values = await client.fetch(
        [
            "kafka_server_brokertopicmetrics_bytesoutpersec_oneminuterate",
            "kafka_requests_total",
        ]
    )

    assert values == {
        "kafka_server_brokertopicmetrics_bytesoutpersec_oneminuterate": 20.0,
        "kafka_requests_total": 7.0,
    }


@pytest.mark.asyncio
async def test_fetch_omits_missing_names():
    client = ExporterClient(http=MockAsyncClient(MockResponse(EXPOSITION)))

    values = await client.fetch(["not_exposed"])

    assert values == {}


@pytest.mark.asyncio
async def test_fetch_nothing_requested_skips_scrape():
    """No request is made when no metric is wanted."""
    http = MockAsyncClient(MockResponse(EXPOSITION))
    client = ExporterClient(http=http)

    assert await client.fetch([]) == {}
    assert http.requests == []


@pytest.mark.asyncio
async def test_fetch_uses_metrics_path():
    http = MockAsyncClient(MockResponse(EXPOSITION))
    client = ExporterClient(http=http, metrics_path="/prometheus")

    await client.fetch(["kafka_requests_total"])

    assert http.requests == ["/prometheus"]


@pytest.mark.asyncio
async def test_fetch_http_error_raises():
    client = ExporterClient(http=MockAsyncClient(MockResponse("", status_code=503)))

    with pytest.raises(httpx.HTTPStatusError):
        await client.fetch(["kafka_requests_total"])


@pytest.mark.asyncio
async def test_fetch_malformed_value_raises():
    client = ExporterClient(http=MockAsyncClient(MockResponse("kafka_requests_total abc\n")))

    with pytest.raises(ValueError):
        await client.fetch(["kafka_requests_total"])


@pytest.mark.asyncio
async def test_aclose_closes_http_client():
    http = MockAsyncClient(MockResponse(EXPOSITION))
    client = ExporterClient(http=http)

    await client.aclose()

    assert http.closed


@pytest.mark.asyncio
async def test_create_exporter_client_uses_settings():
    settings = DispatcherSettings(metrics_scheme="https", metrics_path="/m")

    client = create_exporter_client("kafka-1", 12345, settings)
    try:
        assert client.http.base_url.scheme == "https"
        assert client.http.base_url.host == "kafka-1"
        assert client.http.base_url.port == 12345
        assert client.metrics_path == "/m"
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_fetch_against_mock_transport():
    """End to end through a real httpx.AsyncClient on a mock transport."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/metrics"
        return httpx.Response(200, text=EXPOSITION)

    http = httpx.AsyncClient(
        base_url="http://kafka-1:12345", transport=httpx.MockTransport(handler)
    )
    client = ExporterClient(http=http)
    try:
        values = await client.fetch(["kafka_server_brokertopicmetrics_bytesoutpersec_oneminuterate"])
    finally:
        await client.aclose()

    assert values == {"kafka_server_brokertopicmetrics_bytesoutpersec_oneminuterate": 20.0}
