"""Prometheus metrics for the dispatcher itself."""

from prometheus_client import Counter, Gauge

# Dispatch decisions
SELECTIONS = Counter(
    "dispatch_selections_total",
    "Total partition selections performed",
    ["outcome"],  # "scored" or "fallback"
)

# Background polling
POLLS = Counter(
    "dispatch_metric_polls_total",
    "Total metric refresh cycles run by node readers",
    ["result"],  # "ok" or "error"
)

REGISTERED_POLLERS = Gauge(
    "dispatch_registered_pollers",
    "Number of node readers currently registered",
)


def record_selection(outcome: str) -> None:
    """Record a partition selection outcome."""
    SELECTIONS.labels(outcome=outcome).inc()


def record_poll(ok: bool) -> None:
    """Record a refresh cycle result."""
    POLLS.labels(result="ok" if ok else "error").inc()


def set_registered_pollers(count: int) -> None:
    """Set number of registered pollers."""
    REGISTERED_POLLERS.set(count)
