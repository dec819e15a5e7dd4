"""
Prometheus metrics collection for sst-sync

Instruments the token cache, the resolver chain, pulls, publishes and the
route lifecycle.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# GRAPH ACCESS METRICS
# =======================

token_requests_total = Counter(
    name="sst_token_requests_total",
    documentation="Token lookups by outcome",
    labelnames=["outcome"],  # outcome: cache_hit, acquired, failure
    registry=REGISTRY,
)

resolution_failures_total = Counter(
    name="sst_resolution_failures_total",
    documentation="Resolver chain failures by stage",
    labelnames=["stage"],  # stage: site, drive, file, worksheet, table
    registry=REGISTRY,
)

# =======================
# PULL METRICS
# =======================

pulls_total = Counter(
    name="sst_pulls_total",
    documentation="Full adherence table pulls by status",
    labelnames=["status", "trigger"],  # status: success, failure; trigger: manual, timer
    registry=REGISTRY,
)

pull_duration_seconds = Histogram(
    name="sst_pull_duration_seconds",
    documentation="Time spent pulling the adherence table in seconds",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)

snapshot_size = Gauge(
    name="sst_snapshot_size_records",
    documentation="Number of adherence records in the cached snapshot",
    registry=REGISTRY,
)

# =======================
# PUBLISH METRICS
# =======================

publishes_total = Counter(
    name="sst_publishes_total",
    documentation="Adherence row publishes by status",
    labelnames=["status"],  # status: success, invalid, failure
    registry=REGISTRY,
)

failed_publish_worklist_size = Gauge(
    name="sst_failed_publish_worklist_size",
    documentation="Publishes awaiting a manual retry",
    registry=REGISTRY,
)

# =======================
# ROUTE LIFECYCLE METRICS
# =======================

route_transitions_total = Counter(
    name="sst_route_transitions_total",
    documentation="Route state transitions",
    labelnames=["from_status", "to_status", "outcome"],  # outcome: applied, rejected
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """Generate Prometheus metrics in text format"""
    return generate_latest(REGISTRY)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Lazy import: only bind a port when the endpoint is actually wanted
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(pull_duration_seconds):
            ...
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        metric = self.histogram.labels(**self.labels) if self.labels else self.histogram
        self.timer = metric.time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """Increment a counter metric"""
    counter.labels(**labels).inc(value)


def set_gauge(gauge: Gauge, value: float, **labels) -> None:
    """Set a gauge metric value"""
    if labels:
        gauge.labels(**labels).set(value)
    else:
        gauge.set(value)


def record_transition(from_status: str, to_status: str, applied: bool) -> None:
    """
    Record a route state-machine transition attempt.

    Args:
        from_status: Status before the attempt
        to_status: Requested status
        applied: Whether the transition was committed
    """
    outcome = "applied" if applied else "rejected"
    increment_counter(
        route_transitions_total, 1,
        from_status=from_status, to_status=to_status, outcome=outcome
    )
