"""
Prometheus metrics for durloader runs

Counters and histograms are labelled by target table so several loaders
can share one registry.
"""
import os

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()


# =======================
# ROW METRICS
# =======================

rows_read_total = Counter(
    name="durloader_rows_read_total",
    documentation="Total number of data rows read from sources",
    labelnames=["table"],
    registry=REGISTRY,
)

rows_validated_total = Counter(
    name="durloader_rows_validated_total",
    documentation="Total number of rows that passed validation",
    labelnames=["table"],
    registry=REGISTRY,
)

rows_rejected_total = Counter(
    name="durloader_rows_rejected_total",
    documentation="Total number of rows rejected by validation",
    labelnames=["table"],
    registry=REGISTRY,
)

# =======================
# BATCH METRICS
# =======================

batches_total = Counter(
    name="durloader_batches_total",
    documentation="Total number of batch writes",
    labelnames=["table", "outcome"],  # outcome: success, failure
    registry=REGISTRY,
)

rows_inserted_total = Counter(
    name="durloader_rows_inserted_total",
    documentation="Total number of rows inserted into the target table",
    labelnames=["table"],
    registry=REGISTRY,
)

batch_size_rows = Histogram(
    name="durloader_batch_size_rows",
    documentation="Number of rows in each batch write",
    labelnames=["table"],
    buckets=[1, 10, 50, 100, 500, 1000, 5000, 10000],
    registry=REGISTRY,
)

batch_write_duration_seconds = Histogram(
    name="durloader_batch_write_duration_seconds",
    documentation="Time spent in one bulk insert statement",
    labelnames=["table"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 60.0, 300.0],
    registry=REGISTRY,
)

batches_in_flight = Gauge(
    name="durloader_batches_in_flight",
    documentation="Batches currently being written",
    labelnames=["table"],
    registry=REGISTRY,
)

# =======================
# CONNECTION METRICS
# =======================

connection_retries_total = Counter(
    name="durloader_connection_retries_total",
    documentation="Connection attempts that failed and were retried or given up",
    labelnames=["outcome"],  # outcome: retry, exhausted
    registry=REGISTRY,
)

runs_total = Counter(
    name="durloader_runs_total",
    documentation="Total number of load runs by final state",
    labelnames=["state"],
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """
    Render all durloader metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def start_metrics_server(port: int | None = None) -> None:
    """
    Start an HTTP endpoint serving the registry

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for timing an operation into a histogram

    Usage:
        with track_duration(batch_write_duration_seconds, table="dur_quarterly_load"):
            ...
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    if value:
        counter.labels(**labels).inc(value)


def record_batch_outcome(table: str, rows: int, succeeded: bool) -> None:
    """
    Count one batch write and, on success, the rows it inserted
    """
    batches_total.labels(table=table, outcome="success" if succeeded else "failure").inc()
    batch_size_rows.labels(table=table).observe(rows)
    if succeeded:
        rows_inserted_total.labels(table=table).inc(rows)
