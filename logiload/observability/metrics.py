"""
Prometheus metrics for logiload

Counters and histograms for statement building, validation rejections and
transactional unit execution. All metrics live on a private registry so that
embedding applications decide whether to expose them.
"""
from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram

REGISTRY = CollectorRegistry()


# =======================
# CATALOG METRICS
# =======================

catalog_loads_total = Counter(
    name="logiload_catalog_loads_total",
    documentation="Mapping catalog load attempts",
    labelnames=["status"],  # status: success, error
    registry=REGISTRY,
)

# =======================
# STATEMENT METRICS
# =======================

statements_built_total = Counter(
    name="logiload_statements_built_total",
    documentation="Statements produced by the dynamic statement builder",
    labelnames=["table", "kind", "source"],  # source: catalog, sample
    registry=REGISTRY,
)

# =======================
# VALIDATION METRICS
# =======================

records_rejected_total = Counter(
    name="logiload_records_rejected_total",
    documentation="Records excluded from a write",
    labelnames=["table", "stage"],  # stage: adapter, validator, builder
    registry=REGISTRY,
)

# =======================
# WRITER METRICS
# =======================

rows_committed_total = Counter(
    name="logiload_rows_committed_total",
    documentation="Rows committed by the batch writer",
    labelnames=["table"],
    registry=REGISTRY,
)

units_total = Counter(
    name="logiload_units_total",
    documentation="Transactional units executed by the batch writer",
    labelnames=["table", "status"],  # status: committed, failed, retried
    registry=REGISTRY,
)

unit_duration_seconds = Histogram(
    name="logiload_unit_duration_seconds",
    documentation="Time spent executing one transactional unit",
    labelnames=["table"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)


# =======================
# HELPERS
# =======================

def start_metrics_server(port: int) -> None:
    """Serve REGISTRY over HTTP on `port` (only when the CLI is asked to)."""
    from prometheus_client import start_http_server

    start_http_server(port, registry=REGISTRY)


@contextmanager
def track_duration(histogram: Histogram, **labels):
    """
    Observe the time spent in the block on a labelled histogram.

    Usage:
        with track_duration(unit_duration_seconds, table="orders"):
            ...
    """
    with histogram.labels(**labels).time():
        yield


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    counter.labels(**labels).inc(value)


def record_rejection(table: str, stage: str) -> None:
    increment_counter(records_rejected_total, table=table, stage=stage)


def record_unit_committed(table: str, rows: int) -> None:
    increment_counter(units_total, table=table, status="committed")
    if rows:
        increment_counter(rows_committed_total, value=rows, table=table)


def record_unit_failed(table: str) -> None:
    increment_counter(units_total, table=table, status="failed")


def record_unit_retried(table: str) -> None:
    increment_counter(units_total, table=table, status="retried")
