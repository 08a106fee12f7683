"""
Prometheus metrics collection for report-digest

Counts ingested and rejected report entries, storage writes and refusals,
and live-collection pushes.
"""
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    start_http_server,
)

# Dedicated registry so tests and embedding apps don't collide with the default one
REGISTRY = CollectorRegistry()


# =======================
# INGEST METRICS
# =======================

reports_ingested_total = Counter(
    name="digest_reports_ingested_total",
    documentation="Total number of validated reports merged into the record set",
    labelnames=["department"],
    registry=REGISTRY,
)

entries_rejected_total = Counter(
    name="digest_entries_rejected_total",
    documentation="Total number of extractor entries rejected by validation",
    labelnames=["rule_name"],
    registry=REGISTRY,
)

department_coercions_total = Counter(
    name="digest_department_coercions_total",
    documentation="Entries whose department was replaced by the default department",
    registry=REGISTRY,
)

extraction_duration_seconds = Histogram(
    name="digest_extraction_duration_seconds",
    documentation="Time spent waiting for the extraction service",
    labelnames=["extractor"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
    registry=REGISTRY,
)

extraction_failures_total = Counter(
    name="digest_extraction_failures_total",
    documentation="Extraction calls that failed or returned unparseable output",
    labelnames=["extractor"],
    registry=REGISTRY,
)

# =======================
# STORAGE METRICS
# =======================

storage_operations_total = Counter(
    name="digest_storage_operations_total",
    documentation="Storage backend operations",
    labelnames=["backend", "operation", "status"],  # status: success, failure
    registry=REGISTRY,
)

storage_capacity_refusals_total = Counter(
    name="digest_storage_capacity_refusals_total",
    documentation="Snapshot writes refused because the payload exceeded the soft limit",
    labelnames=["backend"],
    registry=REGISTRY,
)

snapshot_size_bytes = Gauge(
    name="digest_snapshot_size_bytes",
    documentation="Serialized size of the last snapshot written or refused",
    labelnames=["backend"],
    registry=REGISTRY,
)

record_set_size = Gauge(
    name="digest_record_set_size",
    documentation="Number of records in the authoritative record set",
    labelnames=["mode"],
    registry=REGISTRY,
)

live_pushes_total = Counter(
    name="digest_live_pushes_total",
    documentation="Full-state pushes received from a live collection",
    labelnames=["status"],  # status: applied, error
    registry=REGISTRY,
)

authorization_failures_total = Counter(
    name="digest_authorization_failures_total",
    documentation="Destructive operations refused for missing confirmation or passphrase",
    labelnames=["operation"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """Generate Prometheus metrics in text format"""
    return generate_latest(REGISTRY)


def start_metrics_server(port: int, addr: str = "0.0.0.0") -> None:
    """Serve the digest registry over HTTP for the life of the process"""
    start_http_server(port, addr=addr, registry=REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(extraction_duration_seconds, extractor="gemini"):
            # do work
            pass
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
    """Increment a counter metric, with or without labels"""
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def set_gauge(gauge: Gauge, value: float, **labels) -> None:
    gauge.labels(**labels).set(value)


# =======================
# DIGEST-SPECIFIC HELPERS
# =======================

def record_validation(outcome) -> None:
    """
    Record rejections and department coercions of one validation batch.

    Args:
        outcome: ValidationOutcome from the record validator
    """
    for rejection in outcome.rejected:
        for rule_name in rejection.failed_rules:
            increment_counter(entries_rejected_total, 1, rule_name=rule_name)
    if outcome.coerced_departments:
        increment_counter(department_coercions_total, len(outcome.coerced_departments))


def record_ingested(records) -> None:
    """Count reports once they are stored in the record set."""
    for record in records:
        increment_counter(reports_ingested_total, 1, department=record.department)


def record_storage_operation(backend: str, operation: str, success: bool) -> None:
    status = "success" if success else "failure"
    increment_counter(storage_operations_total, 1, backend=backend, operation=operation, status=status)
