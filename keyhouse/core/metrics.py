"""Prometheus metrics for monitoring."""

from prometheus_client import Counter, Histogram

key_migration_batches_total = Counter(
    "key_migration_batches_total",
    "Key migration batches by outcome",
    ["status"],  # committed, rejected, rolled_back
)

key_migration_keys_total = Counter(
    "key_migration_keys_total", "Keys created through migration"
)

key_migration_duration_seconds = Histogram(
    "key_migration_duration_seconds",
    "Key migration duration in seconds",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


def record_key_migration(status: str, key_count: int, duration: float) -> None:
    """Record the outcome of one migration batch."""
    key_migration_batches_total.labels(status=status).inc()
    if status == "committed":
        key_migration_keys_total.inc(key_count)
    key_migration_duration_seconds.observe(duration)
