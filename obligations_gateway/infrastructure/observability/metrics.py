"""Prometheus metrics for obligation writes, partial failures and notification delivery"""

from prometheus_client import Counter, Histogram

# Obligation metrics
obligations_created_counter = Counter(
    "obligations_created_total",
    "Obligation instances created",
    ["kind"],  # plain | recurring | installment | imported
)

obligation_mutations_counter = Counter(
    "obligation_mutations_total",
    "Edit/delete requests completed",
    ["operation", "scope"],  # edit | delete, single | series
)

partial_batch_failures_counter = Counter(
    "partial_batch_failures_total",
    "Multi-row writes that stopped partway",
    ["operation"],
)

# Backend metrics
store_backend_failures_counter = Counter(
    "store_backend_failures_total",
    "Failed persistence backend calls",
)

# Change notification metrics
notification_latency_histogram = Histogram(
    "change_notification_latency_seconds",
    "Change webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "change_notification_failures_total",
    "Failed change webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_created(kind: str, count: int) -> None:
    """Count created instances by series kind"""
    obligations_created_counter.labels(kind=kind).inc(count)


def record_mutation(operation: str, scope: str) -> None:
    obligation_mutations_counter.labels(operation=operation, scope=scope).inc()


def record_partial_failure(operation: str) -> None:
    partial_batch_failures_counter.labels(operation=operation).inc()
