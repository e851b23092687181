"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Admission metrics
admission_transitions = Counter(
    'admission_transitions_total',
    'Admission controller operations',
    ['operation', 'outcome']  # join/approve/...; success, rejected, error
)

admission_latency = Histogram(
    'admission_latency_seconds',
    'Admission controller operation latency',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

capacity_overflows = Counter(
    'capacity_overflow_total',
    'Joins admitted past the role ceiling while capacity is not enforced',
    ['role']
)

capacity_refusals = Counter(
    'capacity_refusals_total',
    'Joins refused because the role ceiling was reached',
    ['role']
)

# Database metrics
db_read_retries = Counter(
    'db_read_retry_attempts_total',
    'Read retries after transient database errors'
)

# Notification metrics
notification_deliveries = Counter(
    'notification_deliveries_total',
    'Notification delivery attempts by channel and final outcome',
    ['channel', 'outcome']  # email/in_app; delivered, failed
)

notification_retries = Counter(
    'notification_retry_attempts_total',
    'Notification delivery retries',
    ['channel']
)

notifications_dropped = Counter(
    'notifications_dropped_total',
    'Notices dropped because the dispatcher queue was full'
)

notification_queue_depth = Gauge(
    'notification_queue_depth',
    'Notices waiting in the dispatcher queue'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_transition(operation: str, outcome: str):
    """Record an admission transition. Outcome: success, rejected, error"""
    admission_transitions.labels(operation=operation, outcome=outcome).inc()


def record_delivery(channel: str, delivered: bool):
    """Record the final outcome of one notification delivery."""
    outcome = "delivered" if delivered else "failed"
    notification_deliveries.labels(channel=channel, outcome=outcome).inc()
