"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Checkout metrics
checkout_sessions = Counter(
    'checkout_sessions_total',
    'Checkout session creation attempts',
    ['result']  # created, rejected, upstream_error
)

checkout_latency = Histogram(
    'checkout_session_latency_seconds',
    'Latency of the payment processor session call',
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# Webhook metrics
webhook_events = Counter(
    'webhook_events_total',
    'Payment webhook deliveries',
    ['event_type', 'outcome']  # processed, ignored, invalid_signature, failed
)

# Entitlement metrics
entitlement_grants = Counter(
    'entitlement_grants_total',
    'Entitlement transition results',
    ['result']  # granted, duplicate, sold_out, missing_title, missing_metadata
)

entitlement_retries = Counter(
    'entitlement_retry_attempts_total',
    'Title counter update retries due to version conflicts'
)

official_numbers_allocated = Counter(
    'official_numbers_allocated_total',
    'Official numbers issued to new titles'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_checkout(result: str):
    """Record checkout attempt. Result: created, rejected, upstream_error"""
    checkout_sessions.labels(result=result).inc()


def record_webhook(event_type: str, outcome: str):
    webhook_events.labels(event_type=event_type, outcome=outcome).inc()


def record_entitlement(result: str):
    entitlement_grants.labels(result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
