"""
Prometheus metrics for monitoring and observability.

Defines the API request metrics and the preference store metrics exposed
on ``/metrics``.
"""

import logging

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST
)

logger = logging.getLogger(__name__)

# Create a custom registry for our metrics
metrics_registry = CollectorRegistry()

# ============================================================================
# API Metrics
# ============================================================================

api_request_counter = Counter(
    'consent_api_requests_total',
    'Total API requests by endpoint, method, and status',
    ['endpoint', 'method', 'status'],
    registry=metrics_registry
)

api_latency_histogram = Histogram(
    'consent_api_latency_seconds',
    'API request latency in seconds',
    ['endpoint'],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
    registry=metrics_registry
)

# ============================================================================
# Preference Store Metrics
# ============================================================================

preference_operation_counter = Counter(
    'consent_preference_operations_total',
    'Preference store operations by operation and result',
    ['operation', 'result'],
    registry=metrics_registry
)

stored_preferences_gauge = Gauge(
    'consent_stored_preferences',
    'Number of cookie preference records currently stored',
    registry=metrics_registry
)

# ============================================================================
# Helper Functions
# ============================================================================


def record_api_request(endpoint: str, method: str, status_code: int, latency_seconds: float):
    """
    Record an API request.

    Args:
        endpoint: Route path template (e.g. /cookie-preferences/{user_id})
        method: HTTP method
        status_code: Response status code
        latency_seconds: Request latency in seconds
    """
    api_request_counter.labels(endpoint=endpoint, method=method, status=str(status_code)).inc()
    api_latency_histogram.labels(endpoint=endpoint).observe(latency_seconds)


def record_preference_operation(operation: str, result: str):
    """
    Record a preference store operation.

    Args:
        operation: One of list, save, get, delete
        result: Outcome label (ok, not_found)
    """
    preference_operation_counter.labels(operation=operation, result=result).inc()
    logger.debug(f"Recorded preference operation: {operation}={result}")


def update_stored_preferences(count: int):
    """Set the stored records gauge."""
    stored_preferences_gauge.set(count)


def get_metrics_text() -> bytes:
    """Render all metrics in Prometheus text format."""
    return generate_latest(metrics_registry)


def get_metrics_content_type() -> str:
    """Content type of the Prometheus text format."""
    return CONTENT_TYPE_LATEST
