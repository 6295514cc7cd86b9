"""
Monitoring and observability module.
"""

from api.monitoring.metrics import (
    metrics_registry,
    api_request_counter,
    api_latency_histogram,
    preference_operation_counter,
    stored_preferences_gauge,
    record_api_request,
    record_preference_operation,
    update_stored_preferences,
    get_metrics_text,
    get_metrics_content_type
)

__all__ = [
    'metrics_registry',
    'api_request_counter',
    'api_latency_histogram',
    'preference_operation_counter',
    'stored_preferences_gauge',
    'record_api_request',
    'record_preference_operation',
    'update_stored_preferences',
    'get_metrics_text',
    'get_metrics_content_type'
]
