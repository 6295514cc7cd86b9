"""
API middleware components.
"""

from api.middleware.metrics import MetricsMiddleware
from api.middleware.request_context import RequestContextMiddleware

__all__ = [
    'MetricsMiddleware',
    'RequestContextMiddleware'
]
