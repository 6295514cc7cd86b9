"""
Metrics middleware for automatic API request tracking.
"""

import time
import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from api.monitoring.metrics import record_api_request

logger = logging.getLogger(__name__)

_UNTRACKED_PATHS = ('/health', '/metrics')


def _endpoint_label(request: Request) -> str:
    # Label by route template so per-user paths don't explode cardinality.
    route = request.scope.get('route')
    return getattr(route, 'path', None) or 'unmatched'


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to automatically track API request metrics.

    Records:
    - Request count by route, method, and status
    - Request latency by route
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            record_api_request(
                endpoint=_endpoint_label(request),
                method=request.method,
                status_code=500,
                latency_seconds=time.time() - start_time
            )
            raise

        if not request.url.path.startswith(_UNTRACKED_PATHS):
            record_api_request(
                endpoint=_endpoint_label(request),
                method=request.method,
                status_code=response.status_code,
                latency_seconds=time.time() - start_time
            )

        return response
