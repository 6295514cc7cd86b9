"""
Request context middleware for structured logging.

Binds a request id, the HTTP method and the path to the structlog context
for the duration of each request and echoes the id back in ``X-Request-ID``.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging_config import bind_context, clear_context, get_logger

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to add request context to structured logs."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        request.state.request_id = request_id

        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start_time = time.time()
        try:
            logger.info(
                "request_started",
                client_host=request.client.host if request.client else None,
            )

            response = await call_next(request)
            response.headers['X-Request-ID'] = request_id

            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round((time.time() - start_time) * 1000, 2),
            )
            return response

        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        finally:
            clear_context()
