"""
Health check and monitoring endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from api.monitoring.metrics import get_metrics_content_type, get_metrics_text
from core.logging_config import SERVICE_VERSION

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: str
    version: str
    components: Dict[str, Dict[str, Any]]


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check with component status",
    description="Check the health status of the API and its preference store"
)
async def health_check(request: Request, response: Response):
    """
    Health check endpoint.

    Status codes:
    - 200: API and preference store are reachable
    - 503: The preference store is unreachable
    """
    store = request.app.state.preference_store
    store_ok = store.ping()

    if not store_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if store_ok else "unhealthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=SERVICE_VERSION,
        components={
            "preference_store": {
                "status": "up" if store_ok else "down",
                "backend": type(store).__name__
            }
        }
    )


@router.get(
    "/metrics",
    status_code=status.HTTP_200_OK,
    summary="Prometheus metrics",
    description="Get Prometheus metrics for monitoring and observability"
)
async def prometheus_metrics():
    """Prometheus metrics endpoint in text exposition format."""
    return Response(content=get_metrics_text(), media_type=get_metrics_content_type())
