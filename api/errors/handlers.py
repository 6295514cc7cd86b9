"""
Global exception handlers for FastAPI.

Every error body carries the ``success``/``message`` pair the consent
client reads, plus an ``error`` block for diagnostics.
"""

import time
import logging
from typing import List

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import ValidationError

from api.errors.exceptions import APIException, ValidationException

logger = logging.getLogger(__name__)


class ErrorResponse:
    """Standardized error response format."""

    @staticmethod
    def create(
        code: str,
        message: str,
        details: dict = None,
        request_id: str = None,
        timestamp: float = None
    ) -> dict:
        """
        Create standardized error response.

        Args:
            code: Error code
            message: Error message
            details: Additional error details
            request_id: Request ID for tracking
            timestamp: Error timestamp

        Returns:
            Error response dictionary
        """
        return {
            "success": False,
            "message": message,
            "error": {
                "code": code,
                "details": details or {},
                "timestamp": timestamp or time.time(),
                "request_id": request_id
            }
        }


def _format_errors(errors) -> List[dict]:
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        }
        for error in errors
    ]


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle custom API exceptions."""
    request_id = getattr(request.state, "request_id", None)

    logger.warning(
        f"API exception: {exc.code}",
        extra={
            "request_id": request_id,
            "code": exc.code,
            "details": exc.details
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.create(
            code=exc.code,
            message=exc.message,
            details=exc.details,
            request_id=request_id
        )
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions raised by routing (unknown paths, wrong methods)."""
    request_id = getattr(request.state, "request_id", None)

    logger.warning(
        f"HTTP exception: {exc.status_code}",
        extra={"request_id": request_id, "detail": exc.detail}
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.create(
            code=f"HTTP_{exc.status_code}",
            message=str(exc.detail),
            request_id=request_id
        ),
        headers=getattr(exc, "headers", None)
    )


async def _validation_response(request: Request, errors: List[dict], source: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    exc = ValidationException(details={"errors": errors})

    logger.warning(
        f"{source} validation failed",
        extra={"request_id": request_id, "errors": errors}
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.create(
            code=exc.code,
            message=exc.message,
            details=exc.details,
            request_id=request_id
        )
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors.

    Malformed save payloads are reported as 400 with a generic message;
    the per-field errors go into ``error.details``.
    """
    return await _validation_response(request, _format_errors(exc.errors()), "Request")


async def pydantic_validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors raised outside request parsing."""
    return await _validation_response(request, _format_errors(exc.errors()), "Pydantic")


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception",
        extra={
            "request_id": request_id,
            "exception_type": type(exc).__name__
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse.create(
            code="INTERNAL_SERVER_ERROR",
            message="An unexpected error occurred",
            request_id=request_id
        )
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, pydantic_validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
