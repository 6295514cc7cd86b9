"""
Custom exception classes for the API.
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException, status

INVALID_PREFERENCES_MESSAGE = "Invalid cookie preferences data"
PREFERENCES_NOT_FOUND_MESSAGE = "Cookie preferences not found"


class APIException(HTTPException):
    """Base API exception class."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(status_code=status_code, detail=message)


class ValidationException(APIException):
    """Validation error exception."""

    def __init__(
        self,
        message: str = INVALID_PREFERENCES_MESSAGE,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="VALIDATION_ERROR",
            message=message,
            details=details
        )


class NotFoundException(APIException):
    """Resource not found exception."""

    def __init__(self, resource_id: str, message: str = PREFERENCES_NOT_FOUND_MESSAGE):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="NOT_FOUND",
            message=message,
            details={"resource_id": resource_id}
        )


class StoreUnavailableException(APIException):
    """Preference store backend error exception."""

    def __init__(self, message: str = "Preference store unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="STORE_UNAVAILABLE",
            message=message
        )
