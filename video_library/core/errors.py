"""Centralized error handling for the API.

This module provides standardized error codes, exception-to-response mapping,
and a global exception handler for FastAPI.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type

import structlog
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from video_library.core.logging import get_request_id
from video_library.core.metrics import MetricsCollector
from video_library.core.validation import InvalidUpdateError, ValidationError
from video_library.providers.exceptions import (
    InvalidURLError,
    MetadataLookupError,
    ProviderError,
    VideoUnavailableError,
)
from video_library.stores.exceptions import (
    PermissionDeniedError,
    RecordNotFoundError,
    StoreError,
    StoreUnavailableError,
)

logger = structlog.get_logger(__name__)


class ErrorCode:
    """Standardized error codes for API responses.

    These codes provide machine-readable identifiers for error conditions
    that clients can use to implement error handling logic.
    """

    # Client Errors (4xx)
    INVALID_URL = "INVALID_URL"
    INVALID_UPDATE = "INVALID_UPDATE"
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_OWNER = "MISSING_OWNER"
    AUTH_FAILED = "AUTH_FAILED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    VIDEO_NOT_FOUND = "VIDEO_NOT_FOUND"
    VIDEO_UNAVAILABLE = "VIDEO_UNAVAILABLE"

    # Server Errors (5xx)
    STORE_ERROR = "STORE_ERROR"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Service Unavailable (503)
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    COMPONENT_UNAVAILABLE = "COMPONENT_UNAVAILABLE"


# Error code to HTTP status code mapping
ERROR_CODE_TO_STATUS: Dict[str, int] = {
    # 400 Bad Request
    ErrorCode.INVALID_URL: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_UPDATE: HTTP_400_BAD_REQUEST,
    ErrorCode.MISSING_OWNER: HTTP_400_BAD_REQUEST,
    # 401 Unauthorized
    ErrorCode.AUTH_FAILED: HTTP_401_UNAUTHORIZED,
    # 403 Forbidden
    ErrorCode.PERMISSION_DENIED: HTTP_403_FORBIDDEN,
    # 404 Not Found
    ErrorCode.VIDEO_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.VIDEO_UNAVAILABLE: HTTP_404_NOT_FOUND,
    # 422 Unprocessable Entity
    ErrorCode.INVALID_REQUEST: HTTP_422_UNPROCESSABLE_ENTITY,
    # 500 Internal Server Error
    ErrorCode.STORE_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.INTERNAL_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
    # 502 Bad Gateway
    ErrorCode.PROVIDER_ERROR: HTTP_502_BAD_GATEWAY,
    # 503 Service Unavailable
    ErrorCode.STORE_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.COMPONENT_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
}


# User-friendly suggestions for error resolution
ERROR_SUGGESTIONS: Dict[str, str] = {
    ErrorCode.INVALID_URL: (
        "Enter a full http(s) link, e.g. https://youtube.com/watch?v=<id> or a direct video URL"
    ),
    ErrorCode.INVALID_UPDATE: "Only title, description, category and metadata can be updated",
    ErrorCode.INVALID_REQUEST: "Check the request body against the API schema at /docs",
    ErrorCode.MISSING_OWNER: "Provide the authenticated user id in the X-Owner-Id header",
    ErrorCode.AUTH_FAILED: "Provide a valid API key in the X-API-Key header",
    ErrorCode.PERMISSION_DENIED: "The backend rejected this request for the current user",
    ErrorCode.VIDEO_NOT_FOUND: "The video does not exist, was removed, or belongs to another user",
    ErrorCode.VIDEO_UNAVAILABLE: "The video may be private, deleted, or region-blocked",
    ErrorCode.STORE_ERROR: "The video store rejected the operation. Check server logs for details",
    ErrorCode.PROVIDER_ERROR: "An error occurred with the video provider. Try again later",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred. Contact administrator if the issue persists",
    ErrorCode.STORE_UNAVAILABLE: "The video store is unreachable. Try again later or refresh",
    ErrorCode.COMPONENT_UNAVAILABLE: "A required system component is unavailable. Check /health for status",
}


# Exception type to error code mapping
# Order matters: subclasses must come before their base classes
EXCEPTION_TO_ERROR_CODE: Dict[Type[Exception], str] = {
    InvalidUpdateError: ErrorCode.INVALID_UPDATE,
    ValidationError: ErrorCode.INVALID_URL,
    InvalidURLError: ErrorCode.INVALID_URL,
    VideoUnavailableError: ErrorCode.VIDEO_UNAVAILABLE,
    MetadataLookupError: ErrorCode.PROVIDER_ERROR,
    RecordNotFoundError: ErrorCode.VIDEO_NOT_FOUND,
    PermissionDeniedError: ErrorCode.PERMISSION_DENIED,
    StoreUnavailableError: ErrorCode.STORE_UNAVAILABLE,
    # Base classes last
    StoreError: ErrorCode.STORE_ERROR,
    ProviderError: ErrorCode.PROVIDER_ERROR,
}


class APIError(Exception):
    """Structured API error that can be converted to ErrorDetail response.

    This exception class provides a standardized way to raise errors
    that will be converted to consistent error responses by the global
    exception handler.
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        """Initialize an API error.

        Args:
            error_code: Machine-readable error code from ErrorCode class.
            message: Human-readable error message.
            details: Optional additional details about the error.
            suggestion: Optional suggestion for resolution. If not provided,
                        the default suggestion for the error code is used.
        """
        self.error_code = error_code
        self.message = message
        self.details = details
        self.suggestion = suggestion or ERROR_SUGGESTIONS.get(error_code)
        super().__init__(message)


def map_exception_to_api_error(exc: Exception) -> APIError:
    """Map validation, provider and store exceptions to APIError.

    Uses EXCEPTION_TO_ERROR_CODE dictionary for maintainable type-based dispatch.
    Dictionary order ensures subclasses are checked before their base classes.

    Args:
        exc: The exception to map.

    Returns:
        An APIError with the appropriate error code and message.
    """
    for exc_type, error_code in EXCEPTION_TO_ERROR_CODE.items():
        if isinstance(exc, exc_type):
            return APIError(error_code, str(exc))
    return APIError(ErrorCode.INTERNAL_ERROR, "An unexpected error occurred")


def _build_error_response(
    error_code: str,
    message: str,
    details: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a standardized error response dictionary.

    Args:
        error_code: Machine-readable error code.
        message: Human-readable error message.
        details: Optional additional details.
        suggestion: Optional suggestion for resolution.

    Returns:
        Dictionary matching the ErrorDetail schema.
    """
    request_id = get_request_id()
    timestamp = datetime.now(timezone.utc).isoformat()

    response: Dict[str, Any] = {
        "error_code": error_code,
        "message": message,
        "timestamp": timestamp,
    }

    if details:
        response["details"] = details
    if request_id:
        response["request_id"] = request_id
    if suggestion:
        response["suggestion"] = suggestion

    return response


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for FastAPI.

    Converts all exceptions to standardized ErrorDetail responses with
    consistent structure, proper HTTP status codes, and request tracing.

    Args:
        request: The FastAPI request object.
        exc: The exception that was raised.

    Returns:
        JSONResponse with ErrorDetail body and appropriate status code.
    """
    if isinstance(exc, APIError):
        # Already a structured API error
        status_code = ERROR_CODE_TO_STATUS.get(exc.error_code, HTTP_500_INTERNAL_SERVER_ERROR)
        error_code = exc.error_code
        response = _build_error_response(
            error_code=exc.error_code,
            message=exc.message,
            details=exc.details,
            suggestion=exc.suggestion,
        )
        logger.warning(
            "api_error",
            error_code=exc.error_code,
            message=exc.message,
            path=request.url.path,
        )

    elif isinstance(exc, RequestValidationError):
        status_code = HTTP_422_UNPROCESSABLE_ENTITY
        error_code = ErrorCode.INVALID_REQUEST
        response = _build_error_response(
            error_code=error_code,
            message="Request validation failed",
            details="; ".join(
                f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
                for err in exc.errors()
            ),
            suggestion=ERROR_SUGGESTIONS.get(error_code),
        )
        logger.warning("request_validation_failed", path=request.url.path)

    elif isinstance(exc, HTTPException):
        # FastAPI HTTPException - preserve status code
        status_code = exc.status_code

        # Check if detail is already structured
        if isinstance(exc.detail, dict) and "error_code" in exc.detail:
            error_code = exc.detail["error_code"]
            message = exc.detail.get("message", str(exc.detail))
            details = exc.detail.get("details")
        else:
            # Infer error code from status
            error_code = _status_to_error_code(status_code)
            message = str(exc.detail) if exc.detail else "An error occurred"
            details = None

        suggestion = ERROR_SUGGESTIONS.get(error_code)
        response = _build_error_response(
            error_code=error_code,
            message=message,
            details=details,
            suggestion=suggestion,
        )
        logger.warning(
            "http_exception",
            status_code=status_code,
            error_code=error_code,
            path=request.url.path,
        )

    elif isinstance(exc, (ValidationError, ProviderError, StoreError)):
        # Map validation/provider/store exceptions
        api_error = map_exception_to_api_error(exc)
        status_code = ERROR_CODE_TO_STATUS.get(api_error.error_code, HTTP_500_INTERNAL_SERVER_ERROR)
        error_code = api_error.error_code
        response = _build_error_response(
            error_code=api_error.error_code,
            message=api_error.message,
            details=api_error.details,
            suggestion=api_error.suggestion,
        )
        logger.warning(
            "operation_error",
            error_code=api_error.error_code,
            error_type=type(exc).__name__,
            message=str(exc),
            path=request.url.path,
        )

    else:
        # Unexpected error - log with full traceback
        status_code = HTTP_500_INTERNAL_SERVER_ERROR
        error_code = ErrorCode.INTERNAL_ERROR
        response = _build_error_response(
            error_code=ErrorCode.INTERNAL_ERROR,
            message="An unexpected error occurred",
            suggestion=ERROR_SUGGESTIONS.get(ErrorCode.INTERNAL_ERROR),
        )
        logger.error(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )

    route = request.scope.get("route")
    MetricsCollector.record_error(error_code, route.path if route else "/unmatched")

    return JSONResponse(status_code=status_code, content=response)


def _status_to_error_code(status_code: int) -> str:
    """Infer error code from HTTP status code.

    Args:
        status_code: HTTP status code.

    Returns:
        Appropriate error code string.
    """
    if status_code == HTTP_400_BAD_REQUEST:
        return ErrorCode.INVALID_REQUEST
    elif status_code == HTTP_401_UNAUTHORIZED:
        return ErrorCode.AUTH_FAILED
    elif status_code == HTTP_403_FORBIDDEN:
        return ErrorCode.PERMISSION_DENIED
    elif status_code == HTTP_404_NOT_FOUND:
        return ErrorCode.VIDEO_NOT_FOUND
    elif status_code == HTTP_422_UNPROCESSABLE_ENTITY:
        return ErrorCode.INVALID_REQUEST
    elif status_code == HTTP_503_SERVICE_UNAVAILABLE:
        return ErrorCode.COMPONENT_UNAVAILABLE
    else:
        return ErrorCode.INTERNAL_ERROR
