"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AdmissionIndeterminateError subclasses -> 503 (decision could not be made)
- ConfigurationAppError -> 500
- Other AppError -> 400
- Unexpected Exception -> generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

from __future__ import annotations

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from admission.core.errors import AdmissionIndeterminateError, AppError, ConfigurationAppError
from admission.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_code_for(exc: AppError) -> int:
    """Map a domain error onto an HTTP status code."""

    if isinstance(exc, AdmissionIndeterminateError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, ConfigurationAppError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


def app_error_response(exc: AppError) -> JSONResponse:
    """Render a domain error as the standard JSON error body.

    Shared by the exception handler and by middleware, which runs outside
    FastAPI's exception handling.

    Args:
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with ``{"error": {code, message, request_id[, details]}}``.
    """

    status_code = status_code_for(exc)
    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(status_code=status_code, content={"error": error_content})


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return app_error_response(exc)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the error type for debugging while returning a generic message, so no
    stack traces or backend details leak to the client.
    """

    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Specific handlers are registered before the general fallback.
    """

    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
