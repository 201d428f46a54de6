"""
Exception handlers that turn failures into the API error body:

    {"success": false, "error": <message>, "code": <error_code>, "details": {...}}

Caller faults (4xx) are logged as warnings, provider and server faults (5xx)
as errors. Generation errors carry the orchestration stage in ``details``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.exceptions import AppException

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


def error_body(message: str, code: str, details: dict | None = None) -> dict:
    """Build the error response body. ``details`` is omitted when empty."""
    body = {"success": False, "error": message, "code": code}
    if details:
        body["details"] = details
    return body


def _field_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {
            "field": " -> ".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}: {exc.message}"
        + (f" (stage={exc.stage})" if exc.stage else ""),
    )

    headers = None
    if "retry_after" in exc.details:
        headers = {"Retry-After": str(exc.details["retry_after"])}

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.error_code, exc.details),
        headers=headers,
    )


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = _field_errors(exc)
    logger.warning(f"Rejected {request.method} {request.url.path}: {len(errors)} invalid field(s)")

    # A single problem is reported directly; several get a summary message
    message = errors[0]["message"] if len(errors) == 1 else "Request validation failed"
    return JSONResponse(
        status_code=422,
        content=error_body(message, "validation_error", {"errors": errors}),
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}")

    if get_settings().is_production:
        return JSONResponse(
            status_code=500,
            content=error_body(UNEXPECTED_ERROR_MESSAGE, "internal_error"),
        )
    return JSONResponse(
        status_code=500,
        content=error_body(
            str(exc) or UNEXPECTED_ERROR_MESSAGE,
            "internal_error",
            {"type": type(exc).__name__},
        ),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the error handlers on ``app``."""
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
