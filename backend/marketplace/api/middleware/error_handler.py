"""
Exception handlers.

Turn the application exceptions from ``marketplace.lib.errors`` into
consistent JSON error responses carrying the request's correlation ID.
"""
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace.lib.errors import AppException
from marketplace.lib.logging import get_logger

logger = get_logger(__name__)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handler for application exceptions.

    Conflicts keep their ``reason`` in ``details`` so clients can tell a
    lost slot race from a capacity problem.
    """
    correlation_id = _correlation_id(request)

    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"Application error: {exc.message}",
        extra={
            "extra_fields": {
                "correlation_id": correlation_id,
                "status_code": exc.status_code,
                "path": request.url.path,
                "method": request.method,
                "details": exc.details,
            }
        },
    )

    response_content = {
        "error": exc.message,
        "correlation_id": correlation_id,
    }
    if exc.details:
        response_content["details"] = exc.details

    return JSONResponse(status_code=exc.status_code, content=response_content)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for request validation errors."""
    correlation_id = _correlation_id(request)

    errors = [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]

    logger.warning(
        "Validation error",
        extra={
            "extra_fields": {
                "correlation_id": correlation_id,
                "path": request.url.path,
                "method": request.method,
                "errors": errors,
            }
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "correlation_id": correlation_id,
            "details": {"errors": errors},
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    correlation_id = _correlation_id(request)

    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={
            "extra_fields": {
                "correlation_id": correlation_id,
                "status_code": exc.status_code,
                "path": request.url.path,
            }
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "correlation_id": correlation_id},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the full stack trace and return a generic error."""
    correlation_id = _correlation_id(request)

    logger.error(
        f"Unhandled exception: {exc}",
        extra={
            "extra_fields": {
                "correlation_id": correlation_id,
                "path": request.url.path,
                "method": request.method,
            }
        },
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "correlation_id": correlation_id},
    )
