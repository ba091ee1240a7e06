"""
Error Handling Module

Every failure leaves the API in one JSON envelope:

    {"timestamp", "status_code", "message", "error_code",
     "correlation_id", "path", "details"}

Lookup and state failures are concealed from ordinary users (they get the
exception's ``public_message`` and no details); admins always see the
specific message so they can act on it.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Dict, Optional

import prometheus_client
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException

from crestcat.core.exceptions import AppException
from crestcat.core.logging import correlation_id, get_logger
from crestcat.core.settings import settings

logger = get_logger(__name__)

ERROR_COUNTER = prometheus_client.Counter(
    "api_errors_total",
    "Total count of API errors",
    ["error_type", "status_code"]
)


class ErrorResponse(BaseModel):
    """Error envelope returned by every handler."""
    timestamp: str
    status_code: int
    message: str
    error_code: str
    correlation_id: str
    path: str
    details: Optional[Any] = None


def _caller_is_admin(request: Request) -> bool:
    principal = getattr(request.state, "principal", None)
    return principal is not None and principal.is_admin


def _render(
    request: Request,
    *,
    status_code: int,
    message: str,
    error_code: str,
    error_type: str,
    details: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    """Count the failure and build its JSON response."""
    ERROR_COUNTER.labels(error_type=error_type, status_code=status_code).inc()

    body = ErrorResponse(
        timestamp=datetime.now(UTC).isoformat(),
        status_code=status_code,
        message=message,
        error_code=error_code,
        correlation_id=correlation_id.get(),
        path=request.url.path,
        details=details
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    """
    Render a domain exception raised by a service.

    Args:
        request: Incoming request; its principal decides concealment
        exc: The raised exception

    Returns:
        JSON error response with the exception's status code
    """
    verbose = exc.expose_to_user or _caller_is_admin(request)

    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        f"{exc.error_code}: {exc.message}",
        extra={
            "status_code": exc.status_code,
            "method": request.method,
            "path": request.url.path,
            "concealed": not verbose,
            "details": exc.details
        }
    )

    return _render(
        request,
        status_code=exc.status_code,
        message=exc.message if verbose else exc.public_message,
        error_code=exc.error_code,
        error_type=type(exc).__name__,
        details=jsonable_encoder(exc.details) if verbose else None,
        headers=exc.headers
    )


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies, paths and queries."""
    errors = [
        {
            "loc": " -> ".join(str(part) for part in error["loc"]),
            "msg": error["msg"],
            "type": error["type"]
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Request rejected by validation",
        extra={"method": request.method, "path": request.url.path, "validation_errors": errors}
    )

    return _render(
        request,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Request validation failed",
        error_code="VALIDATION_ERROR",
        error_type="RequestValidationError",
        details={"errors": errors}
    )


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    # Unknown routes and methods
    logger.info(
        f"HTTP {exc.status_code} on {request.method} {request.url.path}",
        extra={"detail": exc.detail}
    )
    return _render(
        request,
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
        error_type="HTTPException",
        headers=getattr(exc, "headers", None)
    )


async def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
    """Anything the services did not anticipate; reported to Sentry via the logger."""
    logger.critical(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc
    )

    message = str(exc) if settings.app.ENVIRONMENT == "development" else "An unexpected error occurred"
    return _render(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message=message,
        error_code="INTERNAL_SERVER_ERROR",
        error_type=type(exc).__name__
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on ``app``."""
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_generic_exception)
