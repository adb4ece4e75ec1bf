"""
Exception handlers for FastAPI application.

Centralizes the translation of domain and gateway errors into HTTP responses.
"""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from rentpay.clients.mpesa_client import GatewayConfigError, GatewayError
from rentpay.core.domain import (
    AuthorizationException,
    BusinessRuleViolationException,
    DomainException,
    DuplicateEntityException,
    EntityNotFoundException,
    InvalidOperationException,
    ValidationException,
)

logger = logging.getLogger(__name__)

# Most specific first
DOMAIN_STATUS_CODES: tuple[tuple[type[DomainException], int], ...] = (
    (ValidationException, status.HTTP_400_BAD_REQUEST),
    (AuthorizationException, status.HTTP_403_FORBIDDEN),
    (EntityNotFoundException, status.HTTP_404_NOT_FOUND),
    (BusinessRuleViolationException, status.HTTP_409_CONFLICT),
    (InvalidOperationException, status.HTTP_409_CONFLICT),
    (DuplicateEntityException, status.HTTP_409_CONFLICT),
)


def _error_body(status_code: int, message: str, code: str | None = None, details=None) -> dict:
    body: dict = {"error": True, "message": message, "status_code": status_code}
    if code:
        body["code"] = code
    if details:
        body["details"] = details
    return body


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle HTTPException with consistent response format."""
    http_exc = exc if isinstance(exc, HTTPException) else HTTPException(status_code=500, detail=str(exc))
    return JSONResponse(
        status_code=http_exc.status_code,
        content=_error_body(http_exc.status_code, http_exc.detail),
        headers=http_exc.headers,
    )


async def domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map domain exceptions to 400/403/404/409."""
    if not isinstance(exc, DomainException):
        return await global_exception_handler(request, exc)

    status_code = status.HTTP_400_BAD_REQUEST
    for exc_type, code in DOMAIN_STATUS_CODES:
        if isinstance(exc, exc_type):
            status_code = code
            break

    logger.info(f"Domain error on {request.method} {request.url.path}: {exc.code} {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=_error_body(status_code, exc.message, exc.code, exc.details),
    )


async def gateway_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Provider failures surface as 502, missing provider configuration as 503."""
    if not isinstance(exc, GatewayError):
        return await global_exception_handler(request, exc)

    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE if isinstance(exc, GatewayConfigError) else status.HTTP_502_BAD_GATEWAY
    )
    logger.warning(f"Gateway error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content=_error_body(status_code, exc.error_message, exc.error_code),
    )


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle request validation errors with detailed error messages."""
    if not isinstance(exc, (RequestValidationError, ValidationError)):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc)),
        )

    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    logger.warning(f"Validation error on {request.url.path}: {errors}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error", details=errors),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all unhandled exceptions.

    Logs the full exception with traceback and returns a safe error response.
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc!s}",
        exc_info=exc,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(GatewayError, gateway_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    logger.info("Exception handlers registered")
