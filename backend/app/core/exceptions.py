"""
Application exceptions and the global FastAPI exception handlers.
Domain errors subclass AppException and carry their HTTP status code.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from typing import Any

from app.core.integrations.observability import record_exception


logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""
    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ValidationFailed(AppException):
    """Caller input is invalid. Nothing was written."""
    def __init__(self, message: str, details: Any = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class QuotaExceeded(AppException):
    """The user's plan does not allow another invoice this period."""
    def __init__(self, message: str = "Monthly invoice limit reached. Please upgrade your plan.", details: Any = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


class NotFound(AppException):
    """Resource does not exist or does not belong to the caller."""
    def __init__(self, message: str = "Not found", details: Any = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class InvalidStatusTransition(AppException):
    """Requested invoice status change is not allowed."""
    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot change invoice status from '{current}' to '{requested}'",
            status.HTTP_409_CONFLICT,
            {"current": current, "requested": requested},
        )


class WebhookSignatureError(AppException):
    """Inbound processor event failed signature verification."""
    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ExternalServiceError(AppException):
    """A call to an external system failed; the caller may retry."""
    def __init__(self, message: str, details: Any = None, retryable: bool = True):
        self.retryable = retryable
        payload = {"retryable": retryable}
        if details:
            payload["reason"] = details
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, payload)


class PaymentProcessorError(ExternalServiceError):
    """Payment processor rejected or failed a synchronous call."""


class ProcessorResourceMissing(PaymentProcessorError):
    """The processor has no object with the requested id."""
    def __init__(self, message: str, details: Any = None):
        super().__init__(message, details=details, retryable=False)


class BankLinkError(ExternalServiceError):
    """Bank-linking aggregator call failed."""


class NotificationDeliveryError(ExternalServiceError):
    """Email could not be delivered."""


class ServiceUnavailable(AppException):
    """An integration is not configured in this deployment."""
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Application exception: {exc.message}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    if exc.status_code >= 500:
        record_exception(exc, request)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.message,
                "details": exc.details,
                "path": request.url.path,
            }
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "status_code": exc.status_code,
                "path": request.url.path,
            }
        },
        headers=getattr(exc, "headers", None),
    )


def _serialize_validation_errors(errors: list) -> list:
    """Convert validation errors to JSON-serializable format."""
    serialized = []
    for error in errors:
        serialized_error = {}
        for key, value in error.items():
            if key == "ctx" and isinstance(value, dict):
                # ctx may hold the raw ValueError raised by a validator
                serialized_ctx = {}
                for ctx_key, ctx_value in value.items():
                    if isinstance(ctx_value, Exception):
                        serialized_ctx[ctx_key] = str(ctx_value)
                    else:
                        serialized_ctx[ctx_key] = ctx_value
                serialized_error[key] = serialized_ctx
            elif isinstance(value, Exception):
                serialized_error[key] = str(value)
            else:
                serialized_error[key] = value
        serialized.append(serialized_error)
    return serialized


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    serialized_errors = _serialize_validation_errors(exc.errors())

    logger.warning(
        f"Validation error: {serialized_errors}",
        extra={
            "path": request.url.path,
            "errors": serialized_errors,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation error",
                "details": serialized_errors,
                "path": request.url.path,
            }
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "exception_type": type(exc).__name__,
        },
    )

    record_exception(exc, request)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": "Internal server error",
                "path": request.url.path,
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
