"""
Observability hooks.
Exceptions and money-moving events are reported through structured logs.
"""

from typing import Any, Dict, Optional
from fastapi import Request
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

# Separate channel so audit lines can be routed to their own sink
audit_logger = logging.getLogger("quickbill.audit")


def setup_observability() -> None:
    """Log the observability configuration at startup."""
    logger.info(
        "Setting up observability",
        extra={
            "service_name": settings.SERVICE_NAME,
            "environment": settings.ENVIRONMENT,
        },
    )


def record_exception(exc: Exception, request: Request) -> None:
    """
    Record an exception in the observability backend.

    Args:
        exc: The exception that occurred
        request: The FastAPI request object
    """
    logger.error(
        f"Exception recorded: {type(exc).__name__}",
        extra={
            "exception_message": str(exc),
            "path": request.url.path,
        },
    )


def record_audit_event(action: str, details: Optional[Dict[str, Any]] = None) -> None:
    """
    Write an audit line for a money or trust relevant event.

    Args:
        action: Short event name, e.g. "invoice.paid" or "webhook.rejected"
        details: Identifiers and amounts relevant to the event
    """
    audit_logger.info(action, extra={"audit": details or {}})
