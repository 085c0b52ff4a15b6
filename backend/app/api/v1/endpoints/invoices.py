"""
Invoice API endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.api.v1.middleware import require_authentication
from app.controllers.invoice_controller import InvoiceController
from app.core.integrations.email.mailer import Mailer
from app.core.integrations.payments.base import PaymentGateway
from app.db.session import get_db
from app.deps.di_container import get_mailer, get_payment_gateway
from app.models.invoice import InvoiceStatus
from app.models.user import User
from app.schemas.invoice import (
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceSendRequest,
    InvoiceSendResponse,
    InvoiceStatusUpdate,
    PaymentLinkResponse,
)

router = APIRouter()


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """Create an invoice. Counts against the plan's monthly limit."""
    controller = InvoiceController(db)
    return await controller.create_invoice(current_user, invoice_data)


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
) -> InvoiceListResponse:
    """List invoices, newest first."""
    controller = InvoiceController(db)
    return await controller.list_invoices(current_user, status_filter, skip, limit)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: UUID,
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """Get invoice by ID."""
    controller = InvoiceController(db)
    return await controller.get_invoice(current_user, invoice_id)


@router.patch("/{invoice_id}/status", response_model=InvoiceResponse)
async def update_invoice_status(
    invoice_id: UUID,
    update: InvoiceStatusUpdate,
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """Change invoice status. Illegal moves return 409."""
    controller = InvoiceController(db)
    return await controller.update_status(current_user, invoice_id, update.status, update.method)


@router.post("/{invoice_id}/payment-link", response_model=PaymentLinkResponse)
async def create_payment_link(
    invoice_id: UUID,
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
) -> PaymentLinkResponse:
    """Create a payable reference for the invoice total."""
    controller = InvoiceController(db, gateway)
    return await controller.create_payment_link(current_user, invoice_id)


@router.post("/{invoice_id}/send", response_model=InvoiceSendResponse)
async def send_invoice(
    invoice_id: UUID,
    send_data: Optional[InvoiceSendRequest] = None,
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
    mailer: Mailer = Depends(get_mailer),
) -> InvoiceSendResponse:
    """Email the invoice. Status advances only after delivery succeeds."""
    controller = InvoiceController(db, gateway, mailer)
    return await controller.send_invoice(current_user, invoice_id, send_data or InvoiceSendRequest())
