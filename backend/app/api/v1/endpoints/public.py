"""
Public invoice endpoints, reached from the link in the invoice email.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.controllers.invoice_controller import InvoiceController
from app.core.config import settings
from app.core.integrations.payments.base import PaymentGateway
from app.core.rate_limit import limiter
from app.db.session import get_db
from app.deps.di_container import get_payment_gateway
from app.schemas.invoice import PaymentLinkResponse, PublicInvoiceResponse

router = APIRouter()


@router.get("/invoices/{invoice_id}", response_model=PublicInvoiceResponse)
@limiter.limit(settings.PUBLIC_PAYMENT_RATE_LIMIT)
async def get_public_invoice(
    request: Request,
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> PublicInvoiceResponse:
    """Invoice as shown to its recipient."""
    controller = InvoiceController(db)
    return await controller.get_public_invoice(invoice_id)


@router.post("/invoices/{invoice_id}/pay", response_model=PaymentLinkResponse)
@limiter.limit(settings.PUBLIC_PAYMENT_RATE_LIMIT)
async def pay_invoice(
    request: Request,
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
) -> PaymentLinkResponse:
    """Create a payable reference for the recipient."""
    controller = InvoiceController(db, gateway)
    return await controller.create_public_payment(invoice_id)
