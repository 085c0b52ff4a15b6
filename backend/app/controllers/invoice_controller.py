"""
Invoice controller.
Wires the invoice service to its payment and notification collaborators.
"""

from datetime import date
from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.base_controller import BaseController
from app.core.integrations.email.mailer import Mailer
from app.core.integrations.payments.base import PaymentGateway
from app.models.invoice import InvoiceStatus
from app.models.payment import PaymentMethod
from app.models.user import User
from app.services.invoice_service import InvoiceService
from app.services.notification_service import NotificationService
from app.services.payment_service import PaymentService
from app.schemas.invoice import (
    DashboardStats,
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceSendRequest,
    InvoiceSendResponse,
    PaymentLinkResponse,
    PublicInvoiceResponse,
)


class InvoiceController(BaseController):
    """Controller for invoice operations."""

    def __init__(
        self,
        session: AsyncSession,
        gateway: Optional[PaymentGateway] = None,
        mailer: Optional[Mailer] = None,
    ):
        self.payment_service = PaymentService(session, gateway)
        self.invoice_service = InvoiceService(
            session,
            payment_service=self.payment_service if gateway is not None else None,
            notification_service=NotificationService(mailer) if mailer is not None else None,
        )

    async def create_invoice(self, user: User, invoice_data: InvoiceCreate) -> InvoiceResponse:
        """Create a new invoice."""
        return await self.invoice_service.create_invoice(user, invoice_data)

    async def get_invoice(self, user: User, invoice_id: UUID) -> InvoiceResponse:
        """Get invoice by ID."""
        return await self.invoice_service.get_invoice(user, invoice_id)

    async def list_invoices(
        self,
        user: User,
        status: Optional[InvoiceStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> InvoiceListResponse:
        """List invoices with optional status filter."""
        invoices, total = await self.invoice_service.list_invoices(user, status, skip, limit)
        return InvoiceListResponse(items=invoices, total=total)

    async def update_status(
        self,
        user: User,
        invoice_id: UUID,
        status: InvoiceStatus,
        method: PaymentMethod,
    ) -> InvoiceResponse:
        """Change invoice status."""
        return await self.invoice_service.transition_status(user, invoice_id, status, method)

    async def create_payment_link(self, user: User, invoice_id: UUID) -> PaymentLinkResponse:
        """Create a payable reference for an invoice."""
        return await self.payment_service.create_payment_link(user, invoice_id)

    async def send_invoice(
        self,
        user: User,
        invoice_id: UUID,
        send_data: InvoiceSendRequest,
    ) -> InvoiceSendResponse:
        """Email an invoice to its client."""
        return await self.invoice_service.send_invoice(user, invoice_id, send_data)

    async def get_dashboard_stats(self, user: User) -> DashboardStats:
        """Dashboard counters for the caller."""
        return await self.invoice_service.get_dashboard_stats(user)

    async def get_public_invoice(self, invoice_id: UUID) -> PublicInvoiceResponse:
        """Recipient view of an invoice."""
        return await self.invoice_service.get_public_invoice(invoice_id)

    async def create_public_payment(self, invoice_id: UUID) -> PaymentLinkResponse:
        """Payable reference requested by the recipient."""
        return await self.payment_service.create_public_payment(invoice_id)

    async def mark_overdue(self, as_of: Optional[date] = None) -> int:
        """Run the overdue sweep."""
        return await self.invoice_service.mark_overdue(as_of)
