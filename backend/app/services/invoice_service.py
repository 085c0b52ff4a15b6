"""
Invoice service with business logic.

This service is the only writer of invoice status and totals. Totals are
computed once at creation from the line items and never edited afterwards.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple, TYPE_CHECKING
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ExternalServiceError,
    InvalidStatusTransition,
    NotFound,
    QuotaExceeded,
    ServiceUnavailable,
    ValidationFailed,
)
from app.core.integrations.observability import record_audit_event
from app.services.base_service import BaseService
from app.db.repositories.client_repository import ClientRepository
from app.db.repositories.invoice_repository import InvoiceRepository
from app.db.repositories.invoice_line_item_repository import InvoiceLineItemRepository
from app.db.repositories.payment_repository import PaymentRepository
from app.db.repositories.user_repository import UserRepository
from app.models.client import Client
from app.models.invoice import Invoice, InvoiceStatus
from app.models.payment import PaymentMethod, PaymentStatus
from app.models.user import User
from app.schemas.invoice import (
    DashboardStats,
    InvoiceCreate,
    InvoiceLineItemCreate,
    InvoiceLineItemResponse,
    InvoiceResponse,
    InvoiceSendRequest,
    InvoiceSendResponse,
    PublicInvoiceResponse,
)
from app.utils.money import compute_tax, from_minor_units, quantize, split_fee, to_minor_units

if TYPE_CHECKING:
    from app.services.notification_service import NotificationService
    from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    InvoiceStatus.DRAFT: {InvoiceStatus.SENT, InvoiceStatus.PAID},
    InvoiceStatus.SENT: {InvoiceStatus.PAID, InvoiceStatus.OVERDUE},
    InvoiceStatus.OVERDUE: {InvoiceStatus.PAID},
    InvoiceStatus.PAID: set(),
}


def format_invoice_number(sequence: int) -> str:
    return f"INV-{sequence:03d}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvoiceService(BaseService):
    """Service for invoice operations."""

    def __init__(
        self,
        session: AsyncSession,
        payment_service: Optional["PaymentService"] = None,
        notification_service: Optional["NotificationService"] = None,
    ):
        self.session = session
        self.payment_service = payment_service
        self.notification_service = notification_service
        self.invoice_repo = InvoiceRepository(session)
        self.line_item_repo = InvoiceLineItemRepository(session)
        self.client_repo = ClientRepository(session)
        self.user_repo = UserRepository(session)
        self.payment_repo = PaymentRepository(session)

    # Creation

    def _validate_items(self, items: List[InvoiceLineItemCreate]) -> List[Tuple[str, int, Decimal]]:
        """Drop blank rows and check the rest. Returns (description, quantity, rate) tuples."""
        cleaned = []
        for index, item in enumerate(items):
            description = item.description.strip()
            if not description:
                continue
            if item.quantity <= 0:
                raise ValidationFailed(
                    "Line item quantity must be a positive integer",
                    {"item": index, "quantity": item.quantity},
                )
            if item.rate < 0:
                raise ValidationFailed(
                    "Line item rate cannot be negative",
                    {"item": index, "rate": str(item.rate)},
                )
            cleaned.append((description, item.quantity, quantize(item.rate)))

        if not cleaned:
            raise ValidationFailed("An invoice needs at least one line item with a description")
        return cleaned

    async def _resolve_client(self, user: User, invoice_data: InvoiceCreate) -> Optional[Client]:
        """Existing client of the caller, or None when a new client is requested."""
        if invoice_data.client_id == "new":
            if invoice_data.new_client is None:
                raise ValidationFailed("Client name and email are required for a new client")
            return None

        client = await self.client_repo.get_for_user(invoice_data.client_id, user.id, include_archived=True)
        if not client:
            raise ValidationFailed("Client not found", {"client_id": str(invoice_data.client_id)})
        if client.is_archived:
            raise ValidationFailed("Client is archived", {"client_id": str(invoice_data.client_id)})
        return client

    async def create_invoice(self, user: User, invoice_data: InvoiceCreate) -> InvoiceResponse:
        """
        Create an invoice with computed totals.

        The quota check, usage increment and invoice number allocation happen
        in one conditional update; the client (when new), the invoice and its
        items are written in the same transaction.

        Raises:
            ValidationFailed: Bad items, tax rate, currency or client reference
            QuotaExceeded: The plan's monthly cap is reached
        """
        items = self._validate_items(invoice_data.items)

        # Stored with two decimals; tax is computed from the stored value
        tax_rate = quantize(invoice_data.tax_rate)
        if tax_rate < 0 or tax_rate > 100:
            raise ValidationFailed("Tax rate must be between 0 and 100", {"tax_rate": str(invoice_data.tax_rate)})

        currency = (invoice_data.currency or settings.DEFAULT_CURRENCY).lower()
        if currency not in settings.SUPPORTED_CURRENCIES:
            raise ValidationFailed(
                "Unsupported currency",
                {"currency": currency, "supported": settings.SUPPORTED_CURRENCIES},
            )

        issue_date = invoice_data.issue_date or date.today()
        if invoice_data.due_date < issue_date:
            raise ValidationFailed(
                "Due date cannot be before the issue date",
                {"issue_date": issue_date.isoformat(), "due_date": invoice_data.due_date.isoformat()},
            )

        client = await self._resolve_client(user, invoice_data)

        amounts = [quantize(quantity * rate) for _, quantity, rate in items]
        subtotal = quantize(sum(amounts, Decimal("0")))
        tax_amount = compute_tax(subtotal, tax_rate)
        total = subtotal + tax_amount

        try:
            sequence = await self.user_repo.reserve_invoice_slot(user.id)
            if sequence is None:
                logger.info(
                    "Invoice quota exceeded",
                    extra={"user_id": str(user.id), "max_invoices": user.max_invoices},
                )
                raise QuotaExceeded(details={"max_invoices": user.max_invoices})

            if client is None:
                client = await self.client_repo.create(
                    user_id=user.id,
                    **invoice_data.new_client.model_dump(),
                )

            invoice = await self.invoice_repo.create(
                user_id=user.id,
                client_id=client.id,
                invoice_number=format_invoice_number(sequence),
                issue_date=issue_date,
                due_date=invoice_data.due_date,
                status=InvoiceStatus.DRAFT,
                currency=currency,
                subtotal=subtotal,
                tax_rate=tax_rate,
                tax_amount=tax_amount,
                total=total,
                notes=invoice_data.notes,
            )

            for row_order, ((description, quantity, rate), amount) in enumerate(zip(items, amounts)):
                await self.line_item_repo.create(
                    invoice_id=invoice.id,
                    description=description,
                    quantity=quantity,
                    rate=rate,
                    amount=amount,
                    row_order=row_order,
                )

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Invoice created",
            extra={
                "user_id": str(user.id),
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "total": str(total),
            },
        )
        return await self.get_invoice(user, invoice.id)

    # Reads

    async def _get_owned(self, user: User, invoice_id: UUID) -> Invoice:
        invoice = await self.invoice_repo.get_for_user(invoice_id, user.id)
        if not invoice:
            raise NotFound("Invoice not found")
        return invoice

    async def get_invoice(self, user: User, invoice_id: UUID) -> InvoiceResponse:
        """Get invoice by ID."""
        return self._to_response(await self._get_owned(user, invoice_id))

    async def list_invoices(
        self,
        user: User,
        status: Optional[InvoiceStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[InvoiceResponse], int]:
        """List invoices, newest first."""
        invoices = await self.invoice_repo.list_for_user(user.id, status, skip, limit)
        total = await self.invoice_repo.count_for_user(user.id, status)
        return [self._to_response(invoice) for invoice in invoices], total

    async def get_public_invoice(self, invoice_id: UUID) -> PublicInvoiceResponse:
        """Recipient view of an invoice, reachable through the link in the email."""
        invoice = await self.invoice_repo.get_with_owner(invoice_id)
        if not invoice:
            raise NotFound("Invoice not found")
        return PublicInvoiceResponse(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            issuer_name=invoice.user.name,
            issuer_company=invoice.user.company,
            client_name=invoice.client.name,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            status=invoice.status,
            currency=invoice.currency,
            subtotal=invoice.subtotal,
            tax_rate=invoice.tax_rate,
            tax_amount=invoice.tax_amount,
            total=invoice.total,
            notes=invoice.notes,
            line_items=[InvoiceLineItemResponse.model_validate(item) for item in invoice.line_items],
        )

    async def get_dashboard_stats(self, user: User) -> DashboardStats:
        """Counts and amounts per status for the caller."""
        totals = await self.invoice_repo.totals_by_status(user.id)
        empty = {"count": 0, "total": Decimal("0")}
        paid = totals.get(InvoiceStatus.PAID, empty)
        sent = totals.get(InvoiceStatus.SENT, empty)
        overdue = totals.get(InvoiceStatus.OVERDUE, empty)
        draft = totals.get(InvoiceStatus.DRAFT, empty)

        return DashboardStats(
            total_invoices=sum(entry["count"] for entry in totals.values()),
            paid_invoices=paid["count"],
            pending_invoices=sent["count"],
            overdue_invoices=overdue["count"],
            draft_invoices=draft["count"],
            total_revenue=quantize(paid["total"]),
            pending_amount=quantize(sent["total"]),
            overdue_amount=quantize(overdue["total"]),
            invoices_this_month=user.invoices_this_month,
            max_invoices=user.max_invoices,
        )

    # Status changes

    async def _mark_paid(
        self,
        invoice: Invoice,
        method: PaymentMethod,
        reference: Optional[str] = None,
        amount: Optional[Decimal] = None,
        currency: Optional[str] = None,
        destination_account: Optional[str] = None,
    ) -> None:
        """
        Flip an invoice to paid and record the completed payment backing it.

        A destination_account means the processor already split the charge and
        credited that account, so the invoice is settled and never batched.
        """
        paid_at = utcnow()
        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = paid_at
        invoice.settled_to_destination = bool(destination_account)

        paid_amount = amount if amount is not None else invoice.total
        platform_fee = None
        if destination_account:
            platform_fee = from_minor_units(
                split_fee(to_minor_units(paid_amount), settings.PLATFORM_FEE_PERCENT).platform_fee_minor
            )

        existing = await self.payment_repo.get_by_external_reference(reference) if reference else None
        if existing:
            existing.status = PaymentStatus.COMPLETED
            existing.amount = paid_amount
            existing.paid_at = paid_at
            existing.destination_account = destination_account
            existing.platform_fee = platform_fee
        else:
            await self.payment_repo.create(
                invoice_id=invoice.id,
                amount=paid_amount,
                currency=(currency or invoice.currency).lower(),
                method=method,
                external_reference=reference,
                destination_account=destination_account,
                platform_fee=platform_fee,
                status=PaymentStatus.COMPLETED,
                paid_at=paid_at,
            )

        record_audit_event(
            "invoice.paid",
            {
                "invoice_id": str(invoice.id),
                "user_id": str(invoice.user_id),
                "method": method.value,
                "reference": reference,
                "amount": str(paid_amount),
                "destination_account": destination_account,
            },
        )

    async def transition_status(
        self,
        user: User,
        invoice_id: UUID,
        new_status: InvoiceStatus,
        method: PaymentMethod = PaymentMethod.MANUAL,
    ) -> InvoiceResponse:
        """
        Move an invoice along its lifecycle.

        Raises:
            NotFound: Invoice does not belong to the caller
            InvalidStatusTransition: The move is not allowed from the current status
        """
        invoice = await self._get_owned(user, invoice_id)
        current = InvoiceStatus(invoice.status)

        if current == InvoiceStatus.PAID and new_status == InvoiceStatus.PAID:
            return self._to_response(invoice)

        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransition(current.value, new_status.value)

        if new_status == InvoiceStatus.PAID:
            await self._mark_paid(invoice, method)
        else:
            invoice.status = new_status
            if new_status == InvoiceStatus.SENT and invoice.sent_at is None:
                invoice.sent_at = utcnow()

        await self.session.commit()
        logger.info(
            "Invoice status changed",
            extra={"invoice_id": str(invoice.id), "from": current.value, "to": new_status.value},
        )
        return await self.get_invoice(user, invoice.id)

    async def mark_paid_from_processor(
        self,
        invoice_id: UUID,
        reference: str,
        amount_minor: Optional[int] = None,
        currency: Optional[str] = None,
        destination_account: Optional[str] = None,
    ) -> Invoice:
        """
        Record a processor-confirmed payment.

        Idempotent on the processor reference: a replayed confirmation finds
        the completed payment and changes nothing.

        Raises:
            NotFound: No invoice with this id
        """
        invoice = await self.invoice_repo.get_for_update(invoice_id)
        if not invoice:
            raise NotFound("Invoice not found", {"invoice_id": str(invoice_id)})

        existing = await self.payment_repo.get_by_external_reference(reference)
        if existing and existing.status == PaymentStatus.COMPLETED:
            logger.info(
                "Duplicate payment confirmation ignored",
                extra={"invoice_id": str(invoice_id), "reference": reference},
            )
            return invoice

        if invoice.status == InvoiceStatus.PAID:
            logger.warning(
                "Payment confirmation for an invoice that is already paid",
                extra={"invoice_id": str(invoice_id), "reference": reference},
            )
            return invoice

        amount = from_minor_units(amount_minor) if amount_minor is not None else None
        if amount_minor is not None and amount_minor != to_minor_units(invoice.total):
            logger.warning(
                "Processor amount differs from invoice total",
                extra={
                    "invoice_id": str(invoice_id),
                    "amount_minor": amount_minor,
                    "expected_minor": to_minor_units(invoice.total),
                },
            )

        await self._mark_paid(invoice, PaymentMethod.CARD, reference, amount, currency, destination_account)
        await self.session.commit()
        return invoice

    async def record_failed_payment(
        self,
        invoice_id: UUID,
        reference: str,
        amount_minor: Optional[int] = None,
        currency: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Record a failed collection attempt. The invoice status is unchanged."""
        invoice = await self.invoice_repo.get(invoice_id)
        if not invoice:
            raise NotFound("Invoice not found", {"invoice_id": str(invoice_id)})

        if await self.payment_repo.get_by_external_reference(reference):
            return

        await self.payment_repo.create(
            invoice_id=invoice.id,
            amount=from_minor_units(amount_minor) if amount_minor is not None else invoice.total,
            currency=(currency or invoice.currency).lower(),
            method=PaymentMethod.CARD,
            external_reference=reference,
            status=PaymentStatus.FAILED,
        )
        await self.session.commit()
        logger.info(
            "Failed payment recorded",
            extra={"invoice_id": str(invoice_id), "reference": reference, "reason": reason},
        )

    async def attach_payment_reference(self, invoice: Invoice, reference: str) -> None:
        """Store the payable reference on an invoice, replacing any previous one."""
        invoice.payment_reference = reference
        await self.session.flush()

    async def mark_overdue(self, as_of: Optional[date] = None) -> int:
        """Move sent invoices whose due date has passed to overdue."""
        as_of = as_of or date.today()
        count = await self.invoice_repo.mark_overdue(as_of)
        await self.session.commit()
        logger.info("Overdue sweep finished", extra={"as_of": as_of.isoformat(), "updated": count})
        return count

    # Delivery

    async def send_invoice(
        self,
        user: User,
        invoice_id: UUID,
        send_data: InvoiceSendRequest,
    ) -> InvoiceSendResponse:
        """
        Email an invoice to its client.

        A payable reference is created first when the processor is available.
        The invoice only advances from draft to sent after the mail server
        accepted the message; a delivery failure leaves the status unchanged.
        """
        if self.notification_service is None:
            raise ServiceUnavailable("Email delivery is not configured")

        invoice = await self._get_owned(user, invoice_id)
        if invoice.status == InvoiceStatus.PAID:
            raise InvalidStatusTransition(InvoiceStatus.PAID.value, InvoiceStatus.SENT.value)

        if not invoice.payment_reference and self.payment_service is not None:
            try:
                await self.payment_service.create_payable_reference(invoice)
                await self.session.commit()
            except (ExternalServiceError, ServiceUnavailable) as e:
                logger.warning(
                    "Sending invoice without a payment link",
                    extra={"invoice_id": str(invoice.id), "reason": e.message},
                )

        invoice = await self._get_owned(user, invoice_id)
        recipient = send_data.recipient_email or invoice.client.email
        message_id = await self.notification_service.send_invoice(
            invoice=invoice,
            client=invoice.client,
            sender=user,
            recipient=recipient,
            subject=send_data.subject,
            message=send_data.message,
        )

        copy_sent = False
        if send_data.send_copy:
            try:
                await self.notification_service.send_invoice(
                    invoice=invoice,
                    client=invoice.client,
                    sender=user,
                    recipient=user.email,
                    subject=f"Copy: Invoice {invoice.invoice_number} sent to {invoice.client.name}",
                    message=send_data.message,
                )
                copy_sent = True
            except ExternalServiceError as e:
                logger.warning(
                    "Sender copy was not delivered",
                    extra={"invoice_id": str(invoice.id), "reason": e.message},
                )

        invoice.sent_at = utcnow()
        if invoice.status == InvoiceStatus.DRAFT:
            invoice.status = InvoiceStatus.SENT
        await self.session.commit()

        logger.info(
            "Invoice sent",
            extra={"invoice_id": str(invoice.id), "recipient": recipient, "message_id": message_id},
        )
        return InvoiceSendResponse(
            invoice=await self.get_invoice(user, invoice.id),
            message_id=message_id,
            copy_sent=copy_sent,
        )

    def _to_response(self, invoice: Invoice) -> InvoiceResponse:
        """Convert invoice model to response schema."""
        return InvoiceResponse(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            client_id=invoice.client_id,
            client_name=invoice.client.name if invoice.client else None,
            client_email=invoice.client.email if invoice.client else None,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            status=invoice.status,
            currency=invoice.currency,
            subtotal=invoice.subtotal,
            tax_rate=invoice.tax_rate,
            tax_amount=invoice.tax_amount,
            total=invoice.total,
            notes=invoice.notes,
            payment_reference=invoice.payment_reference,
            sent_at=invoice.sent_at,
            paid_at=invoice.paid_at,
            payout_id=invoice.payout_id,
            created_at=invoice.created_at,
            line_items=[InvoiceLineItemResponse.model_validate(item) for item in invoice.line_items],
        )
