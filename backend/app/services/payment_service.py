"""
Payment service.
Creates payable references for invoices and turns verified processor events
into invoice outcomes.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.config import settings
from app.core.exceptions import NotFound, ServiceUnavailable, ValidationFailed, WebhookSignatureError
from app.core.integrations.observability import record_audit_event
from app.core.integrations.payments.base import (
    EventOutcome,
    PayableReference,
    PaymentGateway,
    ProcessorEvent,
)
from app.services.base_service import BaseService
from app.services.invoice_service import InvoiceService
from app.services.user_service import UserService
from app.db.repositories.invoice_repository import InvoiceRepository
from app.db.repositories.payout_destination_repository import PayoutDestinationRepository
from app.models.invoice import Invoice, InvoiceStatus
from app.models.user import User, PlanTier
from app.schemas.invoice import PaymentLinkResponse
from app.schemas.payment import FeeBreakdown, WebhookAck
from app.utils.money import from_minor_units, split_fee, to_minor_units

logger = logging.getLogger(__name__)


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


class PaymentService(BaseService):
    """Service for payment collection."""

    def __init__(self, session: AsyncSession, gateway: Optional[PaymentGateway]):
        self.session = session
        self.gateway = gateway
        self.invoice_repo = InvoiceRepository(session)
        self.destination_repo = PayoutDestinationRepository(session)
        self.invoice_service = InvoiceService(session)
        self.user_service = UserService(session)

    def _require_gateway(self) -> PaymentGateway:
        if self.gateway is None:
            raise ServiceUnavailable("Payment processing is not configured")
        return self.gateway

    def fee_breakdown(self, amount: Decimal) -> FeeBreakdown:
        """Quote the platform fee on an amount."""
        split = split_fee(to_minor_units(amount), settings.PLATFORM_FEE_PERCENT)
        return FeeBreakdown(
            amount=from_minor_units(split.amount_minor),
            platform_fee=from_minor_units(split.platform_fee_minor),
            destination_amount=from_minor_units(split.destination_amount_minor),
            fee_percent=settings.PLATFORM_FEE_PERCENT,
        )

    async def create_payable_reference(self, invoice: Invoice) -> PayableReference:
        """
        Mint a payable reference for the invoice total and store it on the invoice.

        Funds are routed to the owner's connected account only once onboarding
        is complete; otherwise the platform collects the full amount.
        """
        gateway = self._require_gateway()

        destination = await self.destination_repo.get_by_user(invoice.user_id)
        destination_account = None
        if destination and destination.onboarding_complete:
            destination_account = destination.processor_account_id

        reference = await gateway.create_payable_reference(
            invoice_id=str(invoice.id),
            amount_minor=to_minor_units(invoice.total),
            currency=invoice.currency,
            description=f"Invoice {invoice.invoice_number}",
            destination_account=destination_account,
            metadata={
                "user_id": str(invoice.user_id),
                "invoice_number": invoice.invoice_number,
            },
        )
        await self.invoice_service.attach_payment_reference(invoice, reference.url)

        logger.info(
            "Payable reference created",
            extra={
                "invoice_id": str(invoice.id),
                "reference_id": reference.reference_id,
                "amount_minor": reference.amount_minor,
                "platform_fee_minor": reference.platform_fee_minor,
                "connected": destination_account is not None,
            },
        )
        return reference

    def _to_link_response(self, reference: PayableReference) -> PaymentLinkResponse:
        return PaymentLinkResponse(
            payment_url=reference.url,
            amount=from_minor_units(reference.amount_minor),
            platform_fee=from_minor_units(reference.platform_fee_minor),
            destination_amount=from_minor_units(reference.destination_amount_minor),
        )

    async def _create_link(self, invoice: Optional[Invoice]) -> PaymentLinkResponse:
        if not invoice:
            raise NotFound("Invoice not found")
        if invoice.status == InvoiceStatus.PAID:
            raise ValidationFailed("Invoice is already paid")

        reference = await self.create_payable_reference(invoice)
        await self.session.commit()
        return self._to_link_response(reference)

    async def create_payment_link(self, user: User, invoice_id: UUID) -> PaymentLinkResponse:
        """Payable reference for one of the caller's invoices."""
        return await self._create_link(await self.invoice_repo.get_for_user(invoice_id, user.id))

    async def create_public_payment(self, invoice_id: UUID) -> PaymentLinkResponse:
        """Payable reference requested by the invoice recipient."""
        return await self._create_link(await self.invoice_repo.get(invoice_id))

    async def handle_processor_event(self, payload: bytes, signature: Optional[str]) -> WebhookAck:
        """
        Verify an inbound processor event and apply it.

        Events that cannot be matched to local records are logged and
        acknowledged so the processor stops redelivering them.

        Raises:
            WebhookSignatureError: Signature missing or invalid; nothing is applied
        """
        gateway = self._require_gateway()
        try:
            event = gateway.parse_event(payload, signature)
        except WebhookSignatureError as e:
            record_audit_event("webhook.rejected", {"reason": e.message})
            raise

        logger.info(
            "Processor event received",
            extra={"event_id": event.event_id, "type": event.type, "outcome": event.outcome.value},
        )

        if event.outcome == EventOutcome.PAID:
            await self._apply_paid(event)
        elif event.outcome == EventOutcome.FAILED:
            await self._apply_failed(event)
        elif event.outcome == EventOutcome.SUBSCRIPTION_ACTIVATED:
            await self._apply_subscription(event)
        elif event.outcome == EventOutcome.SUBSCRIPTION_CANCELED:
            customer_id = event.data.get("customer_id")
            if customer_id:
                await self.user_service.downgrade_by_customer(customer_id)
        else:
            logger.info("Unhandled processor event", extra={"event_id": event.event_id, "type": event.type})

        return WebhookAck(event_id=event.event_id, outcome=event.outcome.value)

    async def _apply_paid(self, event: ProcessorEvent) -> None:
        invoice_id = _parse_uuid(event.invoice_id)
        if invoice_id is None or not event.reference:
            logger.warning(
                "Payment event without an invoice reference",
                extra={"event_id": event.event_id, "invoice_id": event.invoice_id},
            )
            return
        try:
            await self.invoice_service.mark_paid_from_processor(
                invoice_id,
                event.reference,
                event.amount_minor,
                event.currency,
                event.destination_account,
            )
        except NotFound:
            logger.warning(
                "Payment event for unknown invoice",
                extra={"event_id": event.event_id, "invoice_id": str(invoice_id)},
            )

    async def _apply_failed(self, event: ProcessorEvent) -> None:
        invoice_id = _parse_uuid(event.invoice_id)
        if invoice_id is None or not event.reference:
            logger.warning("Payment failure event without an invoice reference", extra={"event_id": event.event_id})
            return
        try:
            await self.invoice_service.record_failed_payment(
                invoice_id,
                event.reference,
                event.amount_minor,
                event.currency,
                event.data.get("failure_message"),
            )
        except NotFound:
            logger.warning(
                "Payment failure event for unknown invoice",
                extra={"event_id": event.event_id, "invoice_id": str(invoice_id)},
            )

    async def _apply_subscription(self, event: ProcessorEvent) -> None:
        user_id = _parse_uuid(event.data.get("user_id"))
        try:
            plan = PlanTier(event.data.get("plan"))
        except ValueError:
            plan = None
        if user_id is None or plan is None:
            logger.warning(
                "Subscription event without user or plan",
                extra={"event_id": event.event_id, "data": event.data},
            )
            return
        await self.user_service.apply_plan(user_id, plan, event.data.get("customer_id"))
