"""
Payment collection tests: payable references and processor events.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from app.core.exceptions import ServiceUnavailable, ValidationFailed, WebhookSignatureError
from app.core.integrations.payments.base import EventOutcome, ProcessorEvent
from app.models.invoice import InvoiceStatus
from app.models.payment import Payment, PaymentStatus
from app.models.payout import DestinationStatus, PayoutDestination
from app.models.user import PlanTier
from app.services.invoice_service import InvoiceService
from app.services.payment_service import PaymentService
from conftest import invoice_payload


async def add_destination(session, user, onboarded: bool = True) -> PayoutDestination:
    destination = PayoutDestination(
        user_id=user.id,
        processor_account_id=f"acct_{uuid4().hex[:8]}",
        account_status=DestinationStatus.ACTIVE if onboarded else DestinationStatus.PENDING,
        details_submitted=onboarded,
        charges_enabled=onboarded,
        payouts_enabled=onboarded,
    )
    session.add(destination)
    await session.commit()
    return destination


def paid_event(invoice_id, reference="pi_1", amount_minor=13750, destination_account=None) -> ProcessorEvent:
    return ProcessorEvent(
        event_id=f"evt_{uuid4().hex[:8]}",
        type="payment_intent.succeeded",
        outcome=EventOutcome.PAID,
        invoice_id=str(invoice_id),
        reference=reference,
        amount_minor=amount_minor,
        currency="usd",
        destination_account=destination_account,
    )


@pytest.mark.asyncio
async def test_payment_link_without_destination_keeps_full_amount(test_db_session, user, gateway):
    invoice = await InvoiceService(test_db_session).create_invoice(user, invoice_payload())
    service = PaymentService(test_db_session, gateway)

    link = await service.create_payment_link(user, invoice.id)

    assert link.amount == Decimal("137.50")
    assert link.platform_fee == Decimal("0.00")
    assert gateway.references[0]["destination_account"] is None
    assert gateway.references[0]["amount_minor"] == 13750


@pytest.mark.asyncio
async def test_payment_link_routes_to_onboarded_destination(test_db_session, user, gateway):
    destination = await add_destination(test_db_session, user)
    invoice = await InvoiceService(test_db_session).create_invoice(user, invoice_payload())
    service = PaymentService(test_db_session, gateway)

    link = await service.create_payment_link(user, invoice.id)

    assert gateway.references[0]["destination_account"] == destination.processor_account_id
    # 3% of 13750 is 412.5, rounded half up
    assert link.platform_fee == Decimal("4.13")
    assert link.destination_amount == Decimal("133.37")
    assert link.platform_fee + link.destination_amount == link.amount

    stored = await InvoiceService(test_db_session).get_invoice(user, invoice.id)
    assert stored.payment_reference == link.payment_url


@pytest.mark.asyncio
async def test_payment_link_skips_pending_destination(test_db_session, user, gateway):
    await add_destination(test_db_session, user, onboarded=False)
    invoice = await InvoiceService(test_db_session).create_invoice(user, invoice_payload())

    await PaymentService(test_db_session, gateway).create_payment_link(user, invoice.id)

    assert gateway.references[0]["destination_account"] is None


@pytest.mark.asyncio
async def test_payment_link_rejected_for_paid_invoice(test_db_session, user, gateway):
    invoice_service = InvoiceService(test_db_session)
    invoice = await invoice_service.create_invoice(user, invoice_payload())
    await invoice_service.transition_status(user, invoice.id, InvoiceStatus.PAID)

    with pytest.raises(ValidationFailed):
        await PaymentService(test_db_session, gateway).create_payment_link(user, invoice.id)
    assert gateway.references == []


@pytest.mark.asyncio
async def test_payment_link_requires_gateway(test_db_session, user):
    invoice = await InvoiceService(test_db_session).create_invoice(user, invoice_payload())

    with pytest.raises(ServiceUnavailable):
        await PaymentService(test_db_session, None).create_payment_link(user, invoice.id)


@pytest.mark.asyncio
async def test_fee_breakdown(test_db_session, gateway):
    breakdown = PaymentService(test_db_session, gateway).fee_breakdown(Decimal("100.00"))

    assert breakdown.platform_fee == Decimal("3.00")
    assert breakdown.destination_amount == Decimal("97.00")


@pytest.mark.asyncio
async def test_paid_event_marks_invoice_paid_once(test_db_session, user, gateway):
    invoice = await InvoiceService(test_db_session).create_invoice(user, invoice_payload())
    service = PaymentService(test_db_session, gateway)
    event = paid_event(invoice.id)
    gateway.events.extend([event, event])

    first = await service.handle_processor_event(b"{}", "valid")
    second = await service.handle_processor_event(b"{}", "valid")

    assert first.outcome == "paid"
    assert second.event_id == event.event_id
    payments = (await test_db_session.execute(
        select(Payment).where(Payment.invoice_id == invoice.id)
    )).scalars().all()
    assert len(payments) == 1
    assert payments[0].external_reference == "pi_1"
    assert payments[0].status == PaymentStatus.COMPLETED
    assert (await InvoiceService(test_db_session).get_invoice(user, invoice.id)).status == InvoiceStatus.PAID


@pytest.mark.asyncio
async def test_invalid_signature_changes_nothing(test_db_session, user, gateway):
    invoice = await InvoiceService(test_db_session).create_invoice(user, invoice_payload())
    gateway.events.append(paid_event(invoice.id))

    with pytest.raises(WebhookSignatureError):
        await PaymentService(test_db_session, gateway).handle_processor_event(b"{}", "forged")

    total = (await test_db_session.execute(select(func.count(Payment.id)))).scalar()
    assert total == 0
    assert (await InvoiceService(test_db_session).get_invoice(user, invoice.id)).status == InvoiceStatus.DRAFT


@pytest.mark.asyncio
async def test_event_for_unknown_invoice_is_acknowledged(test_db_session, gateway):
    gateway.events.append(paid_event(uuid4()))

    ack = await PaymentService(test_db_session, gateway).handle_processor_event(b"{}", "valid")

    assert ack.received is True
    total = (await test_db_session.execute(select(func.count(Payment.id)))).scalar()
    assert total == 0


@pytest.mark.asyncio
async def test_failed_event_records_failed_payment(test_db_session, user, gateway):
    invoice = await InvoiceService(test_db_session).create_invoice(user, invoice_payload())
    gateway.events.append(ProcessorEvent(
        event_id="evt_failed",
        type="payment_intent.payment_failed",
        outcome=EventOutcome.FAILED,
        invoice_id=str(invoice.id),
        reference="pi_failed",
        amount_minor=13750,
        currency="usd",
        data={"failure_message": "Your card was declined."},
    ))

    await PaymentService(test_db_session, gateway).handle_processor_event(b"{}", "valid")

    payment = (await test_db_session.execute(
        select(Payment).where(Payment.external_reference == "pi_failed")
    )).scalar_one()
    assert payment.status == PaymentStatus.FAILED
    assert (await InvoiceService(test_db_session).get_invoice(user, invoice.id)).status == InvoiceStatus.DRAFT


@pytest.mark.asyncio
async def test_subscription_events_change_plan(test_db_session, user, gateway):
    service = PaymentService(test_db_session, gateway)
    gateway.events.append(ProcessorEvent(
        event_id="evt_sub",
        type="checkout.session.completed",
        outcome=EventOutcome.SUBSCRIPTION_ACTIVATED,
        reference="sub_1",
        data={"user_id": str(user.id), "plan": "pro", "customer_id": "cus_1"},
    ))
    gateway.events.append(ProcessorEvent(
        event_id="evt_cancel",
        type="customer.subscription.deleted",
        outcome=EventOutcome.SUBSCRIPTION_CANCELED,
        reference="sub_1",
        data={"customer_id": "cus_1"},
    ))

    await service.handle_processor_event(b"{}", "valid")
    await test_db_session.refresh(user)
    assert user.plan == PlanTier.PRO
    assert user.max_invoices == -1
    assert user.processor_customer_id == "cus_1"

    await service.handle_processor_event(b"{}", "valid")
    await test_db_session.refresh(user)
    assert user.plan == PlanTier.FREE
    assert user.max_invoices == 3
