"""
Stripe gateway tests. SDK calls are patched; webhook signatures are real.
"""

from decimal import Decimal
from types import SimpleNamespace
import hashlib
import hmac
import json
import time

import pytest
import stripe

from app.core.exceptions import PaymentProcessorError, ProcessorResourceMissing, WebhookSignatureError
from app.core.integrations.payments.base import EventOutcome
from app.core.integrations.payments.stripe_gateway import StripeGateway

WEBHOOK_SECRET = "whsec_test_secret"


def make_gateway(**overrides) -> StripeGateway:
    params = {
        "api_key": "sk_test_123",
        "webhook_secret": WEBHOOK_SECRET,
        "fee_percent": Decimal("3"),
        "frontend_url": "https://app.quickbill.test/",
        "plan_prices_minor": {"starter": 900, "pro": 1900, "business": 3900},
        "timeout": 5,
    }
    params.update(overrides)
    return StripeGateway(**params)


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def event_payload(event_type: str, obj: dict) -> str:
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": obj}})


class FakeAccount(dict):
    @property
    def id(self):
        return self["id"]


def test_checkout_completed_is_paid_with_payment_intent_reference():
    payload = event_payload("checkout.session.completed", {
        "id": "cs_1",
        "mode": "payment",
        "payment_status": "paid",
        "payment_intent": "pi_1",
        "amount_total": 13750,
        "currency": "usd",
        "metadata": {"invoice_id": "inv-1"},
    })

    event = make_gateway().parse_event(payload.encode(), sign(payload))

    assert event.outcome == EventOutcome.PAID
    assert event.invoice_id == "inv-1"
    assert event.reference == "pi_1"
    assert event.amount_minor == 13750


def test_payment_intent_succeeded():
    payload = event_payload("payment_intent.succeeded", {
        "id": "pi_2",
        "amount": 5000,
        "amount_received": 5000,
        "currency": "usd",
        "metadata": {"invoice_id": "inv-2"},
    })

    event = make_gateway().parse_event(payload.encode(), sign(payload))

    assert event.outcome == EventOutcome.PAID
    assert event.reference == "pi_2"
    assert event.amount_minor == 5000


def test_payment_failed_carries_reason():
    payload = event_payload("payment_intent.payment_failed", {
        "id": "pi_3",
        "amount": 5000,
        "currency": "usd",
        "metadata": {"invoice_id": "inv-3"},
        "last_payment_error": {"message": "Your card was declined."},
    })

    event = make_gateway().parse_event(payload.encode(), sign(payload))

    assert event.outcome == EventOutcome.FAILED
    assert event.data["failure_message"] == "Your card was declined."


def test_destination_charge_names_the_connected_account():
    payload = event_payload("payment_intent.succeeded", {
        "id": "pi_4",
        "amount": 10000,
        "amount_received": 10000,
        "currency": "usd",
        "transfer_data": {"destination": "acct_7"},
        "metadata": {"invoice_id": "inv-4"},
    })

    event = make_gateway().parse_event(payload.encode(), sign(payload))

    assert event.destination_account == "acct_7"


def test_checkout_completed_carries_destination_from_metadata():
    payload = event_payload("checkout.session.completed", {
        "id": "cs_5",
        "mode": "payment",
        "payment_status": "paid",
        "payment_intent": "pi_5",
        "amount_total": 10000,
        "currency": "usd",
        "metadata": {"invoice_id": "inv-5", "destination_account": "acct_7"},
    })

    event = make_gateway().parse_event(payload.encode(), sign(payload))

    assert event.destination_account == "acct_7"


def test_platform_charge_has_no_destination():
    payload = event_payload("payment_intent.succeeded", {
        "id": "pi_6",
        "amount_received": 10000,
        "currency": "usd",
        "metadata": {"invoice_id": "inv-6"},
    })

    event = make_gateway().parse_event(payload.encode(), sign(payload))

    assert event.destination_account is None


def test_subscription_checkout_completed():
    payload = event_payload("checkout.session.completed", {
        "id": "cs_sub",
        "mode": "subscription",
        "subscription": "sub_1",
        "customer": "cus_1",
        "metadata": {"user_id": "user-1", "plan": "starter"},
    })

    event = make_gateway().parse_event(payload.encode(), sign(payload))

    assert event.outcome == EventOutcome.SUBSCRIPTION_ACTIVATED
    assert event.data == {"user_id": "user-1", "plan": "starter", "customer_id": "cus_1"}


def test_subscription_deleted():
    payload = event_payload("customer.subscription.deleted", {"id": "sub_1", "customer": "cus_1"})

    event = make_gateway().parse_event(payload.encode(), sign(payload))

    assert event.outcome == EventOutcome.SUBSCRIPTION_CANCELED
    assert event.data["customer_id"] == "cus_1"


def test_unknown_event_is_ignored():
    payload = event_payload("invoice.created", {"id": "in_1"})

    event = make_gateway().parse_event(payload.encode(), sign(payload))

    assert event.outcome == EventOutcome.IGNORED


@pytest.mark.parametrize(
    "header",
    [
        None,
        "",
        "t=1,v1=deadbeef",
        "garbage",
    ],
)
def test_bad_signatures_are_rejected(header):
    payload = event_payload("payment_intent.succeeded", {"id": "pi_1"})

    with pytest.raises(WebhookSignatureError):
        make_gateway().parse_event(payload.encode(), header)


def test_signature_with_wrong_secret_is_rejected():
    payload = event_payload("payment_intent.succeeded", {"id": "pi_1"})

    with pytest.raises(WebhookSignatureError):
        make_gateway().parse_event(payload.encode(), sign(payload, secret="whsec_other"))


def test_stale_signature_is_rejected():
    payload = event_payload("payment_intent.succeeded", {"id": "pi_1"})
    header = sign(payload, timestamp=int(time.time()) - 3600)

    with pytest.raises(WebhookSignatureError):
        make_gateway(webhook_tolerance=300).parse_event(payload.encode(), header)


def test_missing_webhook_secret_is_rejected():
    payload = event_payload("payment_intent.succeeded", {"id": "pi_1"})

    with pytest.raises(WebhookSignatureError):
        make_gateway(webhook_secret="").parse_event(payload.encode(), sign(payload))


@pytest.mark.asyncio
async def test_payable_reference_with_destination(monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    reference = await make_gateway().create_payable_reference(
        invoice_id="inv-1",
        amount_minor=10000,
        currency="usd",
        description="Invoice INV-001",
        destination_account="acct_1",
    )

    assert reference.url == "https://checkout.stripe.test/cs_test_1"
    assert reference.platform_fee_minor == 300
    assert reference.destination_amount_minor == 9700
    params = calls[0]
    assert params["api_key"] == "sk_test_123"
    assert params["payment_intent_data"]["application_fee_amount"] == 300
    assert params["payment_intent_data"]["transfer_data"] == {"destination": "acct_1"}
    assert params["metadata"]["invoice_id"] == "inv-1"
    assert params["metadata"]["destination_account"] == "acct_1"
    assert params["success_url"] == "https://app.quickbill.test/pay/inv-1?status=success"
    assert params["idempotency_key"] == "invoice-inv-1-10000-acct_1"


@pytest.mark.asyncio
async def test_payable_reference_without_destination(monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id="cs_test_2", url="https://checkout.stripe.test/cs_test_2")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    reference = await make_gateway().create_payable_reference("inv-2", 10000, "usd", "Invoice INV-002")

    assert reference.platform_fee_minor == 0
    assert "application_fee_amount" not in calls[0]["payment_intent_data"]
    assert "transfer_data" not in calls[0]["payment_intent_data"]
    assert "destination_account" not in calls[0]["metadata"]


@pytest.mark.asyncio
async def test_stripe_errors_become_processor_errors(monkeypatch):
    def fake_transfer(**kwargs):
        raise stripe.APIConnectionError("Network down")

    monkeypatch.setattr(stripe.Transfer, "create", fake_transfer)

    with pytest.raises(PaymentProcessorError) as exc_info:
        await make_gateway().create_transfer(1000, "usd", "acct_1", "Payout", "payout-key")

    assert exc_info.value.status_code == 502
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_transfer_passes_idempotency_key(monkeypatch):
    calls = []

    def fake_transfer(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id="tr_1")

    monkeypatch.setattr(stripe.Transfer, "create", fake_transfer)

    result = await make_gateway().create_transfer(9700, "usd", "acct_1", "Payout", "payout-abc")

    assert result.transfer_id == "tr_1"
    assert calls[0]["idempotency_key"] == "payout-abc"
    assert calls[0]["destination"] == "acct_1"


@pytest.mark.asyncio
async def test_retrieve_account(monkeypatch):
    def fake_retrieve(**kwargs):
        return FakeAccount(
            id=kwargs["id"],
            details_submitted=True,
            charges_enabled=True,
            payouts_enabled=False,
            requirements={"currently_due": ["external_account"], "disabled_reason": None},
        )

    monkeypatch.setattr(stripe.Account, "retrieve", fake_retrieve)

    status = await make_gateway().retrieve_account("acct_9")

    assert status.account_id == "acct_9"
    assert status.details_submitted is True
    assert status.payouts_enabled is False
    assert status.requirements["currently_due"] == ["external_account"]


@pytest.mark.asyncio
async def test_subscription_checkout(monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id="cs_sub", url="https://checkout.stripe.test/cs_sub")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    url = await make_gateway().create_subscription_checkout(
        "user-1", "fran@example.com", "pro", "https://app/success", "https://app/pricing"
    )

    assert url == "https://checkout.stripe.test/cs_sub"
    params = calls[0]
    assert params["mode"] == "subscription"
    assert params["line_items"][0]["price_data"]["unit_amount"] == 1900
    assert params["customer_email"] == "fran@example.com"
    assert params["metadata"] == {"user_id": "user-1", "plan": "pro"}


@pytest.mark.asyncio
async def test_subscription_checkout_unknown_plan():
    with pytest.raises(PaymentProcessorError):
        await make_gateway().create_subscription_checkout(
            "user-1", "fran@example.com", "enterprise", "https://app/success", "https://app/pricing"
        )


@pytest.mark.asyncio
async def test_missing_account_is_reported_as_missing(monkeypatch):
    def fake_retrieve(**kwargs):
        raise stripe.InvalidRequestError("No such account: 'acct_gone'", "account", code="resource_missing")

    monkeypatch.setattr(stripe.Account, "retrieve", fake_retrieve)

    with pytest.raises(ProcessorResourceMissing) as exc_info:
        await make_gateway().retrieve_account("acct_gone")

    assert exc_info.value.retryable is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        stripe.InvalidRequestError("Invalid API version", "version", code="parameter_invalid"),
        stripe.APIConnectionError("Network down"),
    ],
)
async def test_other_account_lookup_errors_are_not_missing(monkeypatch, error):
    def fake_retrieve(**kwargs):
        raise error

    monkeypatch.setattr(stripe.Account, "retrieve", fake_retrieve)

    with pytest.raises(PaymentProcessorError) as exc_info:
        await make_gateway().retrieve_account("acct_1")

    assert not isinstance(exc_info.value, ProcessorResourceMissing)
