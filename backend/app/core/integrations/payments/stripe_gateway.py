"""
Stripe Connect implementation of the payment gateway.

The SDK is synchronous, so every call runs in a worker thread under a
timeout. The API key is passed per call rather than set on the module.
"""

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Optional
import logging

import stripe

from app.core.exceptions import PaymentProcessorError, ProcessorResourceMissing, WebhookSignatureError
from app.core.integrations.payments.base import (
    AccountStatus,
    EventOutcome,
    PayableReference,
    PaymentGateway,
    ProcessorEvent,
    TransferResult,
)
from app.utils.money import split_fee

logger = logging.getLogger(__name__)


class StripeGateway(PaymentGateway):
    """Payment gateway backed by Stripe Checkout, Transfers and Express accounts."""

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        fee_percent: Decimal,
        frontend_url: str,
        plan_prices_minor: Dict[str, int],
        timeout: float = 15.0,
        webhook_tolerance: int = 300,
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.fee_percent = fee_percent
        self.frontend_url = frontend_url.rstrip("/")
        self.plan_prices_minor = plan_prices_minor
        self.timeout = timeout
        self.webhook_tolerance = webhook_tolerance

    async def _call(self, operation: str, func: Callable[..., Any], **params: Any) -> Any:
        """Run a blocking SDK call in a thread, mapping failures to PaymentProcessorError."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, api_key=self.api_key, **params),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Stripe call timed out", extra={"operation": operation, "timeout": self.timeout})
            raise PaymentProcessorError(f"Payment processor timed out during {operation}", details="timeout")
        except stripe.InvalidRequestError as e:
            if e.code != "resource_missing":
                raise self._rejected(operation, e)
            logger.warning("Stripe object not found", extra={"operation": operation, "error": str(e)})
            raise ProcessorResourceMissing(f"Payment processor has no object for {operation}", details=str(e))
        except stripe.StripeError as e:
            raise self._rejected(operation, e)

    @staticmethod
    def _rejected(operation: str, e: Exception) -> PaymentProcessorError:
        logger.error(
            "Stripe call failed",
            extra={"operation": operation, "error": str(e), "code": getattr(e, "code", None)},
        )
        return PaymentProcessorError(
            f"Payment processor rejected {operation}",
            details=getattr(e, "user_message", None) or str(e),
        )

    async def create_payable_reference(
        self,
        invoice_id: str,
        amount_minor: int,
        currency: str,
        description: str,
        destination_account: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PayableReference:
        if destination_account:
            split = split_fee(amount_minor, self.fee_percent)
        else:
            split = split_fee(amount_minor, 0)

        session_metadata = {"invoice_id": invoice_id, **(metadata or {})}
        if destination_account:
            session_metadata["destination_account"] = destination_account
        payment_intent_data: Dict[str, Any] = {"metadata": session_metadata}
        if destination_account:
            payment_intent_data["application_fee_amount"] = split.platform_fee_minor
            payment_intent_data["transfer_data"] = {"destination": destination_account}

        session = await self._call(
            "checkout session creation",
            stripe.checkout.Session.create,
            mode="payment",
            payment_method_types=["card"],
            line_items=[{
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": description},
                    "unit_amount": amount_minor,
                },
                "quantity": 1,
            }],
            payment_intent_data=payment_intent_data,
            metadata=session_metadata,
            success_url=f"{self.frontend_url}/pay/{invoice_id}?status=success",
            cancel_url=f"{self.frontend_url}/pay/{invoice_id}?status=cancelled",
            idempotency_key=f"invoice-{invoice_id}-{amount_minor}-{destination_account or 'platform'}",
        )

        return PayableReference(
            reference_id=session.id,
            url=session.url,
            amount_minor=split.amount_minor,
            platform_fee_minor=split.platform_fee_minor,
            destination_amount_minor=split.destination_amount_minor,
        )

    def parse_event(self, payload: bytes, signature_header: Optional[str]) -> ProcessorEvent:
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        if not signature_header:
            raise WebhookSignatureError("Missing signature header")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body,
                signature_header,
                self.webhook_secret,
                tolerance=self.webhook_tolerance,
            )
            event = json.loads(body)
        except UnicodeDecodeError:
            raise WebhookSignatureError("Payload is not valid UTF-8")
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(f"Invalid webhook signature: {e}")
        except json.JSONDecodeError:
            raise WebhookSignatureError("Payload is not valid JSON")

        return self._to_processor_event(event)

    def _to_processor_event(self, event: Dict[str, Any]) -> ProcessorEvent:
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}
        metadata = obj.get("metadata") or {}
        common = {"event_id": event.get("id", ""), "type": event_type}

        if event_type == "payment_intent.succeeded":
            return ProcessorEvent(
                outcome=EventOutcome.PAID,
                invoice_id=metadata.get("invoice_id"),
                reference=obj.get("id"),
                amount_minor=obj.get("amount_received", obj.get("amount")),
                currency=obj.get("currency"),
                destination_account=(
                    (obj.get("transfer_data") or {}).get("destination")
                    or metadata.get("destination_account")
                ),
                **common,
            )

        if event_type == "payment_intent.payment_failed":
            error = obj.get("last_payment_error") or {}
            return ProcessorEvent(
                outcome=EventOutcome.FAILED,
                invoice_id=metadata.get("invoice_id"),
                reference=obj.get("id"),
                amount_minor=obj.get("amount"),
                currency=obj.get("currency"),
                data={"failure_message": error.get("message")},
                **common,
            )

        if event_type == "checkout.session.completed":
            if obj.get("mode") == "subscription":
                return ProcessorEvent(
                    outcome=EventOutcome.SUBSCRIPTION_ACTIVATED,
                    reference=obj.get("subscription"),
                    data={
                        "user_id": metadata.get("user_id"),
                        "plan": metadata.get("plan"),
                        "customer_id": obj.get("customer"),
                    },
                    **common,
                )
            if obj.get("payment_status") == "paid":
                return ProcessorEvent(
                    outcome=EventOutcome.PAID,
                    invoice_id=metadata.get("invoice_id"),
                    # Same id as the payment_intent.succeeded event, so both dedupe
                    reference=obj.get("payment_intent") or obj.get("id"),
                    amount_minor=obj.get("amount_total"),
                    currency=obj.get("currency"),
                    destination_account=metadata.get("destination_account"),
                    **common,
                )

        if event_type == "customer.subscription.deleted":
            return ProcessorEvent(
                outcome=EventOutcome.SUBSCRIPTION_CANCELED,
                reference=obj.get("id"),
                data={"customer_id": obj.get("customer")},
                **common,
            )

        return ProcessorEvent(outcome=EventOutcome.IGNORED, **common)

    async def create_transfer(
        self,
        amount_minor: int,
        currency: str,
        destination_account: str,
        description: str,
        idempotency_key: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> TransferResult:
        transfer = await self._call(
            "transfer",
            stripe.Transfer.create,
            amount=amount_minor,
            currency=currency,
            destination=destination_account,
            description=description,
            metadata=metadata or {},
            idempotency_key=idempotency_key,
        )
        # Transfers land in the connected balance; no arrival date is reported
        return TransferResult(transfer_id=transfer.id)

    async def create_connected_account(self, email: str, metadata: Optional[Dict[str, str]] = None) -> str:
        account = await self._call(
            "account creation",
            stripe.Account.create,
            type="express",
            email=email,
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            metadata={"platform": "quickbill_pro", **(metadata or {})},
        )
        return account.id

    async def retrieve_account(self, account_id: str) -> AccountStatus:
        account = await self._call("account lookup", stripe.Account.retrieve, id=account_id)
        requirements = account.get("requirements") or {}
        return AccountStatus(
            account_id=account.id,
            details_submitted=bool(account.get("details_submitted")),
            charges_enabled=bool(account.get("charges_enabled")),
            payouts_enabled=bool(account.get("payouts_enabled")),
            requirements={
                "currently_due": list(requirements.get("currently_due") or []),
                "disabled_reason": requirements.get("disabled_reason"),
            },
        )

    async def create_onboarding_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        link = await self._call(
            "onboarding link",
            stripe.AccountLink.create,
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
        return link.url

    async def create_subscription_checkout(
        self,
        user_id: str,
        email: str,
        plan: str,
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
    ) -> str:
        unit_amount = self.plan_prices_minor.get(plan)
        if unit_amount is None:
            raise PaymentProcessorError(f"No price configured for plan '{plan}'", retryable=False)

        params: Dict[str, Any] = {
            "mode": "subscription",
            "payment_method_types": ["card"],
            "line_items": [{
                "price_data": {
                    "currency": "usd",
                    "product_data": {"name": f"QuickBill Pro - {plan.capitalize()} Plan"},
                    "unit_amount": unit_amount,
                    "recurring": {"interval": "month"},
                },
                "quantity": 1,
            }],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {"user_id": user_id, "plan": plan},
            "idempotency_key": f"subscribe-{user_id}-{plan}-{datetime.now(timezone.utc):%Y%m%d%H}",
        }
        if customer_id:
            params["customer"] = customer_id
        else:
            params["customer_email"] = email

        session = await self._call("subscription checkout", stripe.checkout.Session.create, **params)
        return session.url
