"""
Payout service.

Disbursement is tracked per invoice: an invoice is covered once its payout_id
is set, and the batch only ever sums invoices without one. Running the batch
twice in a row therefore pays nothing the second time. Invoices paid as
destination charges were credited to the connected account at collection
and never enter a batch.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.config import settings
from app.core.exceptions import ServiceUnavailable
from app.core.integrations.observability import record_audit_event
from app.core.integrations.payments.base import PaymentGateway
from app.services.base_service import BaseService
from app.db.repositories.invoice_repository import InvoiceRepository
from app.db.repositories.payout_destination_repository import PayoutDestinationRepository
from app.db.repositories.payout_repository import PayoutRepository
from app.models.invoice import Invoice
from app.models.payout import PayoutStatus
from app.models.user import User
from app.schemas.payout import (
    PayoutBatchResultResponse,
    PayoutFailure,
    PayoutResponse,
    PayoutSummaryResponse,
)
from app.utils.money import from_minor_units, split_fee, to_minor_units

logger = logging.getLogger(__name__)


class PayoutConflict(Exception):
    """Another run covered some of the invoices first."""


@dataclass
class PendingBatch:
    """Undisbursed invoices of one user in one currency."""
    currency: str
    invoice_ids: List[UUID]
    amount_minor: int


@dataclass
class PayoutBatchResult:
    """Counters for one batch run. Each transfer counts once."""
    processed_count: int = 0
    # Default currency only; totals_by_currency covers every currency paid
    total_amount: Decimal = Decimal("0.00")
    totals_by_currency: Dict[str, Decimal] = field(default_factory=dict)
    skipped_count: int = 0
    failed_count: int = 0
    failures: List[PayoutFailure] = field(default_factory=list)

    def add_payout(self, currency: str, amount: Decimal) -> None:
        self.processed_count += 1
        self.totals_by_currency[currency] = self.totals_by_currency.get(currency, Decimal("0.00")) + amount
        if currency == settings.DEFAULT_CURRENCY:
            self.total_amount += amount

    def add_failure(self, user_id: UUID, error: Exception, currency: Optional[str] = None) -> None:
        self.failed_count += 1
        self.failures.append(PayoutFailure(user_id=user_id, currency=currency, error=str(error)))

    def to_response(self) -> PayoutBatchResultResponse:
        return PayoutBatchResultResponse(
            processed_count=self.processed_count,
            total_amount=self.total_amount,
            totals_by_currency=self.totals_by_currency,
            skipped_count=self.skipped_count,
            failed_count=self.failed_count,
            failures=self.failures,
        )


def payout_idempotency_key(invoice_ids: List[UUID]) -> str:
    """Same invoice set, same key: a retried transfer is never duplicated."""
    digest = hashlib.sha256(",".join(sorted(str(i) for i in invoice_ids)).encode()).hexdigest()
    return f"payout-{digest[:40]}"


class PayoutService(BaseService):
    """Service for payouts to connected accounts."""

    def __init__(self, session: AsyncSession, gateway: Optional[PaymentGateway] = None):
        self.session = session
        self.gateway = gateway
        self.invoice_repo = InvoiceRepository(session)
        self.destination_repo = PayoutDestinationRepository(session)
        self.payout_repo = PayoutRepository(session)

    def destination_share_minor(self, invoice: Invoice) -> int:
        """What the user receives for one invoice, using the collection-time fee split."""
        return split_fee(to_minor_units(invoice.total), settings.PLATFORM_FEE_PERCENT).destination_amount_minor

    async def pending_batches(self, user_id: UUID, as_of: datetime) -> List[PendingBatch]:
        """Undisbursed balance of a user, one batch per currency, oldest currency first."""
        grouped: Dict[str, PendingBatch] = {}
        for invoice in await self.invoice_repo.list_undisbursed_paid(user_id, as_of):
            batch = grouped.setdefault(invoice.currency, PendingBatch(invoice.currency, [], 0))
            batch.invoice_ids.append(invoice.id)
            batch.amount_minor += self.destination_share_minor(invoice)
        return list(grouped.values())

    async def run_payout_batch(self, as_of: Optional[datetime] = None) -> PayoutBatchResult:
        """
        Transfer each connected user's undisbursed, fee-adjusted balance.

        A user with paid invoices in several currencies gets one transfer per
        currency, and the minimum applies to each currency separately. Every
        transfer runs in its own transaction: a failure is rolled back and
        reported, and the batch moves on.
        """
        if self.gateway is None:
            raise ServiceUnavailable("Payment processing is not configured")

        as_of = as_of or datetime.now(timezone.utc)
        minimum_minor = to_minor_units(settings.PAYOUT_MINIMUM)
        result = PayoutBatchResult()

        destinations = [
            (d.id, d.user_id, d.processor_account_id)
            for d in await self.destination_repo.list_payouts_enabled()
        ]
        logger.info(
            "Starting payout batch",
            extra={"as_of": as_of.isoformat(), "eligible_destinations": len(destinations)},
        )

        for destination_id, user_id, account_id in destinations:
            try:
                batches = await self.pending_batches(user_id, as_of)
            except Exception as e:
                await self.session.rollback()
                logger.exception("Payout failed for user", extra={"user_id": str(user_id)})
                result.add_failure(user_id, e)
                continue

            if not batches:
                result.skipped_count += 1
                continue

            for batch in batches:
                if batch.amount_minor < minimum_minor:
                    logger.info(
                        "Skipping payout: balance below minimum",
                        extra={
                            "user_id": str(user_id),
                            "currency": batch.currency,
                            "pending_minor": batch.amount_minor,
                        },
                    )
                    result.skipped_count += 1
                    continue

                try:
                    amount = await self._disburse(destination_id, user_id, account_id, batch)
                except Exception as e:
                    await self.session.rollback()
                    logger.exception(
                        "Payout failed for user",
                        extra={"user_id": str(user_id), "currency": batch.currency},
                    )
                    result.add_failure(user_id, e, batch.currency)
                    continue
                result.add_payout(batch.currency, amount)

        logger.info(
            "Payout batch finished",
            extra={
                "processed": result.processed_count,
                "skipped": result.skipped_count,
                "failed": result.failed_count,
                "totals": {currency: str(total) for currency, total in result.totals_by_currency.items()},
            },
        )
        return result

    async def _disburse(
        self,
        destination_id: UUID,
        user_id: UUID,
        account_id: str,
        batch: PendingBatch,
    ) -> Decimal:
        """Transfer one batch, record the payout and cover its invoices. Commits."""
        invoice_ids = batch.invoice_ids
        transfer = await self.gateway.create_transfer(
            amount_minor=batch.amount_minor,
            currency=batch.currency,
            destination_account=account_id,
            description=f"Payout for {len(invoice_ids)} paid invoice(s)",
            idempotency_key=payout_idempotency_key(invoice_ids),
            metadata={
                "user_id": str(user_id),
                "invoice_count": str(len(invoice_ids)),
                "currency": batch.currency,
            },
        )

        amount = from_minor_units(batch.amount_minor)
        arrival_date = transfer.arrival_date or (
            datetime.now(timezone.utc).date() + timedelta(days=settings.PAYOUT_ARRIVAL_DAYS)
        )
        payout = await self.payout_repo.create(
            user_id=user_id,
            destination_id=destination_id,
            processor_transfer_id=transfer.transfer_id,
            amount=amount,
            currency=batch.currency,
            status=PayoutStatus.COMPLETED,
            arrival_date=arrival_date,
        )
        tagged = await self.invoice_repo.tag_with_payout(invoice_ids, payout.id)
        if tagged != len(invoice_ids):
            raise PayoutConflict(
                f"Expected to cover {len(invoice_ids)} invoices, covered {tagged}"
            )

        await self.session.commit()

        record_audit_event(
            "payout.completed",
            {
                "user_id": str(user_id),
                "payout_id": str(payout.id),
                "transfer_id": transfer.transfer_id,
                "amount": str(amount),
                "currency": batch.currency,
                "invoice_count": len(invoice_ids),
            },
        )
        return amount

    async def get_payout_summary(self, user: User) -> PayoutSummaryResponse:
        """Pending balance, totals and recent payouts for a user."""
        currency = settings.DEFAULT_CURRENCY
        destination = await self.destination_repo.get_by_user(user.id)
        pending_by_currency = {
            batch.currency: from_minor_units(batch.amount_minor)
            for batch in await self.pending_batches(user.id, datetime.now(timezone.utc))
        }

        fees_minor = sum(
            split_fee(to_minor_units(total), settings.PLATFORM_FEE_PERCENT).platform_fee_minor
            for total in await self.invoice_repo.list_paid_totals(user.id, currency)
        )
        payouts = await self.payout_repo.list_for_user(user.id)

        return PayoutSummaryResponse(
            currency=currency,
            pending_balance=pending_by_currency.get(currency, Decimal("0.00")),
            pending_by_currency=pending_by_currency,
            total_paid_out=await self.payout_repo.total_paid_out(user.id, currency),
            platform_fees=from_minor_units(fees_minor),
            payouts_enabled=bool(destination and destination.payouts_enabled),
            recent_payouts=[PayoutResponse.model_validate(p) for p in payouts],
        )
