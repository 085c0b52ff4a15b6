"""
Invoice repository for database operations.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Dict, Iterable
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.orm import selectinload

from app.db.repositories.base_repository import BaseRepository
from app.models.invoice import Invoice, InvoiceStatus


class InvoiceRepository(BaseRepository[Invoice]):
    """Repository for invoice operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Invoice, session)

    def _with_relationships(self):
        return (
            select(Invoice)
            .options(
                selectinload(Invoice.line_items),
                selectinload(Invoice.client),
            )
            .execution_options(populate_existing=True)
        )

    async def get(self, id: UUID) -> Optional[Invoice]:
        """Get invoice by ID with line items and client loaded."""
        result = await self.session.execute(
            self._with_relationships().where(Invoice.id == id)
        )
        return result.scalar_one_or_none()

    async def get_with_owner(self, id: UUID) -> Optional[Invoice]:
        """Get invoice by ID with line items, client and issuing user loaded."""
        result = await self.session.execute(
            self._with_relationships()
            .options(selectinload(Invoice.user))
            .where(Invoice.id == id)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, id: UUID) -> Optional[Invoice]:
        """Get invoice by ID, locking the row until the transaction ends."""
        result = await self.session.execute(
            select(Invoice).where(Invoice.id == id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def get_for_user(self, invoice_id: UUID, user_id: UUID) -> Optional[Invoice]:
        """Get an invoice owned by the given user."""
        result = await self.session.execute(
            self._with_relationships().where(
                Invoice.id == invoice_id,
                Invoice.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: UUID,
        status: Optional[InvoiceStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Invoice]:
        """List a user's invoices, newest first."""
        query = self._with_relationships().where(Invoice.user_id == user_id)
        if status is not None:
            query = query.where(Invoice.status == status)
        query = query.order_by(Invoice.created_at.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_for_user(self, user_id: UUID, status: Optional[InvoiceStatus] = None) -> int:
        """Count a user's invoices, optionally by status."""
        query = select(func.count(Invoice.id)).where(Invoice.user_id == user_id)
        if status is not None:
            query = query.where(Invoice.status == status)
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def totals_by_status(self, user_id: UUID) -> Dict[InvoiceStatus, Dict[str, object]]:
        """Invoice count and summed total per status for one user."""
        result = await self.session.execute(
            select(Invoice.status, func.count(Invoice.id), func.sum(Invoice.total))
            .where(Invoice.user_id == user_id)
            .group_by(Invoice.status)
        )
        totals = {}
        for status, count, total in result.all():
            totals[InvoiceStatus(status)] = {
                "count": count,
                "total": Decimal(str(total)) if total is not None else Decimal("0"),
            }
        return totals

    async def list_paid_totals(self, user_id: UUID, currency: Optional[str] = None) -> List[Decimal]:
        """Totals of every paid invoice of a user, optionally in one currency."""
        query = select(Invoice.total).where(
            Invoice.user_id == user_id,
            Invoice.status == InvoiceStatus.PAID,
        )
        if currency:
            query = query.where(Invoice.currency == currency)
        result = await self.session.execute(query)
        return [Decimal(str(total)) for total in result.scalars().all()]

    async def mark_overdue(self, as_of: date) -> int:
        """Move sent invoices past their due date to overdue. Returns rows changed."""
        result = await self.session.execute(
            update(Invoice)
            .where(Invoice.status == InvoiceStatus.SENT, Invoice.due_date < as_of)
            .values(status=InvoiceStatus.OVERDUE)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()
        return result.rowcount

    async def list_undisbursed_paid(self, user_id: UUID, as_of: datetime) -> List[Invoice]:
        """Paid invoices of a user that no payout covers and no destination charge settled."""
        result = await self.session.execute(
            select(Invoice)
            .where(
                Invoice.user_id == user_id,
                Invoice.status == InvoiceStatus.PAID,
                Invoice.payout_id.is_(None),
                Invoice.settled_to_destination.is_(False),
                Invoice.paid_at <= as_of,
            )
            .order_by(Invoice.paid_at)
        )
        return list(result.scalars().all())

    async def tag_with_payout(self, invoice_ids: Iterable[UUID], payout_id: UUID) -> int:
        """Attach a payout to invoices not yet covered by one. Returns rows changed."""
        ids = list(invoice_ids)
        if not ids:
            return 0
        result = await self.session.execute(
            update(Invoice)
            .where(Invoice.id.in_(ids), Invoice.payout_id.is_(None))
            .values(payout_id=payout_id)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()
        return result.rowcount
