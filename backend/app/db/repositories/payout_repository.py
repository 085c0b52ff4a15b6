"""
Payout repository for database operations.
"""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.db.repositories.base_repository import BaseRepository
from app.models.payout import Payout, PayoutStatus


class PayoutRepository(BaseRepository[Payout]):
    """Repository for payout operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Payout, session)

    async def list_for_user(self, user_id: UUID, limit: int = 10) -> List[Payout]:
        """Most recent payouts of a user."""
        result = await self.session.execute(
            select(Payout)
            .where(Payout.user_id == user_id)
            .order_by(Payout.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def total_paid_out(self, user_id: UUID, currency: Optional[str] = None) -> Decimal:
        """Sum of completed payouts for a user, optionally in one currency."""
        query = select(func.sum(Payout.amount)).where(
            Payout.user_id == user_id,
            Payout.status == PayoutStatus.COMPLETED,
        )
        if currency:
            query = query.where(Payout.currency == currency)
        result = await self.session.execute(query)
        total = result.scalar()
        return Decimal(str(total)) if total is not None else Decimal("0")
