"""
Payout destination repository for database operations.
"""

from typing import Optional, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.repositories.base_repository import BaseRepository
from app.models.payout import PayoutDestination


class PayoutDestinationRepository(BaseRepository[PayoutDestination]):
    """Repository for payout destination operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(PayoutDestination, session)

    async def get_by_user(self, user_id: UUID, for_update: bool = False) -> Optional[PayoutDestination]:
        """Get a user's destination, optionally locking the row."""
        query = select(PayoutDestination).where(PayoutDestination.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_payouts_enabled(self) -> List[PayoutDestination]:
        """Destinations the processor currently allows transfers to."""
        result = await self.session.execute(
            select(PayoutDestination)
            .where(PayoutDestination.payouts_enabled.is_(True))
            .order_by(PayoutDestination.created_at)
        )
        return list(result.scalars().all())
