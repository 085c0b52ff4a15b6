"""
Payment repository for database operations.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.repositories.base_repository import BaseRepository
from app.models.payment import Payment


class PaymentRepository(BaseRepository[Payment]):
    """Repository for payment operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Payment, session)

    async def get_by_external_reference(self, reference: str) -> Optional[Payment]:
        """Get payment by processor transaction id."""
        result = await self.session.execute(
            select(Payment).where(Payment.external_reference == reference)
        )
        return result.scalar_one_or_none()
