"""
User repository for database operations.
"""

from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_

from app.db.repositories.base_repository import BaseRepository
from app.models.user import User


class UserRepository(BaseRepository[User]):
    """Repository for user operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_processor_customer_id(self, customer_id: str) -> Optional[User]:
        """Get user by payment processor customer id."""
        result = await self.session.execute(
            select(User).where(User.processor_customer_id == customer_id)
        )
        return result.scalar_one_or_none()

    async def reserve_invoice_slot(self, user_id: UUID) -> Optional[int]:
        """
        Consume one unit of monthly quota and allocate the next invoice number.

        Check and increment happen in a single conditional UPDATE, so two
        concurrent requests can never both take the last free slot.

        Returns:
            The allocated sequence number, or None when the quota is used up
        """
        result = await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .where(
                or_(
                    User.max_invoices < 0,
                    User.invoices_this_month < User.max_invoices,
                )
            )
            .values(
                invoices_this_month=User.invoices_this_month + 1,
                invoice_sequence=User.invoice_sequence + 1,
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            return None

        sequence = await self.session.execute(
            select(User.invoice_sequence).where(User.id == user_id)
        )
        return sequence.scalar_one()

    async def reset_monthly_usage(self) -> int:
        """Zero every user's usage counter. Returns the number of users touched."""
        result = await self.session.execute(
            update(User)
            .where(User.invoices_this_month != 0)
            .values(invoices_this_month=0)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()
        return result.rowcount
