"""
Bank account repository for database operations.
"""

from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.repositories.base_repository import BaseRepository
from app.models.bank_account import BankAccount


class BankAccountRepository(BaseRepository[BankAccount]):
    """Repository for linked bank account operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(BankAccount, session)

    async def get_by_user(self, user_id: UUID) -> Optional[BankAccount]:
        """Get the bank account linked by a user."""
        result = await self.session.execute(
            select(BankAccount).where(BankAccount.user_id == user_id)
        )
        return result.scalar_one_or_none()
