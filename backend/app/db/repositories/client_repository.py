"""
Client repository for database operations.
"""

from typing import Optional, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.db.repositories.base_repository import BaseRepository
from app.models.client import Client


class ClientRepository(BaseRepository[Client]):
    """Repository for client operations. Archived clients are hidden by default."""

    def __init__(self, session: AsyncSession):
        super().__init__(Client, session)

    async def get_for_user(
        self,
        client_id: UUID,
        user_id: UUID,
        include_archived: bool = False,
    ) -> Optional[Client]:
        """Get a client owned by the given user."""
        query = select(Client).where(Client.id == client_id, Client.user_id == user_id)
        if not include_archived:
            query = query.where(Client.archived_at.is_(None))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: UUID,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Client]:
        """List a user's active clients, newest first."""
        query = (
            select(Client)
            .where(Client.user_id == user_id, Client.archived_at.is_(None))
            .order_by(Client.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_for_user(self, user_id: UUID) -> int:
        """Count a user's active clients."""
        result = await self.session.execute(
            select(func.count(Client.id)).where(
                Client.user_id == user_id,
                Client.archived_at.is_(None),
            )
        )
        return result.scalar() or 0
