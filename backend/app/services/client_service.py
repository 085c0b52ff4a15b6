"""
Client service with business logic.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.base_service import BaseService
from app.db.repositories.client_repository import ClientRepository
from app.models.user import User
from app.schemas.client import ClientCreate, ClientUpdate, ClientResponse


class ClientService(BaseService):
    """Service for client operations. Every call is scoped to the owning user."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.client_repo = ClientRepository(session)

    async def create_client(self, user: User, client_data: ClientCreate) -> ClientResponse:
        """Create a new client."""
        client = await self.client_repo.create(user_id=user.id, **client_data.model_dump())
        await self.session.commit()
        return ClientResponse.model_validate(client)

    async def get_client(self, user: User, client_id: UUID) -> Optional[ClientResponse]:
        """Get client by ID."""
        client = await self.client_repo.get_for_user(client_id, user.id)
        if not client:
            return None
        return ClientResponse.model_validate(client)

    async def list_clients(
        self,
        user: User,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[List[ClientResponse], int]:
        """List active clients with pagination."""
        clients = await self.client_repo.list_for_user(user.id, skip, limit)
        total = await self.client_repo.count_for_user(user.id)
        return [ClientResponse.model_validate(c) for c in clients], total

    async def update_client(
        self,
        user: User,
        client_id: UUID,
        client_data: ClientUpdate,
    ) -> Optional[ClientResponse]:
        """Update a client."""
        client = await self.client_repo.get_for_user(client_id, user.id)
        if not client:
            return None

        for key, value in client_data.model_dump(exclude_unset=True).items():
            setattr(client, key, value)
        await self.session.commit()
        return ClientResponse.model_validate(client)

    async def archive_client(self, user: User, client_id: UUID) -> bool:
        """Archive a client. Its invoices are kept."""
        client = await self.client_repo.get_for_user(client_id, user.id)
        if not client:
            return False
        client.archived_at = datetime.now(timezone.utc)
        await self.session.commit()
        return True
