"""
Client controller.
"""

from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.base_controller import BaseController
from app.models.user import User
from app.services.client_service import ClientService
from app.schemas.client import ClientCreate, ClientUpdate, ClientResponse, ClientListResponse


class ClientController(BaseController):
    """Controller for client operations."""

    def __init__(self, session: AsyncSession):
        self.client_service = ClientService(session)

    async def create_client(self, user: User, client_data: ClientCreate) -> ClientResponse:
        """Create a new client."""
        return await self.client_service.create_client(user, client_data)

    async def get_client(self, user: User, client_id: UUID) -> Optional[ClientResponse]:
        """Get client by ID."""
        return await self.client_service.get_client(user, client_id)

    async def list_clients(
        self,
        user: User,
        skip: int = 0,
        limit: int = 100,
    ) -> ClientListResponse:
        """List clients with pagination."""
        clients, total = await self.client_service.list_clients(user, skip=skip, limit=limit)
        return ClientListResponse(items=clients, total=total)

    async def update_client(
        self,
        user: User,
        client_id: UUID,
        client_data: ClientUpdate,
    ) -> Optional[ClientResponse]:
        """Update a client."""
        return await self.client_service.update_client(user, client_id, client_data)

    async def archive_client(self, user: User, client_id: UUID) -> bool:
        """Archive a client."""
        return await self.client_service.archive_client(user, client_id)
