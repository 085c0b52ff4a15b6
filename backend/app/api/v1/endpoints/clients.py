"""
Client API endpoints.
"""

from fastapi import APIRouter, Depends, Query, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.api.v1.middleware import require_authentication
from app.db.session import get_db
from app.controllers.client_controller import ClientController
from app.models.user import User
from app.schemas.client import (
    ClientCreate,
    ClientUpdate,
    ClientResponse,
    ClientListResponse,
)

router = APIRouter()


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    client_data: ClientCreate,
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    """Create a new client."""
    controller = ClientController(db)
    return await controller.create_client(current_user, client_data)


@router.get("", response_model=ClientListResponse)
async def list_clients(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
) -> ClientListResponse:
    """List active clients with pagination."""
    controller = ClientController(db)
    return await controller.list_clients(current_user, skip=skip, limit=limit)


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: UUID,
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    """Get client by ID."""
    controller = ClientController(db)
    client = await controller.get_client(current_user, client_id)
    if not client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found",
        )
    return client


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: UUID,
    client_data: ClientUpdate,
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    """Update a client."""
    controller = ClientController(db)
    client = await controller.update_client(current_user, client_id, client_data)
    if not client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found",
        )
    return client


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def archive_client(
    client_id: UUID,
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
):
    """Archive a client. Its invoices are kept."""
    controller = ClientController(db)
    archived = await controller.archive_client(current_user, client_id)
    if not archived:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found",
        )
