"""
Bank account API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.middleware import require_authentication
from app.controllers.bank_account_controller import BankAccountController
from app.core.integrations.bank_link.plaid_client import PlaidClient
from app.db.session import get_db
from app.deps.di_container import get_bank_link_client
from app.models.user import User
from app.schemas.bank_account import (
    BankAccountResponse,
    BankAccountStatusResponse,
    LinkTokenResponse,
    PublicTokenExchangeRequest,
)

router = APIRouter()


@router.post("/link-token", response_model=LinkTokenResponse)
async def create_link_token(
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    client: PlaidClient = Depends(get_bank_link_client),
) -> LinkTokenResponse:
    """Token for the client-side bank link flow."""
    controller = BankAccountController(db, client)
    return await controller.create_link_token(current_user)


@router.post("/exchange", response_model=BankAccountResponse)
async def exchange_public_token(
    request: PublicTokenExchangeRequest,
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    client: PlaidClient = Depends(get_bank_link_client),
) -> BankAccountResponse:
    """Exchange the public token and store the linked account."""
    controller = BankAccountController(db, client)
    return await controller.exchange_public_token(current_user, request)


@router.get("", response_model=BankAccountStatusResponse)
async def get_bank_account(
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    client: PlaidClient = Depends(get_bank_link_client),
) -> BankAccountStatusResponse:
    """Linked account, if any."""
    controller = BankAccountController(db, client)
    return await controller.get_account(current_user)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect_bank_account(
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    client: PlaidClient = Depends(get_bank_link_client),
):
    """Disconnect the linked account."""
    controller = BankAccountController(db, client)
    if not await controller.disconnect(current_user):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No bank account linked",
        )
