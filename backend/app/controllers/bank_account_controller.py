"""
Bank account controller.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.base_controller import BaseController
from app.core.integrations.bank_link.plaid_client import PlaidClient
from app.models.user import User
from app.services.bank_account_service import BankAccountService
from app.schemas.bank_account import (
    BankAccountResponse,
    BankAccountStatusResponse,
    LinkTokenResponse,
    PublicTokenExchangeRequest,
)


class BankAccountController(BaseController):
    """Controller for bank account linking."""

    def __init__(self, session: AsyncSession, client: Optional[PlaidClient]):
        self.bank_account_service = BankAccountService(session, client)

    async def create_link_token(self, user: User) -> LinkTokenResponse:
        token = await self.bank_account_service.create_link_token(user)
        return LinkTokenResponse(link_token=token)

    async def exchange_public_token(
        self,
        user: User,
        request: PublicTokenExchangeRequest,
    ) -> BankAccountResponse:
        return await self.bank_account_service.link_account(
            user,
            request.public_token,
            request.institution_name,
        )

    async def get_account(self, user: User) -> BankAccountStatusResponse:
        return await self.bank_account_service.get_account(user)

    async def disconnect(self, user: User) -> bool:
        return await self.bank_account_service.disconnect(user)
