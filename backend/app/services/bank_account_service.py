"""
Bank account service.
Links one verified bank account per user through the aggregator.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.exceptions import BankLinkError, ServiceUnavailable, ValidationFailed
from app.core.integrations.bank_link.plaid_client import PlaidClient
from app.services.base_service import BaseService
from app.db.repositories.bank_account_repository import BankAccountRepository
from app.models.user import User
from app.schemas.bank_account import BankAccountResponse, BankAccountStatusResponse

logger = logging.getLogger(__name__)

PREFERRED_SUBTYPES = ("checking", "savings")


class BankAccountService(BaseService):
    """Service for bank account linking."""

    def __init__(self, session: AsyncSession, client: Optional[PlaidClient]):
        self.session = session
        self.client = client
        self.bank_account_repo = BankAccountRepository(session)

    def _require_client(self) -> PlaidClient:
        if self.client is None or not self.client.configured:
            raise ServiceUnavailable("Bank account linking is not configured")
        return self.client

    async def create_link_token(self, user: User) -> str:
        return await self._require_client().create_link_token(str(user.id))

    async def link_account(
        self,
        user: User,
        public_token: str,
        institution_name: Optional[str] = None,
    ) -> BankAccountResponse:
        """
        Exchange a public token and store the preferred account.

        Checking or savings accounts win over other types. A user has at most
        one linked account; linking again replaces it.
        """
        client = self._require_client()
        access_token, item_id = await client.exchange_public_token(public_token)
        accounts = await client.get_accounts(access_token)

        selected = next((a for a in accounts if a.subtype in PREFERRED_SUBTYPES), None)
        if selected is None and accounts:
            selected = accounts[0]
        if selected is None:
            raise ValidationFailed("No suitable account found")

        values = {
            "access_token": access_token,
            "item_id": item_id,
            "account_id": selected.account_id,
            "account_name": selected.name,
            "account_type": selected.subtype or selected.type,
            "institution_name": institution_name or "Unknown Bank",
            "mask": selected.mask,
        }

        account = await self.bank_account_repo.get_by_user(user.id)
        if account:
            for key, value in values.items():
                setattr(account, key, value)
        else:
            account = await self.bank_account_repo.create(user_id=user.id, **values)
        await self.session.commit()

        logger.info(
            "Bank account linked",
            extra={"user_id": str(user.id), "item_id": item_id, "account_type": values["account_type"]},
        )
        return BankAccountResponse.model_validate(account)

    async def get_account(self, user: User) -> BankAccountStatusResponse:
        account = await self.bank_account_repo.get_by_user(user.id)
        return BankAccountStatusResponse(
            configured=bool(self.client and self.client.configured),
            connected=account is not None,
            account=BankAccountResponse.model_validate(account) if account else None,
        )

    async def disconnect(self, user: User) -> bool:
        """
        Remove the linked account.

        The aggregator item is revoked when possible; a failure there is
        logged and the local record is removed regardless.
        """
        account = await self.bank_account_repo.get_by_user(user.id)
        if not account:
            return False

        if self.client is not None and self.client.configured:
            try:
                await self.client.remove_item(account.access_token)
            except BankLinkError as e:
                logger.warning(
                    "Failed to remove item from bank-linking provider",
                    extra={"user_id": str(user.id), "item_id": account.item_id, "reason": e.message},
                )

        await self.bank_account_repo.delete(account.id)
        await self.session.commit()
        logger.info("Bank account disconnected", extra={"user_id": str(user.id)})
        return True
