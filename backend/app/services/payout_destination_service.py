"""
Payout destination service.
Manages the user's connected processor account and mirrors its capabilities.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.config import settings
from app.core.exceptions import NotFound, ProcessorResourceMissing, ServiceUnavailable
from app.core.integrations.payments.base import AccountStatus, PaymentGateway
from app.services.base_service import BaseService
from app.db.repositories.payout_destination_repository import PayoutDestinationRepository
from app.models.payout import DestinationStatus, PayoutDestination
from app.models.user import User
from app.schemas.payout import DestinationStatusResponse, PayoutDestinationResponse

logger = logging.getLogger(__name__)


class PayoutDestinationService(BaseService):
    """Service for connected payout accounts."""

    def __init__(self, session: AsyncSession, gateway: Optional[PaymentGateway]):
        self.session = session
        self.gateway = gateway
        self.destination_repo = PayoutDestinationRepository(session)

    def _require_gateway(self) -> PaymentGateway:
        if self.gateway is None:
            raise ServiceUnavailable("Payment processing is not configured")
        return self.gateway

    @staticmethod
    def _apply_status(destination: PayoutDestination, status: AccountStatus) -> None:
        destination.details_submitted = status.details_submitted
        destination.charges_enabled = status.charges_enabled
        destination.payouts_enabled = status.payouts_enabled
        destination.account_status = (
            DestinationStatus.ACTIVE if status.details_submitted else DestinationStatus.PENDING
        )

    async def create_destination(self, user: User) -> PayoutDestinationResponse:
        """
        Create the user's connected account, or reuse the existing one.

        An existing account the processor can no longer find is replaced.
        """
        gateway = self._require_gateway()
        destination = await self.destination_repo.get_by_user(user.id, for_update=True)

        if destination:
            try:
                status = await gateway.retrieve_account(destination.processor_account_id)
                self._apply_status(destination, status)
                await self.session.commit()
                return PayoutDestinationResponse.model_validate(destination)
            except ProcessorResourceMissing as e:
                logger.warning(
                    "Connected account no longer exists, creating a new one",
                    extra={"user_id": str(user.id), "account_id": destination.processor_account_id, "reason": e.message},
                )

        account_id = await gateway.create_connected_account(user.email, {"user_id": str(user.id)})

        if destination:
            destination.processor_account_id = account_id
            destination.details_submitted = False
            destination.charges_enabled = False
            destination.payouts_enabled = False
            destination.account_status = DestinationStatus.PENDING
        else:
            destination = await self.destination_repo.create(
                user_id=user.id,
                processor_account_id=account_id,
                account_status=DestinationStatus.PENDING,
            )
        await self.session.commit()

        logger.info("Connected account created", extra={"user_id": str(user.id), "account_id": account_id})
        return PayoutDestinationResponse.model_validate(destination)

    async def create_onboarding_link(self, user: User) -> str:
        """Hosted onboarding URL for the user's connected account."""
        gateway = self._require_gateway()
        destination = await self.destination_repo.get_by_user(user.id)
        if not destination:
            raise NotFound("No payout destination. Create one first.")

        return await gateway.create_onboarding_link(
            destination.processor_account_id,
            refresh_url=f"{settings.FRONTEND_URL}/invoices?stripe_refresh=true",
            return_url=f"{settings.FRONTEND_URL}/invoices?stripe_success=true",
        )

    async def refresh_status(self, user: User) -> DestinationStatusResponse:
        """Copy the processor's view of the account onto the local row."""
        destination = await self.destination_repo.get_by_user(user.id, for_update=True)
        if not destination:
            return DestinationStatusResponse(connected=False)

        status = await self._require_gateway().retrieve_account(destination.processor_account_id)
        self._apply_status(destination, status)
        await self.session.commit()

        return DestinationStatusResponse(
            connected=True,
            destination=PayoutDestinationResponse.model_validate(destination),
            requirements=status.requirements,
        )
