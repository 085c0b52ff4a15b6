"""
Payout controller.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.base_controller import BaseController
from app.core.integrations.payments.base import PaymentGateway
from app.models.user import User
from app.services.payout_destination_service import PayoutDestinationService
from app.services.payout_service import PayoutService
from app.schemas.payout import (
    DestinationStatusResponse,
    OnboardingLinkResponse,
    PayoutBatchResultResponse,
    PayoutDestinationResponse,
    PayoutSummaryResponse,
)


class PayoutController(BaseController):
    """Controller for payout destinations and payouts."""

    def __init__(self, session: AsyncSession, gateway: Optional[PaymentGateway] = None):
        self.payout_service = PayoutService(session, gateway)
        self.destination_service = PayoutDestinationService(session, gateway)

    async def create_destination(self, user: User) -> PayoutDestinationResponse:
        """Create or reuse the connected account."""
        return await self.destination_service.create_destination(user)

    async def create_onboarding_link(self, user: User) -> OnboardingLinkResponse:
        """Hosted onboarding link."""
        url = await self.destination_service.create_onboarding_link(user)
        return OnboardingLinkResponse(url=url)

    async def refresh_status(self, user: User) -> DestinationStatusResponse:
        """Refresh the connected account status."""
        return await self.destination_service.refresh_status(user)

    async def get_summary(self, user: User) -> PayoutSummaryResponse:
        """Balances and recent payouts."""
        return await self.payout_service.get_payout_summary(user)

    async def run_batch(self, as_of: Optional[datetime] = None) -> PayoutBatchResultResponse:
        """Run the payout batch."""
        result = await self.payout_service.run_payout_batch(as_of)
        return result.to_response()
