"""
User controller.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.base_controller import BaseController
from app.core.integrations.payments.base import PaymentGateway
from app.models.user import User, PlanTier
from app.services.user_service import UserService
from app.schemas.user import UserResponse, CheckoutResponse


class UserController(BaseController):
    """Controller for user and subscription operations."""

    def __init__(self, session: AsyncSession, gateway: Optional[PaymentGateway] = None):
        self.user_service = UserService(session)
        self.gateway = gateway

    async def get_me(self, user: User) -> UserResponse:
        """Current user with plan usage."""
        return self.user_service.to_response(user)

    async def create_subscription_checkout(self, user: User, plan: PlanTier) -> CheckoutResponse:
        """Hosted checkout for a plan upgrade."""
        url = await self.user_service.create_subscription_checkout(user, plan, self.gateway)
        return CheckoutResponse(url=url)

    async def reset_monthly_usage(self) -> int:
        """Zero every user's monthly invoice usage."""
        return await self.user_service.reset_monthly_usage()
