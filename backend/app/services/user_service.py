"""
User service: profile, plan changes and monthly usage.
"""

from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.config import settings
from app.core.exceptions import ValidationFailed, ServiceUnavailable
from app.core.integrations.observability import record_audit_event
from app.core.integrations.payments.base import PaymentGateway
from app.services.base_service import BaseService
from app.db.repositories.user_repository import UserRepository
from app.models.user import User, PlanTier
from app.schemas.user import UserResponse

logger = logging.getLogger(__name__)


def plan_invoice_limit(plan: PlanTier) -> int:
    """Monthly invoice cap for a plan; -1 means unlimited."""
    return settings.PLAN_INVOICE_LIMITS.get(plan.value, settings.PLAN_INVOICE_LIMITS["free"])


class UserService(BaseService):
    """Service for user operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_repo = UserRepository(session)

    def to_response(self, user: User) -> UserResponse:
        can_create = user.has_unlimited_invoices or user.invoices_this_month < user.max_invoices
        return UserResponse(
            id=user.id,
            email=user.email,
            name=user.name,
            company=user.company,
            plan=user.plan,
            max_invoices=user.max_invoices,
            invoices_this_month=user.invoices_this_month,
            can_create_invoice=can_create,
            created_at=user.created_at,
        )

    async def apply_plan(
        self,
        user_id: UUID,
        plan: PlanTier,
        processor_customer_id: Optional[str] = None,
    ) -> Optional[User]:
        """Set a user's plan and the matching invoice cap."""
        values = {"plan": plan, "max_invoices": plan_invoice_limit(plan)}
        if processor_customer_id:
            values["processor_customer_id"] = processor_customer_id
        user = await self.user_repo.update(user_id, **values)
        if not user:
            logger.warning("Plan change for unknown user", extra={"user_id": str(user_id)})
            return None
        await self.session.commit()
        record_audit_event("user.plan_changed", {"user_id": str(user_id), "plan": plan.value})
        return user

    async def downgrade_by_customer(self, processor_customer_id: str) -> Optional[User]:
        """Return the user behind a cancelled subscription to the free plan."""
        user = await self.user_repo.get_by_processor_customer_id(processor_customer_id)
        if not user:
            logger.warning("Subscription cancelled for unknown customer", extra={"customer_id": processor_customer_id})
            return None
        return await self.apply_plan(user.id, PlanTier.FREE)

    async def reset_monthly_usage(self) -> int:
        """Zero all usage counters. Run by an external scheduler at the start of a billing month."""
        count = await self.user_repo.reset_monthly_usage()
        await self.session.commit()
        logger.info("Monthly invoice usage reset", extra={"users_reset": count})
        return count

    async def create_subscription_checkout(
        self,
        user: User,
        plan: PlanTier,
        gateway: Optional[PaymentGateway],
    ) -> str:
        """Start a hosted checkout for a paid plan."""
        if plan == PlanTier.FREE:
            raise ValidationFailed("The free plan does not require checkout")
        if gateway is None:
            raise ServiceUnavailable("Payment processing is not configured")

        return await gateway.create_subscription_checkout(
            user_id=str(user.id),
            email=user.email,
            plan=plan.value,
            success_url=f"{settings.FRONTEND_URL}/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.FRONTEND_URL}/pricing",
            customer_id=user.processor_customer_id,
        )
