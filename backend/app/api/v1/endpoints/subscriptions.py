"""
Subscription API endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.middleware import require_authentication
from app.controllers.user_controller import UserController
from app.core.integrations.payments.base import PaymentGateway
from app.db.session import get_db
from app.deps.di_container import get_payment_gateway
from app.models.user import User
from app.schemas.user import CheckoutResponse, SubscriptionCheckoutRequest

router = APIRouter()


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    request: SubscriptionCheckoutRequest,
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
) -> CheckoutResponse:
    """Start a hosted checkout for a plan upgrade."""
    controller = UserController(db, gateway)
    return await controller.create_subscription_checkout(current_user, request.plan)
