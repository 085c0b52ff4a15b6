"""
Payout destination API endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.middleware import require_authentication
from app.controllers.payout_controller import PayoutController
from app.core.integrations.payments.base import PaymentGateway
from app.db.session import get_db
from app.deps.di_container import get_payment_gateway
from app.models.user import User
from app.schemas.payout import (
    DestinationStatusResponse,
    OnboardingLinkResponse,
    PayoutDestinationResponse,
)

router = APIRouter()


@router.post("", response_model=PayoutDestinationResponse)
async def create_destination(
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
) -> PayoutDestinationResponse:
    """Create the connected account, or return the existing one."""
    controller = PayoutController(db, gateway)
    return await controller.create_destination(current_user)


@router.post("/onboarding-link", response_model=OnboardingLinkResponse)
async def create_onboarding_link(
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
) -> OnboardingLinkResponse:
    """Hosted onboarding link for the connected account."""
    controller = PayoutController(db, gateway)
    return await controller.create_onboarding_link(current_user)


@router.get("/status", response_model=DestinationStatusResponse)
async def get_destination_status(
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
) -> DestinationStatusResponse:
    """Refresh and return the connected account status."""
    controller = PayoutController(db, gateway)
    return await controller.refresh_status(current_user)
