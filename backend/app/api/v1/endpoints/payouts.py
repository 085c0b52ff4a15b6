"""
Payout API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.middleware import require_authentication
from app.controllers.payout_controller import PayoutController
from app.db.session import get_db
from app.models.user import User
from app.schemas.payout import PayoutSummaryResponse

router = APIRouter()


@router.get("", response_model=PayoutSummaryResponse)
async def get_payouts(
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
) -> PayoutSummaryResponse:
    """Pending balance, totals and recent payouts."""
    controller = PayoutController(db)
    return await controller.get_summary(current_user)
