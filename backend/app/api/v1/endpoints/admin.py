"""
Operator endpoints, called by the scheduler. Guarded by the admin key.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.invoice_controller import InvoiceController
from app.controllers.payout_controller import PayoutController
from app.controllers.user_controller import UserController
from app.core.integrations.payments.base import PaymentGateway
from app.db.session import get_db
from app.deps.di_container import get_payment_gateway
from app.schemas.invoice import MarkOverdueRequest, MarkOverdueResponse
from app.schemas.payout import PayoutBatchResultResponse, PayoutRunRequest
from app.schemas.user import UsageResetResponse

router = APIRouter()


@router.post("/payouts/run", response_model=PayoutBatchResultResponse)
async def run_payouts(
    request: Optional[PayoutRunRequest] = None,
    db: AsyncSession = Depends(get_db),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
) -> PayoutBatchResultResponse:
    """Run the payout batch for every eligible user."""
    controller = PayoutController(db, gateway)
    return await controller.run_batch(request.as_of if request else None)


@router.post("/invoices/mark-overdue", response_model=MarkOverdueResponse)
async def mark_overdue(
    request: Optional[MarkOverdueRequest] = None,
    db: AsyncSession = Depends(get_db),
) -> MarkOverdueResponse:
    """Move sent invoices past their due date to overdue."""
    controller = InvoiceController(db)
    updated = await controller.mark_overdue(request.as_of if request else None)
    return MarkOverdueResponse(updated=updated)


@router.post("/users/reset-usage", response_model=UsageResetResponse)
async def reset_usage(
    db: AsyncSession = Depends(get_db),
) -> UsageResetResponse:
    """Start a new billing month for every user."""
    controller = UserController(db)
    return UsageResetResponse(users_reset=await controller.reset_monthly_usage())
