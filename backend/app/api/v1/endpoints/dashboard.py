"""
Dashboard API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.middleware import require_authentication
from app.controllers.invoice_controller import InvoiceController
from app.db.session import get_db
from app.models.user import User
from app.schemas.invoice import DashboardStats

router = APIRouter()


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
) -> DashboardStats:
    """Invoice counts and amounts for the caller."""
    controller = InvoiceController(db)
    return await controller.get_dashboard_stats(current_user)
