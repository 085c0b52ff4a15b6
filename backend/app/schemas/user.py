"""
User and subscription schemas.
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from uuid import UUID

from app.models.user import PlanTier


class UserResponse(BaseModel):
    """Current user with plan usage."""
    id: UUID
    email: str
    name: str
    company: Optional[str] = None
    plan: PlanTier
    max_invoices: int
    invoices_this_month: int
    can_create_invoice: bool
    created_at: datetime

    class Config:
        from_attributes = True


class SubscriptionCheckoutRequest(BaseModel):
    """Plan upgrade request."""
    plan: PlanTier


class CheckoutResponse(BaseModel):
    """Hosted checkout URL."""
    url: str


class UsageResetResponse(BaseModel):
    """Result of the monthly usage reset."""
    users_reset: int
