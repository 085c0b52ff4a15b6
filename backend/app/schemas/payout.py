"""
Payout and payout destination schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from app.models.payout import PayoutStatus, DestinationStatus


class PayoutResponse(BaseModel):
    """Schema for payout response."""
    id: UUID
    amount: Decimal
    currency: str
    status: PayoutStatus
    processor_transfer_id: str
    arrival_date: Optional[date] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PayoutSummaryResponse(BaseModel):
    """
    Balances and recent payouts for a user.

    The single-figure balances are in the platform's default currency;
    pending_by_currency breaks the pending balance down by currency.
    """
    currency: str
    pending_balance: Decimal
    pending_by_currency: Dict[str, Decimal] = Field(default_factory=dict)
    total_paid_out: Decimal
    platform_fees: Decimal
    payouts_enabled: bool
    recent_payouts: List[PayoutResponse] = []


class PayoutFailure(BaseModel):
    """One user's failure within a batch."""
    user_id: UUID
    currency: Optional[str] = None
    error: str


class PayoutBatchResultResponse(BaseModel):
    """Outcome of a payout batch run."""
    processed_count: int
    total_amount: Decimal
    totals_by_currency: Dict[str, Decimal] = Field(default_factory=dict)
    skipped_count: int
    failed_count: int
    failures: List[PayoutFailure] = []


class PayoutRunRequest(BaseModel):
    """Batch cut-off; invoices paid after it wait for the next run."""
    as_of: Optional[datetime] = None


class PayoutDestinationResponse(BaseModel):
    """Schema for payout destination response."""
    id: UUID
    processor_account_id: str
    account_status: DestinationStatus
    details_submitted: bool
    charges_enabled: bool
    payouts_enabled: bool
    onboarding_complete: bool
    created_at: datetime

    class Config:
        from_attributes = True


class DestinationStatusResponse(BaseModel):
    """Current destination state, with outstanding requirements when connected."""
    connected: bool
    destination: Optional[PayoutDestinationResponse] = None
    requirements: Dict[str, Any] = Field(default_factory=dict)


class OnboardingLinkResponse(BaseModel):
    """Hosted onboarding URL."""
    url: str
