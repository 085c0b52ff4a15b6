"""
Bank account linking schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID


class LinkTokenResponse(BaseModel):
    """Token used by the client-side link flow."""
    link_token: str


class PublicTokenExchangeRequest(BaseModel):
    """Public token returned by the client-side link flow."""
    public_token: str = Field(..., min_length=1)
    institution_name: Optional[str] = Field(None, max_length=255)


class BankAccountResponse(BaseModel):
    """Linked account metadata. The aggregator credential is never returned."""
    id: UUID
    account_id: str
    account_name: str
    account_type: str
    institution_name: str
    mask: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BankAccountStatusResponse(BaseModel):
    """Whether bank linking is available and an account is linked."""
    configured: bool
    connected: bool
    account: Optional[BankAccountResponse] = None
