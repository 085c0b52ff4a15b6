"""
Invoice Pydantic schemas for request/response validation.
Domain rules (positive quantities, tax range, quota) are enforced by the
invoice service so they surface as 400s rather than schema errors.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Literal, Union
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from app.models.invoice import InvoiceStatus
from app.models.payment import PaymentMethod
from app.schemas.client import ClientCreate


class InvoiceLineItemCreate(BaseModel):
    """Line item as submitted. Blank descriptions are dropped."""
    description: str = ""
    quantity: int = 1
    rate: Decimal = Decimal("0")


class InvoiceLineItemResponse(BaseModel):
    """Response schema for an invoice line item."""
    id: UUID
    description: str
    quantity: int
    rate: Decimal
    amount: Decimal
    row_order: int

    class Config:
        from_attributes = True


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice."""
    client_id: Union[UUID, Literal["new"]]
    new_client: Optional[ClientCreate] = None
    issue_date: Optional[date] = None
    due_date: date
    tax_rate: Decimal = Decimal("0")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    notes: Optional[str] = None
    items: List[InvoiceLineItemCreate] = Field(default_factory=list)


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""
    id: UUID
    invoice_number: str
    client_id: UUID
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    issue_date: date
    due_date: date
    status: InvoiceStatus
    currency: str
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    notes: Optional[str] = None
    payment_reference: Optional[str] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    payout_id: Optional[UUID] = None
    created_at: datetime
    line_items: List[InvoiceLineItemResponse] = []

    class Config:
        from_attributes = True


class InvoiceListResponse(BaseModel):
    """Schema for invoice list response."""
    items: List[InvoiceResponse]
    total: int


class InvoiceStatusUpdate(BaseModel):
    """Requested status change. The method is recorded when marking paid."""
    status: InvoiceStatus
    method: PaymentMethod = PaymentMethod.MANUAL


class InvoiceSendRequest(BaseModel):
    """Options for emailing an invoice."""
    recipient_email: Optional[EmailStr] = None
    subject: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = None
    send_copy: bool = False


class InvoiceSendResponse(BaseModel):
    """Outcome of a confirmed send."""
    invoice: InvoiceResponse
    message_id: str
    copy_sent: bool = False


class PaymentLinkResponse(BaseModel):
    """Payable reference for an invoice and how the charge is split."""
    payment_url: str
    amount: Decimal
    platform_fee: Decimal
    destination_amount: Decimal


class PublicInvoiceResponse(BaseModel):
    """What an invoice recipient may see without signing in."""
    id: UUID
    invoice_number: str
    issuer_name: str
    issuer_company: Optional[str] = None
    client_name: str
    issue_date: date
    due_date: date
    status: InvoiceStatus
    currency: str
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    notes: Optional[str] = None
    line_items: List[InvoiceLineItemResponse] = []


class DashboardStats(BaseModel):
    """Invoice counts and amounts for the dashboard."""
    total_invoices: int
    paid_invoices: int
    pending_invoices: int
    overdue_invoices: int
    draft_invoices: int
    total_revenue: Decimal
    pending_amount: Decimal
    overdue_amount: Decimal
    invoices_this_month: int
    max_invoices: int


class MarkOverdueRequest(BaseModel):
    """Overdue sweep cut-off; defaults to today."""
    as_of: Optional[date] = None


class MarkOverdueResponse(BaseModel):
    """Number of invoices moved to overdue."""
    updated: int
