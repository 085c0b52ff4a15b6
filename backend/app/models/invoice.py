"""
Invoice and invoice line item models.
"""

from sqlalchemy import (
    Column, String, Text, Boolean, Date, DateTime, Integer, Numeric, ForeignKey,
    UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
import enum

from app.db.base import Base
from app.models.user import utcnow


class InvoiceStatus(str, enum.Enum):
    """Invoice status enumeration."""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"


class Invoice(Base):
    """Invoice issued by a user to one of their clients."""

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("user_id", "invoice_number", name="uq_invoice_user_number"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False, index=True)
    invoice_number = Column(String(50), nullable=False)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(
        SQLEnum(InvoiceStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=InvoiceStatus.DRAFT,
        index=True,
    )
    currency = Column(String(3), nullable=False, default="usd")
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text, nullable=True)
    payment_reference = Column(Text, nullable=True)  # Payable URL or processor handle
    sent_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True, index=True)
    payout_id = Column(UUID(as_uuid=True), ForeignKey("payouts.id", ondelete="RESTRICT"), nullable=True, index=True)
    # Paid as a destination charge: the connected account already holds its share
    settled_to_destination = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="invoices")
    client = relationship("Client", back_populates="invoices")
    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.row_order",
    )
    payments = relationship("Payment", back_populates="invoice", order_by="Payment.created_at")
    payout = relationship("Payout", back_populates="invoices")


class InvoiceLineItem(Base):
    """Immutable line on an invoice."""

    __tablename__ = "invoice_line_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False)
    rate = Column(Numeric(10, 2), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)  # quantity * rate
    row_order = Column(Integer, nullable=False, default=0)

    # Relationships
    invoice = relationship("Invoice", back_populates="line_items")
