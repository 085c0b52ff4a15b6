"""
Payment model: one collection attempt against an invoice.
"""

from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
import enum

from app.db.base import Base
from app.models.user import utcnow


class PaymentStatus(str, enum.Enum):
    """Payment status enumeration."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, enum.Enum):
    """How the payment was collected."""
    CARD = "card"
    MANUAL = "manual"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class Payment(Base):
    """Payment recorded against an invoice."""

    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    method = Column(
        SQLEnum(PaymentMethod, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentMethod.CARD,
    )
    external_reference = Column(String(255), nullable=True, unique=True)  # Processor transaction id
    destination_account = Column(String(255), nullable=True)  # Connected account credited at collection
    platform_fee = Column(Numeric(10, 2), nullable=True)
    status = Column(
        SQLEnum(PaymentStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    invoice = relationship("Invoice", back_populates="payments")
