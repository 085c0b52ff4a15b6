"""
User model for account owners, their plan and monthly invoice usage.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, DateTime, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
import enum

from app.db.base import Base


class PlanTier(str, enum.Enum):
    """Subscription plan enumeration."""
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    BUSINESS = "business"


UNLIMITED_INVOICES = -1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Account owner. Identity itself is managed by the auth layer."""

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    company = Column(String(255), nullable=True)
    plan = Column(
        SQLEnum(PlanTier, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PlanTier.FREE,
    )
    max_invoices = Column(Integer, nullable=False, default=3)  # -1 = unlimited
    invoices_this_month = Column(Integer, nullable=False, default=0)
    invoice_sequence = Column(Integer, nullable=False, default=0)  # Last issued invoice number
    processor_customer_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    clients = relationship("Client", back_populates="user")
    invoices = relationship("Invoice", back_populates="user")
    payout_destination = relationship("PayoutDestination", back_populates="user", uselist=False)
    bank_account = relationship("BankAccount", back_populates="user", uselist=False)

    @property
    def has_unlimited_invoices(self) -> bool:
        return self.max_invoices is not None and self.max_invoices < 0
