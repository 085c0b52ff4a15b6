"""
Payout destination (connected processor account) and payout models.
"""

from sqlalchemy import Column, String, Numeric, Boolean, Date, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
import enum

from app.db.base import Base
from app.models.user import utcnow


class DestinationStatus(str, enum.Enum):
    """Onboarding status of a connected account."""
    PENDING = "pending"
    ACTIVE = "active"


class PayoutStatus(str, enum.Enum):
    """Payout status enumeration."""
    REQUESTED = "requested"
    COMPLETED = "completed"
    FAILED = "failed"


class PayoutDestination(Base):
    """Where a user's platform earnings are sent. One per user."""

    __tablename__ = "payout_destinations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    processor_account_id = Column(String(255), nullable=False, unique=True)
    account_status = Column(
        SQLEnum(DestinationStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=DestinationStatus.PENDING,
    )
    details_submitted = Column(Boolean, nullable=False, default=False)
    charges_enabled = Column(Boolean, nullable=False, default=False)
    payouts_enabled = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="payout_destination")
    payouts = relationship("Payout", back_populates="destination")

    @property
    def onboarding_complete(self) -> bool:
        return bool(self.details_submitted and self.charges_enabled)


class Payout(Base):
    """Funds transferred to a payout destination. Immutable once written."""

    __tablename__ = "payouts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    destination_id = Column(UUID(as_uuid=True), ForeignKey("payout_destinations.id", ondelete="RESTRICT"), nullable=False, index=True)
    processor_transfer_id = Column(String(255), nullable=False, unique=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(
        SQLEnum(PayoutStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PayoutStatus.COMPLETED,
    )
    arrival_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    destination = relationship("PayoutDestination", back_populates="payouts")
    invoices = relationship("Invoice", back_populates="payout")
