"""
Client model for a user's customers.
"""

from sqlalchemy import Column, String, Text, ForeignKey, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid

from app.db.base import Base
from app.models.user import utcnow


class Client(Base):
    """Customer record owned by exactly one user."""

    __tablename__ = "clients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    company = Column(String(255), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True, index=True)  # Soft delete
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    user = relationship("User", back_populates="clients")
    # Invoices are financial history: no cascade, FK restricts hard deletes
    invoices = relationship("Invoice", back_populates="client", passive_deletes="all")

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None
