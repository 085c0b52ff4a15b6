"""
Invoice line item repository for database operations.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base_repository import BaseRepository
from app.models.invoice import InvoiceLineItem


class InvoiceLineItemRepository(BaseRepository[InvoiceLineItem]):
    """Repository for invoice line item operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(InvoiceLineItem, session)
