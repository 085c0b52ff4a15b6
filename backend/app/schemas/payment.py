"""
Payment schemas.
"""

from pydantic import BaseModel
from decimal import Decimal


class FeeBreakdown(BaseModel):
    """How a charge is divided between the platform and the destination."""
    amount: Decimal
    platform_fee: Decimal
    destination_amount: Decimal
    fee_percent: Decimal


class WebhookAck(BaseModel):
    """Acknowledgement returned to the processor."""
    received: bool = True
    event_id: str
    outcome: str
