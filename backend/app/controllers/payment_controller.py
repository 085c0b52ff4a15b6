"""
Payment controller.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.base_controller import BaseController
from app.core.integrations.payments.base import PaymentGateway
from app.services.payment_service import PaymentService
from app.schemas.payment import WebhookAck


class PaymentController(BaseController):
    """Controller for inbound processor events."""

    def __init__(self, session: AsyncSession, gateway: Optional[PaymentGateway]):
        self.payment_service = PaymentService(session, gateway)

    async def handle_webhook(self, payload: bytes, signature: Optional[str]) -> WebhookAck:
        """Verify and apply a processor event."""
        return await self.payment_service.handle_processor_event(payload, signature)
