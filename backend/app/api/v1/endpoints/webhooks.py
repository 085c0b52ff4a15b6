"""
Inbound processor webhooks.
The raw body is verified against the signature header before anything is applied.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.payment_controller import PaymentController
from app.core.integrations.payments.base import PaymentGateway
from app.db.session import get_db
from app.deps.di_container import get_payment_gateway
from app.schemas.payment import WebhookAck

router = APIRouter()


@router.post("/payments", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
) -> WebhookAck:
    """Payment processor events."""
    payload = await request.body()
    controller = PaymentController(db, gateway)
    return await controller.handle_webhook(payload, stripe_signature)
