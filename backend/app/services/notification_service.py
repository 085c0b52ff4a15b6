"""
Notification service.
Renders invoice emails and hands them to the mailer. Makes no status decisions.
"""

from decimal import Decimal
from pathlib import Path
from typing import Optional
import logging

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.integrations.email.mailer import Mailer
from app.models.client import Client
from app.models.invoice import Invoice
from app.models.user import User
from app.services.base_service import BaseService

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

CURRENCY_SYMBOLS = {"usd": "$", "eur": "€", "gbp": "£", "cad": "CA$", "aud": "A$"}


def format_money(amount: Decimal, currency: str = "usd") -> str:
    symbol = CURRENCY_SYMBOLS.get((currency or "").lower())
    value = f"{Decimal(amount):,.2f}"
    return f"{symbol}{value}" if symbol else f"{value} {currency.upper()}"


def build_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["money"] = format_money
    return env


class NotificationService(BaseService):
    """Service for outbound invoice email."""

    def __init__(self, mailer: Mailer, environment: Optional[Environment] = None):
        self.mailer = mailer
        self.env = environment or build_environment()

    def render_invoice(
        self,
        invoice: Invoice,
        client: Client,
        sender: User,
        message: Optional[str] = None,
    ) -> str:
        """Render the invoice email body."""
        template = self.env.get_template("invoice_email.html")
        return template.render(
            invoice=invoice,
            client=client,
            line_items=invoice.line_items,
            currency=invoice.currency,
            payment_url=invoice.payment_reference,
            sender_name=sender.name,
            sender_company=sender.company,
            sender_email=sender.email,
            message=message,
        )

    async def send_invoice(
        self,
        invoice: Invoice,
        client: Client,
        sender: User,
        recipient: str,
        subject: Optional[str] = None,
        message: Optional[str] = None,
    ) -> str:
        """
        Render and deliver an invoice.

        Returns:
            Message-ID assigned by the mailer

        Raises:
            NotificationDeliveryError: The mail server did not accept the message
        """
        html = self.render_invoice(invoice, client, sender, message)
        subject = subject or f"Invoice {invoice.invoice_number} from {sender.company or sender.name}"
        text = (
            f"Invoice {invoice.invoice_number} for {format_money(invoice.total, invoice.currency)} "
            f"is due on {invoice.due_date.isoformat()}."
        )
        if invoice.payment_reference:
            text += f"\nPay online: {invoice.payment_reference}"

        return await self.mailer.send(
            recipient=recipient,
            subject=subject,
            html=html,
            text=text,
            reply_to=sender.email,
        )
