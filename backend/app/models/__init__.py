"""
Database models.
Import all models here to ensure they're registered with Base.
"""

from app.models.user import User, PlanTier
from app.models.client import Client
from app.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus
from app.models.payment import Payment, PaymentStatus, PaymentMethod
from app.models.payout import PayoutDestination, Payout, PayoutStatus, DestinationStatus
from app.models.bank_account import BankAccount

__all__ = [
    "User",
    "PlanTier",
    "Client",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "Payment",
    "PaymentStatus",
    "PaymentMethod",
    "PayoutDestination",
    "Payout",
    "PayoutStatus",
    "DestinationStatus",
    "BankAccount",
]
