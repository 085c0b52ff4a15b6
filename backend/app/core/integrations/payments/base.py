"""
Payment gateway interface.
Services depend on this abstraction; processor specifics live in implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional
import enum


class EventOutcome(str, enum.Enum):
    """What a verified processor event means for this system."""
    PAID = "paid"
    FAILED = "failed"
    SUBSCRIPTION_ACTIVATED = "subscription_activated"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    IGNORED = "ignored"


@dataclass(frozen=True)
class PayableReference:
    """A collectible handle for an invoice amount."""
    reference_id: str
    url: str
    amount_minor: int
    platform_fee_minor: int
    destination_amount_minor: int


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a transfer to a connected account."""
    transfer_id: str
    arrival_date: Optional[date] = None


@dataclass(frozen=True)
class AccountStatus:
    """Capabilities of a connected account as reported by the processor."""
    account_id: str
    details_submitted: bool
    charges_enabled: bool
    payouts_enabled: bool
    requirements: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessorEvent:
    """A signature-verified processor event, reduced to what services need."""
    event_id: str
    type: str
    outcome: EventOutcome
    invoice_id: Optional[str] = None
    reference: Optional[str] = None
    amount_minor: Optional[int] = None
    currency: Optional[str] = None
    # Connected account the charge settled to, when collected as a destination charge
    destination_account: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):
    """
    Boundary to the payment processor.

    Every method either returns a result or raises PaymentProcessorError;
    parse_event raises WebhookSignatureError for unverifiable payloads.
    """

    @abstractmethod
    async def create_payable_reference(
        self,
        invoice_id: str,
        amount_minor: int,
        currency: str,
        description: str,
        destination_account: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PayableReference:
        """Create a collectible reference. A destination gets the amount minus the platform fee."""

    @abstractmethod
    def parse_event(self, payload: bytes, signature_header: Optional[str]) -> ProcessorEvent:
        """Verify and decode an inbound event."""

    @abstractmethod
    async def create_transfer(
        self,
        amount_minor: int,
        currency: str,
        destination_account: str,
        description: str,
        idempotency_key: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> TransferResult:
        """Move platform funds to a connected account."""

    @abstractmethod
    async def create_connected_account(self, email: str, metadata: Optional[Dict[str, str]] = None) -> str:
        """Create a connected account and return its id."""

    @abstractmethod
    async def retrieve_account(self, account_id: str) -> AccountStatus:
        """Fetch the current capabilities of a connected account."""

    @abstractmethod
    async def create_onboarding_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        """Create a hosted onboarding URL for a connected account."""

    @abstractmethod
    async def create_subscription_checkout(
        self,
        user_id: str,
        email: str,
        plan: str,
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
    ) -> str:
        """Create a hosted checkout URL for a plan subscription."""
