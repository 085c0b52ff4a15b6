"""
Pytest configuration and fixtures.
Provides an in-memory database, seeded users, fake integrations and an HTTP
client wired to them through dependency overrides.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
import itertools

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.main import app
from app.core.exceptions import NotificationDeliveryError, WebhookSignatureError
from app.core.integrations.bank_link.plaid_client import PlaidClient
from app.core.integrations.email.mailer import Mailer
from app.core.integrations.payments.base import (
    AccountStatus,
    PayableReference,
    PaymentGateway,
    ProcessorEvent,
    TransferResult,
)
from app.core.security import create_access_token
from app.db import session as db_session
from app.db.base import Base
from app.db.session import get_db
from app.deps.di_container import get_bank_link_client, get_mailer, get_payment_gateway
from app.models.user import PlanTier, User
from app.schemas.invoice import InvoiceCreate, InvoiceLineItemCreate
from app.utils.money import split_fee


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakePaymentGateway(PaymentGateway):
    """Records calls and returns predictable processor objects."""

    def __init__(self, fee_percent: Decimal = Decimal("3")):
        self.fee_percent = fee_percent
        self.counter = itertools.count(1)
        self.references: List[Dict[str, Any]] = []
        self.transfers: List[Dict[str, Any]] = []
        self.accounts: Dict[str, AccountStatus] = {}
        self.checkouts: List[Dict[str, Any]] = []
        self.events: List[ProcessorEvent] = []
        self.fail_transfers_for: set = set()
        self.fail_references = False
        self.fail_account_lookups = False

    async def create_payable_reference(
        self,
        invoice_id,
        amount_minor,
        currency,
        description,
        destination_account=None,
        metadata=None,
    ) -> PayableReference:
        if self.fail_references:
            from app.core.exceptions import PaymentProcessorError
            raise PaymentProcessorError("Payment processor rejected checkout session creation")
        split = split_fee(amount_minor, self.fee_percent if destination_account else 0)
        n = next(self.counter)
        self.references.append({
            "invoice_id": invoice_id,
            "amount_minor": amount_minor,
            "currency": currency,
            "destination_account": destination_account,
        })
        return PayableReference(
            reference_id=f"cs_test_{n}",
            url=f"https://pay.test/cs_test_{n}",
            amount_minor=split.amount_minor,
            platform_fee_minor=split.platform_fee_minor,
            destination_amount_minor=split.destination_amount_minor,
        )

    def parse_event(self, payload, signature_header) -> ProcessorEvent:
        if signature_header != "valid":
            raise WebhookSignatureError("Invalid webhook signature")
        return self.events.pop(0)

    async def create_transfer(
        self,
        amount_minor,
        currency,
        destination_account,
        description,
        idempotency_key,
        metadata=None,
    ) -> TransferResult:
        if destination_account in self.fail_transfers_for:
            from app.core.exceptions import PaymentProcessorError
            raise PaymentProcessorError("Payment processor rejected transfer")
        n = next(self.counter)
        self.transfers.append({
            "amount_minor": amount_minor,
            "currency": currency,
            "destination_account": destination_account,
            "idempotency_key": idempotency_key,
        })
        return TransferResult(transfer_id=f"tr_test_{n}")

    async def create_connected_account(self, email, metadata=None) -> str:
        account_id = f"acct_test_{next(self.counter)}"
        self.accounts[account_id] = AccountStatus(account_id, False, False, False)
        return account_id

    async def retrieve_account(self, account_id) -> AccountStatus:
        if self.fail_account_lookups:
            from app.core.exceptions import PaymentProcessorError
            raise PaymentProcessorError("Payment processor timed out during account lookup", details="timeout")
        if account_id not in self.accounts:
            from app.core.exceptions import ProcessorResourceMissing
            raise ProcessorResourceMissing("Payment processor has no object for account lookup")
        return self.accounts[account_id]

    async def create_onboarding_link(self, account_id, refresh_url, return_url) -> str:
        return f"https://connect.test/onboarding/{account_id}"

    async def create_subscription_checkout(
        self,
        user_id,
        email,
        plan,
        success_url,
        cancel_url,
        customer_id=None,
    ) -> str:
        self.checkouts.append({"user_id": user_id, "plan": plan, "customer_id": customer_id})
        return f"https://checkout.test/{plan}"


class FakeMailer(Mailer):
    """Mailer that keeps messages in memory."""

    def __init__(self, fail: bool = False):
        super().__init__(host="smtp.test", from_address="billing@quickbill.test")
        self.fail = fail
        self.sent: List[Dict[str, Any]] = []

    async def send(self, recipient, subject, html, text=None, reply_to=None) -> str:
        if self.fail:
            raise NotificationDeliveryError("Email delivery failed", details="connection refused")
        message_id = f"<msg-{len(self.sent) + 1}@quickbill.test>"
        self.sent.append({
            "recipient": recipient,
            "subject": subject,
            "html": html,
            "text": text,
            "reply_to": reply_to,
            "message_id": message_id,
        })
        return message_id


class FakeBankLinkClient(PlaidClient):
    """Plaid client whose transport returns canned responses."""

    def __init__(self, accounts: Optional[List[Dict[str, Any]]] = None, fail_remove: bool = False):
        super().__init__(client_id="client-id", secret="secret")
        self.accounts = accounts if accounts is not None else [
            {"account_id": "acc-credit", "name": "Card", "type": "credit", "subtype": "credit card", "mask": "4444"},
            {"account_id": "acc-checking", "name": "Checking", "type": "depository", "subtype": "checking", "mask": "0000"},
        ]
        self.fail_remove = fail_remove
        self.calls: List[str] = []

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(endpoint)
        if endpoint == "/link/token/create":
            return {"link_token": "link-sandbox-123"}
        if endpoint == "/item/public_token/exchange":
            return {"access_token": "access-sandbox-1", "item_id": "item-1"}
        if endpoint == "/accounts/get":
            return {"accounts": self.accounts}
        if endpoint == "/item/remove":
            if self.fail_remove:
                from app.core.exceptions import BankLinkError
                raise BankLinkError("Bank-linking provider rejected the request")
            return {"removed": True}
        raise AssertionError(f"Unexpected endpoint {endpoint}")


@pytest.fixture(scope="function")
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
async def test_db_session(test_engine, monkeypatch):
    """
    Create a test database session.
    Uses in-memory SQLite for fast tests.
    """
    test_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    # Health checks open their own session
    monkeypatch.setattr(db_session, "async_session_maker", test_session_maker)

    async with test_session_maker() as session:
        yield session


async def make_user(
    session: AsyncSession,
    email: str = "freelancer@example.com",
    plan: PlanTier = PlanTier.FREE,
    max_invoices: int = 3,
) -> User:
    user = User(
        email=email,
        name="Fran Lancer",
        company="Lancer Studio",
        plan=plan,
        max_invoices=max_invoices,
        invoices_this_month=0,
        invoice_sequence=0,
    )
    session.add(user)
    await session.commit()
    return user


def invoice_payload(client_id="new", **overrides) -> InvoiceCreate:
    data = {
        "client_id": client_id,
        "due_date": date.today() + timedelta(days=30),
        "tax_rate": Decimal("10"),
        "items": [
            InvoiceLineItemCreate(description="Design work", quantity=2, rate=Decimal("50.00")),
            InvoiceLineItemCreate(description="Hosting", quantity=1, rate=Decimal("25.00")),
        ],
    }
    if client_id == "new":
        data["new_client"] = {"name": "Acme Corp", "email": "billing@acme.example.com"}
    data.update(overrides)
    return InvoiceCreate(**data)


@pytest.fixture
async def user(test_db_session) -> User:
    return await make_user(test_db_session)


@pytest.fixture
async def pro_user(test_db_session) -> User:
    return await make_user(test_db_session, email="pro@example.com", plan=PlanTier.PRO, max_invoices=-1)


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def bank_link_client() -> FakeBankLinkClient:
    return FakeBankLinkClient()


@pytest.fixture
def auth_headers(user) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture(scope="function")
async def test_client(test_db_session, gateway, mailer, bank_link_client):
    """
    Create a test HTTP client.
    Requests share the test session so assertions see the same rows.
    """
    async def override_get_db():
        try:
            yield test_db_session
            await test_db_session.commit()
        except Exception:
            await test_db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_bank_link_client] = lambda: bank_link_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
