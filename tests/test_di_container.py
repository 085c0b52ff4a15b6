"""
Integration client wiring in the dependency container.
"""

import pytest

from app.core.config import settings
from app.core.integrations.payments.stripe_gateway import StripeGateway
from app.deps.di_container import (
    get_bank_link_client,
    get_mailer,
    get_payment_gateway,
    reset_integrations,
)


@pytest.fixture
async def rotated_env(monkeypatch):
    yield monkeypatch
    monkeypatch.undo()
    await reset_integrations()


def test_clients_are_cached():
    assert get_mailer() is get_mailer()
    assert get_bank_link_client() is get_bank_link_client()


@pytest.mark.asyncio
async def test_reset_reads_rotated_environment(rotated_env):
    rotated_env.setenv("STRIPE_SECRET_KEY", "sk_test_rotated")
    rotated_env.setenv("SMTP_HOST", "smtp.rotated.test")
    rotated_env.setenv("SMTP_PORT", "2525")
    rotated_env.setenv("PLAID_CLIENT_ID", "plaid-id")
    rotated_env.setenv("PLAID_SECRET", "plaid-secret")
    before = get_mailer()

    await reset_integrations()

    assert settings.SMTP_HOST == "smtp.rotated.test"
    assert get_mailer() is not before
    assert get_mailer().host == "smtp.rotated.test"
    assert get_mailer().port == 2525
    assert isinstance(get_payment_gateway(), StripeGateway)
    assert get_bank_link_client().configured


@pytest.mark.asyncio
async def test_reset_closes_previous_bank_link_session(rotated_env):
    old_client = get_bank_link_client()
    session = await old_client.http._get_session()

    await reset_integrations()

    assert session.closed
    assert get_bank_link_client() is not old_client


@pytest.mark.asyncio
async def test_gateway_absent_without_secret_key(rotated_env):
    rotated_env.setenv("STRIPE_SECRET_KEY", "")

    await reset_integrations()

    assert get_payment_gateway() is None
