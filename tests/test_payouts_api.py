"""
Payout destination, subscription and profile endpoint tests.
"""

import pytest

from app.core.integrations.payments.base import AccountStatus
from test_invoices_api import API


@pytest.mark.asyncio
async def test_destination_onboarding_flow(test_client, auth_headers, gateway):
    created = await test_client.post(f"{API}/payout-destination", headers=auth_headers)
    assert created.status_code == 200
    account_id = created.json()["processor_account_id"]
    assert created.json()["onboarding_complete"] is False

    link = await test_client.post(f"{API}/payout-destination/onboarding-link", headers=auth_headers)
    assert link.json() == {"url": f"https://connect.test/onboarding/{account_id}"}

    gateway.accounts[account_id] = AccountStatus(account_id, True, True, True, {"currently_due": []})
    status = await test_client.get(f"{API}/payout-destination/status", headers=auth_headers)
    assert status.status_code == 200
    assert status.json()["connected"] is True
    assert status.json()["destination"]["payouts_enabled"] is True

    summary = await test_client.get(f"{API}/payouts", headers=auth_headers)
    assert summary.json()["payouts_enabled"] is True
    assert summary.json()["recent_payouts"] == []


@pytest.mark.asyncio
async def test_onboarding_link_without_destination_is_404(test_client, auth_headers):
    response = await test_client.post(f"{API}/payout-destination/onboarding-link", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_status_without_destination(test_client, auth_headers):
    response = await test_client.get(f"{API}/payout-destination/status", headers=auth_headers)
    assert response.json() == {"connected": False, "destination": None, "requirements": {}}


@pytest.mark.asyncio
async def test_current_user(test_client, auth_headers):
    response = await test_client.get(f"{API}/users/me", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "freelancer@example.com"
    assert body["plan"] == "free"
    assert body["max_invoices"] == 3
    assert body["can_create_invoice"] is True


@pytest.mark.asyncio
async def test_subscription_checkout(test_client, auth_headers, gateway):
    response = await test_client.post(f"{API}/subscriptions/checkout", json={"plan": "pro"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.test/pro"}
    assert gateway.checkouts[0]["plan"] == "pro"


@pytest.mark.asyncio
async def test_free_plan_checkout_is_400(test_client, auth_headers):
    response = await test_client.post(f"{API}/subscriptions/checkout", json={"plan": "free"}, headers=auth_headers)
    assert response.status_code == 400
