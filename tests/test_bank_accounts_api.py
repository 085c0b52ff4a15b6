"""
Bank account linking endpoint tests.
"""

import pytest

from app.core.integrations.bank_link.plaid_client import PlaidClient
from app.deps.di_container import get_bank_link_client
from app.main import app
from conftest import FakeBankLinkClient
from test_invoices_api import API


@pytest.mark.asyncio
async def test_link_flow(test_client, auth_headers, bank_link_client):
    token = await test_client.post(f"{API}/bank-accounts/link-token", headers=auth_headers)
    assert token.status_code == 200
    assert token.json() == {"link_token": "link-sandbox-123"}

    linked = await test_client.post(
        f"{API}/bank-accounts/exchange",
        json={"public_token": "public-sandbox-1", "institution_name": "First Bank"},
        headers=auth_headers,
    )
    assert linked.status_code == 200
    account = linked.json()
    assert account["account_id"] == "acc-checking"
    assert account["account_type"] == "checking"
    assert account["institution_name"] == "First Bank"
    assert "access_token" not in account

    status = await test_client.get(f"{API}/bank-accounts", headers=auth_headers)
    assert status.json()["connected"] is True
    assert status.json()["account"]["mask"] == "0000"

    removed = await test_client.delete(f"{API}/bank-accounts", headers=auth_headers)
    assert removed.status_code == 204
    assert bank_link_client.calls[-1] == "/item/remove"

    status = await test_client.get(f"{API}/bank-accounts", headers=auth_headers)
    assert status.json()["connected"] is False


@pytest.mark.asyncio
async def test_relinking_replaces_account(test_client, auth_headers):
    for _ in range(2):
        response = await test_client.post(
            f"{API}/bank-accounts/exchange",
            json={"public_token": "public-sandbox-1"},
            headers=auth_headers,
        )
        assert response.status_code == 200

    status = await test_client.get(f"{API}/bank-accounts", headers=auth_headers)
    assert status.json()["account"]["institution_name"] == "Unknown Bank"


@pytest.mark.asyncio
async def test_no_accounts_is_400(test_client, auth_headers):
    app.dependency_overrides[get_bank_link_client] = lambda: FakeBankLinkClient(accounts=[])

    response = await test_client.post(
        f"{API}/bank-accounts/exchange",
        json={"public_token": "public-sandbox-1"},
        headers=auth_headers,
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_disconnect_survives_provider_failure(test_client, auth_headers):
    client = FakeBankLinkClient(fail_remove=True)
    app.dependency_overrides[get_bank_link_client] = lambda: client
    await test_client.post(
        f"{API}/bank-accounts/exchange",
        json={"public_token": "public-sandbox-1"},
        headers=auth_headers,
    )

    response = await test_client.delete(f"{API}/bank-accounts", headers=auth_headers)

    assert response.status_code == 204
    status = await test_client.get(f"{API}/bank-accounts", headers=auth_headers)
    assert status.json()["connected"] is False


@pytest.mark.asyncio
async def test_disconnect_without_account_is_404(test_client, auth_headers):
    response = await test_client.delete(f"{API}/bank-accounts", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unconfigured_provider_is_503(test_client, auth_headers):
    app.dependency_overrides[get_bank_link_client] = lambda: PlaidClient(client_id="", secret="")

    response = await test_client.post(f"{API}/bank-accounts/link-token", headers=auth_headers)

    assert response.status_code == 503
