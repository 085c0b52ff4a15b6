"""
Plaid bank-linking client over the shared aiohttp HttpClient.
Only account metadata is read; no money moves through Plaid.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import logging

import aiohttp

from app.core.exceptions import BankLinkError
from app.core.integrations.http.http_client import HttpClient, HttpStatusError

logger = logging.getLogger(__name__)

PLAID_HOSTS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}


@dataclass(frozen=True)
class LinkedAccount:
    """Account metadata as reported by the aggregator."""
    account_id: str
    name: str
    type: str
    subtype: Optional[str]
    mask: Optional[str]


class PlaidClient:
    """Thin client for the Plaid endpoints used for payout account verification."""

    def __init__(
        self,
        client_id: str,
        secret: str,
        environment: str = "sandbox",
        webhook_url: Optional[str] = None,
        timeout: int = 30,
        http_client: Optional[HttpClient] = None,
    ):
        if environment not in PLAID_HOSTS:
            raise ValueError(f"Unknown Plaid environment '{environment}'")
        self.client_id = client_id
        self.secret = secret
        self.environment = environment
        self.webhook_url = webhook_url
        self.http = http_client or HttpClient(base_url=PLAID_HOSTS[environment], timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.secret)

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.configured:
            raise BankLinkError("Bank linking is not configured", retryable=False)

        body = {"client_id": self.client_id, "secret": self.secret, **payload}
        try:
            return await self.http.post(endpoint, json=body)
        except HttpStatusError as e:
            error = e.body if isinstance(e.body, dict) else {}
            logger.error(
                "Plaid request rejected",
                extra={
                    "endpoint": endpoint,
                    "status": e.status,
                    "error_code": error.get("error_code"),
                    "request_id": error.get("request_id"),
                },
            )
            raise BankLinkError(
                "Bank-linking provider rejected the request",
                details=error.get("error_message") or str(e),
                retryable=e.status >= 500,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Plaid request failed", extra={"endpoint": endpoint, "error": str(e)})
            raise BankLinkError("Bank-linking provider is unreachable", details=str(e))

    async def create_link_token(self, user_id: str) -> str:
        payload: Dict[str, Any] = {
            "user": {"client_user_id": user_id},
            "client_name": "QuickBill Pro",
            "products": ["auth"],
            "country_codes": ["US"],
            "language": "en",
            "account_filters": {
                "depository": {"account_subtypes": ["checking", "savings"]},
            },
        }
        if self.webhook_url:
            payload["webhook"] = self.webhook_url
        data = await self._post("/link/token/create", payload)
        return data["link_token"]

    async def exchange_public_token(self, public_token: str) -> Tuple[str, str]:
        """Returns (access_token, item_id)."""
        data = await self._post("/item/public_token/exchange", {"public_token": public_token})
        return data["access_token"], data["item_id"]

    async def get_accounts(self, access_token: str) -> List[LinkedAccount]:
        data = await self._post("/accounts/get", {"access_token": access_token})
        return [
            LinkedAccount(
                account_id=account["account_id"],
                name=account.get("name") or account.get("official_name") or "Account",
                type=account.get("type") or "depository",
                subtype=account.get("subtype"),
                mask=account.get("mask"),
            )
            for account in data.get("accounts", [])
        ]

    async def remove_item(self, access_token: str) -> None:
        await self._post("/item/remove", {"access_token": access_token})

    async def close(self) -> None:
        await self.http.close()
