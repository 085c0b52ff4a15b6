"""
Generic async HTTP client wrapper using aiohttp.
Retries with exponential backoff on connection errors, timeouts and 5xx.
"""

import asyncio
from typing import Optional, Dict, Any
import aiohttp
import logging

logger = logging.getLogger(__name__)


class HttpStatusError(Exception):
    """Non-success HTTP response that is not worth retrying, or retries ran out."""

    def __init__(self, status: int, body: Any, url: str):
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"HTTP {status} from {url}")


class HttpClient:
    """
    Async HTTP client wrapper using aiohttp.
    Provides get/post/delete methods that return decoded JSON.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        """
        Initialize HTTP client.

        Args:
            base_url: Optional base URL for all requests
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts
            retry_delay: Initial delay between retries in seconds
        """
        self.base_url = base_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def _build_url(self, endpoint: str) -> str:
        """Build full URL from endpoint."""
        if self.base_url:
            return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        return endpoint

    @staticmethod
    async def _read_body(response: aiohttp.ClientResponse) -> Any:
        try:
            return await response.json(content_type=None)
        except ValueError:
            return await response.text()

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> Any:
        """
        Make HTTP request with retry logic.

        Returns:
            Decoded response body

        Raises:
            HttpStatusError: 4xx response, or 5xx after the last attempt
            aiohttp.ClientError / asyncio.TimeoutError: transport failure after the last attempt
        """
        session = await self._get_session()
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                async with session.request(method, url, **kwargs) as response:
                    body = await self._read_body(response)
                    if response.status < 400:
                        return body
                    error = HttpStatusError(response.status, body, url)
                    if response.status < 500:
                        raise error
                    last_exception = error
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e

            if attempt < self.max_retries - 1:
                delay = self.retry_delay * (2 ** attempt)  # Exponential backoff
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{self.max_retries}): {last_exception}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(f"Request failed after {self.max_retries} attempts: {last_exception}")

        raise last_exception

    async def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Make GET request and return the decoded body."""
        url = self._build_url(endpoint)
        return await self._request_with_retry("GET", url, params=params, headers=headers)

    async def post(
        self,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Make POST request with a JSON body and return the decoded body."""
        url = self._build_url(endpoint)
        return await self._request_with_retry("POST", url, json=json, headers=headers)

    async def delete(
        self,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Make DELETE request and return the decoded body."""
        url = self._build_url(endpoint)
        return await self._request_with_retry("DELETE", url, headers=headers)
