"""
Remote Ledger HTTP Clients

DESIGN DECISION: The remote ledger is a spreadsheet behind a web-app
webhook (Google Apps Script in the reference deployment):

    GET  <endpoint>?cache_bust=<ms>   -> JSON array of transactions
    POST <endpoint>  (text/plain body) -> opaque response

The POST response is not interpretable (the script answers with a redirect
and no usable body), so a push is successful when the transport raised
nothing. Reads are idempotent and retried; writes are never retried,
because a retry after a lost response would append the row twice.
"""

import json
import time
from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cashflow.models.ledger import Transaction


logger = structlog.get_logger(__name__)

CACHE_BUST_PARAM = "cache_bust"
CONFIG_ENDPOINT_KEYS = ("endpoint_url", "gsheetUrl")


class SyncError(Exception):
    """Base exception for remote sync operations."""
    pass


class InvalidEndpointError(SyncError):
    """The endpoint URL is malformed; no request was made."""
    pass


def validate_endpoint(url: Optional[str]) -> httpx.URL:
    """
    Parse and check an endpoint URL before any request is made.

    Raises:
        InvalidEndpointError: If the URL is empty, unparseable, not
            http(s), or has no host
    """
    if not url or not str(url).strip():
        raise InvalidEndpointError("No endpoint URL configured")

    try:
        parsed = httpx.URL(str(url).strip())
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise InvalidEndpointError(f"Malformed endpoint URL {url!r}: {e}")

    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidEndpointError(f"Malformed endpoint URL {url!r}")
    return parsed


class RemoteLedgerClient:
    """
    Low-level client for the remote ledger webhook.

    Handles cache busting, read retries and error translation.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        fetch_attempts: int = 3,
        retry_wait_min: float = 0.5,
        retry_wait_max: float = 4.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            timeout: HTTP request timeout (seconds)
            fetch_attempts: Attempts per GET before giving up
            retry_wait_min: Shortest backoff between GET attempts
            retry_wait_max: Longest backoff between GET attempts
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.timeout = timeout
        self.fetch_attempts = fetch_attempts
        self._retry_wait_min = retry_wait_min
        self._retry_wait_max = retry_wait_max
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """HTTP client (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    @staticmethod
    def cache_busted(url: httpx.URL) -> httpx.URL:
        """The URL with a current-time query parameter to defeat caches."""
        return url.copy_set_param(CACHE_BUST_PARAM, str(int(time.time() * 1000)))

    async def fetch(self, endpoint: str) -> Any:
        """
        Read the remote transaction list.

        Returns:
            The decoded JSON payload (usually a list), or None if the body
            is not JSON

        Raises:
            SyncError: On a malformed URL, transport failure or non-2xx
                status after all attempts
        """
        url = validate_endpoint(endpoint)
        client = await self._get_client()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.fetch_attempts),
                wait=wait_exponential(
                    multiplier=self._retry_wait_min,
                    min=self._retry_wait_min,
                    max=self._retry_wait_max,
                ),
                retry=retry_if_exception_type(httpx.HTTPError),
                reraise=True,
            ):
                with attempt:
                    response = await client.get(
                        str(self.cache_busted(url)),
                        headers={"Accept": "application/json"},
                        follow_redirects=True,
                    )
                    response.raise_for_status()
        except httpx.HTTPError as e:
            raise SyncError(f"Failed to fetch remote ledger: {e}")

        try:
            return response.json()
        except ValueError as e:
            logger.warning("remote_payload_not_json", error=str(e))
            return None

    async def send(self, endpoint: str, transaction: Transaction) -> None:
        """
        Append one transaction to the remote ledger.

        The response is ignored: no exception means success.

        Raises:
            SyncError: On a malformed URL or transport failure
        """
        url = validate_endpoint(endpoint)
        client = await self._get_client()
        body = json.dumps(transaction.to_wire(), ensure_ascii=False)

        try:
            await client.post(
                str(url),
                content=body.encode("utf-8"),
                headers={"Content-Type": "text/plain;charset=utf-8"},
            )
        except httpx.HTTPError as e:
            raise SyncError(f"Failed to send transaction {transaction.id}: {e}")


class ConfigClient:
    """
    One-time fetch of the endpoint URL from a config endpoint.

    Expects {"endpoint_url": "..."}; the older {"gsheetUrl": "..."} shape
    is accepted too.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._transport = transport

    async def fetch_endpoint_url(self, config_url: str) -> Optional[str]:
        """
        Resolve the endpoint URL.

        Returns None when the field is absent or anything fails; the
        caller keeps whatever endpoint it already had.
        """
        try:
            url = validate_endpoint(config_url)
        except InvalidEndpointError as e:
            logger.error("config_url_invalid", error=str(e))
            return None

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(str(url))
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("config_fetch_failed", error=str(e))
            return None

        if not isinstance(data, dict):
            logger.warning("config_not_an_object", payload_type=type(data).__name__)
            return None

        for key in CONFIG_ENDPOINT_KEYS:
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None
