"""Tronscan scanner for incoming TRC20 transfers.

Uses the public Tronscan transfer listing:
https://apilist.tronscan.org/api/token_trc20/transfers

The endpoint is rate limited, so requests are retried with exponential
backoff and jitter on 429, 5xx and network errors.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from trc20watch import __version__
from trc20watch.config import TRONSCAN_TRANSFERS_URL
from trc20watch.exceptions import UpstreamOrderError
from trc20watch.scanner.base import TransferRecord, block_ts_of

logger = logging.getLogger(__name__)

# Fixed per-request timeout (seconds)
REQUEST_TIMEOUT = 15.0


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings for upstream requests."""

    retries: int = 6
    base_delay: float = 0.9  # seconds
    max_jitter: float = 0.25  # seconds

    def is_retryable(self, error: Exception) -> bool:
        """429, any 5xx, or a request that never got a response."""
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            return status == 429 or 500 <= status <= 599
        return isinstance(error, httpx.TransportError)

    def delay_for(self, attempt: int, retry_after: float = 0) -> float:
        """Seconds to wait before retry number ``attempt + 1``.

        A positive Retry-After wins over the exponential schedule. Jitter is
        added either way.
        """
        if retry_after > 0:
            delay = retry_after
        else:
            delay = self.base_delay * (2**attempt)
        return delay + random.uniform(0, self.max_jitter)


def status_of(error: Exception) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def _retry_after_seconds(error: Exception) -> float:
    """Parse a numeric Retry-After header (HTTP dates are ignored)."""
    if not isinstance(error, httpx.HTTPStatusError):
        return 0
    try:
        return max(float(error.response.headers.get("retry-after", 0)), 0)
    except ValueError:
        return 0


class TronscanClient:
    """Fetches pages of TRC20 transfers for one address."""

    def __init__(
        self,
        api_url: str = TRONSCAN_TRANSFERS_URL,
        policy: Optional[RetryPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize Tronscan client.

        Args:
            api_url: Transfers endpoint
            policy: Retry/backoff settings
            client: Optional shared httpx client (created lazily if omitted)
            sleep: Coroutine used for backoff waits
        """
        self.api_url = api_url
        self.policy = policy or RetryPolicy()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

        self._headers = {
            "Accept": "application/json",
            "User-Agent": f"trc20watch/{__version__}",
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch_page(
        self, address: str, contract: str, start: int, limit: int
    ) -> list[dict[str, Any]]:
        """Get one page of transfers touching ``address``, newest first.

        Args:
            address: TRON address (T... format)
            contract: TRC20 contract filter
            start: Offset of the first transfer
            limit: Page size

        Returns:
            Raw ``token_transfers`` entries (empty list if none)
        """
        params = {
            "relatedAddress": address,
            "contract_address": contract,
            "limit": limit,
            "start": start,
            "sort": "-timestamp",
        }
        response = await self._get_with_retry(params)

        data = response.json()
        transfers = data.get("token_transfers") if isinstance(data, dict) else None
        return transfers if isinstance(transfers, list) else []

    async def _get_with_retry(self, params: dict[str, Any]) -> httpx.Response:
        attempt = 0

        while True:
            try:
                response = await self._get_client().get(
                    self.api_url,
                    params=params,
                    headers=self._headers,
                    timeout=REQUEST_TIMEOUT,
                )
                response.raise_for_status()
                return response

            except (httpx.HTTPStatusError, httpx.TransportError) as e:
                if not self.policy.is_retryable(e) or attempt >= self.policy.retries:
                    raise

                delay = self.policy.delay_for(attempt, _retry_after_seconds(e))
                logger.warning(
                    f"Tronscan limited (status={status_of(e)}). Retry in {delay:.2f}s "
                    f"(attempt {attempt + 1}/{self.policy.retries})"
                )
                await self._sleep(delay)
                attempt += 1


class WalletScanner:
    """Collects new incoming transfers for a wallet.

    Relies on the feed being sorted by block time, newest first: the first
    incoming transfer at or below the watermark ends the scan. The order is
    checked while paging and a violation raises ``UpstreamOrderError``
    instead of silently skipping older transfers.
    """

    def __init__(
        self,
        client: TronscanClient,
        contract: str,
        page_size: int = 20,
        max_pages: int = 3,
    ):
        self.client = client
        self.contract = contract
        self.page_size = page_size
        self.max_pages = max_pages

    async def scan_incoming(self, address: str, since_ts: int) -> list[TransferRecord]:
        """Get transfers to ``address`` newer than ``since_ts``.

        Args:
            address: Tracked wallet address
            since_ts: Watermark (ms); transfers at or below it are not new

        Returns:
            New incoming transfers, oldest first
        """
        incoming: list[TransferRecord] = []
        previous_ts: Optional[int] = None

        for page in range(self.max_pages):
            entries = await self.client.fetch_page(
                address, self.contract, start=page * self.page_size, limit=self.page_size
            )
            if not entries:
                break

            for entry in entries:
                block_ts = block_ts_of(entry)
                if previous_ts is not None and block_ts > previous_ts:
                    raise UpstreamOrderError(address, previous_ts, block_ts)
                previous_ts = block_ts

                # Incoming only
                if str(entry.get("to_address") or "").strip() != address:
                    continue

                if block_ts <= since_ts:
                    logger.debug(f"Reached watermark {since_ts} for {address} on page {page + 1}")
                    incoming.reverse()
                    return incoming

                incoming.append(TransferRecord.from_api(entry))

            if len(entries) < self.page_size:
                break

        incoming.reverse()
        return incoming
