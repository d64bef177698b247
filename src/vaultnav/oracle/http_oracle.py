"""HTTP price oracle client with batching, retry, and rate-limit handling.

Fetches live USD prices from a Jupiter-style price endpoint:

    GET {base_url}?ids=KEY1,KEY2,...
    -> {"KEY1": {"usdPrice": 1.23, "priceChange24h": -0.4}, ...}

Resilience contract:
- Keys are fetched in sequential batches of ``batch_size`` with ``batch_delay``
  between batches.
- Each batch is retried up to ``max_retries`` attempts with delays of
  ``retry_base_delay * 2**attempt`` (0.5s, 1s, 2s, 4s with defaults).
- Rate limits (HTTP 429 or a plain-text "Rate limit..." body) that persist
  after all attempts stop the fetch and return the partial map flagged
  ``rate_limited``; no exception is raised.
- Timeouts that persist raise OracleTimeoutError; other persistent failures
  raise OracleError.
- Keys the oracle does not quote are reported in ``missing_keys``.
"""

import asyncio
from decimal import Decimal, InvalidOperation
from typing import Self

import httpx

from vaultnav.config import OracleSettings
from vaultnav.exceptions import OracleError, OracleRateLimitedError, OracleTimeoutError
from vaultnav.logging import get_logger
from vaultnav.models import OraclePrice
from vaultnav.oracle.client import PriceFetchResult, PriceOracle
from vaultnav.oracle.rate_limit import ResponseKind, classify_response, is_rate_limit_error

logger = get_logger(__name__)


def _chunk(keys: list[str], size: int) -> list[list[str]]:
    return [keys[i : i + size] for i in range(0, len(keys), size)]


def _to_decimal(raw: object) -> Decimal | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


class HttpPriceOracle(PriceOracle):
    """Live price oracle over HTTP using httpx.

    Usage:
        async with HttpPriceOracle(settings.oracle) as oracle:
            result = await oracle.fetch_prices(["So111...", "EPjF..."])
            prices = result.usd_prices()

    Args:
        settings: Oracle endpoint and resilience settings.
        client: Optional pre-built httpx client (tests inject a MockTransport).
    """

    def __init__(
        self,
        settings: OracleSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()

    # ──────────────────────────────────────────────
    # Public methods
    # ──────────────────────────────────────────────

    async def fetch_prices(self, asset_keys: list[str]) -> PriceFetchResult:
        """Fetch current USD prices for ``asset_keys`` in sequential batches."""
        keys = list(dict.fromkeys(k for k in asset_keys if k))
        result = PriceFetchResult()
        if not keys:
            return result

        batches = _chunk(keys, max(1, self._settings.batch_size))
        for i, batch in enumerate(batches):
            if i > 0:
                await asyncio.sleep(self._settings.batch_delay)

            quotes = await self._fetch_batch_with_retry(batch)
            if quotes is None:
                result.rate_limited = True
                logger.error(
                    "oracle_rate_limit_exhausted",
                    batch=f"{i + 1}/{len(batches)}",
                    skipped_keys=sum(len(b) for b in batches[i:]),
                )
                break
            result.prices.update(quotes)

        result.missing_keys = [k for k in keys if k not in result.prices]
        if result.missing_keys:
            logger.info(
                "oracle_prices_missing",
                requested=len(keys),
                missing=len(result.missing_keys),
                rate_limited=result.rate_limited,
            )
        return result

    # ──────────────────────────────────────────────
    # Retry wrapper
    # ──────────────────────────────────────────────

    async def _fetch_batch_with_retry(self, batch: list[str]) -> dict[str, OraclePrice] | None:
        """Fetch one batch with exponential backoff.

        Returns None when the oracle is still rate limiting after the final attempt.
        """
        max_retries = max(1, self._settings.max_retries)
        base_delay = self._settings.retry_base_delay

        # Small pause before the first call to ease burst pressure
        await asyncio.sleep(self._settings.initial_delay)

        for attempt in range(max_retries):
            try:
                return await self._request(batch)
            except (httpx.HTTPError, OracleError) as e:
                is_last = attempt == max_retries - 1
                rate_limited = is_rate_limit_error(e)

                if is_last:
                    if rate_limited:
                        return None
                    logger.error(
                        "oracle_fetch_failed_permanently",
                        error=str(e),
                        attempts=max_retries,
                    )
                    if isinstance(e, httpx.TimeoutException):
                        raise OracleTimeoutError(
                            f"Oracle timed out after {max_retries} attempts"
                        ) from e
                    if isinstance(e, OracleError):
                        raise
                    raise OracleError(f"Oracle request failed: {e}") from e

                delay = base_delay * (2**attempt)
                if rate_limited:
                    logger.warning(
                        "oracle_rate_limited",
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay=delay,
                    )
                else:
                    logger.warning(
                        "oracle_fetch_retry",
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay=delay,
                        error=str(e),
                    )
                await asyncio.sleep(delay)

        return None  # Unreachable, but satisfies type checker

    # ──────────────────────────────────────────────
    # Request / parsing
    # ──────────────────────────────────────────────

    async def _request(self, batch: list[str]) -> dict[str, OraclePrice]:
        headers: dict[str, str] = {}
        api_key = self._settings.api_key.get_secret_value()
        if api_key:
            headers["x-api-key"] = api_key

        response = await self._client.get(
            self._settings.base_url,
            params={"ids": ",".join(batch)},
            headers=headers,
        )
        body = response.text

        kind = classify_response(response.status_code, body)
        if kind is ResponseKind.RATE_LIMITED:
            raise OracleRateLimitedError(f"Rate limited (HTTP {response.status_code})")
        if kind is ResponseKind.ERROR:
            raise OracleError(f"Oracle HTTP {response.status_code}: {body[:200]}")

        try:
            payload = response.json()
        except ValueError as e:
            raise OracleError(f"Invalid JSON response: {body[:200]}") from e
        if not isinstance(payload, dict):
            raise OracleError(f"Unexpected payload type {type(payload).__name__}")

        return self._parse(payload, batch)

    def _parse(self, payload: dict, batch: list[str]) -> dict[str, OraclePrice]:
        quotes: dict[str, OraclePrice] = {}
        for key in batch:
            entry = payload.get(key)
            if not isinstance(entry, dict):
                continue
            price = _to_decimal(entry.get("usdPrice"))
            if price is None or price < 0:
                logger.warning("invalid_oracle_price", asset_key=key, raw=entry.get("usdPrice"))
                continue
            quotes[key] = OraclePrice(
                usd_price=price,
                price_change_24h=_to_decimal(entry.get("priceChange24h")),
            )
        return quotes
