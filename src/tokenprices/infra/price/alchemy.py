"""Alchemy upstream: historical token prices and token birth dates."""

import logging
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from tokenprices.exceptions import ExternalServiceError, UpstreamUnavailable
from tokenprices.infra.http.rate_limited_client import RateLimitedClient
from tokenprices.infra.price.base import OriginLookup, PriceSource

logger = logging.getLogger(__name__)

PRICES_BASE_URL = "https://api.g.alchemy.com/prices/v1"

# Our network identifiers → Alchemy network slugs
ALCHEMY_NETWORKS: dict[str, str] = {
    "ethereum": "eth-mainnet",
    "arbitrum": "arb-mainnet",
    "optimism": "opt-mainnet",
    "polygon": "polygon-mainnet",
    "base": "base-mainnet",
    "bsc": "bnb-mainnet",
    "avalanche": "avax-mainnet",
}

# Half-width of the window queried around the target timestamp
WINDOW_SECONDS = 3600


def resolve_network(network: str) -> str:
    """Map a network identifier to Alchemy's slug. Alchemy slugs are accepted as-is."""
    if network in ALCHEMY_NETWORKS:
        return ALCHEMY_NETWORKS[network]
    if network in ALCHEMY_NETWORKS.values():
        return network
    raise UpstreamUnavailable(f"Network not supported by Alchemy: {network}")


def _parse_iso(value: str) -> int:
    return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())


def _iso(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class _AlchemyHTTP:
    def __init__(self, http_client: RateLimitedClient, api_key: str) -> None:
        self._http = http_client
        self._api_key = api_key

    def _require_key(self) -> None:
        if not self._api_key:
            raise UpstreamUnavailable("Alchemy API key not configured")

    @retry(
        retry=retry_if_exception_type(ExternalServiceError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _post(self, url: str, payload: dict[str, Any]) -> dict:
        try:
            resp = await self._http.post(url, json=payload)
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Alchemy request failed: {e}") from e

        # Rate limit or server error → retriable
        if resp.status_code == 429 or resp.status_code >= 500:
            raise ExternalServiceError(f"Alchemy returned {resp.status_code}")
        if resp.status_code != 200:
            raise UpstreamUnavailable(f"Alchemy returned {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamUnavailable(f"Alchemy returned a non-JSON body: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamUnavailable(f"Alchemy returned an unexpected body: {type(data).__name__}")
        return data


class AlchemyPriceSource(_AlchemyHTTP, PriceSource):
    """Historical USD prices from the Alchemy Prices API (by contract address)."""

    name = "alchemy"

    async def fetch_at(self, token_address: str, network: str, timestamp: int) -> Decimal:
        """Closest hourly price to ``timestamp`` within a ±1h window."""
        self._require_key()
        payload = {
            "network": resolve_network(network),
            "address": token_address,
            "startTime": _iso(timestamp - WINDOW_SECONDS),
            "endTime": _iso(timestamp + WINDOW_SECONDS),
            "interval": "1h",
        }
        url = f"{PRICES_BASE_URL}/{self._api_key}/tokens/historical"

        try:
            data = await self._post(url, payload)
        except ExternalServiceError as e:
            logger.warning("Alchemy price fetch failed for %s on %s: %s", token_address, network, e)
            raise UpstreamUnavailable(str(e)) from e

        if "error" in data:
            error = data["error"]
            msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise UpstreamUnavailable(f"Alchemy prices error: {msg}")

        points = data.get("data") or []
        if not points:
            raise UpstreamUnavailable(f"No Alchemy price for {token_address} on {network} near {timestamp}")

        try:
            closest = min(points, key=lambda p: abs(_parse_iso(p["timestamp"]) - timestamp))
            price = Decimal(str(closest["value"]))
        except (InvalidOperation, KeyError, TypeError, ValueError, AttributeError) as e:
            raise UpstreamUnavailable(f"Malformed Alchemy price data for {token_address}: {e!r}") from e
        if price < 0:
            raise UpstreamUnavailable(f"Negative Alchemy price for {token_address}: {price}")
        return price


class AlchemyOriginLookup(_AlchemyHTTP, OriginLookup):
    """Token birth date = block time of the earliest ERC-20 transfer of the contract."""

    async def get_first_seen(self, token_address: str, network: str) -> int:
        self._require_key()
        url = f"https://{resolve_network(network)}.g.alchemy.com/v2/{self._api_key}"
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "alchemy_getAssetTransfers",
            "params": [
                {
                    "fromBlock": "0x0",
                    "toBlock": "latest",
                    "contractAddresses": [token_address],
                    "category": ["erc20"],
                    "order": "asc",
                    "maxCount": "0x1",
                    "withMetadata": True,
                    "excludeZeroValue": False,
                }
            ],
        }

        try:
            data = await self._post(url, payload)
        except ExternalServiceError as e:
            raise UpstreamUnavailable(str(e)) from e

        if "error" in data:
            error = data["error"]
            msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise UpstreamUnavailable(f"Alchemy RPC error (alchemy_getAssetTransfers): {msg}")

        transfers = (data.get("result") or {}).get("transfers") or []
        if not transfers:
            raise UpstreamUnavailable(f"No transfers found for {token_address} on {network}")

        block_time = (transfers[0].get("metadata") or {}).get("blockTimestamp")
        if not block_time:
            raise UpstreamUnavailable(f"First transfer of {token_address} has no block timestamp")
        try:
            first_seen = _parse_iso(block_time)
        except (TypeError, ValueError, AttributeError) as e:
            raise UpstreamUnavailable(f"Malformed first transfer timestamp for {token_address}: {block_time!r}") from e
        logger.info("Token %s on %s first seen at %s", token_address, network, block_time)
        return first_seen
