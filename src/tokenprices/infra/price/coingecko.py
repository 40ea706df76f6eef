"""CoinGecko price source: historical USD prices looked up by contract address."""

import asyncio
import logging
from decimal import Decimal, InvalidOperation

from tokenprices.exceptions import UpstreamUnavailable
from tokenprices.infra.http.rate_limited_client import RateLimitedClient
from tokenprices.infra.price.base import PriceSource

logger = logging.getLogger(__name__)

# Network identifier → CoinGecko asset platform id
NETWORK_TO_PLATFORM: dict[str, str] = {
    "ethereum": "ethereum",
    "arbitrum": "arbitrum-one",
    "optimism": "optimistic-ethereum",
    "polygon": "polygon-pos",
    "base": "base",
    "bsc": "binance-smart-chain",
    "avalanche": "avalanche",
}

# Stablecoins that are always $1, keyed by (network, lowercase contract address)
STABLECOINS: set[tuple[str, str]] = {
    ("ethereum", "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"),  # USDC
    ("ethereum", "0xdac17f958d2ee523a2206206994597c13d831ec7"),  # USDT
    ("ethereum", "0x6b175474e89094c44da98b954eedeac495271d0f"),  # DAI
    ("arbitrum", "0xaf88d065e77c8cc2239327c5edb3a432268e5831"),  # USDC
    ("base", "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"),  # USDC
    ("polygon", "0x3c499c542cef5e3811e1192ce70d8cc03d5c3359"),  # USDC
}

BASE_URL = "https://api.coingecko.com"

MAX_RETRIES = 3


class CoinGeckoPriceSource(PriceSource):
    """Fetch historical USD prices from CoinGecko with rate-limit retry."""

    name = "coingecko"

    def __init__(self, http_client: RateLimitedClient, api_key: str = "") -> None:
        self._http = http_client
        self._api_key = api_key

    async def fetch_at(self, token_address: str, network: str, timestamp: int) -> Decimal:
        """Get USD price for a contract at a specific Unix timestamp.

        Uses /coins/{platform}/contract/{address}/market_chart/range with a 2-hour window
        around the timestamp and returns the closest point.
        Retries with exponential backoff on 429 rate limit.
        """
        if (network, token_address) in STABLECOINS:
            return Decimal("1.0")

        platform = NETWORK_TO_PLATFORM.get(network)
        if platform is None:
            raise UpstreamUnavailable(f"Network not supported by CoinGecko: {network}")

        params: dict[str, str] = {
            "vs_currency": "usd",
            "from": str(timestamp - 3600),
            "to": str(timestamp + 3600),
        }
        if self._api_key:
            params["x_cg_demo_api_key"] = self._api_key

        url = f"{BASE_URL}/api/v3/coins/{platform}/contract/{token_address}/market_chart/range"

        for attempt in range(MAX_RETRIES):
            try:
                response = await self._http.get(url, params=params)
            except Exception:
                logger.exception("CoinGecko price fetch failed for %s (attempt %d)", token_address, attempt + 1)
                if attempt < MAX_RETRIES - 1:
                    await asyncio.sleep(2 ** attempt)
                continue

            if response.status_code == 429:
                wait = 2 ** (attempt + 1)  # 2, 4, 8 seconds
                logger.info("CoinGecko 429 rate limit for %s, waiting %ds...", token_address, wait)
                await asyncio.sleep(wait)
                continue

            if response.status_code != 200:
                raise UpstreamUnavailable(f"CoinGecko returned {response.status_code} for {token_address}")

            try:
                prices = response.json().get("prices", [])
            except (ValueError, AttributeError) as e:
                raise UpstreamUnavailable(f"CoinGecko returned a malformed body for {token_address}: {e!r}") from e
            if not prices:
                raise UpstreamUnavailable(f"No CoinGecko price for {token_address} near {timestamp}")

            target_ms = timestamp * 1000
            try:
                closest = min(prices, key=lambda p: abs(p[0] - target_ms))
                return Decimal(str(closest[1]))
            except (IndexError, TypeError, InvalidOperation) as e:
                raise UpstreamUnavailable(f"Malformed CoinGecko price data for {token_address}: {e!r}") from e

        logger.warning("CoinGecko exhausted retries for %s", token_address)
        raise UpstreamUnavailable(f"CoinGecko exhausted retries for {token_address}")
