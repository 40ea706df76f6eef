"""Abstract capabilities for fetching prices and token birth dates from outside."""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Sequence

from tokenprices.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)


class PriceSource(ABC):
    """Returns a single USD price for (token, network, timestamp)."""

    name: str = "source"

    @abstractmethod
    async def fetch_at(self, token_address: str, network: str, timestamp: int) -> Decimal:
        """Price at ``timestamp``. Raises UpstreamUnavailable when no price can be produced."""


class OriginLookup(ABC):
    """Finds the first moment a token was seen on a network."""

    @abstractmethod
    async def get_first_seen(self, token_address: str, network: str) -> int:
        """Unix timestamp of the token's first on-chain activity. Raises UpstreamUnavailable."""


class FallbackPriceSource(PriceSource):
    """Try each source in order; the first successful answer wins."""

    name = "fallback"

    def __init__(self, sources: Sequence[PriceSource]) -> None:
        if not sources:
            raise ValueError("FallbackPriceSource needs at least one source")
        self._sources = list(sources)

    async def fetch_at(self, token_address: str, network: str, timestamp: int) -> Decimal:
        failures: list[str] = []
        for source in self._sources:
            try:
                return await source.fetch_at(token_address, network, timestamp)
            except UpstreamUnavailable as e:
                logger.info("%s has no price for %s on %s at %d: %s", source.name, token_address, network, timestamp, e)
                failures.append(f"{source.name}: {e}")
        raise UpstreamUnavailable("; ".join(failures))
