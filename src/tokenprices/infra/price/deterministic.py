"""Deterministic stand-ins for the upstream capabilities (local runs, demos, tests)."""

import hashlib
import math
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable

from tokenprices.domain.models.price import SECONDS_PER_DAY
from tokenprices.exceptions import UpstreamUnavailable
from tokenprices.infra.price.base import OriginLookup, PriceSource

_QUANTUM = Decimal("0.00000001")


def _base_price(token_address: str, network: str) -> float:
    """Stable per-token base price in [1, 100)."""
    digest = hashlib.sha256(f"{network}:{token_address}".encode()).digest()
    return 1.0 + int.from_bytes(digest[:4], "big") % 9900 / 100


class DeterministicPriceSource(PriceSource):
    """Price follows a daily sine wave (±10%) around a per-token base price.

    The same (token, network, timestamp) always yields the same price. Timestamps in
    ``fail_at`` raise UpstreamUnavailable, to exercise failure paths.
    """

    name = "deterministic"

    def __init__(self, fail_at: Iterable[int] = ()) -> None:
        self._fail_at = set(fail_at)
        self.calls: list[tuple[str, str, int]] = []

    async def fetch_at(self, token_address: str, network: str, timestamp: int) -> Decimal:
        self.calls.append((token_address, network, timestamp))
        if timestamp in self._fail_at:
            raise UpstreamUnavailable(f"Deterministic source configured to fail at {timestamp}")
        base = _base_price(token_address, network)
        price = base * (1.0 + 0.1 * math.sin(timestamp / SECONDS_PER_DAY))
        return Decimal(str(price)).quantize(_QUANTUM, rounding=ROUND_HALF_UP)


class StaticOriginLookup(OriginLookup):
    """Every token was born ``days_back`` days before now."""

    def __init__(self, days_back: int = 365, clock: Callable[[], float] = time.time) -> None:
        self._days_back = days_back
        self._clock = clock

    async def get_first_seen(self, token_address: str, network: str) -> int:
        return int(self._clock()) - self._days_back * SECONDS_PER_DAY
