"""Tests for FallbackPriceSource and the deterministic doubles."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from tokenprices.exceptions import UpstreamUnavailable
from tokenprices.infra.price.base import FallbackPriceSource
from tokenprices.infra.price.deterministic import DeterministicPriceSource, StaticOriginLookup

TS = 1_700_000_000


def _source(name: str, **kwargs) -> MagicMock:
    source = MagicMock()
    source.name = name
    source.fetch_at = AsyncMock(**kwargs)
    return source


class TestFallbackPriceSource:
    async def test_first_answer_wins(self):
        primary = _source("primary", return_value=Decimal("2"))
        secondary = _source("secondary", return_value=Decimal("3"))

        price = await FallbackPriceSource([primary, secondary]).fetch_at("0xabc", "ethereum", TS)

        assert price == Decimal("2")
        secondary.fetch_at.assert_not_called()

    async def test_falls_through_on_unavailable(self):
        primary = _source("primary", side_effect=UpstreamUnavailable("no data"))
        secondary = _source("secondary", return_value=Decimal("3"))

        price = await FallbackPriceSource([primary, secondary]).fetch_at("0xabc", "ethereum", TS)

        assert price == Decimal("3")
        secondary.fetch_at.assert_awaited_once_with("0xabc", "ethereum", TS)

    async def test_all_fail(self):
        primary = _source("primary", side_effect=UpstreamUnavailable("no data"))
        secondary = _source("secondary", side_effect=UpstreamUnavailable("rate limited"))

        with pytest.raises(UpstreamUnavailable) as exc_info:
            await FallbackPriceSource([primary, secondary]).fetch_at("0xabc", "ethereum", TS)
        assert "primary: no data" in str(exc_info.value)
        assert "secondary: rate limited" in str(exc_info.value)

    def test_needs_a_source(self):
        with pytest.raises(ValueError):
            FallbackPriceSource([])


class TestDeterministicPriceSource:
    async def test_same_input_same_price(self):
        source = DeterministicPriceSource()
        first = await source.fetch_at("0xabc", "ethereum", TS)
        second = await source.fetch_at("0xabc", "ethereum", TS)
        assert first == second
        assert first > 0
        assert first == first.quantize(Decimal("0.00000001"))

    async def test_tokens_differ(self):
        source = DeterministicPriceSource()
        assert await source.fetch_at("0xabc", "ethereum", TS) != await source.fetch_at("0xdef", "ethereum", TS)

    async def test_configured_failure(self):
        source = DeterministicPriceSource(fail_at=[TS])
        with pytest.raises(UpstreamUnavailable):
            await source.fetch_at("0xabc", "ethereum", TS)
        assert source.calls == [("0xabc", "ethereum", TS)]


class TestStaticOriginLookup:
    async def test_days_back_from_clock(self):
        lookup = StaticOriginLookup(days_back=3, clock=lambda: TS + 0.5)
        assert await lookup.get_first_seen("0xabc", "ethereum") == TS - 3 * 86_400
