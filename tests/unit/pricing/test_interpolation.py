"""Tests for linear interpolation between bracketing points."""

from decimal import Decimal

import pytest

from tokenprices.domain.models.price import PricePoint
from tokenprices.exceptions import InvalidBracket
from tokenprices.pricing.interpolation import interpolate, interpolate_price


def _point(ts: int, price: str) -> PricePoint:
    return PricePoint(token_address="0xabc", network="ethereum", timestamp=ts, price=Decimal(price))


class TestInterpolatePrice:
    def test_midpoint(self):
        assert interpolate_price(1500, 1000, Decimal("1.0"), 2000, Decimal("2.0")) == Decimal("1.5")

    def test_quarter_of_the_way(self):
        assert interpolate_price(1250, 1000, Decimal("4"), 2000, Decimal("8")) == Decimal("5")

    def test_falling_price(self):
        assert interpolate_price(1500, 1000, Decimal("3"), 2000, Decimal("1")) == Decimal("2")

    def test_rounds_to_eight_places(self):
        result = interpolate_price(1, 0, Decimal("0"), 3, Decimal("1"))
        assert result == Decimal("0.33333333")
        assert result.as_tuple().exponent == -8

    def test_rounds_half_up(self):
        # 0.000000005 exactly halfway between two 8dp values
        result = interpolate_price(1, 0, Decimal("0"), 2, Decimal("0.00000001"))
        assert result == Decimal("0.00000001")

    def test_endpoints_return_bracket_prices(self):
        assert interpolate_price(1000, 1000, Decimal("1.25"), 2000, Decimal("9")) == Decimal("1.25")
        assert interpolate_price(2000, 1000, Decimal("1.25"), 2000, Decimal("9")) == Decimal("9")

    @pytest.mark.parametrize("t", [1001, 1234, 1500, 1777, 1999])
    def test_result_within_bracket_prices(self, t):
        p0, p1 = Decimal("7.12345678"), Decimal("2.5")
        result = interpolate_price(t, 1000, p0, 2000, p1)
        assert min(p0, p1) <= result <= max(p0, p1)

    def test_zero_width_bracket_rejected(self):
        with pytest.raises(InvalidBracket):
            interpolate_price(1000, 1000, Decimal("1"), 1000, Decimal("2"))

    def test_inverted_bracket_rejected(self):
        with pytest.raises(InvalidBracket):
            interpolate_price(1500, 2000, Decimal("1"), 1000, Decimal("2"))

    def test_target_outside_bracket_rejected(self):
        with pytest.raises(InvalidBracket):
            interpolate_price(2500, 1000, Decimal("1"), 2000, Decimal("2"))
        with pytest.raises(InvalidBracket):
            interpolate_price(999, 1000, Decimal("1"), 2000, Decimal("2"))


class TestInterpolatePoints:
    def test_uses_point_fields(self):
        assert interpolate(1500, _point(1000, "1.0"), _point(2000, "2.0")) == Decimal("1.5")
