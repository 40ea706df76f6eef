"""Linear interpolation between two bracketing price points."""

from decimal import ROUND_HALF_UP, Decimal

from tokenprices.domain.models.price import PricePoint
from tokenprices.exceptions import InvalidBracket

PRICE_QUANTUM = Decimal("0.00000001")  # 8 dp, matches Numeric(20, 8)


def interpolate_price(t: int, t0: int, p0: Decimal, t1: int, p1: Decimal) -> Decimal:
    """Price at ``t`` on the straight line through (t0, p0) and (t1, p1).

    ``t`` must satisfy ``t0 <= t <= t1`` and the bracket must have positive width.
    """
    if t1 <= t0:
        raise InvalidBracket(f"Upper bracket {t1} is not after lower bracket {t0}")
    if not t0 <= t <= t1:
        raise InvalidBracket(f"Timestamp {t} lies outside bracket [{t0}, {t1}]")

    price = p0 + (p1 - p0) * Decimal(t - t0) / Decimal(t1 - t0)
    return price.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def interpolate(t: int, lower: PricePoint, upper: PricePoint) -> Decimal:
    return interpolate_price(t, lower.timestamp, lower.price, upper.timestamp, upper.price)
