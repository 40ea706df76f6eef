from enum import Enum


class PriceSourceKind(str, Enum):
    """Where a resolved price came from. Values are part of the API response."""

    CACHE = "cache"
    INTERPOLATED = "interpolated"
    EXTERNAL = "external"


class StoredPriceOrigin(str, Enum):
    """Which path wrote a row into token_prices."""

    EXTERNAL = "external"
    BACKFILL = "backfill"
