"""Domain types for price points and resolution results."""

from datetime import UTC, date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from tokenprices.domain.enums import PriceSourceKind

SECONDS_PER_DAY = 86_400


def normalize_token(token: str) -> str:
    """Token addresses are hex for every supported network, so compare lowercase."""
    return token.strip().lower()


def normalize_network(network: str) -> str:
    return network.strip().lower()


def date_of(timestamp: int) -> date:
    """UTC calendar date of a Unix timestamp."""
    return datetime.fromtimestamp(timestamp, tz=UTC).date()


def start_of_day(day: date) -> int:
    """Unix timestamp of 00:00:00 UTC on ``day``."""
    return int(datetime(day.year, day.month, day.day, tzinfo=UTC).timestamp())


class PricePoint(BaseModel):
    """A single observed or computed price for (token, network) at a timestamp."""

    model_config = {"frozen": True, "from_attributes": True}

    token_address: str
    network: str
    timestamp: int
    price: Decimal = Field(ge=0)

    @property
    def day(self) -> date:
        return date_of(self.timestamp)


class PriceQuote(BaseModel):
    """Result of resolving a price.

    ``persisted`` is only meaningful for ``source == EXTERNAL``: it is False when the
    fetched price could not be written back to the store.
    """

    price: Decimal
    source: PriceSourceKind
    persisted: bool = True


class ScheduledBackfill(BaseModel):
    job_id: str
    estimated_days: int

    @property
    def has_work(self) -> bool:
        return self.estimated_days > 0
