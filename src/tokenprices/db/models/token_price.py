"""Stored historical token prices. One row per (token, network, UTC day)."""

import datetime as dt
from decimal import Decimal

from sqlalchemy import BigInteger, Date, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tokenprices.db.session import Base, TimestampMixin
from tokenprices.domain.enums import StoredPriceOrigin


class TokenPrice(TimestampMixin, Base):
    """Cached token price in USD. ``date`` is the canonical key for backfill bookkeeping."""

    __tablename__ = "token_prices"
    __table_args__ = (
        UniqueConstraint("token_address", "network", "date", name="uq_token_prices_token_network_date"),
        Index("ix_token_prices_token_network_timestamp", "token_address", "network", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token_address: Mapped[str] = mapped_column(String(255))
    network: Mapped[str] = mapped_column(String(50))
    timestamp: Mapped[int] = mapped_column(BigInteger)  # Unix epoch seconds
    price: Mapped[Decimal] = mapped_column(Numeric(20, 8))
    date: Mapped[dt.date] = mapped_column(Date, index=True)
    source: Mapped[str] = mapped_column(String(20), default=StoredPriceOrigin.EXTERNAL.value)
