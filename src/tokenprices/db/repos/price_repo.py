"""Range and nearest-neighbour queries over token_prices, plus idempotent writes."""

import datetime as dt
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tokenprices.db.models.token_price import TokenPrice
from tokenprices.domain.enums import StoredPriceOrigin
from tokenprices.domain.models.price import PricePoint

_UNIQUE_KEY = ["token_address", "network", "date"]


class PriceRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def query_near(
        self, token_address: str, network: str, timestamp: int, tolerance_seconds: int
    ) -> list[PricePoint]:
        """All points within ±tolerance of ``timestamp``, ascending by timestamp."""
        result = await self._session.execute(
            select(TokenPrice)
            .where(
                TokenPrice.token_address == token_address,
                TokenPrice.network == network,
                TokenPrice.timestamp >= timestamp - tolerance_seconds,
                TokenPrice.timestamp <= timestamp + tolerance_seconds,
            )
            .order_by(TokenPrice.timestamp.asc())
        )
        return [PricePoint.model_validate(row) for row in result.scalars().all()]

    async def query_before(self, token_address: str, network: str, timestamp: int) -> Optional[PricePoint]:
        """Nearest point strictly before ``timestamp``."""
        result = await self._session.execute(
            select(TokenPrice)
            .where(
                TokenPrice.token_address == token_address,
                TokenPrice.network == network,
                TokenPrice.timestamp < timestamp,
            )
            .order_by(TokenPrice.timestamp.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return PricePoint.model_validate(row) if row is not None else None

    async def query_after(self, token_address: str, network: str, timestamp: int) -> Optional[PricePoint]:
        """Nearest point strictly after ``timestamp``."""
        result = await self._session.execute(
            select(TokenPrice)
            .where(
                TokenPrice.token_address == token_address,
                TokenPrice.network == network,
                TokenPrice.timestamp > timestamp,
            )
            .order_by(TokenPrice.timestamp.asc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return PricePoint.model_validate(row) if row is not None else None

    async def latest_date(self, token_address: str, network: str) -> Optional[dt.date]:
        result = await self._session.execute(
            select(func.max(TokenPrice.date)).where(
                TokenPrice.token_address == token_address,
                TokenPrice.network == network,
            )
        )
        return result.scalar_one_or_none()

    async def insert(self, point: PricePoint, source: StoredPriceOrigin = StoredPriceOrigin.EXTERNAL) -> bool:
        """Insert one point. Returns False when the (token, network, date) slot was already taken."""
        return await self.insert_batch([point], source) == 1

    async def insert_batch(
        self, points: Sequence[PricePoint], source: StoredPriceOrigin = StoredPriceOrigin.BACKFILL
    ) -> int:
        """Upsert-or-ignore a batch. Conflicts on the unique key are no-ops.

        Returns the number of rows actually inserted.
        """
        if not points:
            return 0

        rows = [
            {
                "token_address": p.token_address,
                "network": p.network,
                "timestamp": p.timestamp,
                "price": p.price,
                "date": p.day,
                "source": source.value,
            }
            for p in points
        ]
        insert = pg_insert if self._dialect_name() == "postgresql" else sqlite_insert
        stmt = insert(TokenPrice).values(rows).on_conflict_do_nothing(index_elements=_UNIQUE_KEY)
        result = await self._session.execute(stmt)
        return max(result.rowcount or 0, 0)

    async def count(self, token_address: str, network: str) -> int:
        result = await self._session.execute(
            select(func.count(TokenPrice.id)).where(
                TokenPrice.token_address == token_address,
                TokenPrice.network == network,
            )
        )
        return result.scalar_one()

    def _dialect_name(self) -> str:
        return self._session.get_bind().dialect.name
