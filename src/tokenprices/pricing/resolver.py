"""PriceResolver: cache lookup → interpolation → upstream fetch with write-back."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tokenprices.db.repos.price_repo import PriceRepo
from tokenprices.domain.enums import PriceSourceKind, StoredPriceOrigin
from tokenprices.domain.models.price import PricePoint, PriceQuote, normalize_network, normalize_token
from tokenprices.exceptions import InvalidBracket, PersistenceError, UpstreamUnavailable, ValidationError
from tokenprices.infra.price.base import PriceSource
from tokenprices.pricing.interpolation import interpolate

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 3600


class PriceResolver:
    """Answers "what was token T's price on network N at time S?".

    Stateless apart from the session it is given; safe to build one per request.
    Absence is never cached: every miss goes through the full lookup again.
    """

    def __init__(
        self,
        session: AsyncSession,
        source: PriceSource,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    ) -> None:
        self._session = session
        self._prices = PriceRepo(session)
        self._source = source
        self._tolerance = tolerance_seconds

    async def resolve(self, token: str, network: str, timestamp: int) -> PriceQuote:
        token_address = normalize_token(token)
        network = normalize_network(network)
        if not token_address or not network:
            raise ValidationError("Missing required fields: token, network, timestamp")
        if timestamp <= 0:
            raise ValidationError("timestamp must be a positive integer")

        # 1. Stored point within tolerance
        near = await self._prices.query_near(token_address, network, timestamp, self._tolerance)
        if near:
            closest = min(near, key=lambda p: (abs(p.timestamp - timestamp), p.timestamp))
            return PriceQuote(price=closest.price, source=PriceSourceKind.CACHE)

        # 2. Two-sided bracket
        before = await self._prices.query_before(token_address, network, timestamp)
        after = await self._prices.query_after(token_address, network, timestamp) if before else None
        if before is not None and after is not None:
            try:
                price = interpolate(timestamp, before, after)
            except InvalidBracket:
                logger.error(
                    "Bad bracket for %s on %s at %d: before=%d after=%d",
                    token_address, network, timestamp, before.timestamp, after.timestamp,
                )
                raise
            return PriceQuote(price=price, source=PriceSourceKind.INTERPOLATED)

        # 3. Upstream fetch, then write back
        try:
            price = await self._source.fetch_at(token_address, network, timestamp)
        except UpstreamUnavailable:
            logger.warning("No upstream price for %s on %s at %d", token_address, network, timestamp)
            raise

        point = PricePoint(token_address=token_address, network=network, timestamp=timestamp, price=price)
        try:
            persisted = await self._store(point)
        except PersistenceError:
            logger.exception("Fetched price for %s on %s at %d but could not cache it", token_address, network, timestamp)
            persisted = False
        return PriceQuote(price=price, source=PriceSourceKind.EXTERNAL, persisted=persisted)

    async def _store(self, point: PricePoint) -> bool:
        try:
            inserted = await self._prices.insert(point, StoredPriceOrigin.EXTERNAL)
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise PersistenceError(str(e)) from e

        if not inserted:
            # Another point already owns this (token, network, date)
            logger.info("Price for %s on %s %s already stored; write skipped", point.token_address, point.network, point.day)
        return inserted
