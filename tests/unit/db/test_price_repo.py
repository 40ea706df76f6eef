"""Tests for PriceRepo range queries and idempotent writes."""

from datetime import date
from decimal import Decimal

from sqlalchemy import select

from tokenprices.db.models.token_price import TokenPrice
from tokenprices.db.repos.price_repo import PriceRepo
from tokenprices.domain.enums import StoredPriceOrigin
from tokenprices.domain.models.price import PricePoint

TOKEN = "0xabc"
DAY = 86_400
T0 = 1_700_006_400  # 2023-11-15 00:00:00 UTC


def _point(ts: int, price: str, token: str = TOKEN, network: str = "ethereum") -> PricePoint:
    return PricePoint(token_address=token, network=network, timestamp=ts, price=Decimal(price))


async def _seed(session, *points: PricePoint) -> None:
    await PriceRepo(session).insert_batch(points)
    await session.commit()


class TestQueryNear:
    async def test_returns_points_within_tolerance_ascending(self, session):
        await _seed(session, _point(T0 + 2 * DAY, "3"), _point(T0, "1"), _point(T0 + DAY, "2"))
        repo = PriceRepo(session)

        near = await repo.query_near(TOKEN, "ethereum", T0 + DAY + 100, 3600)
        assert [p.timestamp for p in near] == [T0 + DAY]
        assert near[0].price == Decimal("2")

    async def test_tolerance_bounds_inclusive(self, session):
        await _seed(session, _point(T0, "1"))
        repo = PriceRepo(session)

        assert len(await repo.query_near(TOKEN, "ethereum", T0 + 3600, 3600)) == 1
        assert await repo.query_near(TOKEN, "ethereum", T0 + 3601, 3600) == []

    async def test_scoped_to_token_and_network(self, session):
        await _seed(session, _point(T0, "1", token="0xother"), _point(T0, "1", network="polygon"))
        repo = PriceRepo(session)

        assert await repo.query_near(TOKEN, "ethereum", T0, 3600) == []


class TestBrackets:
    async def test_before_and_after_are_strict_and_nearest(self, session):
        await _seed(session, _point(T0, "1"), _point(T0 + DAY, "2"), _point(T0 + 2 * DAY, "3"), _point(T0 + 3 * DAY, "4"))
        repo = PriceRepo(session)

        before = await repo.query_before(TOKEN, "ethereum", T0 + 2 * DAY)
        after = await repo.query_after(TOKEN, "ethereum", T0 + 2 * DAY)
        assert before.timestamp == T0 + DAY
        assert after.timestamp == T0 + 3 * DAY

    async def test_missing_side_returns_none(self, session):
        await _seed(session, _point(T0, "1"))
        repo = PriceRepo(session)

        assert await repo.query_before(TOKEN, "ethereum", T0) is None
        assert await repo.query_after(TOKEN, "ethereum", T0) is None


class TestLatestDate:
    async def test_empty(self, session):
        assert await PriceRepo(session).latest_date(TOKEN, "ethereum") is None

    async def test_latest(self, session):
        await _seed(session, _point(T0, "1"), _point(T0 + 5 * DAY + 7200, "2"))
        assert await PriceRepo(session).latest_date(TOKEN, "ethereum") == date(2023, 11, 20)


class TestInsert:
    async def test_insert_derives_date_and_source(self, session):
        repo = PriceRepo(session)
        assert await repo.insert(_point(T0 + 3600, "2000.50")) is True
        await session.commit()

        row = (await session.execute(select(TokenPrice))).scalar_one()
        assert row.date == date(2023, 11, 15)
        assert row.price == Decimal("2000.50")
        assert row.source == StoredPriceOrigin.EXTERNAL.value

    async def test_same_day_conflict_is_noop(self, session):
        repo = PriceRepo(session)
        assert await repo.insert(_point(T0, "1")) is True
        assert await repo.insert(_point(T0 + 7200, "5")) is False
        await session.commit()

        rows = (await session.execute(select(TokenPrice))).scalars().all()
        assert len(rows) == 1
        assert rows[0].price == Decimal("1")

    async def test_batch_with_internal_duplicate_day(self, session):
        repo = PriceRepo(session)
        await repo.insert_batch([_point(T0, "1"), _point(T0 + 60, "9"), _point(T0 + DAY, "2")])
        await session.commit()

        assert await repo.count(TOKEN, "ethereum") == 2

    async def test_overlapping_batches_from_separate_sessions(self, session_factory):
        first = [_point(T0 + i * DAY, "1") for i in range(0, 10)]
        second = [_point(T0 + i * DAY + 300, "2") for i in range(5, 15)]

        for batch in (first, second):
            async with session_factory() as s:
                await PriceRepo(s).insert_batch(batch)
                await s.commit()

        async with session_factory() as s:
            rows = (await s.execute(select(TokenPrice.date))).scalars().all()
        assert len(rows) == 15
        assert len(set(rows)) == 15

    async def test_empty_batch(self, session):
        assert await PriceRepo(session).insert_batch([]) == 0
