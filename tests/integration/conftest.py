import pytest
from httpx import ASGITransport, AsyncClient

from tokenprices.api.deps import get_backfill_runner, get_db, get_price_source
from tokenprices.api.main import app
from tokenprices.backfill.runner import BackfillJobRunner
from tokenprices.infra.price.deterministic import DeterministicPriceSource, StaticOriginLookup

NOW = 1_700_049_600  # 2023-11-15 12:00:00 UTC


class NoDelay:
    async def wait(self) -> None:
        return None


@pytest.fixture()
def price_source():
    return DeterministicPriceSource()


@pytest.fixture()
async def runner(session_factory, price_source):
    runner = BackfillJobRunner(
        session_factory,
        price_source=price_source,
        origin_lookup=StaticOriginLookup(days_back=3, clock=lambda: NOW),
        pacer=NoDelay(),
        clock=lambda: NOW,
    )
    yield runner
    await runner.shutdown()


@pytest.fixture()
async def client(session_factory, price_source, runner):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_price_source] = lambda: price_source
    app.dependency_overrides[get_backfill_runner] = lambda: runner
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
