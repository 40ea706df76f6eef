from typing import AsyncGenerator

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tokenprices.backfill.runner import BackfillJobRunner
from tokenprices.config import settings
from tokenprices.container import Container
from tokenprices.infra.price.base import PriceSource
from tokenprices.pricing.resolver import PriceResolver


@inject
async def get_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(Provide[Container.session_factory]),
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@inject
def get_price_source(source: PriceSource = Depends(Provide[Container.price_source])) -> PriceSource:
    return source


@inject
def get_backfill_runner(
    runner: BackfillJobRunner = Depends(Provide[Container.backfill_runner]),
) -> BackfillJobRunner:
    return runner


def get_resolver(
    db: AsyncSession = Depends(get_db),
    source: PriceSource = Depends(get_price_source),
) -> PriceResolver:
    """Per-request resolver bound to the request's session."""
    return PriceResolver(db, source, tolerance_seconds=settings.price_tolerance_seconds)
