from typing import Callable, Optional

from dependency_injector import containers, providers

from tokenprices.backfill.pacing import FixedDelayPacer
from tokenprices.backfill.runner import BackfillJobRunner
from tokenprices.config import Settings
from tokenprices.db.session import build_engine, build_session_factory
from tokenprices.infra.http.rate_limited_client import RateLimitedClient
from tokenprices.infra.price.alchemy import AlchemyOriginLookup, AlchemyPriceSource
from tokenprices.infra.price.base import FallbackPriceSource, OriginLookup, PriceSource
from tokenprices.infra.price.coingecko import CoinGeckoPriceSource
from tokenprices.infra.price.deterministic import DeterministicPriceSource, StaticOriginLookup


def build_price_source(settings: Settings, http_client: RateLimitedClient) -> PriceSource:
    """Alchemy first, CoinGecko as fallback; or the deterministic source for local runs."""
    if settings.price_source == "deterministic":
        return DeterministicPriceSource()
    if settings.price_source != "alchemy":
        raise ValueError(f"Unknown price_source: {settings.price_source}")
    return FallbackPriceSource([
        AlchemyPriceSource(http_client, api_key=settings.alchemy_api_key),
        CoinGeckoPriceSource(http_client, api_key=settings.coingecko_api_key),
    ])


def build_origin_lookup(settings: Settings, http_client: RateLimitedClient) -> OriginLookup:
    if settings.price_source == "deterministic":
        return StaticOriginLookup()
    return AlchemyOriginLookup(http_client, api_key=settings.alchemy_api_key)


def build_dispatch(settings: Settings) -> Optional[Callable[[str], None]]:
    """None keeps execution in-process; ``celery`` sends jobs to the workers."""
    if settings.backfill_dispatch == "celery":
        from tokenprices.workers.tasks import dispatch_backfill

        return dispatch_backfill
    if settings.backfill_dispatch != "local":
        raise ValueError(f"Unknown backfill_dispatch: {settings.backfill_dispatch}")
    return None


class Container(containers.DeclarativeContainer):
    wiring_config = containers.WiringConfiguration(modules=["tokenprices.api.deps"])

    settings = providers.Singleton(Settings)

    engine = providers.Singleton(
        build_engine,
        database_url=settings.provided.database_url,
        echo=settings.provided.debug,
    )

    session_factory = providers.Singleton(
        build_session_factory,
        engine=engine,
    )

    http_client = providers.Singleton(
        RateLimitedClient,
        rate_per_second=settings.provided.http_rate_per_second,
        timeout=settings.provided.http_timeout,
    )

    price_source = providers.Singleton(build_price_source, settings=settings, http_client=http_client)

    origin_lookup = providers.Singleton(build_origin_lookup, settings=settings, http_client=http_client)

    backfill_runner = providers.Singleton(
        BackfillJobRunner,
        session_factory=session_factory,
        price_source=price_source,
        origin_lookup=origin_lookup,
        chunk_size=settings.provided.backfill_chunk_size,
        pacer=providers.Singleton(FixedDelayPacer, delay_seconds=settings.provided.backfill_chunk_delay_seconds),
        dispatch=providers.Callable(build_dispatch, settings=settings),
    )
