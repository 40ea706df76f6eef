"""Backfill a token's daily price history and wait for it to finish.

Usage:
    PYTHONPATH=src python scripts/backfill_token.py <token_address> <network> [--deterministic] [--create-tables]
"""

import argparse
import asyncio
import logging

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)-5s %(name)s - %(message)s")
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


async def main(token: str, network: str, deterministic: bool, create_tables: bool) -> None:
    from tokenprices.backfill.pacing import FixedDelayPacer
    from tokenprices.backfill.runner import BackfillJobRunner
    from tokenprices.config import settings
    from tokenprices.container import build_origin_lookup, build_price_source
    from tokenprices.db.repos.job_repo import JobRepo
    from tokenprices.db.session import Base, build_engine, build_session_factory
    import tokenprices.db.models  # noqa: F401

    if deterministic:
        settings.price_source = "deterministic"

    engine = build_engine(settings.database_url, echo=False)
    sf = build_session_factory(engine)
    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    from tokenprices.infra.http.rate_limited_client import RateLimitedClient

    async with RateLimitedClient(rate_per_second=settings.http_rate_per_second) as http:
        runner = BackfillJobRunner(
            sf,
            price_source=build_price_source(settings, http),
            origin_lookup=build_origin_lookup(settings, http),
            chunk_size=settings.backfill_chunk_size,
            pacer=FixedDelayPacer(settings.backfill_chunk_delay_seconds),
        )
        scheduled = await runner.schedule(token, network)
        print(f"Job {scheduled.job_id}: {scheduled.estimated_days} days")
        if scheduled.has_work:
            await runner.join(scheduled.job_id)

    if scheduled.has_work:
        async with sf() as session:
            job = await JobRepo(session).get_by_job_id(scheduled.job_id)
            print(f"  status={job.status}  {job.completed_days}/{job.total_days} days")
            if job.error_message:
                print(f"  error: {job.error_message}")

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Backfill daily prices for one token.")
    parser.add_argument("token", help="Token contract address")
    parser.add_argument("network", help="Network identifier, e.g. ethereum")
    parser.add_argument("--deterministic", action="store_true", help="Use the deterministic price source")
    parser.add_argument("--create-tables", action="store_true", help="Create tables before running")
    args = parser.parse_args()
    asyncio.run(main(args.token, args.network, args.deterministic, args.create_tables))
