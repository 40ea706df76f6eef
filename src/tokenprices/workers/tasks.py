"""Celery tasks for background processing."""

import asyncio
import logging

from tokenprices.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="run_backfill_job")
def run_backfill_task(self, job_id: str) -> dict:
    """Execute (or continue) a backfill job by id.

    Bridges to async code via asyncio.run(); each task invocation
    creates its own engine + session (no shared state with FastAPI).
    No automatic retry: a failed job is recorded as ERROR and must be rescheduled.
    """
    return asyncio.run(_run_backfill_async(job_id))


def dispatch_backfill(job_id: str) -> None:
    """Hand a scheduled job to the Celery workers."""
    run_backfill_task.delay(job_id)


async def _run_backfill_async(job_id: str) -> dict:
    from tokenprices.backfill.pacing import FixedDelayPacer
    from tokenprices.backfill.runner import BackfillJobRunner
    from tokenprices.config import settings
    from tokenprices.container import build_origin_lookup, build_price_source
    from tokenprices.db.session import build_engine, build_session_factory
    from tokenprices.exceptions import JobNotFound
    from tokenprices.infra.http.rate_limited_client import RateLimitedClient

    engine = build_engine(settings.database_url, echo=False)
    session_factory = build_session_factory(engine)

    try:
        async with RateLimitedClient(
            rate_per_second=settings.http_rate_per_second, timeout=settings.http_timeout
        ) as http_client:
            runner = BackfillJobRunner(
                session_factory,
                price_source=build_price_source(settings, http_client),
                origin_lookup=build_origin_lookup(settings, http_client),
                chunk_size=settings.backfill_chunk_size,
                pacer=FixedDelayPacer(settings.backfill_chunk_delay_seconds),
            )
            status = await runner.execute(job_id)
        logger.info("Backfill task %s finished with status %s", job_id, status.value)
        return {"status": status.value, "job_id": job_id}
    except JobNotFound:
        logger.error("Backfill job %s not found", job_id)
        return {"status": "error", "message": "Job not found"}
    finally:
        await engine.dispose()
