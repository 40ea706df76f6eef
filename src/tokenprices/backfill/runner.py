"""BackfillJobRunner: chunked, paced, resumable daily price backfills.

A job is scheduled once and then executed independently of the caller, either as an
asyncio task owned by this runner or by whatever ``dispatch`` hands it to (Celery).
All progress lives on the BackfillJob row, so execution can be picked up again from
``completed_days`` after a restart.
"""

import asyncio
import functools
import logging
import time
import uuid
from datetime import UTC, datetime
from typing import Callable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tokenprices.backfill.pacing import FixedDelayPacer, Pacer
from tokenprices.backfill.timestamps import chunked, daily_range, generate_daily_timestamps, resume_point
from tokenprices.db.models.backfill_job import BackfillJob
from tokenprices.db.repos.job_repo import JobRepo
from tokenprices.db.repos.price_repo import PriceRepo
from tokenprices.domain.enums import JobStatus, StoredPriceOrigin
from tokenprices.domain.models.price import (
    PricePoint,
    ScheduledBackfill,
    date_of,
    normalize_network,
    normalize_token,
)
from tokenprices.exceptions import BackfillConflict, JobNotFound, ValidationError
from tokenprices.infra.price.base import OriginLookup, PriceSource

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10
NO_WORK_PREFIX = "no-work-"
CANCELLED_MESSAGE = "Cancelled by request"
MAX_ERROR_LENGTH = 2000


def is_no_work_job(job_id: str) -> bool:
    """Synthetic ids returned when there was nothing to backfill; no record exists for them."""
    return job_id.startswith(NO_WORK_PREFIX)


class BackfillJobRunner:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        price_source: PriceSource,
        origin_lookup: OriginLookup,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        pacer: Optional[Pacer] = None,
        clock: Callable[[], float] = time.time,
        dispatch: Optional[Callable[[str], None]] = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._session_factory = session_factory
        self._source = price_source
        self._origin = origin_lookup
        self._chunk_size = chunk_size
        self._pacer = pacer or FixedDelayPacer()
        self._clock = clock
        self._dispatch = dispatch
        self._tasks: dict[str, asyncio.Task] = {}
        self._cancel_flags: dict[str, asyncio.Event] = {}

    # --- Scheduling ---

    async def schedule(self, token: str, network: str) -> ScheduledBackfill:
        """Plan a backfill for (token, network) and start it. Returns before any day is fetched."""
        token_address = normalize_token(token)
        network = normalize_network(network)
        if not token_address or not network:
            raise ValidationError("Missing required fields: token, network")

        async with self._session_factory() as session:
            jobs = JobRepo(session)
            active = await jobs.get_active(token_address, network)
            if active is not None:
                raise BackfillConflict(active.job_id)

            latest = await PriceRepo(session).latest_date(token_address, network)
            if latest is not None:
                start = resume_point(latest)
                logger.info("Resuming %s on %s after stored date %s", token_address, network, latest)
            else:
                start = await self._origin.get_first_seen(token_address, network)
                logger.info("Backfilling %s on %s from first-seen %d", token_address, network, start)

            days = generate_daily_timestamps(start, now=int(self._clock()))
            if not days:
                logger.info("Nothing to backfill for %s on %s", token_address, network)
                return ScheduledBackfill(job_id=f"{NO_WORK_PREFIX}{int(self._clock() * 1000)}", estimated_days=0)

            job = await jobs.create(
                job_id=f"job-{token_address[:8]}-{uuid.uuid4().hex[:12]}",
                token_address=token_address,
                network=network,
                start_timestamp=start,
                total_days=len(days),
            )
            job_id = job.job_id
            await session.commit()

        logger.info("Scheduled backfill %s: %d days for %s on %s", job_id, len(days), token_address, network)
        self.start(job_id)
        return ScheduledBackfill(job_id=job_id, estimated_days=len(days))

    async def resume(self, job_id: str) -> BackfillJob:
        """Re-dispatch a job left pending/running by a previous process."""
        async with self._session_factory() as session:
            job = await JobRepo(session).get_by_job_id(job_id)
        if job is None:
            raise JobNotFound(job_id)
        if job.job_status.is_terminal:
            raise ValidationError(f"Job {job_id} is {job.status} and cannot be resumed")
        if self.is_running(job_id):
            raise BackfillConflict(job_id)
        self.start(job_id)
        return job

    # --- Task management ---

    def start(self, job_id: str) -> None:
        if self._dispatch is not None:
            self._dispatch(job_id)
            return
        if job_id in self._tasks:
            raise BackfillConflict(job_id)
        self._cancel_flags[job_id] = asyncio.Event()
        task = asyncio.create_task(self.execute(job_id), name=f"backfill:{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(functools.partial(self._on_task_done, job_id))

    def is_running(self, job_id: str) -> bool:
        return job_id in self._tasks

    async def cancel(self, job_id: str) -> bool:
        """Ask a job to stop before its next chunk, wherever it runs.

        The request is stored on the job, so Celery workers see it too. Returns False
        when the job has already finished.
        """
        async with self._session_factory() as session:
            job = await JobRepo(session).get_by_job_id(job_id)
            if job is None:
                raise JobNotFound(job_id)
            if job.job_status.is_terminal:
                return False
            job.cancel_requested = True
            await session.commit()

        flag = self._cancel_flags.get(job_id)
        if flag is not None:
            flag.set()
        logger.info("Cancellation requested for backfill %s", job_id)
        return True

    async def join(self, job_id: str) -> None:
        """Wait for a local job task to finish (no-op if it is not running here)."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait({task})

    async def shutdown(self) -> None:
        """Interrupt local tasks. Their jobs stay pending/running and can be resumed."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_task_done(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        self._cancel_flags.pop(job_id, None)
        if task.cancelled():
            logger.info("Backfill %s interrupted; it can be resumed", job_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Backfill task %s crashed", job_id, exc_info=exc)

    # --- Execution ---

    async def execute(self, job_id: str) -> JobStatus:
        """Run (or continue) a job to completion or failure. Returns the final status."""
        async with self._session_factory() as session:
            job = await JobRepo(session).get_by_job_id(job_id)
            if job is None:
                raise JobNotFound(job_id)
            if job.job_status.is_terminal:
                logger.info("Backfill %s already %s, nothing to do", job_id, job.status)
                return job.job_status

            try:
                return await self._run(session, job)
            except Exception as e:
                logger.exception("Backfill %s failed", job_id)
                await session.rollback()
                return await self._fail(session, job_id, f"{type(e).__name__}: {e}")

    async def _run(self, session: AsyncSession, job: BackfillJob) -> JobStatus:
        jobs = JobRepo(session)
        prices = PriceRepo(session)
        job_id = job.job_id
        token_address, network = job.token_address, job.network

        days = daily_range(job.start_timestamp, job.total_days)[job.completed_days:]
        job.status = JobStatus.RUNNING.value
        if job.started_at is None:
            job.started_at = self._now()
        await jobs.save(job)
        await session.commit()
        logger.info("Backfill %s running: %d of %d days left", job_id, len(days), job.total_days)

        for index, chunk in enumerate(chunked(days, self._chunk_size)):
            if index:
                await self._pacer.wait()
            if self._cancel_requested(job_id) or await jobs.is_cancel_requested(job_id):
                logger.info("Backfill %s stopped at %d/%d days", job_id, job.completed_days, job.total_days)
                return await self._fail(session, job_id, CANCELLED_MESSAGE)

            points, failure = await self._fetch_chunk(token_address, network, chunk)

            # Days before a failed fetch are kept so a rerun does not refetch them
            try:
                await prices.insert_batch(points, StoredPriceOrigin.BACKFILL)
                if failure is None:
                    job.completed_days += len(chunk)
                    if job.completed_days == job.total_days:
                        self._mark_completed(job)
                    await jobs.save(job)
                await session.commit()
            except SQLAlchemyError as e:
                logger.exception("Backfill %s could not store chunk %d", job_id, index)
                await session.rollback()
                return await self._fail(session, job_id, f"Failed to store prices: {e}")

            if failure is not None:
                return await self._fail(session, job_id, failure)
            logger.info("Backfill %s: %d/%d days", job_id, job.completed_days, job.total_days)

        if job.status != JobStatus.COMPLETED.value:
            self._mark_completed(job)
            await jobs.save(job)
            await session.commit()
        logger.info("Backfill %s completed (%d days)", job_id, job.total_days)
        return JobStatus.COMPLETED

    async def _fetch_chunk(
        self, token_address: str, network: str, chunk: Sequence[int]
    ) -> tuple[list[PricePoint], Optional[str]]:
        """Fetch every day of a chunk concurrently.

        Returns the points dated before the first failed day, and that failure if any.
        Later days are dropped even when they succeeded, so the stored history has no
        gap and a reschedule from the latest stored date refetches the failed day.
        """
        results = await asyncio.gather(
            *(self._source.fetch_at(token_address, network, ts) for ts in chunk),
            return_exceptions=True,
        )

        points: list[PricePoint] = []
        failure: Optional[str] = None
        for ts, result in zip(chunk, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("Price fetch failed for %s on %s at %d: %s", token_address, network, ts, result)
                if failure is None:
                    failure = f"Price fetch failed for {date_of(ts)} ({ts}): {result}"
                continue
            if failure is not None:
                continue
            points.append(PricePoint(token_address=token_address, network=network, timestamp=ts, price=result))
        return points, failure

    async def _fail(self, session: AsyncSession, job_id: str, message: str) -> JobStatus:
        job = await JobRepo(session).get_by_job_id(job_id)
        if job is None:
            raise JobNotFound(job_id)
        job.status = JobStatus.ERROR.value
        job.error_message = message[:MAX_ERROR_LENGTH]
        await session.commit()
        logger.warning("Backfill %s marked error: %s", job_id, message)
        return JobStatus.ERROR

    def _mark_completed(self, job: BackfillJob) -> None:
        job.status = JobStatus.COMPLETED.value
        job.completed_at = self._now()

    def _cancel_requested(self, job_id: str) -> bool:
        flag = self._cancel_flags.get(job_id)
        return flag is not None and flag.is_set()

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=UTC)
