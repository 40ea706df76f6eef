from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tokenprices.db.models.backfill_job import BackfillJob
from tokenprices.domain.enums import JobStatus

_ACTIVE = (JobStatus.PENDING.value, JobStatus.RUNNING.value)


class JobRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_job_id(self, job_id: str) -> Optional[BackfillJob]:
        result = await self._session.execute(
            select(BackfillJob).where(BackfillJob.job_id == job_id)
        )
        return result.scalar_one_or_none()

    async def get_active(self, token_address: str, network: str) -> Optional[BackfillJob]:
        """Most recent pending/running job for the pair, if any."""
        result = await self._session.execute(
            select(BackfillJob)
            .where(
                BackfillJob.token_address == token_address,
                BackfillJob.network == network,
                BackfillJob.status.in_(_ACTIVE),
            )
            .order_by(BackfillJob.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_token(self, token_address: str, network: str) -> list[BackfillJob]:
        result = await self._session.execute(
            select(BackfillJob)
            .where(BackfillJob.token_address == token_address, BackfillJob.network == network)
            .order_by(BackfillJob.created_at.asc())
        )
        return list(result.scalars().all())

    async def create(
        self,
        job_id: str,
        token_address: str,
        network: str,
        start_timestamp: int,
        total_days: int,
    ) -> BackfillJob:
        job = BackfillJob(
            job_id=job_id,
            token_address=token_address,
            network=network,
            start_timestamp=start_timestamp,
            total_days=total_days,
            completed_days=0,
            status=JobStatus.PENDING.value,
        )
        self._session.add(job)
        await self._session.flush()
        return job

    async def save(self, job: BackfillJob) -> BackfillJob:
        if job.completed_days > job.total_days:
            raise ValueError(f"Job {job.job_id}: completed_days {job.completed_days} > total_days {job.total_days}")
        await self._session.flush()
        return job

    async def is_cancel_requested(self, job_id: str) -> bool:
        """Read the stored flag directly, bypassing any loaded instance."""
        result = await self._session.execute(
            select(BackfillJob.cancel_requested).where(BackfillJob.job_id == job_id)
        )
        return bool(result.scalar_one_or_none())
