from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from tokenprices.api.deps import get_backfill_runner, get_db
from tokenprices.api.schemas.backfill import (
    BackfillCancelResponse,
    BackfillCreate,
    BackfillScheduledResponse,
    BackfillStatusResponse,
)
from tokenprices.backfill.runner import BackfillJobRunner, is_no_work_job
from tokenprices.db.repos.job_repo import JobRepo
from tokenprices.domain.enums import JobStatus

router = APIRouter(prefix="/api/backfill", tags=["backfill"])

DbDep = Annotated[AsyncSession, Depends(get_db)]
RunnerDep = Annotated[BackfillJobRunner, Depends(get_backfill_runner)]


@router.post("", response_model=BackfillScheduledResponse, status_code=status.HTTP_202_ACCEPTED)
async def schedule_backfill(body: BackfillCreate, runner: RunnerDep) -> BackfillScheduledResponse:
    """Schedule a daily price backfill from the token's first-seen (or last stored) date to now."""
    scheduled = await runner.schedule(body.token, body.network)
    message = (
        "Historical price fetch scheduled successfully"
        if scheduled.has_work
        else "All historical data already cached"
    )
    return BackfillScheduledResponse(job_id=scheduled.job_id, estimated_days=scheduled.estimated_days, message=message)


@router.get("/{job_id}", response_model=BackfillStatusResponse)
async def get_backfill_status(job_id: str, db: DbDep) -> BackfillStatusResponse:
    if is_no_work_job(job_id):
        return BackfillStatusResponse(
            job_id=job_id, total_days=0, completed_days=0, status=JobStatus.COMPLETED.value,
        )

    job = await JobRepo(db).get_by_job_id(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Backfill job not found")
    return BackfillStatusResponse.model_validate(job)


@router.post("/{job_id}/cancel", response_model=BackfillCancelResponse)
async def cancel_backfill(job_id: str, runner: RunnerDep) -> BackfillCancelResponse:
    """Best-effort: the chunk in flight finishes, then the job stops with status error."""
    return BackfillCancelResponse(job_id=job_id, cancelled=await runner.cancel(job_id))


@router.post("/{job_id}/resume", response_model=BackfillStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def resume_backfill(job_id: str, runner: RunnerDep) -> BackfillStatusResponse:
    """Restart a job left pending/running by a previous process."""
    job = await runner.resume(job_id)
    return BackfillStatusResponse.model_validate(job)
