import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Integer, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from tokenprices.db.session import Base, TimestampMixin
from tokenprices.domain.enums import JobStatus


class BackfillJob(TimestampMixin, Base):
    """Progress record for one historical backfill of a (token, network) pair.

    ``start_timestamp`` plus ``total_days`` fully determine the enumerated days, so a
    job can be picked up again after a restart from ``completed_days``.
    """

    __tablename__ = "backfill_jobs"
    __table_args__ = (CheckConstraint("completed_days <= total_days", name="progress"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    job_id: Mapped[str] = mapped_column(String(100), unique=True)
    token_address: Mapped[str] = mapped_column(String(255), index=True)
    network: Mapped[str] = mapped_column(String(50))
    start_timestamp: Mapped[int] = mapped_column(BigInteger)
    total_days: Mapped[int] = mapped_column(Integer, default=0)
    completed_days: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default=JobStatus.PENDING.value, index=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, default=None)
    # Checked between chunks, so any process running the job sees it
    cancel_requested: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=None)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=None)

    @property
    def job_status(self) -> JobStatus:
        return JobStatus(self.status)
