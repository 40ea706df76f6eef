from enum import Enum


class JobStatus(str, Enum):
    """Backfill job lifecycle: PENDING -> RUNNING -> COMPLETED | ERROR."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)
