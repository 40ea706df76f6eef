from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class BackfillCreate(BaseModel):
    token: str = Field(min_length=1)
    network: str = Field(min_length=1)

    @field_validator("token", "network")
    @classmethod
    def normalize(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("must not be blank")
        return v


class BackfillScheduledResponse(BaseModel):
    job_id: str
    estimated_days: int
    message: str


class BackfillStatusResponse(BaseModel):
    job_id: str
    token_address: Optional[str] = None
    network: Optional[str] = None
    total_days: int
    completed_days: int
    status: str
    error_message: Optional[str] = None
    cancel_requested: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BackfillCancelResponse(BaseModel):
    job_id: str
    cancelled: bool
