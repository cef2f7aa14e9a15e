"""Pydantic schemas for refresh runs."""

from datetime import datetime
from pydantic import BaseModel


class RunResponse(BaseModel):
    id: str
    job: str
    status: str
    trigger: str
    started_at: datetime | None
    finished_at: datetime | None
    duration_ms: int | None
    months: int | None
    error: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class RunListResponse(BaseModel):
    runs: list[RunResponse]
    total: int


class RefreshResponse(BaseModel):
    status: str
    run_id: str
