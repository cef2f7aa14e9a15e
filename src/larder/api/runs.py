"""Refresh run history endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from larder.core.auth import verify_api_key
from larder.core.database import get_session
from larder.models.run import RunStatus
from larder.refresh import MonthlySalesRefresher
from larder.repositories.run_repo import RunRepository
from larder.schemas.run import RunListResponse, RunResponse

router = APIRouter(prefix="/runs", tags=["runs"])


@router.get("", response_model=RunListResponse)
async def list_runs(
    limit: int = 10,
    status: RunStatus | None = None,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
):
    """List recent refresh runs, newest first, optionally of one status."""
    repo = RunRepository(session)
    runs = await repo.list_by_job(MonthlySalesRefresher.job_name, limit=limit, status=status)
    return RunListResponse(runs=runs, total=len(runs))


@router.get("/last", response_model=RunResponse)
async def get_last_run(
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
):
    """Get the most recent refresh run."""
    repo = RunRepository(session)
    run = await repo.get_last_run(MonthlySalesRefresher.job_name)
    if not run:
        raise HTTPException(404, "No refresh runs recorded")
    return run
