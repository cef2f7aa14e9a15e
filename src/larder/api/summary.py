"""Monthly sales summary endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from larder.core.auth import verify_api_key
from larder.core.database import get_session
from larder.repositories.summary_repo import SummaryRepository
from larder.schemas.summary import MonthlySalesResponse, MonthlySalesRow

router = APIRouter(prefix="/monthly-sales", tags=["monthly-sales"])


@router.get("", response_model=MonthlySalesResponse)
async def list_monthly_sales(
    start: str | None = None,
    end: str | None = None,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
):
    """Summary rows as of the last refresh, ordered by month."""
    months = await SummaryRepository(session).list_months(start=start, end=end)
    return MonthlySalesResponse(months=months, total=len(months))


@router.get("/{year_month}", response_model=MonthlySalesRow)
async def get_month(
    year_month: str,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
):
    row = await SummaryRepository(session).get_month(year_month)
    if not row:
        raise HTTPException(404, f"No summary for month '{year_month}'")
    return row
