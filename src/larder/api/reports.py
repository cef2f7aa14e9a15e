"""Reporting endpoints — KPIs, churn and data quality over live tables."""

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from larder.core.auth import verify_api_key
from larder.core.config import get_settings
from larder.core.database import get_session
from larder.reporting import kpis, quality
from larder.schemas.report import ChurnReport, KpiReport, QualityReport

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/kpis", response_model=KpiReport)
async def get_kpis(
    top: int = 10,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
):
    return await kpis.kpi_report(session, top_n=top)


@router.get("/churn", response_model=ChurnReport)
async def get_churn(
    days: int | None = None,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
):
    """Customers with no order in the last ``days`` days (default from settings)."""
    days = days if days is not None else get_settings().churn_days
    today = datetime.now(tz=timezone.utc).date()
    customers = await kpis.churned_customers(session, days=days, as_of=today)
    return ChurnReport(
        days=days,
        cutoff=today - timedelta(days=days),
        customers=customers,
        total=len(customers),
    )


@router.get("/quality", response_model=QualityReport)
async def get_quality(
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
):
    return await quality.run_checks(session)
