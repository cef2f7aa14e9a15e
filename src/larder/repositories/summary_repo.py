"""Read access to the monthly sales summary."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from larder.models.summary import MonthlySales


class SummaryRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_months(self, start: str | None = None, end: str | None = None) -> list[MonthlySales]:
        """Summary rows ordered by month; ``start``/``end`` are inclusive YYYY-MM bounds."""
        query = select(MonthlySales).order_by(MonthlySales.year_month)
        if start:
            query = query.where(MonthlySales.year_month >= start)
        if end:
            query = query.where(MonthlySales.year_month <= end)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_month(self, year_month: str) -> MonthlySales | None:
        return await self.session.get(MonthlySales, year_month)

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(MonthlySales))
        return result.scalar_one()
