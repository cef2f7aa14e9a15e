"""Monthly Aggregate Refresher — rebuilds fact_monthly_sales from orders.

The summary is a derived cache: every refresh recomputes all months in a
single grouped query and swaps the result in atomically, so readers see
either the previous contents or the new ones. Only one refresh runs at a
time per process; a trigger that arrives mid-refresh is discarded.
"""

from __future__ import annotations
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import ColumnElement, Float, Select, Table, cast, func, literal_column, select
from sqlalchemy.exc import DataError, DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from larder.core import database
from larder.materializations import FullRefreshConfig, MaterializationEngine
from larder.models.sales import Order
from larder.models.summary import MAX_AMOUNT, MonthlySales
from larder.refresh.errors import (
    AggregationOverflow,
    ConcurrentRefreshSkipped,
    SourceUnavailable,
)

logger = logging.getLogger("larder.refresh")


@dataclass
class RefreshResult:
    months: int
    started_at: datetime
    finished_at: datetime
    duration_ms: int


def month_of(column: ColumnElement, dialect: str) -> ColumnElement[str]:
    """Truncate a timestamp column to its calendar month as 'YYYY-MM'."""
    if dialect == "sqlite":
        return func.strftime(literal_column("'%Y-%m'"), column)
    if dialect == "postgresql":
        return func.to_char(column, literal_column("'YYYY-MM'"))
    if dialect in ("mysql", "mariadb"):
        return func.date_format(column, literal_column("'%Y-%m'"))
    raise ValueError(f"Unsupported dialect for month truncation: {dialect}")


class MonthlySalesRefresher:
    """Single writer for the monthly sales summary."""

    job_name = "refresh_monthly_sales"

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.dialect = engine.dialect.name
        self._materializer = MaterializationEngine(engine)
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def source_query(self) -> Select:
        """One grouped pass over orders; the average derives from the same sums."""
        month = month_of(Order.order_date, self.dialect)
        order_count = func.count()
        revenue = func.coalesce(func.sum(Order.total_amount), 0)

        # SQLite would truncate integer-valued sums on division
        numerator = cast(revenue, Float) if self.dialect == "sqlite" else revenue

        return (
            select(
                month.label("year_month"),
                order_count.label("order_count"),
                revenue.label("total_revenue"),
                (numerator / order_count).label("avg_order_value"),
            )
            .where(Order.order_date.is_not(None))
            .group_by(month)
            .order_by(month)
        )

    @asynccontextmanager
    async def exclusive(self):
        """Hold the single-writer slot, or raise ConcurrentRefreshSkipped at once.

        The check and the acquire happen without suspending, so two triggers
        on the same event loop can never both get in.
        """
        if self._lock.locked():
            raise ConcurrentRefreshSkipped("A monthly sales refresh is already running")
        async with self._lock:
            yield self

    async def refresh(self) -> RefreshResult:
        """Rebuild the summary from the whole orders table.

        Raises:
            ConcurrentRefreshSkipped: a refresh is already running
            SourceUnavailable: orders could not be read or the write failed
            AggregationOverflow: a monthly total exceeds DECIMAL(18, 2)
        """
        async with self.exclusive():
            return await self.rebuild()

    async def rebuild(self) -> RefreshResult:
        """The refresh body. Callers must hold ``exclusive()``."""
        started_at = datetime.now(tz=timezone.utc)
        logger.info(f"Refreshing {MonthlySales.__tablename__}")

        config = FullRefreshConfig(
            target=MonthlySales.__table__,
            source=self.source_query(),
            validate=self._check_bounds,
        )

        try:
            stats = await self._materializer.materialize(config)
        except DataError as e:
            raise AggregationOverflow(f"Monthly aggregate out of range: {e.orig}") from e
        except (DBAPIError, OSError) as e:
            raise SourceUnavailable(f"Cannot rebuild monthly sales from orders: {e}") from e

        finished_at = datetime.now(tz=timezone.utc)
        duration_ms = int((finished_at - started_at).total_seconds() * 1000)
        logger.info(f"Refreshed {MonthlySales.__tablename__}: {stats['rows']} months in {duration_ms}ms")

        return RefreshResult(
            months=stats["rows"],
            started_at=started_at,
            finished_at=finished_at,
            duration_ms=duration_ms,
        )

    async def _check_bounds(self, conn: AsyncConnection, table: Table) -> None:
        # |avg| <= |total| for every month, so checking totals covers both
        result = await conn.execute(
            select(func.max(table.c.total_revenue), func.min(table.c.total_revenue))
        )
        highest, lowest = result.one()
        for value in (highest, lowest):
            if value is not None and abs(value) > MAX_AMOUNT:
                raise AggregationOverflow(
                    f"Monthly revenue {value} exceeds DECIMAL(18, 2) range"
                )


_refresher: MonthlySalesRefresher | None = None


def get_refresher() -> MonthlySalesRefresher:
    """Process-wide refresher bound to the current database engine."""
    global _refresher
    if database.engine is None:
        raise RuntimeError("Database engine is not initialized")
    if _refresher is None or _refresher.engine is not database.engine:
        _refresher = MonthlySalesRefresher(database.engine)
    return _refresher
