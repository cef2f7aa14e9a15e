"""Monthly sales summary — derived, fully recomputable from orders."""

from decimal import Decimal
from sqlalchemy import CHAR, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from larder.core.database import Base

# Largest value a DECIMAL(18, 2) column can hold
MAX_AMOUNT = Decimal("9999999999999999.99")


class MonthlySales(Base):
    __tablename__ = "fact_monthly_sales"

    year_month: Mapped[str] = mapped_column(CHAR(7), primary_key=True)  # YYYY-MM
    order_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    avg_order_value: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
