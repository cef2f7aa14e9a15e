"""Pydantic schemas for the monthly sales summary."""

from decimal import Decimal
from pydantic import BaseModel


class MonthlySalesRow(BaseModel):
    year_month: str
    order_count: int
    total_revenue: Decimal
    avg_order_value: Decimal

    model_config = {"from_attributes": True}


class MonthlySalesResponse(BaseModel):
    months: list[MonthlySalesRow]
    total: int
