"""Pydantic schemas for KPI, churn and data-quality reports."""

from datetime import date
from decimal import Decimal
from typing import Any
from pydantic import BaseModel


class OverallKpis(BaseModel):
    total_customers: int
    total_orders: int
    total_revenue: Decimal


class KpiReport(BaseModel):
    overall: OverallKpis
    orders_by_status: list[dict[str, Any]]
    revenue_by_payment_method: list[dict[str, Any]]
    delivery_by_partner: list[dict[str, Any]]
    payment_status: list[dict[str, Any]]
    sales_by_category: list[dict[str, Any]]
    top_customers: list[dict[str, Any]]
    customers_by_city: list[dict[str, Any]]
    top_products: list[dict[str, Any]]
    avg_items_per_order: Decimal | None


class ChurnedCustomer(BaseModel):
    customer_id: int
    full_name: str | None
    city: str | None
    last_order_date: date | None


class ChurnReport(BaseModel):
    days: int
    cutoff: date
    customers: list[ChurnedCustomer]
    total: int


class QualityReport(BaseModel):
    row_counts: dict[str, int]
    issues: dict[str, int]
    passed: bool
