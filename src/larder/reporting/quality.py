"""Read-only data-quality checks over the grocery source tables.

Each check counts offending rows; a clean dataset reports zero everywhere.
"""

from __future__ import annotations
from decimal import Decimal

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from larder.models.sales import Customer, Order, OrderItem, Payment, Product

SOURCE_TABLES = {
    "customers": Customer,
    "products": Product,
    "orders": Order,
    "order_items": OrderItem,
    "payments": Payment,
}


def duplicate_emails() -> Select:
    return (
        select(Customer.email)
        .where(Customer.email.is_not(None))
        .group_by(Customer.email)
        .having(func.count() > 1)
    )


def duplicate_phone_numbers() -> Select:
    return (
        select(Customer.phone_number)
        .where(Customer.phone_number.is_not(None))
        .group_by(Customer.phone_number)
        .having(func.count() > 1)
    )


def duplicate_order_lines() -> Select:
    """The same product appearing on more than one line of an order."""
    return (
        select(OrderItem.order_id, OrderItem.product_id)
        .group_by(OrderItem.order_id, OrderItem.product_id)
        .having(func.count() > 1)
    )


def customers_missing_contact() -> Select:
    return select(Customer.customer_id).where(
        or_(
            Customer.email.is_(None),
            Customer.email == "",
            Customer.phone_number.is_(None),
            Customer.phone_number == "",
        )
    )


def orders_missing_payment_data() -> Select:
    return select(Order.order_id).where(
        or_(Order.payment_method.is_(None), Order.total_amount.is_(None))
    )


def payments_missing_status() -> Select:
    return select(Payment.payment_id).where(
        or_(Payment.payment_time.is_(None), Payment.payment_status.is_(None))
    )


def order_total_mismatches(tolerance: Decimal = Decimal("0.01")) -> Select:
    """Orders whose total differs from the sum of their line totals."""
    return (
        select(Order.order_id)
        .join(OrderItem, OrderItem.order_id == Order.order_id)
        .group_by(Order.order_id, Order.total_amount)
        .having(func.abs(Order.total_amount - func.sum(OrderItem.line_total)) > tolerance)
    )


def orphan_payments() -> Select:
    return (
        select(Payment.payment_id)
        .outerjoin(Order, Order.order_id == Payment.order_id)
        .where(Order.order_id.is_(None))
    )


def orphan_orders() -> Select:
    return (
        select(Order.order_id)
        .outerjoin(Customer, Customer.customer_id == Order.customer_id)
        .where(Customer.customer_id.is_(None))
    )


def payments_before_order() -> Select:
    return (
        select(Payment.payment_id)
        .join(Order, Order.order_id == Payment.order_id)
        .where(Payment.payment_time < Order.order_date)
    )


CHECKS = {
    "duplicate_emails": duplicate_emails,
    "duplicate_phone_numbers": duplicate_phone_numbers,
    "duplicate_order_lines": duplicate_order_lines,
    "customers_missing_contact": customers_missing_contact,
    "orders_missing_payment_data": orders_missing_payment_data,
    "payments_missing_status": payments_missing_status,
    "order_total_mismatches": order_total_mismatches,
    "orphan_payments": orphan_payments,
    "orphan_orders": orphan_orders,
    "payments_before_order": payments_before_order,
}


async def row_counts(session: AsyncSession) -> dict[str, int]:
    counts = {}
    for name, model in SOURCE_TABLES.items():
        counts[name] = await session.scalar(select(func.count()).select_from(model))
    return counts


async def count_offending(session: AsyncSession, query: Select) -> int:
    return await session.scalar(select(func.count()).select_from(query.subquery()))


async def run_checks(session: AsyncSession) -> dict:
    """Run every check. Returns row counts, per-check issue counts and a verdict."""
    issues = {}
    for name, build in CHECKS.items():
        issues[name] = await count_offending(session, build())

    return {
        "row_counts": await row_counts(session),
        "issues": issues,
        "passed": not any(issues.values()),
    }
