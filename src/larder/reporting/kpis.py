"""KPI queries over the live grocery tables.

These are read-only reporting callers. They never write, and they read
live tables rather than the monthly summary, which may be stale.
"""

from __future__ import annotations
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from larder.models.sales import Customer, Order, OrderItem, Payment, Product


def _rows(result) -> list[dict[str, Any]]:
    return [dict(row) for row in result.mappings().all()]


async def overall(session: AsyncSession) -> dict[str, Any]:
    """Total customers, orders and revenue."""
    customers = await session.scalar(select(func.count()).select_from(Customer))
    orders = await session.scalar(select(func.count()).select_from(Order))
    revenue = await session.scalar(select(func.coalesce(func.sum(Order.total_amount), 0)))
    return {
        "total_customers": customers,
        "total_orders": orders,
        "total_revenue": Decimal(str(revenue)),
    }


async def orders_by_status(session: AsyncSession) -> list[dict[str, Any]]:
    order_count = func.count().label("order_count")
    result = await session.execute(
        select(
            Order.order_status,
            order_count,
            func.sum(Order.total_amount).label("revenue"),
        )
        .group_by(Order.order_status)
        .order_by(desc(order_count))
    )
    return _rows(result)


async def revenue_by_payment_method(session: AsyncSession) -> list[dict[str, Any]]:
    total_revenue = func.sum(Order.total_amount).label("total_revenue")
    result = await session.execute(
        select(
            Order.payment_method,
            func.count(func.distinct(Order.order_id)).label("orders_count"),
            total_revenue,
        )
        .group_by(Order.payment_method)
        .order_by(desc(total_revenue))
    )
    return _rows(result)


async def top_customers(session: AsyncSession, limit: int = 10) -> list[dict[str, Any]]:
    """Customer overview rows ranked by total spend, with first and last order dates."""
    total_spent = func.coalesce(func.sum(Order.total_amount), 0).label("total_spent")
    result = await session.execute(
        select(
            Customer.customer_id,
            Customer.full_name,
            Customer.city,
            Customer.loyalty_points,
            func.count(func.distinct(Order.order_id)).label("total_orders"),
            total_spent,
            func.min(Order.order_date).label("first_order_date"),
            func.max(Order.order_date).label("last_order_date"),
        )
        .outerjoin(Order, Order.customer_id == Customer.customer_id)
        .group_by(Customer.customer_id, Customer.full_name, Customer.city, Customer.loyalty_points)
        .order_by(desc(total_spent), Customer.customer_id)
        .limit(limit)
    )
    return _rows(result)


async def customers_by_city(session: AsyncSession) -> list[dict[str, Any]]:
    customer_count = func.count().label("customer_count")
    result = await session.execute(
        select(
            Customer.city,
            customer_count,
            func.coalesce(func.sum(Customer.loyalty_points), 0).label("total_loyalty_points"),
        )
        .group_by(Customer.city)
        .order_by(desc(customer_count), Customer.city)
    )
    return _rows(result)


async def top_products(session: AsyncSession, limit: int = 10) -> list[dict[str, Any]]:
    """Products ranked by line revenue."""
    total_revenue = func.coalesce(func.sum(OrderItem.line_total), 0).label("total_revenue")
    result = await session.execute(
        select(
            Product.product_id,
            Product.product_name,
            Product.category,
            Product.brand,
            func.coalesce(func.sum(OrderItem.quantity), 0).label("total_qty_sold"),
            total_revenue,
            func.count(func.distinct(OrderItem.order_id)).label("orders_count"),
        )
        .outerjoin(OrderItem, OrderItem.product_id == Product.product_id)
        .group_by(Product.product_id, Product.product_name, Product.category, Product.brand)
        .order_by(desc(total_revenue), Product.product_id)
        .limit(limit)
    )
    return _rows(result)


async def sales_by_category(session: AsyncSession) -> list[dict[str, Any]]:
    category_revenue = func.sum(OrderItem.line_total).label("category_revenue")
    result = await session.execute(
        select(
            Product.category,
            category_revenue,
            func.sum(OrderItem.quantity).label("category_qty"),
        )
        .join(OrderItem, OrderItem.product_id == Product.product_id)
        .group_by(Product.category)
        .order_by(desc(category_revenue))
    )
    return _rows(result)


async def average_basket_size(session: AsyncSession) -> Decimal | None:
    """Mean number of items per order."""
    per_order = (
        select(func.sum(OrderItem.quantity).label("items_per_order"))
        .group_by(OrderItem.order_id)
        .subquery()
    )
    value = await session.scalar(select(func.avg(per_order.c.items_per_order)))
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"))


async def delivery_by_partner(session: AsyncSession) -> list[dict[str, Any]]:
    avg_delivery = func.avg(Order.delivery_time_mins).label("avg_delivery_time_mins")
    result = await session.execute(
        select(
            Order.delivery_partner,
            func.count().label("orders_count"),
            avg_delivery,
        )
        .group_by(Order.delivery_partner)
        .order_by(avg_delivery)
    )
    return _rows(result)


async def payment_status(session: AsyncSession) -> list[dict[str, Any]]:
    result = await session.execute(
        select(Payment.payment_status, func.count().label("count_status"))
        .group_by(Payment.payment_status)
        .order_by(Payment.payment_status)
    )
    return _rows(result)


async def churned_customers(
    session: AsyncSession,
    days: int = 90,
    as_of: date | None = None,
) -> list[dict[str, Any]]:
    """Customers without an order in the last ``days`` days.

    Reads live orders rather than any cached aggregate. Customers who never
    ordered fall back to their registration date.
    """
    as_of = as_of or datetime.now(tz=timezone.utc).date()
    cutoff = datetime.combine(as_of - timedelta(days=days), datetime.min.time())

    last_orders = (
        select(
            Order.customer_id.label("customer_id"),
            func.max(Order.order_date).label("last_order_date"),
        )
        .group_by(Order.customer_id)
        .subquery()
    )

    result = await session.execute(
        select(
            Customer.customer_id,
            Customer.full_name,
            Customer.city,
            last_orders.c.last_order_date,
            Customer.registration_date,
        )
        .outerjoin(last_orders, last_orders.c.customer_id == Customer.customer_id)
        .where(
            (last_orders.c.last_order_date.is_(None))
            | (last_orders.c.last_order_date < cutoff)
        )
    )

    churned = []
    for row in result.mappings().all():
        last_seen = row["last_order_date"]
        if isinstance(last_seen, datetime):
            last_seen = last_seen.date()
        churned.append({
            "customer_id": row["customer_id"],
            "full_name": row["full_name"],
            "city": row["city"],
            "last_order_date": last_seen or row["registration_date"],
        })

    churned.sort(key=lambda c: (c["last_order_date"] is not None, c["last_order_date"] or date.min))
    return churned


async def kpi_report(session: AsyncSession, top_n: int = 10) -> dict[str, Any]:
    return {
        "overall": await overall(session),
        "orders_by_status": await orders_by_status(session),
        "revenue_by_payment_method": await revenue_by_payment_method(session),
        "delivery_by_partner": await delivery_by_partner(session),
        "payment_status": await payment_status(session),
        "sales_by_category": await sales_by_category(session),
        "top_customers": await top_customers(session, limit=top_n),
        "customers_by_city": await customers_by_city(session),
        "top_products": await top_products(session, limit=top_n),
        "avg_items_per_order": await average_basket_size(session),
    }
