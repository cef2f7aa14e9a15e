"""SQLAlchemy models: source tables, the monthly summary and refresh runs."""

from larder.core.database import Base
from larder.models.sales import Customer, Product, Order, OrderItem, Payment
from larder.models.summary import MonthlySales
from larder.models.run import RefreshRun, RunStatus

__all__ = [
    "Base",
    "Customer",
    "Product",
    "Order",
    "OrderItem",
    "Payment",
    "MonthlySales",
    "RefreshRun",
    "RunStatus",
]
